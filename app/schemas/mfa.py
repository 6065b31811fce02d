"""Schemas for the MFA lifecycle endpoints."""

from pydantic import Field

from app.schemas.common import CamelModel


class MfaCodeRequest(CamelModel):
    """Six-digit TOTP code from the authenticator app."""

    token: str = Field(..., min_length=6, max_length=8, pattern=r"^\d+$")


class MfaSetupData(CamelModel):
    """Secret and scannable QR for enrolment."""

    secret: str
    qr_code_url: str
