"""MFA lifecycle endpoints: enrol, confirm enrolment, and the per-login TOTP challenge."""

from typing import Annotated

from fastapi import APIRouter, Depends

from app.api.deps import DbSession, PurposeContext, get_hrm_notifier, purpose_token
from app.schemas.common import ApiResponse, ok
from app.schemas.mfa import MfaCodeRequest
from app.services import mfa as mfa_service
from app.services.hrm_client import HrmNotifier
from app.services.tokens import TokenPurpose

router = APIRouter()

# Enrolment works from a full session or from the token of a login that stopped at MFA
EnrolmentActor = Annotated[
    PurposeContext,
    Depends(purpose_token(TokenPurpose.ACCESS, TokenPurpose.MFA_VALIDATION)),
]
ChallengeActor = Annotated[PurposeContext, Depends(purpose_token(TokenPurpose.MFA_VALIDATION))]


@router.post("/generate", response_model=ApiResponse)
def generate(db: DbSession, actor: EnrolmentActor) -> ApiResponse:
    """New pending TOTP secret and QR code; confirm it with /mfa/verify-setup."""
    data = mfa_service.generate_mfa(db, actor.credential, fully_authenticated=actor.fully_authenticated)
    return ok(
        "Scan the QR code with your authenticator app, then verify the token to enable MFA.",
        data,
    )


@router.post("/verify-setup", response_model=ApiResponse)
def verify_setup(body: MfaCodeRequest, db: DbSession, actor: EnrolmentActor) -> ApiResponse:
    result = mfa_service.verify_and_enable_mfa(db, actor.credential, body.token)
    return ok("MFA has been successfully enabled.", result)


@router.post("/validate", response_model=ApiResponse)
def validate(
    body: MfaCodeRequest,
    db: DbSession,
    actor: ChallengeActor,
    notifier: Annotated[HrmNotifier, Depends(get_hrm_notifier)],
) -> ApiResponse:
    """
    Complete a login that answered mfaRequired; returns the same payload as a
    successful login. Wrong codes count toward the account lockout.
    """
    return ok("Login successful", mfa_service.validate_mfa_login(db, actor.credential, body.token, notifier))
