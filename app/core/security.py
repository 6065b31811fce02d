"""Password hashing, JWT signing/verification and random secret generation."""

import hashlib
import hmac
import re
import secrets
import string
from typing import Any

import bcrypt
import jwt

from app.core.config import settings

# Request field bounds.
USERNAME_MIN_LEN = 1
USERNAME_MAX_LEN = 255
PASSWORD_MAX_LEN = 128
# Passwords chosen on first setup vs. after a forgot-password OTP.
INITIAL_PASSWORD_MIN_LEN = 12
RESET_PASSWORD_MIN_LEN = 8

SPECIAL_CHARACTERS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"

_LOWER = re.compile(r"[a-z]")
_UPPER = re.compile(r"[A-Z]")
_DIGIT = re.compile(r"\d")
_SPECIAL = re.compile("[" + re.escape(SPECIAL_CHARACTERS) + "]")


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def password_meets_policy(password: str, min_length: int) -> bool:
    """True if password has min_length+ chars with lower, upper, digit and special characters."""
    if not (min_length <= len(password) <= PASSWORD_MAX_LEN):
        return False
    return all(p.search(password) for p in (_LOWER, _UPPER, _DIGIT, _SPECIAL))


def generate_session_id() -> str:
    """Opaque session identifier with 256 bits of entropy."""
    return secrets.token_hex(32)


def generate_temporary_password(length: int | None = None) -> str:
    """
    Random password that satisfies password_meets_policy for the initial length.

    One character from each class is guaranteed; the rest is drawn from the union
    and the result is shuffled with the OS CSPRNG.
    """
    length = length or settings.TEMP_PASSWORD_LENGTH
    classes = (string.ascii_lowercase, string.ascii_uppercase, string.digits, SPECIAL_CHARACTERS)
    alphabet = "".join(classes)
    chars = [secrets.choice(c) for c in classes]
    chars.extend(secrets.choice(alphabet) for _ in range(length - len(chars)))
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


def generate_numeric_otp(length: int | None = None) -> str:
    """Numeric one-time password, e.g. '048213'."""
    length = length or settings.OTP_LENGTH
    return "".join(secrets.choice(string.digits) for _ in range(length))


def digest_secret(value: str) -> str:
    """SHA-256 hex digest, used to store OTPs and password-hash fingerprints."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def secrets_match(a: str, b: str) -> bool:
    """Constant-time string comparison."""
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def encode_jwt(payload: dict[str, Any]) -> str:
    """Sign a JWT with the configured secret and algorithm."""
    secret = settings.JWT_SECRET.get_secret_value()
    return jwt.encode(
        payload,
        secret,
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_jwt(token: str) -> dict[str, Any]:
    """
    Decode and validate a JWT signature and expiry; return the payload.
    Raises jwt.ExpiredSignatureError when expired, jwt.PyJWTError when otherwise invalid.
    """
    secret = settings.JWT_SECRET.get_secret_value()
    return jwt.decode(
        token,
        secret,
        algorithms=[settings.JWT_ALGORITHM],
        options={"require": ["exp", "iat", "sub"]},
    )
