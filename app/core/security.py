import hashlib
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import bcrypt
import jwt

from app.core.config import settings

ALGORITHM = "HS256"
CONFIRM_EMAIL = "confirm-email"
RESET_PASSWORD = "reset-password"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=settings.bcrypt_rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_access_token(user_name: str, roles: List[str]) -> Tuple[str, datetime]:
    expires = _now() + timedelta(hours=settings.token_hours)
    payload = {
        "sub": user_name,
        "jti": str(uuid.uuid4()),
        "roles": list(roles),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "exp": expires,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM), expires


def decode_access_token(token: str) -> dict:
    """Raises jwt.InvalidTokenError on a bad, expired or foreign token."""
    payload = jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM],
                         audience=settings.jwt_audience, issuer=settings.jwt_issuer)
    if "purpose" in payload:
        raise jwt.InvalidTokenError("not an access token")
    return payload


def password_fingerprint(password_hash: str) -> str:
    # changes whenever the password does, so reset links are single use
    return hashlib.sha256(password_hash.encode("utf-8")).hexdigest()[:16]


def create_link_token(purpose: str, email: str, fingerprint: str) -> str:
    payload = {
        "purpose": purpose,
        "email": email,
        "fp": fingerprint,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "exp": _now() + timedelta(minutes=settings.link_minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)


def check_link_token(token: str, purpose: str, email: str, fingerprint: str) -> bool:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM],
                             audience=settings.jwt_audience, issuer=settings.jwt_issuer)
    except jwt.InvalidTokenError:
        return False
    return (payload.get("purpose") == purpose
            and payload.get("email") == email
            and payload.get("fp") == fingerprint)


def generate_otp() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


def otp_expiry() -> datetime:
    return datetime.now() + timedelta(minutes=settings.otp_minutes)


def check_otp(code: str, otp_hash: Optional[str], expires_at: Optional[datetime]) -> bool:
    if not otp_hash or expires_at is None or expires_at < datetime.now():
        return False
    return verify_password(code, otp_hash)
