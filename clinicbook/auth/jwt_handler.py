from datetime import datetime, timedelta, timezone

import jwt

from clinicbook.core import config
from clinicbook.models.user import USER_ROLES

REQUIRED_CLAIMS = ["sub", "exp"]


def create_access_token(email: str, role: str = "patient", expires_minutes: int | None = None) -> str:
    if role not in USER_ROLES:
        raise ValueError(f"Unknown role: {role}")

    issued_at = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or config.JWT_EXPIRES_MINUTES)
    claims = {"sub": email.strip().lower(), "role": role, "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(claims, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Decode a bearer token; raises ``jwt.PyJWTError`` when it is expired, forged or missing claims."""
    return jwt.decode(
        token,
        config.JWT_SECRET_KEY,
        algorithms=[config.JWT_ALGORITHM],
        options={"require": REQUIRED_CLAIMS},
    )
