# civreg/core/security.py
from datetime import datetime, timedelta, timezone
import jwt
from civreg.core.config import settings

ROLES = ("CITIZEN", "EMPLOYEE", "ADMIN")
STAFF_ROLES = ["EMPLOYEE", "ADMIN"]


def create_access_token(sub: str, name: str, role: str, minutes: int | None = None) -> str:
    # The auth provider signs the same claims; this is used for service accounts and tests.
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes or settings.access_token_expire_minutes)
    claims = {"sub": sub, "name": name, "role": role.upper(), "exp": expire}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_token(token: str) -> dict:
    return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
