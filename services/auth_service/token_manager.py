from datetime import datetime, timedelta

from jose import jwt, JWTError, ExpiredSignatureError

from shared.config_loader import settings
from shared.exceptions import TokenExpired


def create_access_token(employee_id: int, role: str, expires_minutes: int | None = None) -> str:
    minutes = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    payload = {
        "sub": str(employee_id),
        "role": role,
        "exp": datetime.utcnow() + timedelta(minutes=minutes),
        "type": "access",
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict | None:
    """Return the claims, None for a malformed token; raises TokenExpired once past ``exp``."""
    try:
        return jwt.decode(
            token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
    except ExpiredSignatureError:
        raise TokenExpired()
    except JWTError:
        return None
