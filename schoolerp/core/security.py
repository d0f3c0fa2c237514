# schoolerp/core/security.py

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from schoolerp.core.config import Settings
from schoolerp.core.errors import TokenError
from schoolerp.core.logging import logger
from schoolerp.schemas.auth import CurrentUser


def create_token(
    settings: Settings,
    data: Dict[str, Any],
    token_type: str = "access",
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create JWT token with specified type and expiration"""
    to_encode = data.copy()

    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({
        "exp": datetime.now(timezone.utc) + expires_delta,
        "type": token_type,
        "iss": settings.TOKEN_ISSUER,
        "jti": secrets.token_urlsafe(16)
    })

    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(settings: Settings, user: CurrentUser, expires_delta: Optional[timedelta] = None) -> str:
    """Create access token carrying the user's identity and school"""
    data = {
        "sub": user.id,
        "role": user.role.value,
        "school_code": user.school_code,
        "name": user.name,
        "email": user.email,
        "user_id": user.user_id,
    }
    return create_token(settings, data, "access", expires_delta)


def verify_token(settings: Settings, token: str, token_type: Optional[str] = "access") -> Dict[str, Any]:
    """
    Verify JWT token and optionally check token type
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            issuer=settings.TOKEN_ISSUER,
        )
    except JWTError as e:
        logger.warning(f"Token verification failed: {str(e)}")
        raise TokenError("Invalid token")

    if token_type and payload.get("type") != token_type:
        raise TokenError(f"Invalid token type. Expected {token_type}")

    return payload


def user_from_payload(payload: Dict[str, Any]) -> CurrentUser:
    if not payload.get("sub") or not payload.get("role"):
        raise TokenError("Token is missing user identity")
    try:
        return CurrentUser(
            id=str(payload["sub"]),
            role=payload["role"],
            school_code=payload.get("school_code"),
            name=payload.get("name"),
            email=payload.get("email"),
            user_id=payload.get("user_id"),
        )
    except ValueError:
        raise TokenError(f"Unknown role: {payload.get('role')}")
