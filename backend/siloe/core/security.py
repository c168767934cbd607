from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from ..config import get_settings

# Identity is asserted upstream; we only verify the bearer token and read its subject
bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Create a new access token.

    Args:
        data: The data to encode in the token (``sub`` carries the user id)
        expires_delta: Optional expiration time delta

    Returns:
        str: The encoded JWT token
    """
    settings = get_settings()
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=15)
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_token(token: str) -> Dict[str, Any]:
    """Verify a JWT token and return its payload.

    Raises:
        JWTError: If the token is invalid or expired
    """
    settings = get_settings()
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_optional_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    """The authenticated user's id, or None for anonymous requests.

    A token that is present but invalid is rejected rather than treated as anonymous.
    """
    if credentials is None:
        return None
    try:
        payload = verify_token(credentials.credentials)
    except JWTError:
        raise _unauthorized("Could not validate credentials")
    if payload.get("type") not in (None, "access"):
        raise _unauthorized("Invalid token type")
    sub = payload.get("sub")
    if not sub:
        raise _unauthorized("Token has no subject")
    return str(sub)


async def get_current_user_id(user_id: Optional[str] = Depends(get_optional_user_id)) -> str:
    if user_id is None:
        raise _unauthorized("Not authenticated")
    return user_id
