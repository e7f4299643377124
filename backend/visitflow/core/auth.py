"""
Authentication dependencies for FastAPI routes.

Provides get_current_user_id: extracts and verifies the JWT bearer token
and returns the subject (the owner id used to scope every record).
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from .security import decode_token


logger = logging.getLogger(__name__)

# tokenUrl is informational (Swagger UI); tokens come from the handoff exchange
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/v1/auth/exchange-handoff", auto_error=False)


async def get_current_user_id(
    token: Optional[str] = Depends(oauth2_scheme),
) -> str:
    """
    Decode the JWT bearer token and return the authenticated user id.

    Raises 401 if the token is missing, invalid or carries no subject.
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(token)
    if payload is None or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if not user_id:
        logger.warning("Bearer token without subject rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user_id
