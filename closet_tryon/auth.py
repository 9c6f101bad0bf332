"""Bearer session token verification."""

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import AuthConfig

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_session_token(token: str, config: AuthConfig) -> str:
    """Return the user id (``sub``) carried by a session token.

    Raises:
        HTTPException: 401 if the token is invalid or has no subject
    """
    if not config.secret:
        logger.error("AUTH_SECRET is not configured; rejecting all tokens")
        raise _unauthorized()

    try:
        payload = jwt.decode(token, config.secret, algorithms=[config.algorithm])
    except JWTError as e:
        logger.info("Rejected session token: %s", e)
        raise _unauthorized() from e

    user_id = payload.get("sub")
    if not user_id:
        raise _unauthorized()
    return str(user_id)


def current_user_dependency(get_config):
    """Build a FastAPI dependency resolving the signed-in user's id."""

    async def get_current_user(
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    ) -> str:
        if credentials is None:
            raise _unauthorized()
        return decode_session_token(credentials.credentials, get_config())

    return get_current_user
