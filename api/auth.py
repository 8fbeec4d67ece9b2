"""
Bearer token authentication for the FastAPI API.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from shelftrack.errors import AuthenticationError
from shelftrack.security import TokenIssuer
from utilities.logger import bind_request_context, get_logger

logger = get_logger(__name__)

# Security scheme; errors are raised by us so they share the {error} shape
security = HTTPBearer(auto_error=False)


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


async def get_current_user_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
) -> str:
    """
    Resolve the authenticated user id from the ``Authorization`` header.

    Returns:
        Id of the user the token was issued to

    Raises:
        AuthenticationError: If the header is missing or malformed, or the
            token is invalid or expired
    """
    header = request.headers.get("Authorization")
    if not header:
        raise AuthenticationError("Token not provided")

    if credentials is None or not credentials.credentials or len(header.split()) != 2:
        raise AuthenticationError("Malformed token")

    try:
        user_id = token_issuer.verify(credentials.credentials)
    except AuthenticationError as e:
        logger.warning("Rejected bearer token", reason=e.message, path=request.url.path)
        raise

    bind_request_context(user_id=user_id)
    return user_id
