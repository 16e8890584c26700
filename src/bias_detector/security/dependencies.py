"""
Security dependencies for FastAPI.
"""

import logging

from bias_detector.common.exceptions import AuthenticationError
from bias_detector.config.loader import get_config
from bias_detector.context import claims_ctx, user_id_ctx
from bias_detector.security.auth import extract_identity
from bias_detector.security.jwt_decoder import JWTDecoder, build_jwt_decoder
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)
auth_scheme = HTTPBearer(auto_error=False)


def get_jwt_decoder(request: Request) -> JWTDecoder:
    """Decoder configured at startup, built lazily if the app skipped it."""
    decoder = getattr(request.app.state, "jwt_decoder", None)
    if decoder is None:
        decoder = build_jwt_decoder(get_config())
        request.app.state.jwt_decoder = decoder
    return decoder


async def get_current_user(
    request: Request,
    token: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
    decoder: JWTDecoder = Depends(get_jwt_decoder),
) -> str:
    """
    Dependency to get the current user id from the bearer JWT.

    Raises AuthenticationError (401) when the token is missing or invalid.
    """
    if token is None or not token.credentials:
        raise AuthenticationError()

    try:
        user_id, claims = await extract_identity(token.credentials, decoder)
    except AuthenticationError as exc:
        logger.info("Rejected bearer token: %s", exc.message)
        raise AuthenticationError() from exc

    user_id_ctx.set(user_id)
    claims_ctx.set(claims)
    request.state.user_id = user_id
    return user_id
