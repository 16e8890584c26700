"""
JWT/JWKS decoders.

Production verifies RS256 tokens against the identity provider's JWKS;
dev/test accept HS256 tokens signed with the configured secret.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import jwt
import requests
from bias_detector.common.exceptions import AuthenticationError, SecurityError
from fastapi.concurrency import run_in_threadpool
from jwt import algorithms
from jwt.exceptions import PyJWTError as JWTError

logger = logging.getLogger(__name__)

JWTDecoder = Callable[[str], Awaitable[dict[str, Any]]]

_jwks_cache: dict[str, Any] = {}


def _load_jwks(jwks_url: str) -> dict[str, Any]:
    if jwks_url in _jwks_cache:
        return _jwks_cache[jwks_url]
    response = requests.get(jwks_url, timeout=5)
    response.raise_for_status()
    data = response.json()
    _jwks_cache[jwks_url] = data
    return data


def _find_jwks_key(jwks: dict[str, Any], token: str) -> dict[str, Any]:
    """Find the matching key in JWKS for the given token."""
    headers = jwt.get_unverified_header(token)
    kid = headers.get("kid")
    for candidate in jwks.get("keys", []):
        if candidate.get("kid") == kid:
            return candidate
    raise AuthenticationError("JWT key id not found in JWKS")


def create_jwks_decoder(
    jwks_url: str, audience: str | None, issuer: str | None
) -> JWTDecoder:
    """Create a JWKS-based RS256 decoder."""

    async def decode(token: str) -> dict[str, Any]:
        try:
            jwks = await run_in_threadpool(_load_jwks, jwks_url)
            key_data = _find_jwks_key(jwks, token)
            public_key = algorithms.RSAAlgorithm.from_jwk(key_data)

            decode_options = {}
            if not audience:
                decode_options["verify_aud"] = False
            if not issuer:
                decode_options["verify_iss"] = False

            return jwt.decode(
                token,
                public_key,
                algorithms=["RS256"],
                audience=audience if audience else None,
                issuer=issuer if issuer else None,
                options=decode_options,
            )
        except SecurityError:
            raise
        except JWTError as exc:
            raise AuthenticationError("Invalid JWT") from exc
        except requests.RequestException as exc:
            logger.warning("Failed to load JWKS from %s", jwks_url)
            raise AuthenticationError("Failed to load JWKS") from exc

    return decode


def create_prod_reject_decoder() -> JWTDecoder:
    """Create a decoder that rejects all tokens in production without JWKS."""

    async def reject(_: str) -> dict[str, Any]:
        raise AuthenticationError(
            "JWKS configuration required in production",
            error_code="AUTH_NOT_CONFIGURED",
        )

    return reject


def create_secret_decoder(secret_key: str) -> JWTDecoder:
    """Create a dev-mode HS256 decoder using the shared secret."""

    async def decode_verified_secret(token: str) -> dict[str, Any]:
        try:
            return jwt.decode(token, secret_key, algorithms=["HS256"])
        except jwt.ExpiredSignatureError as exc:
            raise AuthenticationError("Token has expired") from exc
        except JWTError as exc:
            raise AuthenticationError("Invalid JWT") from exc

    return decode_verified_secret


def build_jwt_decoder(config: Any) -> JWTDecoder:
    """Pick the decoder for the configured environment."""
    security = config.security
    if security.jwks_url:
        logger.info("Security: JWT validation enabled via JWKS %s", security.jwks_url)
        return create_jwks_decoder(security.jwks_url, security.audience, security.issuer)

    if config.core.env == "prod":
        logger.warning(
            "Security: prod environment without JWKS configuration; all tokens rejected"
        )
        return create_prod_reject_decoder()

    logger.info("Security: dev mode with HS256 shared-secret tokens")
    return create_secret_decoder(config.SECRET_KEY)
