"""
Identity extraction from bearer tokens.
"""

from __future__ import annotations

import inspect
from typing import Any

from bias_detector.common.exceptions import AuthenticationError


async def extract_identity(
    token: str | None, decoder: Any
) -> tuple[str, dict[str, Any]]:
    """
    Verify ``token`` and resolve the stable user identifier.

    Returns:
        ``(user_id, claims)``; ``user_id`` comes from ``sub`` (or
        ``user_id``/``uid`` as issued by some providers).

    Raises:
        AuthenticationError: missing, unverifiable or subject-less token.
    """
    token_value = (token or "").strip()
    if not token_value:
        raise AuthenticationError("Bearer token missing")
    if decoder is None or not callable(decoder):
        raise AuthenticationError(
            "JWT decoder not configured", error_code="AUTH_NOT_CONFIGURED"
        )

    decoded = decoder(token_value)
    claims = await decoded if inspect.isawaitable(decoded) else decoded
    if not isinstance(claims, dict):
        raise AuthenticationError("Token claims invalid")

    user_id = claims.get("sub") or claims.get("user_id") or claims.get("uid")
    if not isinstance(user_id, str) or not user_id.strip():
        raise AuthenticationError("Token has no subject")

    return user_id.strip(), claims
