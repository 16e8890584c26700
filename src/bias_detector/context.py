"""
Context Management.

Defines ContextVars for request-scoped data (user, correlation ID, claims).
"""

from collections.abc import Mapping
from contextvars import ContextVar
from types import MappingProxyType
from typing import Any

# Context variables for request-scoped data
correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="unknown")
user_id_ctx: ContextVar[str] = ContextVar("user_id", default="anonymous")
claims_ctx: ContextVar[Mapping[str, Any]] = ContextVar(
    "claims", default=MappingProxyType({})
)
