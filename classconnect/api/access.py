"""Request gate: bearer verification and role checks.

The middleware verifies the token once per request and publishes a typed
``AuthPrincipal`` through a ContextVar; handlers call ``require_principal``
with the roles they accept.
"""
from __future__ import annotations

import contextvars
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence, Set

from starlette.responses import JSONResponse

from .errors import ApiError, Forbidden, MalformedHeader, MissingAuthorization
from .token_service import Claims, TokenIssuer

_log = logging.getLogger(__name__)

ASGIApp = Callable[[Dict[str, Any], Callable[[], Awaitable[Dict[str, Any]]], Callable[[Dict[str, Any]], Awaitable[None]]], Awaitable[None]]

_GATED_PREFIX = "/api/"
_EXEMPT_PREFIXES = ("/api/auth/",)


_CURRENT_PRINCIPAL: contextvars.ContextVar[Optional["AuthPrincipal"]] = contextvars.ContextVar(
    "CURRENT_PRINCIPAL",
    default=None,
)


@dataclass(frozen=True)
class AuthPrincipal:
    user_id: int
    email: str
    role: str
    exp: int

    @classmethod
    def from_claims(cls, claims: Claims) -> "AuthPrincipal":
        return cls(user_id=claims.user_id, email=claims.email, role=claims.role, exp=claims.exp)


def is_exempt(path: str, method: str = "") -> bool:
    if str(method or "").strip().upper() == "OPTIONS":
        return True
    value = str(path or "").strip() or "/"
    if not value.startswith(_GATED_PREFIX):
        return True
    return value.startswith(_EXEMPT_PREFIXES)


def parse_bearer_header(value: Optional[str]) -> str:
    text = str(value or "").strip()
    if not text:
        raise MissingAuthorization()
    parts = text.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        raise MalformedHeader()
    return parts[1]


def resolve_principal(headers: Mapping[str, Any], *, verifier: TokenIssuer) -> AuthPrincipal:
    authz = headers.get("authorization") or headers.get("Authorization")
    token = parse_bearer_header(authz)
    return AuthPrincipal.from_claims(verifier.verify(token))


def _scope_headers(scope: Dict[str, Any]) -> Dict[str, str]:
    headers_map: Dict[str, str] = {}
    for key_raw, value_raw in scope.get("headers") or []:
        key = key_raw.decode("latin-1") if isinstance(key_raw, (bytes, bytearray)) else str(key_raw)
        value = value_raw.decode("latin-1") if isinstance(value_raw, (bytes, bytearray)) else str(value_raw)
        headers_map[key.lower()] = value
    return headers_map


def set_current_principal(principal: Optional[AuthPrincipal]) -> contextvars.Token:
    return _CURRENT_PRINCIPAL.set(principal)


def reset_current_principal(token: Any) -> None:
    _CURRENT_PRINCIPAL.reset(token)


def get_current_principal() -> Optional[AuthPrincipal]:
    return _CURRENT_PRINCIPAL.get()


def require_principal(*, roles: Optional[Sequence[str]] = None) -> AuthPrincipal:
    principal = get_current_principal()
    if principal is None:
        raise MissingAuthorization()
    if roles:
        allowed: Set[str] = {str(role or "").strip().lower() for role in roles}
        if principal.role not in allowed:
            raise Forbidden()
    return principal


class AccessMiddleware:
    """ASGI gate that rejects unauthenticated requests before routing."""

    def __init__(self, app: ASGIApp, *, verifier: TokenIssuer):
        self.app = app
        self.verifier = verifier

    async def __call__(self, scope, receive, send):  # type: ignore[override]
        if scope.get("type") != "http":
            return await self.app(scope, receive, send)

        path = scope.get("path") or ""
        if isinstance(path, bytes):
            path = path.decode("utf-8", errors="ignore")
        if is_exempt(str(path), str(scope.get("method") or "")):
            return await self.app(scope, receive, send)

        try:
            principal = resolve_principal(_scope_headers(scope), verifier=self.verifier)
        except ApiError as exc:
            _log.info("request rejected path=%s reason=%s", path, exc.detail)
            response = JSONResponse({"error": exc.detail}, status_code=exc.status_code)
            return await response(scope, receive, send)

        token = set_current_principal(principal)
        try:
            return await self.app(scope, receive, send)
        finally:
            reset_current_principal(token)
