"""Stateless HS256 access tokens.

Tokens are standard three-segment JWTs carrying ``userId``, ``email``,
``role`` and ``exp``. There is no revocation list: a token stays valid for
its whole TTL and logout is a client-side discard.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from .core_utils import Clock, epoch_seconds, utc_now
from .errors import InvalidSignature, MalformedToken, SigningError, TokenExpired

_log = logging.getLogger(__name__)

VALID_ROLES = frozenset({"teacher", "student", "admin"})
_HEADER = {"alg": "HS256", "typ": "JWT"}

# Older clients were issued tokens with the ``userID`` spelling.
_USER_ID_KEYS = ("userId", "userID")


@dataclass(frozen=True)
class Claims:
    user_id: int
    email: str
    role: str
    exp: int
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64url_decode(text: str) -> bytes:
    raw = str(text or "")
    if not raw:
        return b""
    padding = "=" * (-len(raw) % 4)
    return base64.urlsafe_b64decode(raw + padding)


def _json_segment(payload: Dict[str, Any]) -> str:
    return _b64url_encode(json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8"))


def _normalize_role(value: Any) -> str:
    return str(value or "").strip().lower()


def _sign(secret: str, signing_input: str) -> bytes:
    return hmac.new(secret.encode("utf-8"), signing_input.encode("ascii"), hashlib.sha256).digest()


def encode_claims(claims: Dict[str, Any], *, secret: str) -> str:
    """Sign an arbitrary claim set. Exposed for tests and tooling."""
    if not str(secret or "").strip():
        raise SigningError("auth_token_secret_missing")
    signing_input = f"{_json_segment(_HEADER)}.{_json_segment(claims or {})}"
    return f"{signing_input}.{_b64url_encode(_sign(secret, signing_input))}"


def _extract_user_id(payload: Dict[str, Any]) -> int:
    for key in _USER_ID_KEYS:
        if key not in payload:
            continue
        value = payload[key]
        if isinstance(value, bool):
            break
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        break
    raise MalformedToken("invalid user ID in token")


class TokenIssuer:
    def __init__(self, secret: str, *, ttl_sec: int, clock: Clock = utc_now):
        self._secret = str(secret or "")
        self.ttl_sec = int(ttl_sec)
        self._clock = clock

    def issue(self, user_id: int, email: str, role: str, now: Optional[datetime] = None) -> str:
        role_norm = _normalize_role(role)
        if role_norm not in VALID_ROLES:
            raise SigningError("invalid_token_claims")
        issued_at = epoch_seconds(now or self._clock())
        claims = {
            "userId": int(user_id),
            "email": str(email or ""),
            "role": role_norm,
            "iat": issued_at,
            "exp": issued_at + self.ttl_sec,
        }
        return encode_claims(claims, secret=self._secret)

    def verify(self, token: str, now: Optional[datetime] = None) -> Claims:
        text = str(token or "").strip()
        if not text:
            raise MalformedToken("missing_bearer_token")
        if not self._secret:
            raise SigningError("auth_token_secret_missing")

        parts = text.split(".")
        if len(parts) != 3:
            raise MalformedToken("invalid_token_format")
        header_segment, payload_segment, sig_segment = parts

        try:
            header = json.loads(_b64url_decode(header_segment).decode("utf-8"))
        except Exception:
            raise MalformedToken("invalid_token_header")
        if not isinstance(header, dict) or header.get("alg") != "HS256":
            raise InvalidSignature("unexpected signing method")

        # only the canonical unpadded encoding of the MAC is accepted
        expected = _b64url_encode(_sign(self._secret, f"{header_segment}.{payload_segment}"))
        if not hmac.compare_digest(sig_segment.encode("ascii", "replace"), expected.encode("ascii")):
            raise InvalidSignature()

        try:
            payload = json.loads(_b64url_decode(payload_segment).decode("utf-8"))
        except Exception:
            raise MalformedToken("invalid_token_payload")
        if not isinstance(payload, dict):
            raise MalformedToken("invalid_token_payload")

        exp_raw = payload.get("exp")
        if isinstance(exp_raw, bool) or not isinstance(exp_raw, (int, float)):
            raise MalformedToken("invalid_token_exp")
        exp = int(exp_raw)
        if exp <= epoch_seconds(now or self._clock()):
            raise TokenExpired()

        user_id = _extract_user_id(payload)
        role = _normalize_role(payload.get("role"))
        if role not in VALID_ROLES or not isinstance(payload.get("role"), str):
            raise MalformedToken("invalid user role in token")
        email = payload.get("email", "")
        if not isinstance(email, str):
            raise MalformedToken("invalid email in token")

        return Claims(user_id=user_id, email=email, role=role, exp=exp, raw=dict(payload))
