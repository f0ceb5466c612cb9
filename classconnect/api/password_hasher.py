from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
from functools import lru_cache
from typing import Optional

from .errors import HashingError

_log = logging.getLogger(__name__)

ALGORITHM = "pbkdf2_sha256"
DEFAULT_ITERATIONS = 310_000
_SALT_BYTES = 16


def hash_password(password: str, *, iterations: Optional[int] = None) -> str:
    """Return a self-describing ``algo$iterations$salt$digest`` string."""
    iterations = int(iterations or DEFAULT_ITERATIONS)
    try:
        salt = secrets.token_bytes(_SALT_BYTES)
        digest = hashlib.pbkdf2_hmac(
            "sha256",
            str(password or "").encode("utf-8"),
            salt,
            int(iterations),
        )
    except (OSError, MemoryError, ValueError) as exc:
        _log.error("password hashing failed", exc_info=True)
        raise HashingError() from exc
    return "{}${}${}${}".format(
        ALGORITHM,
        int(iterations),
        base64.b64encode(salt).decode("ascii"),
        base64.b64encode(digest).decode("ascii"),
    )


def verify_password(password: str, stored: str) -> bool:
    text = str(stored or "").strip()
    parts = text.split("$")
    if len(parts) != 4:
        return False
    algo, iter_text, salt_text, digest_text = parts
    if algo != ALGORITHM:
        return False
    try:
        iterations = int(iter_text)
        salt = base64.b64decode(salt_text.encode("ascii"), validate=True)
        expected = base64.b64decode(digest_text.encode("ascii"), validate=True)
    except Exception:
        return False
    computed = hashlib.pbkdf2_hmac(
        "sha256",
        str(password or "").encode("utf-8"),
        salt,
        max(1, iterations),
    )
    return hmac.compare_digest(computed, expected)


@lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    return hash_password("dummy-password-not-used-for-auth")


def consume_dummy_verify(candidate_password: str) -> None:
    """Burn the same CPU as a real verify so unknown emails are not timing-distinguishable."""
    verify_password(str(candidate_password or ""), _dummy_password_hash())
