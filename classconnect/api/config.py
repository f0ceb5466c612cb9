from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Tuple

from . import settings as _settings

_log = logging.getLogger(__name__)

DEFAULT_JWT_TTL_SEC = 24 * 3600
MIN_JWT_TTL_SEC = 300

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(h|m|s)")
_DURATION_UNITS = {"h": 3600, "m": 60, "s": 1}


def parse_duration(raw: str, default: int = DEFAULT_JWT_TTL_SEC) -> int:
    """Parse ``24h``, ``1h30m``, ``90m``, ``3600s`` or plain seconds into seconds."""
    text = str(raw or "").strip().lower()
    if not text:
        return default
    if text.isdigit():
        return int(text)
    pos = 0
    total = 0.0
    for match in _DURATION_PART_RE.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text) or total <= 0:
        _log.warning("invalid JWT_EXPIRATION %r, using default of %ss", raw, default)
        return default
    return int(total)


@dataclass(frozen=True)
class AppConfig:
    database_url: str = "sqlite:///./classconnect.db"
    jwt_secret: str = ""
    jwt_ttl_sec: int = DEFAULT_JWT_TTL_SEC
    reset_token_ttl_sec: int = 86400
    app_env: str = "development"
    cors_origins: Tuple[str, ...] = ("*",)
    expose_reset_tokens: bool = True
    require_email_verification: bool = False
    password_min_len: int = 6
    class_code_length: int = 6
    class_code_max_attempts: int = 10

    @property
    def is_production(self) -> bool:
        return self.app_env in {"prod", "production"}


def load_config() -> AppConfig:
    _settings.load_dotenv()
    origins = tuple(o.strip() for o in _settings.cors_origins().split(",") if o.strip()) or ("*",)
    return AppConfig(
        database_url=_settings.database_url(),
        jwt_secret=_settings.jwt_secret(),
        jwt_ttl_sec=max(MIN_JWT_TTL_SEC, parse_duration(_settings.jwt_expiration_raw())),
        reset_token_ttl_sec=_settings.reset_token_ttl_sec(),
        app_env=_settings.app_env(),
        cors_origins=origins,
        expose_reset_tokens=_settings.expose_reset_tokens(),
        require_email_verification=_settings.require_email_verification(),
        password_min_len=_settings.password_min_len(),
        class_code_max_attempts=_settings.class_code_max_attempts(),
    )
