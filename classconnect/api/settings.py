from __future__ import annotations

import logging
import os
from pathlib import Path

_log = logging.getLogger(__name__)


def truthy(value: str) -> bool:
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


def env_str(name: str, default: str = "") -> str:
    return str(os.getenv(name, default) or default)


def env_int(name: str, default: int) -> int:
    try:
        return int(env_str(name, str(default)) or default)
    except Exception:
        _log.debug("numeric conversion failed for %s", name, exc_info=True)
        return int(default)


def env_bool(name: str, default: str = "") -> bool:
    return truthy(env_str(name, default))


def load_dotenv(path: str = ".env") -> None:
    """Populate ``os.environ`` from a dotenv file without overriding real env vars."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for line in env_path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, val = line.split("=", 1)
        key = key.strip()
        if key.startswith("export "):
            key = key[len("export "):].strip()
        val = val.strip().strip('"').strip("'")
        if not key or key in os.environ:
            continue
        os.environ[key] = val


def app_env() -> str:
    return (env_str("APP_ENV", "") or env_str("ENV", "") or "development").strip().lower()


def is_production() -> bool:
    return app_env() in {"prod", "production"}


def database_url() -> str:
    url = env_str("DATABASE_URL", "").strip()
    if not url:
        return "sqlite:///./classconnect.db"
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def jwt_secret() -> str:
    return env_str("JWT_SECRET", "").strip()


def jwt_secret_file() -> str:
    return env_str("JWT_SECRET_FILE", "").strip()


def jwt_expiration_raw() -> str:
    return env_str("JWT_EXPIRATION", "24h").strip()


def reset_token_ttl_sec() -> int:
    return max(60, env_int("RESET_TOKEN_TTL_SEC", 86400))


def cors_origins() -> str:
    return env_str("CORS_ORIGINS", "*")


def expose_reset_tokens() -> bool:
    raw = os.getenv("AUTH_EXPOSE_TOKENS")
    if raw is None:
        return not is_production()
    return truthy(raw)


def require_email_verification() -> bool:
    return env_bool("AUTH_REQUIRE_EMAIL_VERIFICATION", "0")


def password_min_len() -> int:
    return max(6, env_int("AUTH_PASSWORD_MIN_LEN", 6))


def class_code_max_attempts() -> int:
    return max(1, env_int("CLASS_CODE_MAX_ATTEMPTS", 10))


def host() -> str:
    return env_str("HOST", "0.0.0.0")


def port() -> int:
    return env_int("PORT", 8080)
