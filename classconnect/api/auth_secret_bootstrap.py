from __future__ import annotations

import logging
import os
import secrets
from pathlib import Path

from . import settings as _settings
from .config import AppConfig
from .errors import SigningError

_log = logging.getLogger(__name__)

_DEFAULT_SECRET_FILE_RELATIVE = Path("config") / "jwt_secret"


def resolve_jwt_secret_file() -> Path:
    raw = _settings.jwt_secret_file()
    path = Path(raw) if raw else _DEFAULT_SECRET_FILE_RELATIVE
    if path.is_absolute():
        return path
    return (Path.cwd() / path).resolve()


def _read_secret_file(path: Path) -> str:
    if not path.exists():
        return ""
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise SigningError(f"failed to read JWT secret file: {path}") from exc


def _write_secret_file(path: Path, secret: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(secret)
        handle.write("\n")
    try:
        os.chmod(path, 0o600)
    except OSError:
        _log.debug("failed to chmod JWT secret file", exc_info=True)


def resolve_jwt_secret(config: AppConfig) -> str:
    """Return the signing secret, generating and persisting one outside production.

    Production deployments must configure ``JWT_SECRET`` (or a pre-provisioned
    secret file); startup fails otherwise.
    """
    secret = str(config.jwt_secret or "").strip()
    if secret:
        return secret

    secret_file = resolve_jwt_secret_file()
    persisted = _read_secret_file(secret_file)
    if persisted:
        return persisted

    if config.is_production:
        raise SigningError("JWT_SECRET must be configured in production")

    generated = secrets.token_urlsafe(48)
    try:
        _write_secret_file(secret_file, generated)
    except OSError as exc:
        raise SigningError(f"failed to persist generated JWT secret at {secret_file}") from exc
    _log.warning(
        "Generated JWT secret and persisted to %s; set JWT_SECRET for shared deployments.",
        secret_file,
    )
    return generated
