"""Login, token refresh, password reset and email verification.

Reset and verification tokens share the ``password_resets`` table: a row is
an opaque single-use token owned by one user, valid while ``now < expires_at``
and deleted when consumed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import AppConfig
from .core_utils import Clock, normalize_email, random_string, utc_now
from .db import Database
from .errors import (
    AccountDisabled,
    AccountNotVerified,
    AuthenticationError,
    EmailNotFound,
    InvalidAccountConfiguration,
    InvalidCredentials,
    InvalidOrExpiredToken,
    NotFoundError,
    RoleMismatch,
    UserNotFound,
    ValidationError,
)
from .models import PasswordReset, User
from .password_hasher import consume_dummy_verify, hash_password, verify_password
from .token_service import TokenIssuer

_log = logging.getLogger(__name__)

RESET_TOKEN_LENGTH = 32


@dataclass(frozen=True)
class LoginResult:
    user: User
    token: str


class AuthService:
    def __init__(self, *, database: Database, tokens: TokenIssuer, config: AppConfig, clock: Clock = utc_now):
        self.database = database
        self.tokens = tokens
        self.config = config
        self._clock = clock

    # login / refresh

    def login(self, email: str, password: str, *, role: Optional[str] = None) -> LoginResult:
        """Verify credentials and mint an access token.

        ``UserNotFound`` is raised for unknown emails so callers can log it;
        it renders exactly like a wrong password.
        """
        email_norm = normalize_email(email)
        with self.database.session_scope() as session:
            user = session.scalar(select(User).where(User.email == email_norm))
            if user is None:
                consume_dummy_verify(password)
                _log.info("login rejected: unknown email")
                raise UserNotFound()
            if not user.password_hash:
                _log.warning("login rejected: empty password hash user_id=%s", user.id)
                raise InvalidAccountConfiguration()
            if not verify_password(password, user.password_hash):
                _log.info("login rejected: password mismatch user_id=%s", user.id)
                raise InvalidCredentials()
            if role and str(role).strip().lower() != user.role:
                raise RoleMismatch(user.role)
            if not user.is_active:
                raise AccountDisabled()
            if self.config.require_email_verification and not user.is_verified:
                raise AccountNotVerified()

        now = self._clock()
        self._touch_last_login(user, now)
        token = self.tokens.issue(user.id, user.email, user.role, now=now)
        _log.info("login ok user_id=%s role=%s", user.id, user.role)
        return LoginResult(user=user, token=token)

    def _touch_last_login(self, user: User, now) -> None:
        try:
            with self.database.session_scope() as session:
                session.execute(update(User).where(User.id == user.id).values(last_login=now))
            user.last_login = now
        except SQLAlchemyError:
            _log.warning("failed to update last login user_id=%s", user.id, exc_info=True)

    def refresh(self, refresh_token: str) -> LoginResult:
        try:
            claims = self.tokens.verify(refresh_token, now=self._clock())
        except AuthenticationError as exc:
            _log.info("refresh rejected: %s", exc.detail)
            raise AuthenticationError("Invalid or expired refresh token") from exc
        with self.database.session_scope() as session:
            user = session.get(User, claims.user_id)
        if user is None or not user.is_active:
            raise AuthenticationError("Invalid or expired refresh token")
        token = self.tokens.issue(user.id, user.email, user.role, now=self._clock())
        return LoginResult(user=user, token=token)

    # single-use tokens

    def _mint_token(self, session: Session, user_id: int) -> str:
        token = random_string(RESET_TOKEN_LENGTH)
        now = self._clock()
        session.add(
            PasswordReset(
                user_id=user_id,
                token=token,
                created_at=now,
                expires_at=now + timedelta(seconds=self.config.reset_token_ttl_sec),
            )
        )
        return token

    def _find_live_token(self, session: Session, token: str) -> PasswordReset:
        text = str(token or "").strip()
        record = None
        if text:
            record = session.scalar(
                select(PasswordReset).where(
                    PasswordReset.token == text,
                    PasswordReset.expires_at > self._clock(),
                )
            )
        if record is None:
            raise InvalidOrExpiredToken()
        return record

    def request_password_reset(self, email: str) -> str:
        email_norm = normalize_email(email)
        with self.database.session_scope() as session:
            user_id = session.scalar(select(User.id).where(User.email == email_norm))
            if user_id is None:
                raise EmailNotFound()
            token = self._mint_token(session, user_id)
        _log.info("password reset requested user_id=%s", user_id)
        return token

    def verify_reset_token(self, token: str) -> int:
        with self.database.session_scope() as session:
            return self._find_live_token(session, token).user_id

    def _validate_password(self, password: str) -> None:
        if len(str(password or "")) < self.config.password_min_len:
            raise ValidationError(
                f"Password must be at least {self.config.password_min_len} characters"
            )

    def _set_password(self, session: Session, user_id: int, new_password: str) -> None:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("user not found")
        user.password_hash = hash_password(new_password)
        # every outstanding token for the user dies with the reset, not only the one used
        session.execute(delete(PasswordReset).where(PasswordReset.user_id == user_id))

    def reset_password(self, user_id: int, new_password: str) -> None:
        self._validate_password(new_password)
        with self.database.session_scope() as session:
            self._set_password(session, user_id, new_password)
        _log.info("password reset completed user_id=%s", user_id)

    def reset_password_with_token(self, token: str, new_password: str) -> int:
        """Verify and consume ``token`` and set the password in one transaction."""
        self._validate_password(new_password)
        with self.database.session_scope() as session:
            user_id = self._find_live_token(session, token).user_id
            self._set_password(session, user_id, new_password)
        _log.info("password reset completed user_id=%s", user_id)
        return user_id

    def issue_verification_token(self, user_id: int) -> str:
        with self.database.session_scope() as session:
            return self._mint_token(session, user_id)

    def verify_email_token(self, token: str) -> int:
        with self.database.session_scope() as session:
            record = self._find_live_token(session, token)
            user_id = record.user_id
            session.delete(record)
            session.execute(
                update(User).where(User.id == user_id).values(is_verified=True, is_active=True)
            )
        _log.info("email verified user_id=%s", user_id)
        return user_id
