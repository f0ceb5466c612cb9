from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from classconnect.api.config import AppConfig
from classconnect.api.container import build_app_container
from classconnect.api.db import Database
from classconnect.api.errors import (
    AccountDisabled,
    AccountNotVerified,
    AuthenticationError,
    EmailNotFound,
    InvalidAccountConfiguration,
    InvalidCredentials,
    InvalidOrExpiredToken,
    RoleMismatch,
    UserNotFound,
    ValidationError,
)
from classconnect.api.models import PasswordReset, User


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def _make_container(clock=None, **overrides):
    values = {"database_url": "sqlite://", "jwt_secret": "test-secret"}
    values.update(overrides)
    database = Database("sqlite://")
    database.create_all()
    return build_app_container(AppConfig(**values), database=database, clock=clock)


def _register(container, email="teacher@example.com", password="hunter22", role="teacher"):
    return container.users.register(
        email=email,
        password=password,
        first_name="Ada",
        last_name="Lovelace",
        role=role,
    )


@pytest.fixture()
def clock():
    return FixedClock(datetime(2024, 1, 10, 9, 0, 0))


@pytest.fixture()
def container(clock):
    return _make_container(clock=clock)


def test_register_then_login_issues_matching_claims(container, clock) -> None:
    registered = _register(container, email="  Teacher@Example.com ")
    result = container.auth.login("teacher@example.com", "hunter22")

    claims = container.tokens.verify(result.token, now=clock())
    assert claims.user_id == registered.user.id
    assert claims.email == "teacher@example.com"
    assert claims.role == "teacher"
    assert result.user.last_login == clock()


def test_login_failures_share_one_message(container) -> None:
    _register(container)

    with pytest.raises(InvalidCredentials) as wrong_pw:
        container.auth.login("teacher@example.com", "nope-nope")
    with pytest.raises(UserNotFound) as unknown:
        container.auth.login("ghost@example.com", "hunter22")

    assert wrong_pw.value.detail == unknown.value.detail
    assert unknown.value.status_code == 401


def test_login_role_must_match_when_given(container) -> None:
    _register(container)

    assert container.auth.login("teacher@example.com", "hunter22", role="Teacher").user.role == "teacher"
    with pytest.raises(RoleMismatch) as excinfo:
        container.auth.login("teacher@example.com", "hunter22", role="student")
    assert "teacher" in excinfo.value.detail


def test_login_rejects_empty_hash_and_disabled_accounts(container) -> None:
    user = _register(container).user
    with container.database.session_scope() as session:
        session.get(User, user.id).is_active = False
    with pytest.raises(AccountDisabled):
        container.auth.login("teacher@example.com", "hunter22")

    with container.database.session_scope() as session:
        row = session.get(User, user.id)
        row.is_active = True
        row.password_hash = ""
    with pytest.raises(InvalidAccountConfiguration):
        container.auth.login("teacher@example.com", "hunter22")


def test_unverified_account_blocked_until_verified(clock) -> None:
    container = _make_container(clock=clock, require_email_verification=True)
    user = _register(container).user
    assert user.is_verified is False

    with pytest.raises(AccountNotVerified):
        container.auth.login("teacher@example.com", "hunter22")

    token = container.auth.issue_verification_token(user.id)
    assert container.auth.verify_email_token(token) == user.id
    assert container.auth.login("teacher@example.com", "hunter22").user.id == user.id
    with pytest.raises(InvalidOrExpiredToken):
        container.auth.verify_email_token(token)


def test_reset_token_is_single_use_and_kills_siblings(container) -> None:
    user = _register(container).user
    first = container.auth.request_password_reset("teacher@example.com")
    second = container.auth.request_password_reset("TEACHER@example.com")
    assert len(first) == 32 and first != second
    assert container.auth.verify_reset_token(first) == user.id

    assert container.auth.reset_password_with_token(first, "brand-new-pw") == user.id

    with pytest.raises(InvalidOrExpiredToken):
        container.auth.reset_password_with_token(first, "another-pw")
    with pytest.raises(InvalidOrExpiredToken):
        container.auth.verify_reset_token(second)
    with container.database.session_scope() as session:
        assert session.scalar(select(func.count(PasswordReset.id))) == 0

    container.auth.login("teacher@example.com", "brand-new-pw")
    with pytest.raises(InvalidCredentials):
        container.auth.login("teacher@example.com", "hunter22")


def test_reset_token_expires(container, clock) -> None:
    _register(container)
    token = container.auth.request_password_reset("teacher@example.com")

    clock.advance(seconds=container.config.reset_token_ttl_sec - 1)
    container.auth.verify_reset_token(token)
    clock.advance(seconds=1)
    with pytest.raises(InvalidOrExpiredToken):
        container.auth.verify_reset_token(token)


def test_reset_validation(container) -> None:
    user = _register(container).user
    with pytest.raises(EmailNotFound):
        container.auth.request_password_reset("nobody@example.com")
    token = container.auth.request_password_reset("teacher@example.com")
    with pytest.raises(ValidationError):
        container.auth.reset_password_with_token(token, "short")
    with pytest.raises(InvalidOrExpiredToken):
        container.auth.verify_reset_token("")

    container.auth.reset_password(user.id, "direct-reset")
    container.auth.login("teacher@example.com", "direct-reset")


def test_refresh_reissues_for_live_user(container, clock) -> None:
    registered = _register(container)
    clock.advance(minutes=5)

    refreshed = container.auth.refresh(registered.token)
    claims = container.tokens.verify(refreshed.token, now=clock())
    assert claims.user_id == registered.user.id
    assert refreshed.token != registered.token

    with pytest.raises(AuthenticationError) as excinfo:
        container.auth.refresh("garbage")
    assert excinfo.value.detail == "Invalid or expired refresh token"

    clock.advance(seconds=container.config.jwt_ttl_sec)
    with pytest.raises(AuthenticationError):
        container.auth.refresh(refreshed.token)
