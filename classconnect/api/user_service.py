from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import AppConfig
from .core_utils import Clock, normalize_email, utc_now
from .db import Database
from .errors import DuplicateEmail, NotFoundError, ValidationError
from .models import ROLE_STUDENT, ROLE_TEACHER, StudentProfile, TeacherProfile, User
from .password_hasher import hash_password
from .token_service import TokenIssuer

_log = logging.getLogger(__name__)

REGISTRABLE_ROLES = (ROLE_TEACHER, ROLE_STUDENT)
UNKNOWN_USER_NAME = "Unknown User"
UNKNOWN_USER_ROLE = "unknown"

Profile = Union[TeacherProfile, StudentProfile]


@dataclass(frozen=True)
class RegistrationResult:
    user: User
    profile: Profile
    token: str


def profile_for(session: Session, user: User) -> Optional[Profile]:
    if user.role == ROLE_TEACHER:
        return session.scalar(select(TeacherProfile).where(TeacherProfile.user_id == user.id))
    if user.role == ROLE_STUDENT:
        return session.scalar(select(StudentProfile).where(StudentProfile.user_id == user.id))
    return None


def names_for(session: Session, user: User) -> Tuple[str, str]:
    """First/last name from the role profile, ``Unknown <Role>`` when it is missing."""
    profile = profile_for(session, user)
    if profile is not None:
        return profile.first_name, profile.last_name
    _log.warning("profile missing for user_id=%s role=%s", user.id, user.role)
    return "Unknown", str(user.role or "user").title()


def display_name(session: Session, user_id: int) -> Tuple[str, str]:
    """Return ``(name, role)`` for author labels; never raises for a missing user."""
    user = session.get(User, user_id)
    if user is None:
        _log.warning("author lookup failed user_id=%s", user_id)
        return UNKNOWN_USER_NAME, UNKNOWN_USER_ROLE
    profile = profile_for(session, user)
    if profile is None:
        full = f"{user.first_name} {user.last_name}".strip()
        return (full or UNKNOWN_USER_NAME), user.role
    return f"{profile.first_name} {profile.last_name}".strip(), user.role


def student_name(session: Session, student_id: int) -> str:
    profile = session.scalar(select(StudentProfile).where(StudentProfile.user_id == student_id))
    if profile is None:
        return f"Student #{student_id}"
    return f"{profile.first_name} {profile.last_name}".strip() or f"Student #{student_id}"


def user_summary(user: User, first_name: str, last_name: str) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "firstName": first_name,
        "lastName": last_name,
        "role": user.role,
    }


class UserService:
    def __init__(self, *, database: Database, tokens: TokenIssuer, config: AppConfig, clock: Clock = utc_now):
        self.database = database
        self.tokens = tokens
        self.config = config
        self._clock = clock

    def register(
        self,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: str,
        department: str = "",
        grade_level: str = "",
    ) -> RegistrationResult:
        email_norm = normalize_email(email)
        role_norm = str(role or "").strip().lower()
        if not email_norm or "@" not in email_norm:
            raise ValidationError("A valid email is required")
        if role_norm not in REGISTRABLE_ROLES:
            raise ValidationError("Role must be teacher or student")
        if len(str(password or "")) < self.config.password_min_len:
            raise ValidationError(
                f"Password must be at least {self.config.password_min_len} characters"
            )
        first = str(first_name or "").strip()
        last = str(last_name or "").strip()
        if not first or not last:
            raise ValidationError("First and last name are required")

        password_hash = hash_password(password)
        now = self._clock()
        try:
            with self.database.session_scope() as session:
                if session.scalar(select(User.id).where(User.email == email_norm)) is not None:
                    raise DuplicateEmail()
                user = User(
                    email=email_norm,
                    password_hash=password_hash,
                    first_name=first,
                    last_name=last,
                    role=role_norm,
                    is_active=True,
                    is_verified=not self.config.require_email_verification,
                    date_registered=now,
                )
                session.add(user)
                session.flush()
                profile: Profile
                if role_norm == ROLE_TEACHER:
                    profile = TeacherProfile(
                        user_id=user.id,
                        first_name=first,
                        last_name=last,
                        department=str(department or ""),
                        hire_date=now,
                    )
                else:
                    profile = StudentProfile(
                        user_id=user.id,
                        first_name=first,
                        last_name=last,
                        grade_level=str(grade_level or ""),
                        enrollment_date=now,
                    )
                session.add(profile)
                session.flush()
        except IntegrityError as exc:
            # lost a race against a concurrent registration for the same email
            raise DuplicateEmail() from exc

        token = self.tokens.issue(user.id, user.email, user.role, now=now)
        _log.info("registered user_id=%s role=%s", user.id, user.role)
        return RegistrationResult(user=user, profile=profile, token=token)

    def get_by_email(self, email: str) -> Optional[User]:
        with self.database.session_scope() as session:
            return session.scalar(select(User).where(User.email == normalize_email(email)))

    def names(self, user: User) -> Tuple[str, str]:
        with self.database.session_scope() as session:
            return names_for(session, user)

    def summary(self, user: User) -> Dict[str, Any]:
        first, last = self.names(user)
        return user_summary(user, first, last)

    def me(self, user_id: int) -> Dict[str, Any]:
        with self.database.session_scope() as session:
            user = session.get(User, user_id)
            if user is None:
                raise NotFoundError("user not found")
            payload: Dict[str, Any] = {"id": user.id, "email": user.email, "role": user.role}
            profile = profile_for(session, user)
            if isinstance(profile, TeacherProfile):
                payload["teacher"] = {
                    "id": profile.user_id,
                    "profileId": profile.id,
                    "department": profile.department,
                }
            elif isinstance(profile, StudentProfile):
                payload["student"] = {
                    "id": profile.user_id,
                    "profileId": profile.id,
                    "gradeLevel": profile.grade_level,
                }
            if profile is not None:
                payload["firstName"] = profile.first_name
                payload["lastName"] = profile.last_name
            else:
                payload["firstName"] = user.first_name
                payload["lastName"] = user.last_name
        return payload

    def public_profile(self, user_id: int) -> Dict[str, Any]:
        with self.database.session_scope() as session:
            user = session.get(User, user_id)
            if user is None:
                raise NotFoundError("user not found")
            first, last = names_for(session, user)
            payload = user_summary(user, first, last)
        payload["profilePicture"] = user.profile_picture
        return payload
