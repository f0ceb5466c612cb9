from __future__ import annotations

import pytest
from sqlalchemy import delete

from classconnect.api.config import AppConfig
from classconnect.api.container import build_app_container
from classconnect.api.db import Database
from classconnect.api.errors import DuplicateEmail, NotFoundError, ValidationError
from classconnect.api.models import StudentProfile, TeacherProfile
from classconnect.api.password_hasher import verify_password
from classconnect.api.user_service import display_name, student_name


def _make_container(**overrides):
    values = {"database_url": "sqlite://", "jwt_secret": "test-secret"}
    values.update(overrides)
    database = Database("sqlite://")
    database.create_all()
    return build_app_container(AppConfig(**values), database=database)


@pytest.fixture()
def container():
    return _make_container()


def _register(container, email, role, **extra):
    return container.users.register(
        email=email, password="hunter22", first_name="Grace", last_name="Hopper", role=role, **extra
    )


def test_register_creates_user_and_matching_profile(container) -> None:
    teacher = _register(container, "T@Example.com", "teacher", department="Math")
    student = _register(container, "s@example.com", "Student", grade_level="10")

    assert teacher.user.email == "t@example.com"
    assert isinstance(teacher.profile, TeacherProfile)
    assert teacher.profile.department == "Math"
    assert isinstance(student.profile, StudentProfile)
    assert student.user.role == "student"
    assert verify_password("hunter22", teacher.user.password_hash)
    assert container.tokens.verify(student.token).user_id == student.user.id


def test_duplicate_email_is_conflict(container) -> None:
    _register(container, "dup@example.com", "teacher")
    with pytest.raises(DuplicateEmail) as excinfo:
        _register(container, "DUP@example.com", "student")
    assert excinfo.value.status_code == 409


@pytest.mark.parametrize(
    "kwargs",
    [
        {"email": "no-at-sign", "role": "teacher"},
        {"email": "x@example.com", "role": "admin"},
        {"email": "x@example.com", "role": "teacher", "password": "12345"},
        {"email": "x@example.com", "role": "teacher", "first_name": "  "},
    ],
)
def test_register_validation(container, kwargs) -> None:
    payload = {"password": "hunter22", "first_name": "A", "last_name": "B"}
    payload.update(kwargs)
    with pytest.raises(ValidationError):
        container.users.register(**payload)
    assert container.users.get_by_email("x@example.com") is None


def test_me_includes_role_sub_object(container) -> None:
    teacher = _register(container, "t@example.com", "teacher", department="Science")
    student = _register(container, "s@example.com", "student", grade_level="9")

    me_teacher = container.users.me(teacher.user.id)
    assert me_teacher["teacher"]["department"] == "Science"
    assert "student" not in me_teacher
    assert me_teacher["firstName"] == "Grace"

    me_student = container.users.me(student.user.id)
    assert me_student["student"] == {"id": student.user.id, "profileId": student.profile.id, "gradeLevel": "9"}

    with pytest.raises(NotFoundError):
        container.users.me(9999)


def test_missing_profile_falls_back_to_placeholders(container) -> None:
    student = _register(container, "s@example.com", "student")
    with container.database.session_scope() as session:
        session.execute(delete(StudentProfile).where(StudentProfile.user_id == student.user.id))

    assert container.users.names(student.user) == ("Unknown", "Student")
    with container.database.session_scope() as session:
        assert student_name(session, student.user.id) == f"Student #{student.user.id}"
        assert display_name(session, 424242) == ("Unknown User", "unknown")
        assert display_name(session, student.user.id) == ("Grace Hopper", "student")

    summary = container.users.public_profile(student.user.id)
    assert summary["firstName"] == "Unknown"
    assert "passwordHash" not in summary
