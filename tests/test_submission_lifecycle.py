from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from classconnect.api.config import AppConfig
from classconnect.api.container import build_app_container
from classconnect.api.db import Database
from classconnect.api.errors import (
    ConflictError,
    Forbidden,
    InvalidGrade,
    NotAuthorized,
    NotEnrolled,
    SubmissionNotFound,
    ValidationError,
)
from classconnect.api.models import Submission
from classconnect.api.submission_service import (
    Graded,
    NotSubmitted,
    Submitted,
    compute_is_late,
    submission_to_dict,
)

DUE = datetime(2024, 1, 10, 0, 0, 0)


def _make_container():
    database = Database("sqlite://")
    database.create_all()
    return build_app_container(AppConfig(database_url="sqlite://", jwt_secret="test-secret"), database=database)


def _user(container, email, role, first="Sam"):
    return container.users.register(
        email=email, password="hunter22", first_name=first, last_name="Lee", role=role
    ).user.id


@pytest.fixture()
def world():
    container = _make_container()
    teacher = _user(container, "t@example.com", "teacher")
    students = [_user(container, f"s{i}@example.com", "student", first=f"S{i}") for i in range(3)]
    outsider = _user(container, "x@example.com", "student")
    classroom = container.classes.create_class(teacher, "Literature")
    for sid in students:
        container.classes.join_class(sid, classroom.code)
    assignment = container.assignments.create_assignment(
        classroom.id, teacher, title="Essay", due_date="2024-01-10T00:00:00Z", points_possible=100
    )
    return {
        "c": container,
        "teacher": teacher,
        "students": students,
        "outsider": outsider,
        "class_id": classroom.id,
        "aid": assignment.id,
    }


def test_compute_is_late_boundaries() -> None:
    assert compute_is_late(DUE - timedelta(seconds=1), DUE) is False
    assert compute_is_late(DUE, DUE) is False
    assert compute_is_late(DUE + timedelta(seconds=1), DUE) is True
    assert compute_is_late(DUE + timedelta(days=365), None) is False


def test_submit_flags_late_by_one_second(world) -> None:
    c, aid = world["c"], world["aid"]
    on_time, late = world["students"][:2]

    assert c.submissions.submit(aid, on_time, content="a", now=DUE - timedelta(seconds=1)).is_late is False
    view = c.submissions.submit(aid, late, content="b", now=DUE + timedelta(seconds=1))
    assert isinstance(view, Submitted)
    assert view.is_late is True
    assert view.student_name == "S1 Lee"


def test_resubmit_overwrites_single_row(world) -> None:
    c, aid = world["c"], world["aid"]
    sid = world["students"][0]

    first = c.submissions.submit(aid, sid, content="draft", file_url="https://files/x.pdf", now=DUE - timedelta(days=1))
    second = c.submissions.submit(aid, sid, content="final", now=DUE + timedelta(hours=1))

    assert second.id == first.id
    assert second.content == "final"
    assert second.file_url == "https://files/x.pdf"
    assert second.is_late is True
    with c.database.session_scope() as session:
        assert session.scalar(select(func.count(Submission.id))) == 1


def test_submit_rejections(world) -> None:
    c, aid = world["c"], world["aid"]
    with pytest.raises(ValidationError):
        c.submissions.submit(aid, world["students"][0], content="  ", file_url="")
    with pytest.raises(NotEnrolled):
        c.submissions.submit(aid, world["outsider"], content="sneaky")

    strict = c.assignments.create_assignment(
        world["class_id"], world["teacher"], title="Quiz", due_date=DUE, allow_late_submissions=False
    )
    with pytest.raises(ValidationError):
        c.submissions.submit(strict.id, world["students"][0], content="late", now=DUE + timedelta(minutes=1))


@pytest.mark.parametrize("grade", [0, 100])
def test_grade_accepts_bounds(world, grade) -> None:
    c, aid, sid = world["c"], world["aid"], world["students"][0]
    c.submissions.submit(aid, sid, content="work", now=DUE)

    graded = c.submissions.grade(aid, sid, world["teacher"], grade, "ok")
    assert isinstance(graded, Graded)
    assert graded.grade == grade
    assert graded.graded_by == world["teacher"]


@pytest.mark.parametrize("grade", [-1, 101, True, "90"])
def test_grade_rejects_out_of_range(world, grade) -> None:
    c, aid, sid = world["c"], world["aid"], world["students"][0]
    c.submissions.submit(aid, sid, content="work", now=DUE)

    with pytest.raises(InvalidGrade) as excinfo:
        c.submissions.grade(aid, sid, world["teacher"], grade)
    assert excinfo.value.detail == "Grade must be between 0 and 100"
    assert isinstance(c.submissions.get_submission(aid, sid), Submitted)


def test_grade_requires_teacher_and_submission(world) -> None:
    c, aid, sid = world["c"], world["aid"], world["students"][0]
    with pytest.raises(SubmissionNotFound):
        c.submissions.grade(aid, sid, world["teacher"], 10)
    c.submissions.submit(aid, sid, content="work")
    with pytest.raises(NotAuthorized):
        c.submissions.grade(aid, sid, world["students"][1], 10)


def test_graded_submission_is_frozen(world) -> None:
    c, aid, sid = world["c"], world["aid"], world["students"][0]
    c.submissions.submit(aid, sid, content="work")
    c.submissions.grade(aid, sid, world["teacher"], 80)

    with pytest.raises(ConflictError):
        c.submissions.submit(aid, sid, content="changed my mind")


def test_roster_lists_every_active_student(world) -> None:
    c, aid = world["c"], world["aid"]
    first, second, third = world["students"]
    c.submissions.submit(aid, first, content="done", now=DUE)
    c.submissions.submit(aid, second, content="done", now=DUE)
    c.submissions.grade(aid, second, world["teacher"], 50)

    views = c.submissions.list_with_roster(aid, world["teacher"])

    assert len(views) == 3
    by_student = {v.student_id: v for v in views}
    assert isinstance(by_student[first], Submitted)
    assert isinstance(by_student[second], Graded)
    assert isinstance(by_student[third], NotSubmitted)
    assert submission_to_dict(by_student[third])["status"] == "not_submitted"
    with pytest.raises(NotAuthorized):
        c.submissions.list_with_roster(aid, first)


def test_get_submission_visibility(world) -> None:
    c, aid = world["c"], world["aid"]
    owner, peer = world["students"][:2]

    view = c.submissions.get_submission(aid, owner, viewer_id=owner, viewer_role="student")
    assert isinstance(view, NotSubmitted)
    assert c.submissions.get_submission(aid, owner, viewer_id=world["teacher"], viewer_role="teacher")
    with pytest.raises(Forbidden):
        c.submissions.get_submission(aid, owner, viewer_id=peer, viewer_role="student")


def test_due_date_move_reconciles_late_flag(world) -> None:
    c, aid, sid = world["c"], world["aid"], world["students"][0]
    submitted = c.submissions.submit(aid, sid, content="essay", now=datetime(2024, 1, 12, 15, 30))
    assert submitted.is_late is True
    c.submissions.grade(aid, sid, world["teacher"], 95, "Great work")

    c.assignments.update_assignment(world["class_id"], aid, world["teacher"], due_date="2024-01-20T00:00:00Z")

    view = c.submissions.get_submission(aid, sid)
    assert isinstance(view, Graded)
    assert view.is_late is False
    assert view.grade == 95
    payload = submission_to_dict(view)
    assert payload["isLate"] is False
    assert payload["status"] == "graded"
    assert payload["submissionDate"] == "2024-01-12T15:30:00Z"


def test_grades_for_student(world) -> None:
    c, aid, sid = world["c"], world["aid"], world["students"][0]
    c.submissions.submit(aid, sid, content="essay", now=DUE)
    c.submissions.grade(aid, sid, world["teacher"], 70)

    grades = c.submissions.grades_for_student(sid)

    assert len(grades) == 1
    assert grades[0]["grade"] == 70
    assert grades[0]["assignmentTitle"] == "Essay"
    assert grades[0]["className"] == "Literature"
    assert c.submissions.grades_for_student(world["students"][2]) == []
