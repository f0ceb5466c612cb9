"""Submission lifecycle: NotSubmitted -> Submitted -> Graded.

A student's work on an assignment is always one of three variants. Absence
of a row is the ``NotSubmitted`` variant, never an error. Resubmitting
overwrites the existing row in place until it has been graded; ``is_late``
is recomputed whenever the submission time or the assignment due date moves.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional, Union, cast

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .class_service import is_class_teacher, is_enrolled, require_teacher_of
from .core_utils import Clock, iso, utc_now
from .db import Database
from .errors import (
    ConflictError,
    Forbidden,
    InvalidGrade,
    NotEnrolled,
    NotFoundError,
    SubmissionNotFound,
    ValidationError,
)
from .models import (
    ROLE_ADMIN,
    STATUS_GRADED,
    STATUS_NOT_SUBMITTED,
    STATUS_SUBMITTED,
    Assignment,
    ClassEnrollment,
    Classroom,
    Submission,
)
from .user_service import student_name

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotSubmitted:
    assignment_id: int
    student_id: int
    student_name: str
    status: ClassVar[str] = STATUS_NOT_SUBMITTED


@dataclass(frozen=True)
class Submitted:
    id: int
    assignment_id: int
    student_id: int
    student_name: str
    content: str
    file_url: str
    submission_date: datetime
    is_late: bool
    status: ClassVar[str] = STATUS_SUBMITTED


@dataclass(frozen=True)
class Graded:
    id: int
    assignment_id: int
    student_id: int
    student_name: str
    content: str
    file_url: str
    submission_date: datetime
    is_late: bool
    grade: int
    feedback: str
    graded_by: int
    graded_date: datetime
    status: ClassVar[str] = STATUS_GRADED


SubmissionView = Union[NotSubmitted, Submitted, Graded]


def compute_is_late(submitted_at: datetime, due_date: Optional[datetime]) -> bool:
    if due_date is None:
        return False
    return submitted_at > due_date


def to_view(row: Submission, name: str) -> SubmissionView:
    if row.status == STATUS_GRADED and row.grade is not None:
        return Graded(
            id=row.id,
            assignment_id=row.assignment_id,
            student_id=row.student_id,
            student_name=name,
            content=row.content,
            file_url=row.file_url,
            submission_date=row.submission_date,
            is_late=row.is_late,
            grade=row.grade,
            feedback=row.feedback,
            graded_by=row.graded_by or 0,
            graded_date=row.graded_date or row.submission_date,
        )
    return Submitted(
        id=row.id,
        assignment_id=row.assignment_id,
        student_id=row.student_id,
        student_name=name,
        content=row.content,
        file_url=row.file_url,
        submission_date=row.submission_date,
        is_late=row.is_late,
    )


def submission_to_dict(view: SubmissionView, *, assignment: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": None,
        "assignmentId": view.assignment_id,
        "studentId": view.student_id,
        "studentName": view.student_name,
        "content": "",
        "fileURL": "",
        "submissionDate": None,
        "isLate": False,
        "grade": None,
        "feedback": "",
        "status": view.status,
        "gradedBy": None,
        "gradedDate": None,
    }
    if isinstance(view, (Submitted, Graded)):
        payload.update(
            {
                "id": view.id,
                "content": view.content,
                "fileURL": view.file_url,
                "submissionDate": iso(view.submission_date),
                "isLate": view.is_late,
            }
        )
    if isinstance(view, Graded):
        payload.update(
            {
                "grade": view.grade,
                "feedback": view.feedback,
                "gradedBy": view.graded_by,
                "gradedDate": iso(view.graded_date),
            }
        )
    if assignment is not None:
        payload["assignment"] = assignment
    return payload


def reconcile_due_date(session: Session, assignment_id: int, new_due_date: Optional[datetime]) -> int:
    """Recompute ``is_late`` for every submission of an assignment.

    Runs inside the caller's transaction and only writes rows whose flag
    actually flips. Returns the number of rows changed.
    """
    changed = 0
    rows = session.scalars(select(Submission).where(Submission.assignment_id == assignment_id))
    for row in rows:
        is_late = compute_is_late(row.submission_date, new_due_date)
        if row.is_late != is_late:
            row.is_late = is_late
            changed += 1
    if changed:
        _log.info("due date reconciliation assignment_id=%s changed=%s", assignment_id, changed)
    return changed


def _load_assignment(session: Session, assignment_id: int, class_id: Optional[int]) -> Assignment:
    assignment = session.get(Assignment, assignment_id)
    if assignment is None or (class_id is not None and assignment.class_id != class_id):
        raise NotFoundError("assignment not found")
    return assignment


def _find_row(session: Session, assignment_id: int, student_id: int) -> Optional[Submission]:
    return session.scalar(
        select(Submission).where(Submission.assignment_id == assignment_id, Submission.student_id == student_id)
    )


class SubmissionService:
    def __init__(self, *, database: Database, clock: Clock = utc_now):
        self.database = database
        self._clock = clock

    def submit(
        self,
        assignment_id: int,
        student_id: int,
        *,
        content: str = "",
        file_url: str = "",
        now: Optional[datetime] = None,
        class_id: Optional[int] = None,
    ) -> Submitted:
        content = str(content or "")
        file_url = str(file_url or "").strip()
        if not content.strip() and not file_url:
            raise ValidationError("Either content or fileURL is required")
        submitted_at = now or self._clock()

        for attempt in range(2):
            try:
                with self.database.session_scope() as session:
                    assignment = _load_assignment(session, assignment_id, class_id)
                    if not is_enrolled(session, assignment.class_id, student_id):
                        raise NotEnrolled()
                    is_late = compute_is_late(submitted_at, assignment.due_date)
                    if is_late and not assignment.allow_late_submissions:
                        raise ValidationError("Late submissions are not accepted for this assignment")

                    row = _find_row(session, assignment_id, student_id)
                    if row is not None and row.status == STATUS_GRADED:
                        raise ConflictError("submission has already been graded")
                    if row is None:
                        row = Submission(assignment_id=assignment_id, student_id=student_id, file_url="", feedback="")
                        session.add(row)
                    row.content = content
                    if file_url:
                        row.file_url = file_url
                    row.submission_date = submitted_at
                    row.is_late = is_late
                    row.status = STATUS_SUBMITTED
                    session.flush()
                    view = to_view(row, student_name(session, student_id))
            except IntegrityError:
                # concurrent first submission for the same pair; the retry takes the update path
                if attempt:
                    raise
                _log.info("submission insert raced assignment_id=%s student_id=%s", assignment_id, student_id)
                continue
            _log.info(
                "submission saved assignment_id=%s student_id=%s late=%s",
                assignment_id,
                student_id,
                view.is_late,
            )
            return cast(Submitted, view)
        raise ConflictError("submission could not be saved")

    def grade(
        self,
        assignment_id: int,
        student_id: int,
        teacher_id: int,
        grade: int,
        feedback: str = "",
        *,
        now: Optional[datetime] = None,
        class_id: Optional[int] = None,
    ) -> Graded:
        with self.database.session_scope() as session:
            assignment = _load_assignment(session, assignment_id, class_id)
            require_teacher_of(session, assignment.class_id, teacher_id)
            row = _find_row(session, assignment_id, student_id)
            if row is None:
                raise SubmissionNotFound()
            if isinstance(grade, bool) or not isinstance(grade, int):
                raise InvalidGrade(assignment.points_possible)
            if grade < 0 or grade > assignment.points_possible:
                raise InvalidGrade(assignment.points_possible)
            row.grade = grade
            row.feedback = str(feedback or "")
            row.status = STATUS_GRADED
            row.graded_by = teacher_id
            row.graded_date = now or self._clock()
            session.flush()
            view = to_view(row, student_name(session, student_id))
        _log.info("submission graded assignment_id=%s student_id=%s grade=%s", assignment_id, student_id, grade)
        return cast(Graded, view)

    def on_due_date_changed(self, assignment_id: int, new_due_date: Optional[datetime]) -> int:
        with self.database.session_scope() as session:
            _load_assignment(session, assignment_id, None)
            return reconcile_due_date(session, assignment_id, new_due_date)

    def get_submission(
        self,
        assignment_id: int,
        student_id: int,
        *,
        viewer_id: Optional[int] = None,
        viewer_role: str = "",
        class_id: Optional[int] = None,
    ) -> SubmissionView:
        """Return the student's submission or its ``NotSubmitted`` projection.

        When a viewer is given, only the student themself or a teacher of the
        class may look.
        """
        with self.database.session_scope() as session:
            assignment = _load_assignment(session, assignment_id, class_id)
            if viewer_id is not None and viewer_id != student_id and viewer_role != ROLE_ADMIN:
                if not is_class_teacher(session, assignment.class_id, viewer_id):
                    raise Forbidden("You are not allowed to view this submission")
            name = student_name(session, student_id)
            row = _find_row(session, assignment_id, student_id)
            if row is None:
                return NotSubmitted(assignment_id=assignment_id, student_id=student_id, student_name=name)
            return to_view(row, name)

    def list_with_roster(
        self,
        assignment_id: int,
        teacher_id: int,
        *,
        class_id: Optional[int] = None,
    ) -> List[SubmissionView]:
        """Every real submission plus a ``NotSubmitted`` entry per active student without one."""
        with self.database.session_scope() as session:
            assignment = _load_assignment(session, assignment_id, class_id)
            require_teacher_of(session, assignment.class_id, teacher_id)
            rows = list(
                session.scalars(
                    select(Submission)
                    .where(Submission.assignment_id == assignment_id)
                    .order_by(Submission.submission_date, Submission.id)
                )
            )
            views: List[SubmissionView] = [to_view(row, student_name(session, row.student_id)) for row in rows]
            seen = {row.student_id for row in rows}
            enrolled = session.scalars(
                select(ClassEnrollment.user_id)
                .where(ClassEnrollment.class_id == assignment.class_id, ClassEnrollment.is_active.is_(True))
                .order_by(ClassEnrollment.user_id)
            )
            for sid in enrolled:
                if sid in seen:
                    continue
                views.append(
                    NotSubmitted(assignment_id=assignment_id, student_id=sid, student_name=student_name(session, sid))
                )
        return views

    def status_for_student(self, student_id: int, assignment_ids: List[int]) -> Dict[int, SubmissionView]:
        if not assignment_ids:
            return {}
        with self.database.session_scope() as session:
            name = student_name(session, student_id)
            rows = session.scalars(
                select(Submission).where(
                    Submission.student_id == student_id, Submission.assignment_id.in_(assignment_ids)
                )
            )
            found = {row.assignment_id: to_view(row, name) for row in rows}
        return {
            aid: found.get(aid) or NotSubmitted(assignment_id=aid, student_id=student_id, student_name=name)
            for aid in assignment_ids
        }

    def grades_for_student(self, student_id: int) -> List[Dict[str, Any]]:
        with self.database.session_scope() as session:
            name = student_name(session, student_id)
            rows = session.execute(
                select(Submission, Assignment, Classroom)
                .join(Assignment, Assignment.id == Submission.assignment_id)
                .join(Classroom, Classroom.id == Assignment.class_id)
                .where(Submission.student_id == student_id)
                .order_by(Submission.submission_date.desc(), Submission.id.desc())
            ).all()
            grades = []
            for row, assignment, classroom in rows:
                entry = submission_to_dict(to_view(row, name))
                entry.update(
                    {
                        "assignmentTitle": assignment.title,
                        "pointsPossible": assignment.points_possible,
                        "dueDate": iso(assignment.due_date),
                        "classId": classroom.id,
                        "className": classroom.name,
                    }
                )
                grades.append(entry)
        return grades
