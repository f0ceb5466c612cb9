from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select

from .class_service import require_class, require_member, require_teacher_of
from .core_utils import Clock, iso, parse_datetime, utc_now
from .db import Database
from .errors import NotFoundError, ValidationError
from .models import ROLE_STUDENT, Assignment, Submission
from .submission_service import SubmissionView, reconcile_due_date

_log = logging.getLogger(__name__)

DEFAULT_POINTS_POSSIBLE = 100

_UNSET: Any = object()


def assignment_to_dict(assignment: Assignment, *, submission: Optional[SubmissionView] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": assignment.id,
        "classId": assignment.class_id,
        "title": assignment.title,
        "description": assignment.description,
        "dueDate": iso(assignment.due_date),
        "pointsPossible": assignment.points_possible,
        "isPublished": assignment.is_published,
        "allowLateSubmit": assignment.allow_late_submissions,
        "createdBy": assignment.created_by,
        "createdAt": iso(assignment.created_at),
    }
    if submission is not None:
        payload["status"] = submission.status
        payload["grade"] = getattr(submission, "grade", None)
    return payload


def _points(value: Any) -> int:
    if value is None:
        return DEFAULT_POINTS_POSSIBLE
    if isinstance(value, bool):
        raise ValidationError("pointsPossible must be a non-negative integer")
    try:
        points = int(value)
    except (TypeError, ValueError):
        raise ValidationError("pointsPossible must be a non-negative integer")
    if points < 0:
        raise ValidationError("pointsPossible must be a non-negative integer")
    return points


class AssignmentService:
    def __init__(self, *, database: Database, clock: Clock = utc_now):
        self.database = database
        self._clock = clock

    def create_assignment(
        self,
        class_id: int,
        teacher_id: int,
        *,
        title: str,
        description: str = "",
        due_date: Any = None,
        points_possible: Any = None,
        is_published: bool = True,
        allow_late_submissions: bool = True,
    ) -> Assignment:
        title_text = str(title or "").strip()
        if not title_text:
            raise ValidationError("Title is required")
        due = parse_datetime(due_date, field="dueDate")
        points = _points(points_possible)
        with self.database.session_scope() as session:
            require_class(session, class_id)
            require_teacher_of(session, class_id, teacher_id)
            assignment = Assignment(
                class_id=class_id,
                title=title_text,
                description=str(description or ""),
                due_date=due,
                points_possible=points,
                is_published=bool(is_published),
                allow_late_submissions=bool(allow_late_submissions),
                created_by=teacher_id,
                created_at=self._clock(),
            )
            session.add(assignment)
        _log.info("assignment created assignment_id=%s class_id=%s", assignment.id, class_id)
        return assignment

    def list_assignments(self, class_id: int, *, user_id: int, role: str) -> List[Assignment]:
        with self.database.session_scope() as session:
            require_class(session, class_id)
            require_member(session, class_id, user_id, role)
            stmt = select(Assignment).where(Assignment.class_id == class_id)
            if role == ROLE_STUDENT:
                stmt = stmt.where(Assignment.is_published.is_(True))
            return list(session.scalars(stmt.order_by(Assignment.due_date, Assignment.id)))

    def get_assignment(self, class_id: int, assignment_id: int, *, user_id: int, role: str) -> Assignment:
        with self.database.session_scope() as session:
            require_class(session, class_id)
            require_member(session, class_id, user_id, role)
            assignment = session.get(Assignment, assignment_id)
            if assignment is None or assignment.class_id != class_id:
                raise NotFoundError("assignment not found")
            if role == ROLE_STUDENT and not assignment.is_published:
                raise NotFoundError("assignment not found")
        return assignment

    def update_assignment(
        self,
        class_id: int,
        assignment_id: int,
        teacher_id: int,
        *,
        title: Any = _UNSET,
        description: Any = _UNSET,
        due_date: Any = _UNSET,
        points_possible: Any = _UNSET,
        is_published: Any = _UNSET,
        allow_late_submissions: Any = _UNSET,
    ) -> Assignment:
        """Apply the given fields; a moved due date re-flags submissions in the same transaction."""
        with self.database.session_scope() as session:
            assignment = session.get(Assignment, assignment_id)
            if assignment is None or assignment.class_id != class_id:
                raise NotFoundError("assignment not found")
            require_teacher_of(session, class_id, teacher_id)

            if title is not _UNSET:
                title_text = str(title or "").strip()
                if not title_text:
                    raise ValidationError("Title is required")
                assignment.title = title_text
            if description is not _UNSET:
                assignment.description = str(description or "")
            if points_possible is not _UNSET:
                assignment.points_possible = _points(points_possible)
            if is_published is not _UNSET and is_published is not None:
                assignment.is_published = bool(is_published)
            if allow_late_submissions is not _UNSET and allow_late_submissions is not None:
                assignment.allow_late_submissions = bool(allow_late_submissions)
            if due_date is not _UNSET:
                new_due = parse_datetime(due_date, field="dueDate")
                if new_due != assignment.due_date:
                    assignment.due_date = new_due
                    reconcile_due_date(session, assignment.id, new_due)
        return assignment

    def delete_assignment(self, class_id: int, assignment_id: int, teacher_id: int) -> None:
        with self.database.session_scope() as session:
            assignment = session.get(Assignment, assignment_id)
            if assignment is None or assignment.class_id != class_id:
                raise NotFoundError("assignment not found")
            require_teacher_of(session, class_id, teacher_id)
            session.execute(delete(Submission).where(Submission.assignment_id == assignment_id))
            session.delete(assignment)
        _log.info("assignment deleted assignment_id=%s", assignment_id)
