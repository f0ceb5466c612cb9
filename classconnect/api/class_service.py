from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import AppConfig
from .core_utils import Clock, iso, random_string, utc_now
from .db import Database
from .errors import (
    CodeSpaceExhausted,
    ConflictError,
    Forbidden,
    NotAuthorized,
    NotFoundError,
    ValidationError,
)
from .models import (
    ROLE_ADMIN,
    ROLE_STUDENT,
    ROLE_TEACHER,
    ClassEnrollment,
    Classroom,
    ClassTeacher,
    StudentProfile,
    User,
)

_log = logging.getLogger(__name__)


# membership checks shared by the class-scoped services

def require_class(session: Session, class_id: int) -> Classroom:
    classroom = session.get(Classroom, class_id)
    if classroom is None:
        raise NotFoundError("class not found")
    return classroom


def is_class_teacher(session: Session, class_id: int, user_id: int) -> bool:
    found = session.scalar(
        select(ClassTeacher.id).where(ClassTeacher.class_id == class_id, ClassTeacher.user_id == user_id)
    )
    return found is not None


def is_enrolled(session: Session, class_id: int, user_id: int) -> bool:
    found = session.scalar(
        select(ClassEnrollment.id).where(
            ClassEnrollment.class_id == class_id,
            ClassEnrollment.user_id == user_id,
            ClassEnrollment.is_active.is_(True),
        )
    )
    return found is not None


def require_teacher_of(session: Session, class_id: int, user_id: int) -> None:
    if not is_class_teacher(session, class_id, user_id):
        raise NotAuthorized()


def require_member(session: Session, class_id: int, user_id: int, role: str) -> None:
    if role == ROLE_ADMIN:
        return
    if is_class_teacher(session, class_id, user_id) or is_enrolled(session, class_id, user_id):
        return
    raise Forbidden("You are not a member of this class")


def class_to_dict(classroom: Classroom) -> Dict[str, Any]:
    return {
        "classId": classroom.id,
        "className": classroom.name,
        "classCode": classroom.code,
        "description": classroom.description,
        "subject": classroom.subject,
        "themeColor": classroom.theme_color,
        "isArchived": classroom.is_archived,
        "creatorId": classroom.creator_id,
        "createdDate": iso(classroom.created_date),
    }


class ClassService:
    def __init__(
        self,
        *,
        database: Database,
        config: AppConfig,
        clock: Clock = utc_now,
        code_factory: Callable[[int], str] = random_string,
    ):
        self.database = database
        self.config = config
        self._clock = clock
        self._code_factory = code_factory

    def create_class(
        self,
        teacher_id: int,
        name: str,
        description: str = "",
        subject: str = "",
        theme_color: str = "",
    ) -> Classroom:
        """Create a class owned by ``teacher_id`` under a fresh join code.

        Codes are retried up to ``class_code_max_attempts`` times on collision
        before giving up with ``CodeSpaceExhausted``.
        """
        class_name = str(name or "").strip()
        if not class_name:
            raise ValidationError("Class name is required")
        attempts = max(1, int(self.config.class_code_max_attempts))
        for attempt in range(1, attempts + 1):
            code = self._code_factory(self.config.class_code_length)
            try:
                with self.database.session_scope() as session:
                    taken = session.scalar(select(Classroom.id).where(Classroom.code == code))
                    if taken is not None:
                        _log.debug("class code collision attempt=%s", attempt)
                        continue
                    now = self._clock()
                    classroom = Classroom(
                        name=class_name,
                        code=code,
                        description=str(description or ""),
                        subject=str(subject or ""),
                        theme_color=str(theme_color or ""),
                        is_archived=False,
                        creator_id=teacher_id,
                        created_date=now,
                    )
                    session.add(classroom)
                    session.flush()
                    session.add(
                        ClassTeacher(class_id=classroom.id, user_id=teacher_id, is_owner=True, added_date=now)
                    )
            except IntegrityError:
                _log.warning("class code insert raced attempt=%s", attempt, exc_info=True)
                continue
            _log.info("class created class_id=%s teacher_id=%s", classroom.id, teacher_id)
            return classroom
        _log.error("class code space exhausted after %s attempts", attempts)
        raise CodeSpaceExhausted()

    def get_class(self, class_id: int, *, user_id: int, role: str) -> Classroom:
        with self.database.session_scope() as session:
            classroom = require_class(session, class_id)
            require_member(session, class_id, user_id, role)
        return classroom

    def get_by_code(self, code: str) -> Classroom:
        with self.database.session_scope() as session:
            classroom = session.scalar(select(Classroom).where(Classroom.code == str(code or "").strip()))
        if classroom is None:
            raise NotFoundError("invalid class code")
        return classroom

    def update_class(
        self,
        class_id: int,
        teacher_id: int,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
        subject: Optional[str] = None,
        theme_color: Optional[str] = None,
    ) -> Classroom:
        with self.database.session_scope() as session:
            classroom = require_class(session, class_id)
            require_teacher_of(session, class_id, teacher_id)
            if name is not None:
                if not name.strip():
                    raise ValidationError("Class name is required")
                classroom.name = name.strip()
            if description is not None:
                classroom.description = description
            if subject is not None:
                classroom.subject = subject
            if theme_color is not None:
                classroom.theme_color = theme_color
        return classroom

    def archive_class(self, class_id: int, teacher_id: int) -> Classroom:
        with self.database.session_scope() as session:
            classroom = require_class(session, class_id)
            require_teacher_of(session, class_id, teacher_id)
            classroom.is_archived = True
        return classroom

    def delete_class(self, class_id: int, teacher_id: int) -> None:
        with self.database.session_scope() as session:
            classroom = require_class(session, class_id)
            if classroom.creator_id != teacher_id:
                raise NotAuthorized("only the class owner can delete this class")
            session.execute(delete(Classroom).where(Classroom.id == class_id))
        _log.info("class deleted class_id=%s", class_id)

    def list_classes(self, user_id: int, role: str) -> List[Classroom]:
        with self.database.session_scope() as session:
            stmt = select(Classroom)
            if role == ROLE_TEACHER:
                stmt = stmt.join(ClassTeacher, ClassTeacher.class_id == Classroom.id).where(
                    ClassTeacher.user_id == user_id
                )
            elif role == ROLE_STUDENT:
                stmt = stmt.join(ClassEnrollment, ClassEnrollment.class_id == Classroom.id).where(
                    ClassEnrollment.user_id == user_id,
                    ClassEnrollment.is_active.is_(True),
                )
            elif role != ROLE_ADMIN:
                return []
            return list(session.scalars(stmt.order_by(Classroom.created_date.desc(), Classroom.id.desc())))

    # teachers

    def add_teacher(self, class_id: int, actor_id: int, teacher_id: int) -> None:
        with self.database.session_scope() as session:
            require_class(session, class_id)
            require_teacher_of(session, class_id, actor_id)
            target = session.get(User, teacher_id)
            if target is None or target.role != ROLE_TEACHER:
                raise ValidationError("user is not a teacher")
            if is_class_teacher(session, class_id, teacher_id):
                raise ConflictError("teacher is already in this class")
            session.add(
                ClassTeacher(class_id=class_id, user_id=teacher_id, is_owner=False, added_date=self._clock())
            )

    def remove_teacher(self, class_id: int, actor_id: int, teacher_id: int) -> None:
        with self.database.session_scope() as session:
            require_class(session, class_id)
            require_teacher_of(session, class_id, actor_id)
            link = session.scalar(
                select(ClassTeacher).where(ClassTeacher.class_id == class_id, ClassTeacher.user_id == teacher_id)
            )
            if link is None:
                raise NotFoundError("teacher is not in this class")
            others = session.scalar(
                select(func.count(ClassTeacher.id)).where(
                    ClassTeacher.class_id == class_id, ClassTeacher.user_id != teacher_id
                )
            )
            if not others:
                raise ConflictError("cannot remove the only teacher from a class")
            session.delete(link)

    # students

    def join_class(self, student_id: int, code: str) -> Classroom:
        with self.database.session_scope() as session:
            classroom = session.scalar(select(Classroom).where(Classroom.code == str(code or "").strip()))
            if classroom is None:
                raise NotFoundError("invalid class code")
            if classroom.is_archived:
                raise ValidationError("class is archived")
            enrollment = session.scalar(
                select(ClassEnrollment).where(
                    ClassEnrollment.class_id == classroom.id, ClassEnrollment.user_id == student_id
                )
            )
            if enrollment is not None and enrollment.is_active:
                raise ConflictError("student is already enrolled in this class")
            if enrollment is not None:
                enrollment.is_active = True
                enrollment.enrollment_date = self._clock()
            else:
                session.add(
                    ClassEnrollment(
                        class_id=classroom.id,
                        user_id=student_id,
                        enrollment_date=self._clock(),
                        is_active=True,
                    )
                )
        _log.info("student joined class_id=%s student_id=%s", classroom.id, student_id)
        return classroom

    def remove_student(self, class_id: int, actor_id: int, student_id: int) -> None:
        """Deactivate an enrollment; teachers remove students, students may leave."""
        with self.database.session_scope() as session:
            require_class(session, class_id)
            if actor_id != student_id:
                require_teacher_of(session, class_id, actor_id)
            enrollment = session.scalar(
                select(ClassEnrollment).where(
                    ClassEnrollment.class_id == class_id,
                    ClassEnrollment.user_id == student_id,
                    ClassEnrollment.is_active.is_(True),
                )
            )
            if enrollment is None:
                raise NotFoundError("student is not enrolled in this class")
            enrollment.is_active = False

    def list_students(self, class_id: int, *, user_id: int, role: str) -> List[Dict[str, Any]]:
        with self.database.session_scope() as session:
            require_class(session, class_id)
            require_member(session, class_id, user_id, role)
            rows = session.execute(
                select(User, StudentProfile, ClassEnrollment)
                .join(ClassEnrollment, ClassEnrollment.user_id == User.id)
                .outerjoin(StudentProfile, StudentProfile.user_id == User.id)
                .where(ClassEnrollment.class_id == class_id, ClassEnrollment.is_active.is_(True))
                .order_by(User.id)
            ).all()
        students = []
        for user, profile, enrollment in rows:
            students.append(
                {
                    "id": user.id,
                    "profileId": profile.id if profile is not None else None,
                    "email": user.email,
                    "firstName": profile.first_name if profile is not None else user.first_name,
                    "lastName": profile.last_name if profile is not None else user.last_name,
                    "gradeLevel": profile.grade_level if profile is not None else "",
                    "enrollmentDate": iso(enrollment.enrollment_date),
                }
            )
        return students
