"""Relational schema.

Primary keys keep the ``<entity>_id`` column names of the existing database
so a deployment can point at tables created by earlier releases.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .core_utils import utc_now

ROLE_TEACHER = "teacher"
ROLE_STUDENT = "student"
ROLE_ADMIN = "admin"

STATUS_NOT_SUBMITTED = "not_submitted"
STATUS_SUBMITTED = "submitted"
STATUS_GRADED = "graded"


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column("user_id", Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    profile_picture: Mapped[Optional[str]] = mapped_column(String(500))
    role: Mapped[str] = mapped_column("user_role", String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    date_registered: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime)


class TeacherProfile(Base):
    __tablename__ = "teacher_profiles"

    id: Mapped[int] = mapped_column("profile_id", Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.user_id", ondelete="CASCADE"), unique=True, nullable=False
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    department: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    hire_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)


class StudentProfile(Base):
    __tablename__ = "student_profiles"

    id: Mapped[int] = mapped_column("profile_id", Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.user_id", ondelete="CASCADE"), unique=True, nullable=False
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    grade_level: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    enrollment_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)


class PasswordReset(Base):
    """Single-use dated token; shared by password reset and email verification."""

    __tablename__ = "password_resets"

    id: Mapped[int] = mapped_column("reset_id", Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True
    )
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)


class Classroom(Base):
    __tablename__ = "classes"

    id: Mapped[int] = mapped_column("class_id", Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column("class_name", String(200), nullable=False)
    code: Mapped[str] = mapped_column("class_code", String(16), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    subject: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    theme_color: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    creator_id: Mapped[int] = mapped_column(ForeignKey("users.user_id"), nullable=False)
    created_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)


class ClassTeacher(Base):
    __tablename__ = "class_teachers"
    __table_args__ = (UniqueConstraint("class_id", "user_id", name="uq_class_teacher"),)

    id: Mapped[int] = mapped_column("class_teacher_id", Integer, primary_key=True, autoincrement=True)
    class_id: Mapped[int] = mapped_column(
        ForeignKey("classes.class_id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.user_id"), nullable=False, index=True)
    is_owner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    added_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)


class ClassEnrollment(Base):
    __tablename__ = "class_enrollments"
    __table_args__ = (UniqueConstraint("class_id", "user_id", name="uq_class_enrollment"),)

    id: Mapped[int] = mapped_column("enrollment_id", Integer, primary_key=True, autoincrement=True)
    class_id: Mapped[int] = mapped_column(
        ForeignKey("classes.class_id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.user_id"), nullable=False, index=True)
    enrollment_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Assignment(Base):
    __tablename__ = "assignments"

    id: Mapped[int] = mapped_column("assignment_id", Integer, primary_key=True, autoincrement=True)
    class_id: Mapped[int] = mapped_column(
        ForeignKey("classes.class_id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    points_possible: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allow_late_submissions: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[int] = mapped_column(ForeignKey("users.user_id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)


class Submission(Base):
    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("assignment_id", "user_id", name="uq_submission_assignment_student"),
    )

    id: Mapped[int] = mapped_column("submission_id", Integer, primary_key=True, autoincrement=True)
    assignment_id: Mapped[int] = mapped_column(
        ForeignKey("assignments.assignment_id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_id: Mapped[int] = mapped_column("user_id", ForeignKey("users.user_id"), nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    file_url: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    submission_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    is_late: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_SUBMITTED)
    grade: Mapped[Optional[int]] = mapped_column(Integer)
    feedback: Mapped[str] = mapped_column(Text, nullable=False, default="")
    graded_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.user_id"))
    graded_date: Mapped[Optional[datetime]] = mapped_column(DateTime)


class Announcement(Base):
    __tablename__ = "announcements"

    id: Mapped[int] = mapped_column("announcement_id", Integer, primary_key=True, autoincrement=True)
    class_id: Mapped[int] = mapped_column(
        ForeignKey("classes.class_id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_by: Mapped[int] = mapped_column(ForeignKey("users.user_id"), nullable=False)
    created_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    scheduled_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column("message_id", Integer, primary_key=True, autoincrement=True)
    class_id: Mapped[int] = mapped_column(
        ForeignKey("classes.class_id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.user_id"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
