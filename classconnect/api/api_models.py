from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Request bodies use camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# auth

class LoginRequest(_CamelModel):
    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=512)
    role: Optional[str] = None


class RegisterRequest(_CamelModel):
    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=512)
    first_name: str = Field(..., max_length=100)
    last_name: str = Field(..., max_length=100)
    role: str
    department: Optional[str] = Field(default=None, max_length=100)
    grade_level: Optional[str] = Field(default=None, max_length=50)


class RefreshTokenRequest(_CamelModel):
    refresh_token: str


class ForgotPasswordRequest(_CamelModel):
    email: str = Field(..., max_length=255)


class ResetPasswordRequest(_CamelModel):
    token: str
    new_password: str = Field(..., max_length=512)


class VerifyEmailRequest(_CamelModel):
    token: str


# classes

class CreateClassRequest(_CamelModel):
    class_name: str = Field(..., max_length=200)
    description: Optional[str] = None
    subject: Optional[str] = Field(default=None, max_length=100)
    theme_color: Optional[str] = Field(default=None, max_length=20)


class UpdateClassRequest(_CamelModel):
    class_name: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = None
    subject: Optional[str] = Field(default=None, max_length=100)
    theme_color: Optional[str] = Field(default=None, max_length=20)


class JoinClassRequest(_CamelModel):
    class_code: str = Field(..., max_length=16)


class AddTeacherRequest(_CamelModel):
    teacher_id: int


# announcements and chat

class AnnouncementRequest(_CamelModel):
    title: str = Field(..., max_length=200)
    content: str
    scheduled_date: Optional[str] = None
    is_published: Optional[bool] = True


class UpdateAnnouncementRequest(_CamelModel):
    title: Optional[str] = Field(default=None, max_length=200)
    content: Optional[str] = None
    scheduled_date: Optional[str] = None
    is_published: Optional[bool] = None


class ChatMessageRequest(_CamelModel):
    content: str


# assignments and submissions

class AssignmentRequest(_CamelModel):
    title: str = Field(..., max_length=200)
    description: Optional[str] = None
    due_date: Optional[str] = None
    points_possible: Optional[int] = None
    is_published: Optional[bool] = True
    allow_late_submit: Optional[bool] = True


class UpdateAssignmentRequest(_CamelModel):
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = None
    due_date: Optional[str] = None
    points_possible: Optional[int] = None
    is_published: Optional[bool] = None
    allow_late_submit: Optional[bool] = None


class SubmitAssignmentRequest(_CamelModel):
    content: Optional[str] = None
    file_url: Optional[str] = Field(default=None, alias="fileURL", max_length=500)


class GradeSubmissionRequest(_CamelModel):
    grade: int
    feedback: Optional[str] = None
