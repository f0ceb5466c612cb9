"""Error taxonomy shared by services, middleware and route handlers.

Every error carries the HTTP status it maps to and a short ``detail`` that
is rendered as ``{"error": detail}`` at the boundary.
"""
from __future__ import annotations

from typing import Optional


class ApiError(Exception):
    status_code = 500
    default_detail = "internal_error"

    def __init__(self, detail: str = "", *, status_code: Optional[int] = None):
        text = str(detail or self.default_detail)
        super().__init__(text)
        self.detail = text
        if status_code is not None:
            self.status_code = int(status_code)


class ValidationError(ApiError):
    status_code = 400
    default_detail = "invalid_request"


class AuthenticationError(ApiError):
    status_code = 401
    default_detail = "unauthorized"


class AuthorizationError(ApiError):
    status_code = 403
    default_detail = "forbidden"


class NotFoundError(ApiError):
    status_code = 404
    default_detail = "not_found"


class ConflictError(ApiError):
    status_code = 409
    default_detail = "conflict"


class InternalError(ApiError):
    status_code = 500
    default_detail = "internal_error"


# credentials and accounts

class InvalidCredentials(AuthenticationError):
    default_detail = "Invalid email or password"


class UserNotFound(InvalidCredentials):
    """Raised internally; maps to the same response as a bad password."""


class InvalidAccountConfiguration(InvalidCredentials):
    default_detail = "Your account is not properly configured. Please contact support."


class AccountNotVerified(AuthenticationError):
    default_detail = "Email address has not been verified"


class AccountDisabled(AuthenticationError):
    default_detail = "This account has been deactivated"


class RoleMismatch(AuthenticationError):
    def __init__(self, actual_role: str):
        super().__init__(
            f"This account is registered as a {actual_role}. Please use the {actual_role} login page."
        )
        self.actual_role = actual_role


class EmailNotFound(NotFoundError):
    default_detail = "email not found"


class DuplicateEmail(ConflictError):
    default_detail = "Email already registered"


class InvalidOrExpiredToken(ValidationError):
    default_detail = "Invalid or expired token"


class HashingError(InternalError):
    default_detail = "password_hashing_failed"


# bearer tokens

class MissingAuthorization(AuthenticationError):
    default_detail = "Authorization header is required"


class MalformedHeader(AuthenticationError):
    default_detail = "Authorization header format must be Bearer {token}"


class InvalidSignature(AuthenticationError):
    default_detail = "invalid_token_signature"


class TokenExpired(AuthenticationError):
    default_detail = "token_expired"


class MalformedToken(AuthenticationError):
    default_detail = "invalid_token_claims"


class SigningError(InternalError):
    default_detail = "token_signing_failed"


class Forbidden(AuthorizationError):
    default_detail = "Insufficient permissions"


# classroom and submissions

class NotEnrolled(AuthorizationError):
    default_detail = "student is not enrolled in this class"


class NotAuthorized(AuthorizationError):
    default_detail = "user is not a teacher for this class"


class SubmissionNotFound(NotFoundError):
    default_detail = "submission not found"


class InvalidGrade(ValidationError):
    def __init__(self, points_possible: int):
        super().__init__(f"Grade must be between 0 and {points_possible}")
        self.points_possible = points_possible


class CodeSpaceExhausted(ConflictError):
    default_detail = "could not allocate a unique class code"
