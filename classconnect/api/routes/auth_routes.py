from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter

from ..api_models import (
    ForgotPasswordRequest,
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
)
from ..errors import (
    EmailNotFound,
    InvalidAccountConfiguration,
    InvalidCredentials,
    InvalidOrExpiredToken,
    UserNotFound,
)
from ..user_service import user_summary

_log = logging.getLogger(__name__)

_FORGOT_PASSWORD_MESSAGE = "If your email is registered, you will receive a password reset link"


def build_router(core: Any) -> APIRouter:
    router = APIRouter(prefix="/api/auth", tags=["auth"])

    @router.post("/register", status_code=201)
    def register(req: RegisterRequest) -> Any:
        result = core.users.register(
            email=req.email,
            password=req.password,
            first_name=req.first_name,
            last_name=req.last_name,
            role=req.role,
            department=req.department or "",
            grade_level=req.grade_level or "",
        )
        payload = {
            "message": f"{result.user.role} registered successfully",
            "token": result.token,
            "user": user_summary(result.user, result.profile.first_name, result.profile.last_name),
        }
        if core.config.require_email_verification:
            verification_token = core.auth.issue_verification_token(result.user.id)
            if core.config.expose_reset_tokens:
                payload["verificationToken"] = verification_token
        return payload

    @router.post("/login")
    def login(req: LoginRequest) -> Any:
        try:
            result = core.auth.login(req.email, req.password, role=req.role or None)
        except (UserNotFound, InvalidAccountConfiguration) as exc:
            _log.info("login failed reason=%s", type(exc).__name__)
            raise InvalidCredentials()
        return {
            "message": "Login successful",
            "token": result.token,
            "user": core.users.summary(result.user),
        }

    @router.post("/refresh-token")
    def refresh_token(req: RefreshTokenRequest) -> Any:
        result = core.auth.refresh(req.refresh_token)
        return {
            "message": "Token refreshed successfully",
            "token": result.token,
            "user": {"id": result.user.id, "role": result.user.role},
        }

    @router.post("/forgot-password")
    def forgot_password(req: ForgotPasswordRequest) -> Any:
        try:
            token = core.auth.request_password_reset(req.email)
        except EmailNotFound:
            _log.info("password reset requested for unknown email")
            return {"message": _FORGOT_PASSWORD_MESSAGE}
        if not core.config.expose_reset_tokens:
            return {"message": _FORGOT_PASSWORD_MESSAGE}
        return {
            "message": "Password reset link sent",
            "link": f"/reset-password?token={token}",
            "token": token,
        }

    @router.post("/reset-password")
    def reset_password(req: ResetPasswordRequest) -> Any:
        core.auth.reset_password_with_token(req.token, req.new_password)
        return {"message": "Password reset successful"}

    @router.post("/verify-email")
    def verify_email(req: VerifyEmailRequest) -> Any:
        try:
            core.auth.verify_email_token(req.token)
        except InvalidOrExpiredToken:
            raise InvalidOrExpiredToken("Invalid or expired verification token")
        return {"message": "Email verified successfully"}

    return router
