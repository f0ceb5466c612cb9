from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from ..access import require_principal


def build_router(core: Any) -> APIRouter:
    router = APIRouter(prefix="/api", tags=["users"])

    @router.get("/users/me")
    def users_me() -> Any:
        principal = require_principal()
        return core.users.me(principal.user_id)

    @router.get("/users/{user_id}")
    def users_get(user_id: int) -> Any:
        require_principal()
        return core.users.public_profile(user_id)

    @router.get("/grades")
    def my_grades() -> Any:
        principal = require_principal(roles=("student",))
        return {"grades": core.submissions.grades_for_student(principal.user_id)}

    return router
