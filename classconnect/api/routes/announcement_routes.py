from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from ..access import require_principal
from ..api_models import AnnouncementRequest, UpdateAnnouncementRequest


def build_router(core: Any) -> APIRouter:
    router = APIRouter(prefix="/api/classes/{class_id}/announcements", tags=["announcements"])

    @router.get("")
    def list_announcements(class_id: int) -> Any:
        principal = require_principal()
        items = core.announcements.list_announcements(class_id, user_id=principal.user_id, role=principal.role)
        return {"announcements": items}

    @router.get("/{announcement_id}")
    def get_announcement(class_id: int, announcement_id: int) -> Any:
        principal = require_principal()
        return core.announcements.get_announcement(
            class_id, announcement_id, user_id=principal.user_id, role=principal.role
        )

    @router.post("", status_code=201)
    def create_announcement(class_id: int, req: AnnouncementRequest) -> Any:
        principal = require_principal(roles=("teacher",))
        return core.announcements.create_announcement(
            class_id,
            principal.user_id,
            title=req.title,
            content=req.content,
            scheduled_date=req.scheduled_date,
            is_published=True if req.is_published is None else req.is_published,
        )

    @router.put("/{announcement_id}")
    def update_announcement(class_id: int, announcement_id: int, req: UpdateAnnouncementRequest) -> Any:
        principal = require_principal(roles=("teacher",))
        changes = {}
        if "scheduled_date" in req.model_fields_set:
            changes["scheduled_date"] = req.scheduled_date
        return core.announcements.update_announcement(
            class_id,
            announcement_id,
            principal.user_id,
            title=req.title,
            content=req.content,
            is_published=req.is_published,
            **changes,
        )

    @router.delete("/{announcement_id}")
    def delete_announcement(class_id: int, announcement_id: int) -> Any:
        principal = require_principal(roles=("teacher",))
        core.announcements.delete_announcement(class_id, announcement_id, principal.user_id)
        return {"message": "Announcement deleted successfully"}

    return router
