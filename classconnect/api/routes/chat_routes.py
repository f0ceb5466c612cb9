from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from ..access import require_principal
from ..api_models import ChatMessageRequest


def build_router(core: Any) -> APIRouter:
    router = APIRouter(prefix="/api/classes/{class_id}/chat", tags=["chat"])

    @router.get("")
    def list_messages(class_id: int) -> Any:
        principal = require_principal()
        messages = core.chat.list_messages(class_id, user_id=principal.user_id, role=principal.role)
        return {"messages": messages}

    @router.post("", status_code=201)
    def send_message(class_id: int, req: ChatMessageRequest) -> Any:
        principal = require_principal()
        return core.chat.send_message(
            class_id, user_id=principal.user_id, role=principal.role, content=req.content
        )

    @router.delete("/{message_id}")
    def delete_message(class_id: int, message_id: int) -> Any:
        principal = require_principal()
        core.chat.delete_message(class_id, message_id, user_id=principal.user_id)
        return {"message": "Message deleted successfully"}

    return router
