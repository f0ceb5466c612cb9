from __future__ import annotations

import logging
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from .class_service import is_class_teacher, require_class, require_member
from .core_utils import Clock, iso, utc_now
from .db import Database
from .errors import AuthorizationError, NotFoundError, ValidationError
from .models import ChatMessage
from .user_service import display_name

_log = logging.getLogger(__name__)

MAX_MESSAGE_LEN = 4000


def _message_to_dict(session: Session, row: ChatMessage) -> Dict[str, Any]:
    name, role = display_name(session, row.user_id)
    return {
        "messageId": row.id,
        "classId": row.class_id,
        "userId": row.user_id,
        "userName": name,
        "userRole": role,
        "content": row.content,
        "timestamp": iso(row.timestamp),
    }


class ChatService:
    def __init__(self, *, database: Database, clock: Clock = utc_now):
        self.database = database
        self._clock = clock

    def list_messages(self, class_id: int, *, user_id: int, role: str) -> List[Dict[str, Any]]:
        with self.database.session_scope() as session:
            require_class(session, class_id)
            require_member(session, class_id, user_id, role)
            rows = session.scalars(
                select(ChatMessage)
                .where(ChatMessage.class_id == class_id, ChatMessage.is_deleted.is_(False))
                .order_by(ChatMessage.timestamp, ChatMessage.id)
            )
            return [_message_to_dict(session, row) for row in rows]

    def send_message(self, class_id: int, *, user_id: int, role: str, content: str) -> Dict[str, Any]:
        text = str(content or "")
        if not text.strip():
            raise ValidationError("Message content cannot be empty")
        if len(text) > MAX_MESSAGE_LEN:
            raise ValidationError(f"Message content exceeds {MAX_MESSAGE_LEN} characters")
        with self.database.session_scope() as session:
            require_class(session, class_id)
            require_member(session, class_id, user_id, role)
            now = self._clock()
            row = ChatMessage(class_id=class_id, user_id=user_id, content=text, timestamp=now, is_deleted=False)
            session.add(row)
            session.flush()
            return _message_to_dict(session, row)

    def delete_message(self, class_id: int, message_id: int, *, user_id: int) -> None:
        """Soft-delete; allowed for the author or any teacher of the class."""
        with self.database.session_scope() as session:
            row = session.get(ChatMessage, message_id)
            if row is None or row.class_id != class_id or row.is_deleted:
                raise NotFoundError("message not found")
            if row.user_id != user_id and not is_class_teacher(session, class_id, user_id):
                raise AuthorizationError("You can only delete your own messages")
            row.is_deleted = True
            row.updated_at = self._clock()
        _log.info("chat message deleted message_id=%s by user_id=%s", message_id, user_id)
