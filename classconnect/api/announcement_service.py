from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .class_service import require_class, require_member, require_teacher_of
from .core_utils import Clock, iso, parse_datetime, utc_now
from .db import Database
from .errors import AuthorizationError, NotFoundError, ValidationError
from .models import Announcement
from .user_service import display_name

_log = logging.getLogger(__name__)

_UNSET: Any = object()


def _announcement_to_dict(session: Session, row: Announcement) -> Dict[str, Any]:
    name, role = display_name(session, row.created_by)
    return {
        "announcementId": row.id,
        "classId": row.class_id,
        "title": row.title,
        "content": row.content,
        "userId": row.created_by,
        "userName": name,
        "userRole": role,
        "createdAt": iso(row.created_date),
        "updatedAt": iso(row.updated_date or row.created_date),
        "scheduledDate": iso(row.scheduled_date),
        "isPublished": row.is_published,
    }


def _load(session: Session, class_id: int, announcement_id: int) -> Announcement:
    row = session.get(Announcement, announcement_id)
    if row is None or row.class_id != class_id:
        raise NotFoundError("announcement not found")
    return row


class AnnouncementService:
    def __init__(self, *, database: Database, clock: Clock = utc_now):
        self.database = database
        self._clock = clock

    def list_announcements(self, class_id: int, *, user_id: int, role: str) -> List[Dict[str, Any]]:
        with self.database.session_scope() as session:
            require_class(session, class_id)
            require_member(session, class_id, user_id, role)
            rows = session.scalars(
                select(Announcement)
                .where(Announcement.class_id == class_id)
                .order_by(Announcement.created_date.desc(), Announcement.id.desc())
            )
            return [_announcement_to_dict(session, row) for row in rows]

    def get_announcement(self, class_id: int, announcement_id: int, *, user_id: int, role: str) -> Dict[str, Any]:
        with self.database.session_scope() as session:
            require_class(session, class_id)
            require_member(session, class_id, user_id, role)
            return _announcement_to_dict(session, _load(session, class_id, announcement_id))

    def create_announcement(
        self,
        class_id: int,
        teacher_id: int,
        *,
        title: str,
        content: str,
        scheduled_date: Any = None,
        is_published: bool = True,
    ) -> Dict[str, Any]:
        title_text = str(title or "").strip()
        if not title_text or not str(content or "").strip():
            raise ValidationError("Title and content are required")
        scheduled = parse_datetime(scheduled_date, field="scheduledDate")
        with self.database.session_scope() as session:
            require_class(session, class_id)
            require_teacher_of(session, class_id, teacher_id)
            row = Announcement(
                class_id=class_id,
                title=title_text,
                content=str(content),
                created_by=teacher_id,
                created_date=self._clock(),
                scheduled_date=scheduled,
                is_published=bool(is_published),
            )
            session.add(row)
            session.flush()
            payload = _announcement_to_dict(session, row)
        _log.info("announcement created announcement_id=%s class_id=%s", payload["announcementId"], class_id)
        return payload

    def update_announcement(
        self,
        class_id: int,
        announcement_id: int,
        user_id: int,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
        scheduled_date: Any = _UNSET,
        is_published: Optional[bool] = None,
    ) -> Dict[str, Any]:
        with self.database.session_scope() as session:
            row = _load(session, class_id, announcement_id)
            if row.created_by != user_id:
                raise AuthorizationError("You can only update your own announcements")
            if title is not None:
                if not title.strip():
                    raise ValidationError("Title is required")
                row.title = title.strip()
            if content is not None:
                row.content = content
            if scheduled_date is not _UNSET:
                row.scheduled_date = parse_datetime(scheduled_date, field="scheduledDate")
            if is_published is not None:
                row.is_published = bool(is_published)
            row.updated_date = self._clock()
            session.flush()
            return _announcement_to_dict(session, row)

    def delete_announcement(self, class_id: int, announcement_id: int, user_id: int) -> None:
        with self.database.session_scope() as session:
            row = _load(session, class_id, announcement_id)
            if row.created_by != user_id:
                raise AuthorizationError("You can only delete your own announcements")
            session.delete(row)
