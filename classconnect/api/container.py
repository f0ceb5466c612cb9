from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Optional

from .announcement_service import AnnouncementService
from .assignment_service import AssignmentService
from .auth_secret_bootstrap import resolve_jwt_secret
from .auth_service import AuthService
from .chat_service import ChatService
from .class_service import ClassService
from .config import AppConfig
from .core_utils import Clock, utc_now
from .db import Database
from .submission_service import SubmissionService
from .token_service import TokenIssuer
from .user_service import UserService


@dataclass(frozen=True)
class AppContainer:
    config: AppConfig
    database: Database
    clock: Clock
    tokens: TokenIssuer
    auth: AuthService
    users: UserService
    classes: ClassService
    assignments: AssignmentService
    submissions: SubmissionService
    announcements: AnnouncementService
    chat: ChatService


def build_app_container(
    config: AppConfig,
    *,
    database: Optional[Database] = None,
    clock: Optional[Clock] = None,
) -> AppContainer:
    """Construct every service once; handlers receive this object and nothing else."""
    config = dataclasses.replace(config, jwt_secret=resolve_jwt_secret(config))
    database = database or Database(config.database_url)
    clock = clock or utc_now
    tokens = TokenIssuer(config.jwt_secret, ttl_sec=config.jwt_ttl_sec, clock=clock)
    return AppContainer(
        config=config,
        database=database,
        clock=clock,
        tokens=tokens,
        auth=AuthService(database=database, tokens=tokens, config=config, clock=clock),
        users=UserService(database=database, tokens=tokens, config=config, clock=clock),
        classes=ClassService(database=database, config=config, clock=clock),
        assignments=AssignmentService(database=database, clock=clock),
        submissions=SubmissionService(database=database, clock=clock),
        announcements=AnnouncementService(database=database, clock=clock),
        chat=ChatService(database=database, clock=clock),
    )
