"""FastAPI dependencies: clock, repositories, services and paging params."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.chatbot.clock import Clock, SystemClock
from backend.chatbot.config import Settings, get_settings
from backend.chatbot.db.engine import get_session
from backend.chatbot.db.sql_repositories import (
    SqlSessionRepository,
    SqlTemplateRepository,
    SqlTenantRepository,
)
from backend.chatbot.errors import InvalidInputError
from backend.chatbot.jobs.queue import JobQueue, RedisJobQueue, SqlJobQueue
from backend.chatbot.pagination import Cursor, Page, decode, encode
from backend.chatbot.services.messages import MessageService
from backend.chatbot.services.sessions import SessionService
from backend.chatbot.services.templates import TemplateService
from backend.chatbot.services.tenants import TenantService
from backend.chatbot.services.versioning import TemplateVersionService

SessionDep = Annotated[AsyncSession, Depends(get_session)]
SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_clock() -> Clock:
    return SystemClock()


ClockDep = Annotated[Clock, Depends(get_clock)]


@lru_cache
def _redis_queue(url: str, queue_name: str) -> RedisJobQueue:
    return RedisJobQueue.from_url(url, queue_name)


def get_job_queue(settings: SettingsDep, session: SessionDep) -> JobQueue:
    """Redis list when REDIS_URL is set, SQL outbox table otherwise."""
    if settings.redis_url:
        return _redis_queue(settings.redis_url, settings.job_queue_name)
    return SqlJobQueue(session)


def get_tenant_service(session: SessionDep, clock: ClockDep) -> TenantService:
    return TenantService(SqlTenantRepository(session), clock)


def get_template_service(session: SessionDep, clock: ClockDep) -> TemplateService:
    return TemplateService(SqlTemplateRepository(session), clock)


def get_version_service(session: SessionDep, clock: ClockDep) -> TemplateVersionService:
    return TemplateVersionService(SqlTemplateRepository(session), clock)


def get_session_service(
    session: SessionDep,
    clock: ClockDep,
    queue: Annotated[JobQueue, Depends(get_job_queue)],
) -> SessionService:
    return SessionService(SqlSessionRepository(session), queue, clock)


def get_message_service(session: SessionDep, clock: ClockDep) -> MessageService:
    repo = SqlSessionRepository(session)
    return MessageService(repo, repo, clock)


class PageParams:
    """Parsed ``limit`` and ``cursor`` query parameters."""

    def __init__(self, limit: int, cursor: Cursor | None) -> None:
        self.limit = limit
        self.cursor = cursor


def parse_limit(raw: str | None, settings: Settings) -> int:
    """Blank means default; anything else must be an integer, then clamped.

    Raises:
        InvalidInputError: If the value is not an integer
    """
    if raw is None or not raw.strip():
        return settings.page_default_limit
    try:
        value = int(raw.strip())
    except ValueError as e:
        raise InvalidInputError("invalid limit") from e
    return max(settings.page_min_limit, min(value, settings.page_max_limit))


def parse_cursor(raw: str | None) -> Cursor | None:
    """Blank means start from the newest item.

    Raises:
        InvalidCursor: If the token does not decode
    """
    if raw is None or not raw.strip():
        return None
    return decode(raw)


def next_token(page: Page) -> str | None:
    """Opaque token for the page after this one, if any."""
    return encode(page.next_cursor) if page.next_cursor is not None else None


def get_page_params(
    settings: SettingsDep,
    limit: Annotated[str | None, Query()] = None,
    cursor: Annotated[str | None, Query()] = None,
) -> PageParams:
    return PageParams(limit=parse_limit(limit, settings), cursor=parse_cursor(cursor))


PageDep = Annotated[PageParams, Depends(get_page_params)]
TenantServiceDep = Annotated[TenantService, Depends(get_tenant_service)]
TemplateServiceDep = Annotated[TemplateService, Depends(get_template_service)]
VersionServiceDep = Annotated[TemplateVersionService, Depends(get_version_service)]
SessionServiceDep = Annotated[SessionService, Depends(get_session_service)]
MessageServiceDep = Annotated[MessageService, Depends(get_message_service)]
