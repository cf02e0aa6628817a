"""PostgreSQL tests for publish exclusivity under real concurrency.

Skipped unless DATABASE_URL points at PostgreSQL.
"""

import asyncio
import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from backend.chatbot.clock import SystemClock
from backend.chatbot.db.models import PUBLISHED, Job, TemplateVersion
from backend.chatbot.db.repositories import TemplateVersionRecord
from backend.chatbot.db.sql_repositories import (
    SqlSessionRepository,
    SqlTemplateRepository,
    SqlTenantRepository,
)
from backend.chatbot.errors import ConflictError
from backend.chatbot.jobs.queue import SqlJobQueue
from backend.chatbot.services.sessions import SessionService
from backend.chatbot.services.versioning import TemplateVersionService


async def _seed_template(engine: AsyncEngine, drafts: int) -> uuid.UUID:
    clock = SystemClock()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        tenant = await SqlTenantRepository(session).create_tenant("Acme", "acme", clock.now())
        repo = SqlTemplateRepository(session)
        template = await repo.create_template(tenant.id, "Welcome", "welcome", clock.now())
        for _ in range(drafts):
            await repo.insert_next_draft(template.id, {}, clock.now())
        return template.id


async def _publish(engine: AsyncEngine, template_id: uuid.UUID, version: int) -> object:
    """Publish on its own connection, like a separate service instance."""
    async with AsyncSession(engine, expire_on_commit=False) as session:
        service = TemplateVersionService(SqlTemplateRepository(session))
        try:
            return await service.publish(template_id, version)
        except ConflictError as e:
            return e


async def _published_count(engine: AsyncEngine, template_id: uuid.UUID) -> int:
    async with AsyncSession(engine) as session:
        result = await session.execute(
            select(func.count())
            .select_from(TemplateVersion)
            .where(
                TemplateVersion.template_id == template_id, TemplateVersion.status == PUBLISHED
            )
        )
        return result.scalar_one()


@pytest.mark.postgres
@pytest.mark.asyncio
async def test_racing_first_publishes(postgres_engine: AsyncEngine) -> None:
    template_id = await _seed_template(postgres_engine, drafts=2)

    results = await asyncio.gather(
        _publish(postgres_engine, template_id, 1),
        _publish(postgres_engine, template_id, 2),
    )

    assert sum(isinstance(r, TemplateVersionRecord) for r in results) == 1
    assert sum(isinstance(r, ConflictError) for r in results) == 1
    assert await _published_count(postgres_engine, template_id) == 1


@pytest.mark.postgres
@pytest.mark.asyncio
async def test_published_count_never_exceeds_one(postgres_engine: AsyncEngine) -> None:
    template_id = await _seed_template(postgres_engine, drafts=4)

    for _ in range(5):
        await asyncio.gather(
            *(_publish(postgres_engine, template_id, v) for v in (1, 2, 3, 4))
        )
        assert await _published_count(postgres_engine, template_id) == 1


@pytest.mark.postgres
@pytest.mark.asyncio
async def test_concurrent_drafts_get_distinct_versions(postgres_engine: AsyncEngine) -> None:
    template_id = await _seed_template(postgres_engine, drafts=0)

    async def draft() -> int:
        async with AsyncSession(postgres_engine, expire_on_commit=False) as session:
            record = await TemplateVersionService(SqlTemplateRepository(session)).create_draft(
                template_id
            )
            return record.version

    versions = await asyncio.gather(*(draft() for _ in range(8)))

    assert sorted(versions) == list(range(1, 9))


@pytest.mark.postgres
@pytest.mark.asyncio
async def test_concurrent_closes_enqueue_one_job(postgres_engine: AsyncEngine) -> None:
    clock = SystemClock()
    async with AsyncSession(postgres_engine, expire_on_commit=False) as session:
        tenant = await SqlTenantRepository(session).create_tenant("Acme", "acme", clock.now())
        chat = await SqlSessionRepository(session).create_session(tenant.id, clock.now())

    async def close() -> None:
        async with AsyncSession(postgres_engine, expire_on_commit=False) as session:
            service = SessionService(SqlSessionRepository(session), SqlJobQueue(session))
            await service.close(chat.id)

    await asyncio.gather(*(close() for _ in range(6)))

    async with AsyncSession(postgres_engine) as session:
        jobs = await session.execute(select(func.count()).select_from(Job))
        assert jobs.scalar_one() == 1
