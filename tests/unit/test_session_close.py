"""Unit tests for the idempotent session close workflow."""

import asyncio
import uuid
from datetime import datetime
from typing import Any

import pytest

from backend.chatbot.clock import ManualClock
from backend.chatbot.db.inmemory import InMemorySessionRepository
from backend.chatbot.db.repositories import LeadRecord
from backend.chatbot.errors import SessionNotFound
from backend.chatbot.jobs.queue import EXPORT_LEAD, InMemoryJobQueue
from backend.chatbot.services.sessions import SessionService


class FlakyLeadRepository(InMemorySessionRepository):
    """Fails the first lead insert, as a dropped connection would."""

    def __init__(self) -> None:
        super().__init__()
        self.failures_left = 1

    async def create_lead_for_session(
        self, session_id: uuid.UUID, created_at: datetime
    ) -> tuple[LeadRecord, bool]:
        if self.failures_left:
            self.failures_left -= 1
            raise ConnectionError("connection reset")
        return await super().create_lead_for_session(session_id, created_at)


class FlakyQueue(InMemoryJobQueue):
    def __init__(self) -> None:
        super().__init__()
        self.failures_left = 1

    async def enqueue(self, kind: str, payload: dict[str, Any]) -> None:
        if self.failures_left:
            self.failures_left -= 1
            raise ConnectionError("queue unavailable")
        await super().enqueue(kind, payload)


@pytest.fixture
def repo() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def queue() -> InMemoryJobQueue:
    return InMemoryJobQueue()


@pytest.fixture
def service(
    repo: InMemorySessionRepository, queue: InMemoryJobQueue, clock: ManualClock
) -> SessionService:
    return SessionService(repo, queue, clock)


@pytest.mark.asyncio
async def test_close_creates_one_lead_and_one_job(
    repo: InMemorySessionRepository, queue: InMemoryJobQueue, service: SessionService
) -> None:
    session = await service.create_session(uuid.uuid4())

    await service.close(session.id)

    closed = await repo.get_session(session.id)
    assert closed is not None
    assert closed.is_closed

    lead = await repo.get_lead_by_session(session.id)
    assert lead is not None
    assert queue.jobs == [
        (EXPORT_LEAD, {"session_id": str(session.id), "lead_id": str(lead.id)})
    ]


@pytest.mark.asyncio
async def test_repeated_close_is_a_read_only_noop(
    repo: InMemorySessionRepository, queue: InMemoryJobQueue, service: SessionService
) -> None:
    session = await service.create_session(uuid.uuid4())
    await service.close(session.id)
    first_closed_at = (await repo.get_session(session.id)).closed_at  # type: ignore[union-attr]
    mutations = repo.mutation_count

    for _ in range(3):
        await service.close(session.id)

    assert repo.mutation_count == mutations
    assert len(queue.jobs) == 1
    assert (await repo.get_session(session.id)).closed_at == first_closed_at  # type: ignore[union-attr]


@pytest.mark.asyncio
async def test_unknown_session(queue: InMemoryJobQueue, service: SessionService) -> None:
    with pytest.raises(SessionNotFound):
        await service.close(uuid.uuid4())

    assert queue.jobs == []


@pytest.mark.asyncio
async def test_retry_after_failed_lead_insert_completes(
    queue: InMemoryJobQueue, clock: ManualClock
) -> None:
    repo = FlakyLeadRepository()
    service = SessionService(repo, queue, clock)
    session = await service.create_session(uuid.uuid4())

    with pytest.raises(ConnectionError):
        await service.close(session.id)

    # Closed first, side effects still pending
    assert (await repo.get_session(session.id)).is_closed  # type: ignore[union-attr]
    assert await repo.get_lead_by_session(session.id) is None
    assert queue.jobs == []

    await service.close(session.id)

    lead = await repo.get_lead_by_session(session.id)
    assert lead is not None
    assert queue.jobs == [
        (EXPORT_LEAD, {"session_id": str(session.id), "lead_id": str(lead.id)})
    ]
    assert repo.close_count == 1

    await service.close(session.id)
    assert len(queue.jobs) == 1


@pytest.mark.asyncio
async def test_retry_after_failed_enqueue_completes(
    repo: InMemorySessionRepository, clock: ManualClock
) -> None:
    queue = FlakyQueue()
    service = SessionService(repo, queue, clock)
    session = await service.create_session(uuid.uuid4())

    with pytest.raises(ConnectionError):
        await service.close(session.id)

    lead = await repo.get_lead_by_session(session.id)
    assert lead is not None
    assert lead.export_enqueued_at is None
    assert queue.jobs == []

    await service.close(session.id)

    assert queue.jobs == [
        (EXPORT_LEAD, {"session_id": str(session.id), "lead_id": str(lead.id)})
    ]
    assert repo.create_lead_count == 1
    assert (await repo.get_lead_by_session(session.id)).export_enqueued_at is not None  # type: ignore[union-attr]

    await service.close(session.id)
    assert len(queue.jobs) == 1


@pytest.mark.asyncio
async def test_claimed_export_is_not_enqueued_twice(
    repo: InMemorySessionRepository,
    queue: InMemoryJobQueue,
    service: SessionService,
    clock: ManualClock,
) -> None:
    session = await service.create_session(uuid.uuid4())
    await repo.mark_session_closed(session.id, clock.now())
    lead, _ = await repo.create_lead_for_session(session.id, clock.now())

    assert await repo.claim_lead_export(lead.id, clock.now()) is True
    assert await repo.claim_lead_export(lead.id, clock.now()) is False

    await service.close(session.id)

    assert queue.jobs == []


@pytest.mark.asyncio
async def test_concurrent_closes_enqueue_once(
    repo: InMemorySessionRepository, queue: InMemoryJobQueue, service: SessionService
) -> None:
    session = await service.create_session(uuid.uuid4())

    await asyncio.gather(*(service.close(session.id) for _ in range(5)))

    assert repo.close_count == 1
    assert repo.create_lead_count == 1
    assert len(queue.jobs) == 1


@pytest.mark.asyncio
async def test_sessions_close_independently(
    repo: InMemorySessionRepository, queue: InMemoryJobQueue, service: SessionService
) -> None:
    tenant_id = uuid.uuid4()
    first = await service.create_session(tenant_id)
    second = await service.create_session(tenant_id)

    await service.close(first.id)

    assert not (await repo.get_session(second.id)).is_closed  # type: ignore[union-attr]
    assert [payload["session_id"] for _, payload in queue.jobs] == [str(first.id)]


@pytest.mark.asyncio
async def test_list_sessions_newest_first(service: SessionService) -> None:
    tenant_id = uuid.uuid4()
    created = [await service.create_session(tenant_id) for _ in range(3)]
    await service.create_session(uuid.uuid4())

    page = await service.list_sessions(tenant_id, 10)

    assert [s.id for s in page.items] == [s.id for s in reversed(created)]
    assert page.next_cursor is None
