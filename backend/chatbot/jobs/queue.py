"""Downstream job queues.

Enqueue is fire-and-forget: callers never wait for processing. A failure to
enqueue raises and is propagated unchanged.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from backend.chatbot.clock import Clock, SystemClock
from backend.chatbot.db.models import Job
from backend.chatbot.utils.metrics import jobs_enqueued_total

logger = logging.getLogger(__name__)

EXPORT_LEAD = "export_lead"


class JobQueue(Protocol):
    """Queue for downstream jobs."""

    async def enqueue(self, kind: str, payload: dict[str, Any]) -> None:
        """Enqueue one job.

        Args:
            kind: Job kind (e.g. EXPORT_LEAD)
            payload: JSON-serializable job arguments
        """
        ...


@dataclass(frozen=True)
class QueuedJob:
    """Job envelope as pushed onto a queue."""

    id: uuid.UUID
    kind: str
    payload: dict[str, Any]
    enqueued_at: datetime

    def to_json(self) -> str:
        return json.dumps(
            {
                "id": str(self.id),
                "kind": self.kind,
                "payload": self.payload,
                "enqueued_at": self.enqueued_at.isoformat(),
            }
        )


class RedisJobQueue:
    """Redis list-backed implementation of JobQueue (LPUSH, workers BRPOP)."""

    def __init__(self, client: Redis, queue_name: str, clock: Clock | None = None) -> None:
        self._client = client
        self._queue_name = queue_name
        self._clock = clock or SystemClock()

    @classmethod
    def from_url(cls, url: str, queue_name: str) -> "RedisJobQueue":
        """Build a queue from a redis:// URL."""
        return cls(Redis.from_url(url, decode_responses=True), queue_name)

    async def enqueue(self, kind: str, payload: dict[str, Any]) -> None:
        """Push a job envelope onto the queue list."""
        job = QueuedJob(id=uuid.uuid4(), kind=kind, payload=payload, enqueued_at=self._clock.now())
        await self._client.lpush(self._queue_name, job.to_json())

        jobs_enqueued_total.labels(kind=kind).inc()
        logger.info(
            f"Job enqueued: {kind}",
            extra={"structured": {"job_id": str(job.id), "kind": kind, "queue": self._queue_name}},
        )


class SqlJobQueue:
    """Outbox-table implementation of JobQueue.

    The job row commits on its own; the close workflow tracks delivery on the
    lead (export_enqueued_at), so a failed insert is retried by the next close.
    """

    def __init__(self, session: AsyncSession, clock: Clock | None = None) -> None:
        self._session = session
        self._clock = clock or SystemClock()

    async def enqueue(self, kind: str, payload: dict[str, Any]) -> None:
        """Insert a queued job row."""
        job_id = uuid.uuid4()
        self._session.add(
            Job(id=job_id, kind=kind, payload=payload, status="queued", created_at=self._clock.now())
        )
        try:
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise

        jobs_enqueued_total.labels(kind=kind).inc()
        logger.info(
            f"Job enqueued: {kind}",
            extra={"structured": {"job_id": str(job_id), "kind": kind, "queue": "outbox"}},
        )


class InMemoryJobQueue:
    """In-memory implementation of JobQueue."""

    def __init__(self) -> None:
        self.jobs: list[tuple[str, dict[str, Any]]] = []

    async def enqueue(self, kind: str, payload: dict[str, Any]) -> None:
        """Record the job."""
        self.jobs.append((kind, dict(payload)))
