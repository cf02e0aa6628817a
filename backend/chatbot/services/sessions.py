"""Chat session lifecycle and the idempotent close workflow.

A session moves one way, open -> closed. Closing creates at most one lead
for the session and enqueues at most one lead-export job, no matter how
many times or how concurrently close is called.

The conditional ``closed_at IS NULL`` update is the linearization point:
exactly one caller wins it and runs the side effects. Retries after a
partial failure (closed, but no lead or no recorded export yet) finish the
work; retries after full completion touch nothing. The lead's
export_enqueued_at marker is claimed with a conditional update before
enqueueing, so only one caller hands the job off.
"""

import logging
from uuid import UUID

from backend.chatbot.clock import Clock, SystemClock
from backend.chatbot.db.repositories import LeadRecord, SessionRecord, SessionRepository
from backend.chatbot.errors import SessionNotFound
from backend.chatbot.jobs.queue import EXPORT_LEAD, JobQueue
from backend.chatbot.pagination import Cursor, Page
from backend.chatbot.utils.metrics import leads_created_total, session_close_total

logger = logging.getLogger(__name__)


class SessionService:
    """Open, list and close chat sessions."""

    def __init__(
        self,
        repo: SessionRepository,
        queue: JobQueue,
        clock: Clock | None = None,
    ) -> None:
        self._repo = repo
        self._queue = queue
        self._clock = clock or SystemClock()

    async def create_session(self, tenant_id: UUID) -> SessionRecord:
        record = await self._repo.create_session(tenant_id, self._clock.now())
        logger.info(
            "Session opened",
            extra={"structured": {"session_id": str(record.id), "tenant_id": str(tenant_id)}},
        )
        return record

    async def list_sessions(
        self, tenant_id: UUID, limit: int, cursor: Cursor | None = None
    ) -> Page[SessionRecord]:
        return await self._repo.list_sessions(tenant_id, limit, cursor)

    async def close(self, session_id: UUID) -> None:
        """Close a session and hand its lead off for export.

        Safe to call any number of times. Returns once the session is closed;
        exactly one caller enqueues the export job.

        Raises:
            SessionNotFound: If the session does not exist
            Exception: Store or queue failures propagate unchanged; calling
                close again completes the workflow
        """
        log_ctx = {"session_id": str(session_id)}

        session = await self._repo.get_session(session_id)
        if session is None:
            session_close_total.labels(outcome="not_found").inc()
            raise SessionNotFound()

        lead: LeadRecord | None = None
        if not session.is_closed:
            won = await self._repo.mark_session_closed(session_id, self._clock.now())
            if not won:
                # A concurrent close got there first and owns the side effects
                session_close_total.labels(outcome="noop").inc()
                logger.info("Session close lost race", extra={"structured": log_ctx})
                return
            logger.info("Session closed", extra={"structured": log_ctx})
        else:
            lead = await self._repo.get_lead_by_session(session_id)
            if lead is not None and lead.export_enqueued_at is not None:
                session_close_total.labels(outcome="noop").inc()
                logger.debug("Session already closed", extra={"structured": log_ctx})
                return
            logger.warning(
                "Closed session has unfinished side effects, resuming close",
                extra={"structured": {**log_ctx, "has_lead": lead is not None}},
            )

        if lead is None:
            lead, created = await self._repo.create_lead_for_session(
                session_id, self._clock.now()
            )
            if created:
                leads_created_total.inc()

        if not await self._repo.claim_lead_export(lead.id, self._clock.now()):
            # Another closer holds the export
            session_close_total.labels(outcome="noop").inc()
            return

        try:
            await self._queue.enqueue(
                EXPORT_LEAD, {"session_id": str(session_id), "lead_id": str(lead.id)}
            )
        except Exception:
            await self._repo.release_lead_export(lead.id)
            session_close_total.labels(outcome="enqueue_failed").inc()
            logger.error(
                "Lead export enqueue failed",
                extra={"structured": {**log_ctx, "lead_id": str(lead.id)}},
            )
            raise

        session_close_total.labels(outcome="closed").inc()
        logger.info(
            "Lead export enqueued",
            extra={"structured": {**log_ctx, "lead_id": str(lead.id)}},
        )
