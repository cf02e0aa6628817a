"""Template version lifecycle: draft creation and exclusive publication.

States per version are ``draft`` and ``published``. Per template, at most
one version is published at any instant. That invariant lives in the store
as a partial unique index on ``template_version(template_id) WHERE
status = 'published'``; nothing here reads-then-writes to enforce it.

Publishing version N atomically returns the previously published version
to ``draft``, which makes it publishable again later. Version numbers and
``created_at`` never change after insertion.
"""

import logging
from typing import Any
from uuid import UUID

from backend.chatbot.clock import Clock, SystemClock
from backend.chatbot.db.repositories import TemplateVersionRecord, TemplateVersionRepository
from backend.chatbot.errors import (
    InvalidVersion,
    VersionAlreadyPublished,
    VersionNotFound,
)
from backend.chatbot.utils.metrics import template_drafts_total, template_publish_total

logger = logging.getLogger(__name__)


class TemplateVersionService:
    """State machine for the versions of one or more templates."""

    def __init__(self, repo: TemplateVersionRepository, clock: Clock | None = None) -> None:
        self._repo = repo
        self._clock = clock or SystemClock()

    async def create_draft(self, template_id: UUID, content: Any = None) -> TemplateVersionRecord:
        """Create the next draft version.

        Args:
            template_id: Owning template
            content: Opaque JSON document; defaults to an empty object

        Returns:
            The new draft record (version = max existing + 1, starting at 1)

        Raises:
            TemplateNotFound: If the template does not exist
        """
        if content is None:
            content = {}

        record = await self._repo.insert_next_draft(template_id, content, self._clock.now())

        template_drafts_total.inc()
        logger.info(
            f"Draft created: v{record.version}",
            extra={"structured": {"template_id": str(template_id), "version": record.version}},
        )
        return record

    async def publish(self, template_id: UUID, version: int) -> TemplateVersionRecord:
        """Make the given draft the template's single published version.

        Returns:
            The now-published record

        Raises:
            InvalidVersion: If version is not a positive integer
            VersionNotFound: If (template_id, version) does not exist
            VersionAlreadyPublished: If the version is not a draft, or another
                publisher took the slot concurrently
        """
        if version <= 0:
            raise InvalidVersion()

        log_ctx = {"template_id": str(template_id), "version": version}

        try:
            published = await self._repo.publish_version(template_id, version)
        except VersionAlreadyPublished:
            template_publish_total.labels(outcome="conflict").inc()
            logger.warning("Publish lost exclusivity race", extra={"structured": log_ctx})
            raise

        if published is None:
            # No draft row matched; a follow-up read classifies why
            existing = await self._repo.get_version(template_id, version)
            if existing is None:
                template_publish_total.labels(outcome="not_found").inc()
                logger.info("Publish target not found", extra={"structured": log_ctx})
                raise VersionNotFound()

            template_publish_total.labels(outcome="conflict").inc()
            logger.info(
                "Publish target not a draft",
                extra={"structured": {**log_ctx, "status": existing.status}},
            )
            raise VersionAlreadyPublished()

        template_publish_total.labels(outcome="published").inc()
        logger.info(f"Version published: v{version}", extra={"structured": log_ctx})
        return published

    async def get_published(self, template_id: UUID) -> TemplateVersionRecord:
        """Get the template's published version.

        Raises:
            VersionNotFound: If nothing has been published yet
        """
        record = await self._repo.get_published(template_id)
        if record is None:
            raise VersionNotFound()
        return record
