"""Template management (versions live in services.versioning)."""

import logging
from uuid import UUID

from backend.chatbot.clock import Clock, SystemClock
from backend.chatbot.db.repositories import TemplateRecord, TemplateRepository
from backend.chatbot.errors import InvalidName, TemplateNotFound
from backend.chatbot.pagination import Cursor, Page
from backend.chatbot.validation.slug import normalize_slug

logger = logging.getLogger(__name__)


class TemplateService:
    def __init__(self, repo: TemplateRepository, clock: Clock | None = None) -> None:
        self._repo = repo
        self._clock = clock or SystemClock()

    async def create_template(self, tenant_id: UUID, name: str, slug: str) -> TemplateRecord:
        """Create a template owned by a tenant.

        Raises:
            InvalidName: If the name is blank
            InvalidSlug: If the slug normalizes to nothing usable
            TemplateSlugTaken: If the tenant already has a template with the slug
        """
        name = name.strip()
        if not name:
            raise InvalidName()

        record = await self._repo.create_template(
            tenant_id, name, normalize_slug(slug), self._clock.now()
        )
        logger.info(
            f"Template created: {record.slug}",
            extra={
                "structured": {
                    "template_id": str(record.id),
                    "tenant_id": str(tenant_id),
                    "slug": record.slug,
                }
            },
        )
        return record

    async def get_template(self, tenant_id: UUID, slug: str) -> TemplateRecord:
        """Get a template by tenant-scoped slug.

        Raises:
            TemplateNotFound: If the tenant has no such template
        """
        record = await self._repo.get_template_by_slug(tenant_id, slug.strip().lower())
        if record is None:
            raise TemplateNotFound()
        return record

    async def list_templates(
        self, tenant_id: UUID, limit: int, cursor: Cursor | None = None
    ) -> Page[TemplateRecord]:
        return await self._repo.list_templates(tenant_id, limit, cursor)
