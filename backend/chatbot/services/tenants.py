"""Tenant management."""

import logging

from backend.chatbot.clock import Clock, SystemClock
from backend.chatbot.db.repositories import TenantRecord, TenantRepository
from backend.chatbot.errors import InvalidName, TenantNotFound
from backend.chatbot.pagination import Cursor, Page
from backend.chatbot.validation.slug import normalize_slug

logger = logging.getLogger(__name__)


class TenantService:
    def __init__(self, repo: TenantRepository, clock: Clock | None = None) -> None:
        self._repo = repo
        self._clock = clock or SystemClock()

    async def create_tenant(self, name: str, slug: str) -> TenantRecord:
        """Create a tenant.

        Raises:
            InvalidName: If the name is blank
            InvalidSlug: If the slug normalizes to nothing usable
            TenantSlugTaken: If another tenant owns the slug
        """
        name = name.strip()
        if not name:
            raise InvalidName()

        record = await self._repo.create_tenant(name, normalize_slug(slug), self._clock.now())
        logger.info(
            f"Tenant created: {record.slug}",
            extra={"structured": {"tenant_id": str(record.id), "slug": record.slug}},
        )
        return record

    async def get_tenant_by_slug(self, slug: str) -> TenantRecord:
        """Get a tenant by slug.

        Raises:
            TenantNotFound: If no tenant has the slug
        """
        record = await self._repo.get_tenant_by_slug(slug.strip().lower())
        if record is None:
            raise TenantNotFound()
        return record

    async def list_tenants(self, limit: int, cursor: Cursor | None = None) -> Page[TenantRecord]:
        return await self._repo.list_tenants(limit, cursor)
