"""Repository protocol interfaces for data access.

Point reads return None for a missing row; only storage failures raise.
Mutations that would break a unique index raise the matching ConflictError.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from backend.chatbot.pagination import Cursor, Page


@dataclass(frozen=True)
class TenantRecord:
    """Tenant data record."""

    id: UUID
    name: str
    slug: str
    created_at: datetime


@dataclass(frozen=True)
class TemplateRecord:
    """Template data record."""

    id: UUID
    tenant_id: UUID
    name: str
    slug: str
    created_at: datetime


@dataclass(frozen=True)
class TemplateVersionRecord:
    """Template version data record.

    content is an opaque JSON document, never inspected here.
    """

    id: UUID
    template_id: UUID
    version: int
    status: str
    content: Any
    created_at: datetime


@dataclass(frozen=True)
class SessionRecord:
    """Chat session data record."""

    id: UUID
    tenant_id: UUID
    created_at: datetime
    closed_at: datetime | None

    @property
    def is_closed(self) -> bool:
        return self.closed_at is not None


@dataclass(frozen=True)
class LeadRecord:
    """Lead data record.

    export_enqueued_at is None until a closer has handed the export job off.
    """

    id: UUID
    session_id: UUID
    created_at: datetime
    export_enqueued_at: datetime | None = None


@dataclass(frozen=True)
class MessageRecord:
    """Chat message data record."""

    id: UUID
    session_id: UUID
    role: str
    content: str
    tool_name: str | None
    tool_data: dict[str, Any] | None
    created_at: datetime


class TenantRepository(Protocol):
    """Repository for tenant operations."""

    async def create_tenant(self, name: str, slug: str, created_at: datetime) -> TenantRecord:
        """Insert a tenant.

        Raises:
            TenantSlugTaken: If the slug is already used
        """
        ...

    async def get_tenant_by_slug(self, slug: str) -> TenantRecord | None:
        """Get tenant by slug."""
        ...

    async def list_tenants(self, limit: int, cursor: Cursor | None) -> Page[TenantRecord]:
        """List tenants newest first."""
        ...


class TemplateRepository(Protocol):
    """Repository for template operations."""

    async def create_template(
        self, tenant_id: UUID, name: str, slug: str, created_at: datetime
    ) -> TemplateRecord:
        """Insert a template.

        Raises:
            TemplateSlugTaken: If the slug is already used within the tenant
        """
        ...

    async def get_template_by_slug(self, tenant_id: UUID, slug: str) -> TemplateRecord | None:
        """Get template by tenant-scoped slug."""
        ...

    async def list_templates(
        self, tenant_id: UUID, limit: int, cursor: Cursor | None
    ) -> Page[TemplateRecord]:
        """List a tenant's templates newest first."""
        ...


class TemplateVersionRepository(Protocol):
    """Repository for template version operations."""

    async def insert_next_draft(
        self, template_id: UUID, content: Any, created_at: datetime
    ) -> TemplateVersionRecord:
        """Atomically assign max(version) + 1 and insert a draft.

        Raises:
            TemplateNotFound: If the template does not exist
        """
        ...

    async def publish_version(
        self, template_id: UUID, version: int
    ) -> TemplateVersionRecord | None:
        """Atomically unpublish the current version and publish a draft.

        Returns:
            The now-published record, or None if no draft row matched

        Raises:
            VersionAlreadyPublished: If another version holds the published slot
        """
        ...

    async def get_version(self, template_id: UUID, version: int) -> TemplateVersionRecord | None:
        """Get a version by number."""
        ...

    async def get_published(self, template_id: UUID) -> TemplateVersionRecord | None:
        """Get the published version of a template."""
        ...


class SessionRepository(Protocol):
    """Repository for chat session and lead operations."""

    async def create_session(self, tenant_id: UUID, created_at: datetime) -> SessionRecord:
        """Open a new session."""
        ...

    async def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Get session by ID."""
        ...

    async def list_sessions(
        self, tenant_id: UUID, limit: int, cursor: Cursor | None
    ) -> Page[SessionRecord]:
        """List a tenant's sessions newest first."""
        ...

    async def mark_session_closed(self, session_id: UUID, closed_at: datetime) -> bool:
        """Set closed_at if still open.

        Returns:
            True if this call closed the session, False if it was already closed
        """
        ...

    async def get_lead_by_session(self, session_id: UUID) -> LeadRecord | None:
        """Get the lead created for a session."""
        ...

    async def create_lead_for_session(
        self, session_id: UUID, created_at: datetime
    ) -> tuple[LeadRecord, bool]:
        """Insert the session's lead unless one exists.

        Returns:
            (lead, created) where created is False if another caller won
        """
        ...

    async def claim_lead_export(self, lead_id: UUID, claimed_at: datetime) -> bool:
        """Set export_enqueued_at if still unset.

        Returns:
            True if this call owns the export, False if it was already claimed
        """
        ...

    async def release_lead_export(self, lead_id: UUID) -> None:
        """Clear export_enqueued_at so a later close can enqueue again."""
        ...


class MessageRepository(Protocol):
    """Repository for chat message operations."""

    async def insert_message(
        self,
        session_id: UUID,
        role: str,
        content: str,
        tool_name: str | None,
        tool_data: dict[str, Any] | None,
        created_at: datetime,
    ) -> MessageRecord:
        """Append a message to a session."""
        ...
