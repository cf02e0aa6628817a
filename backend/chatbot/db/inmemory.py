"""In-memory implementations of repository interfaces.

Each method mirrors the atomic statement semantics of the SQL versions. The
only await points inside a method sit where the SQL version would make a
round trip, so concurrent coroutines interleave the same way concurrent
transactions would.
"""

import asyncio
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, TypeVar

from backend.chatbot.db.models import DRAFT, PUBLISHED
from backend.chatbot.db.repositories import (
    LeadRecord,
    MessageRecord,
    SessionRecord,
    TemplateRecord,
    TemplateVersionRecord,
    TenantRecord,
)
from backend.chatbot.errors import (
    InvalidCursor,
    TemplateNotFound,
    TemplateSlugTaken,
    TenantSlugTaken,
    VersionAlreadyPublished,
)
from backend.chatbot.pagination import Cursor, Page, next_cursor_for
from backend.chatbot.pagination.cursor import as_utc
from backend.chatbot.pagination.lister import DEFAULT_LIMIT

R = TypeVar("R", TenantRecord, TemplateRecord, SessionRecord)


def _paginate(records: list[R], limit: int, cursor: Cursor | None) -> Page[R]:
    """Apply (created_at DESC, id DESC) keyset paging to records."""
    if limit <= 0:
        limit = DEFAULT_LIMIT

    ordered = sorted(records, key=lambda r: (r.created_at, r.id), reverse=True)

    if cursor is not None:
        try:
            cursor_key = (cursor.created_at, uuid.UUID(cursor.id))
        except ValueError as e:
            raise InvalidCursor() from e
        ordered = [r for r in ordered if (r.created_at, r.id) < cursor_key]

    items = ordered[:limit]
    return Page(
        items=items,
        next_cursor=next_cursor_for(items, limit, lambda r: (r.created_at, r.id)),
    )


class InMemoryTenantRepository:
    """In-memory implementation of TenantRepository."""

    def __init__(self) -> None:
        self._tenants: dict[uuid.UUID, TenantRecord] = {}

    async def create_tenant(self, name: str, slug: str, created_at: datetime) -> TenantRecord:
        """Insert a tenant."""
        if any(t.slug == slug for t in self._tenants.values()):
            raise TenantSlugTaken()

        record = TenantRecord(
            id=uuid.uuid4(), name=name, slug=slug, created_at=as_utc(created_at)
        )
        self._tenants[record.id] = record
        return record

    async def get_tenant_by_slug(self, slug: str) -> TenantRecord | None:
        """Get tenant by slug."""
        return next((t for t in self._tenants.values() if t.slug == slug), None)

    async def list_tenants(self, limit: int, cursor: Cursor | None) -> Page[TenantRecord]:
        """List tenants newest first."""
        return _paginate(list(self._tenants.values()), limit, cursor)


class InMemoryTemplateRepository:
    """In-memory implementation of TemplateRepository and TemplateVersionRepository."""

    def __init__(self) -> None:
        self._templates: dict[uuid.UUID, TemplateRecord] = {}
        self._versions: dict[uuid.UUID, TemplateVersionRecord] = {}

    async def create_template(
        self, tenant_id: uuid.UUID, name: str, slug: str, created_at: datetime
    ) -> TemplateRecord:
        """Insert a template."""
        if any(t.tenant_id == tenant_id and t.slug == slug for t in self._templates.values()):
            raise TemplateSlugTaken()

        record = TemplateRecord(
            id=uuid.uuid4(),
            tenant_id=tenant_id,
            name=name,
            slug=slug,
            created_at=as_utc(created_at),
        )
        self._templates[record.id] = record
        return record

    async def get_template_by_slug(
        self, tenant_id: uuid.UUID, slug: str
    ) -> TemplateRecord | None:
        """Get template by tenant-scoped slug."""
        return next(
            (
                t
                for t in self._templates.values()
                if t.tenant_id == tenant_id and t.slug == slug
            ),
            None,
        )

    async def list_templates(
        self, tenant_id: uuid.UUID, limit: int, cursor: Cursor | None
    ) -> Page[TemplateRecord]:
        """List a tenant's templates newest first."""
        owned = [t for t in self._templates.values() if t.tenant_id == tenant_id]
        return _paginate(owned, limit, cursor)

    def add_version(self, record: TemplateVersionRecord) -> None:
        """Seed a version row directly (tests use this to build gaps)."""
        self._versions[record.id] = record

    def versions_of(self, template_id: uuid.UUID) -> list[TemplateVersionRecord]:
        """All versions of a template ordered by number."""
        return sorted(
            (v for v in self._versions.values() if v.template_id == template_id),
            key=lambda v: v.version,
        )

    async def insert_next_draft(
        self, template_id: uuid.UUID, content: Any, created_at: datetime
    ) -> TemplateVersionRecord:
        """Assign max(version) + 1 and insert a draft."""
        if template_id not in self._templates:
            raise TemplateNotFound()

        current = max((v.version for v in self.versions_of(template_id)), default=0)
        record = TemplateVersionRecord(
            id=uuid.uuid4(),
            template_id=template_id,
            version=current + 1,
            status=DRAFT,
            content=content,
            created_at=as_utc(created_at),
        )
        self._versions[record.id] = record
        return record

    async def publish_version(
        self, template_id: uuid.UUID, version: int
    ) -> TemplateVersionRecord | None:
        """Swap the published slot to the given draft.

        The demotion targets the rows that were published when the call
        started, like an UPDATE under read-committed isolation. A publisher
        that raced past another one finds the slot taken and conflicts.
        """
        snapshot = [
            v.id
            for v in self.versions_of(template_id)
            if v.status == PUBLISHED and v.version != version
        ]

        # Statement round trip: concurrent publishers interleave here
        await asyncio.sleep(0)

        demoted: list[TemplateVersionRecord] = []
        for version_id in snapshot:
            row = self._versions[version_id]
            if row.status == PUBLISHED:
                demoted.append(row)
                self._versions[version_id] = replace(row, status=DRAFT)

        target = next(
            (
                v
                for v in self.versions_of(template_id)
                if v.version == version and v.status == DRAFT
            ),
            None,
        )
        if target is None:
            self._restore(demoted)
            return None

        if any(v.status == PUBLISHED for v in self.versions_of(template_id)):
            self._restore(demoted)
            raise VersionAlreadyPublished()

        published = replace(target, status=PUBLISHED)
        self._versions[target.id] = published
        return published

    def _restore(self, rows: list[TemplateVersionRecord]) -> None:
        for row in rows:
            self._versions[row.id] = row

    async def get_version(
        self, template_id: uuid.UUID, version: int
    ) -> TemplateVersionRecord | None:
        """Get a version by number."""
        return next(
            (v for v in self.versions_of(template_id) if v.version == version),
            None,
        )

    async def get_published(self, template_id: uuid.UUID) -> TemplateVersionRecord | None:
        """Get the published version of a template."""
        return next(
            (v for v in self.versions_of(template_id) if v.status == PUBLISHED),
            None,
        )


class InMemorySessionRepository:
    """In-memory implementation of SessionRepository and MessageRepository.

    Mutation counters let tests assert that repeated calls touch nothing.
    """

    def __init__(self) -> None:
        self._sessions: dict[uuid.UUID, SessionRecord] = {}
        self._leads: dict[uuid.UUID, LeadRecord] = {}
        self.messages: list[MessageRecord] = []
        self.close_count = 0
        self.create_lead_count = 0
        self.export_claim_count = 0

    @property
    def mutation_count(self) -> int:
        return (
            self.close_count
            + self.create_lead_count
            + self.export_claim_count
            + len(self.messages)
        )

    async def create_session(self, tenant_id: uuid.UUID, created_at: datetime) -> SessionRecord:
        """Open a new session."""
        record = SessionRecord(
            id=uuid.uuid4(), tenant_id=tenant_id, created_at=as_utc(created_at), closed_at=None
        )
        self._sessions[record.id] = record
        return record

    async def get_session(self, session_id: uuid.UUID) -> SessionRecord | None:
        """Get session by ID."""
        return self._sessions.get(session_id)

    async def list_sessions(
        self, tenant_id: uuid.UUID, limit: int, cursor: Cursor | None
    ) -> Page[SessionRecord]:
        """List a tenant's sessions newest first."""
        owned = [s for s in self._sessions.values() if s.tenant_id == tenant_id]
        return _paginate(owned, limit, cursor)

    async def mark_session_closed(self, session_id: uuid.UUID, closed_at: datetime) -> bool:
        """Set closed_at if still open."""
        record = self._sessions.get(session_id)
        if record is None or record.closed_at is not None:
            return False

        self._sessions[session_id] = replace(record, closed_at=as_utc(closed_at))
        self.close_count += 1
        return True

    async def get_lead_by_session(self, session_id: uuid.UUID) -> LeadRecord | None:
        """Get the lead created for a session."""
        return self._leads.get(session_id)

    async def create_lead_for_session(
        self, session_id: uuid.UUID, created_at: datetime
    ) -> tuple[LeadRecord, bool]:
        """Insert the session's lead unless one exists."""
        existing = self._leads.get(session_id)
        if existing is not None:
            return existing, False

        lead = LeadRecord(id=uuid.uuid4(), session_id=session_id, created_at=as_utc(created_at))
        self._leads[session_id] = lead
        self.create_lead_count += 1
        return lead, True

    async def claim_lead_export(self, lead_id: uuid.UUID, claimed_at: datetime) -> bool:
        """Set export_enqueued_at if still unset."""
        lead = self._lead_by_id(lead_id)
        if lead is None or lead.export_enqueued_at is not None:
            return False

        self._leads[lead.session_id] = replace(lead, export_enqueued_at=as_utc(claimed_at))
        self.export_claim_count += 1
        return True

    async def release_lead_export(self, lead_id: uuid.UUID) -> None:
        """Clear export_enqueued_at after a failed enqueue."""
        lead = self._lead_by_id(lead_id)
        if lead is not None:
            self._leads[lead.session_id] = replace(lead, export_enqueued_at=None)

    def _lead_by_id(self, lead_id: uuid.UUID) -> LeadRecord | None:
        return next((lead for lead in self._leads.values() if lead.id == lead_id), None)

    async def insert_message(
        self,
        session_id: uuid.UUID,
        role: str,
        content: str,
        tool_name: str | None,
        tool_data: dict[str, Any] | None,
        created_at: datetime,
    ) -> MessageRecord:
        """Append a message to a session."""
        record = MessageRecord(
            id=uuid.uuid4(),
            session_id=session_id,
            role=role,
            content=content,
            tool_name=tool_name,
            tool_data=tool_data,
            created_at=as_utc(created_at),
        )
        self.messages.append(record)
        return record
