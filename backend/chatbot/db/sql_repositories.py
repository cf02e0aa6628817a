"""SQL implementations of repository interfaces.

Every mutating method is one transaction: it commits on success and rolls
back before raising. Atomicity and exclusivity come from single statements
and unique indexes, never from in-process locks, since several service
instances may share the store.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Row, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.chatbot.db.errors import is_unique_violation
from backend.chatbot.db.models import (
    DRAFT,
    PUBLISHED,
    ChatSession,
    Lead,
    Message,
    Template,
    TemplateVersion,
    Tenant,
)
from backend.chatbot.db.repositories import (
    LeadRecord,
    MessageRecord,
    SessionRecord,
    TemplateRecord,
    TemplateVersionRecord,
    TenantRecord,
)
from backend.chatbot.errors import (
    ConflictError,
    TemplateNotFound,
    TemplateSlugTaken,
    TenantSlugTaken,
    VersionAlreadyPublished,
)
from backend.chatbot.pagination import Cursor, CursorLister, Page
from backend.chatbot.pagination.cursor import as_utc


def _tenant_record(row: Tenant) -> TenantRecord:
    return TenantRecord(
        id=row.id, name=row.name, slug=row.slug, created_at=as_utc(row.created_at)
    )


def _template_record(row: Template) -> TemplateRecord:
    return TemplateRecord(
        id=row.id,
        tenant_id=row.tenant_id,
        name=row.name,
        slug=row.slug,
        created_at=as_utc(row.created_at),
    )


def _version_record(row: TemplateVersion | Row[Any]) -> TemplateVersionRecord:
    return TemplateVersionRecord(
        id=row.id,
        template_id=row.template_id,
        version=row.version,
        status=row.status,
        content=row.content,
        created_at=as_utc(row.created_at),
    )


def _session_record(row: ChatSession) -> SessionRecord:
    return SessionRecord(
        id=row.id,
        tenant_id=row.tenant_id,
        created_at=as_utc(row.created_at),
        closed_at=as_utc(row.closed_at) if row.closed_at is not None else None,
    )


def _lead_record(row: Lead) -> LeadRecord:
    return LeadRecord(
        id=row.id,
        session_id=row.session_id,
        created_at=as_utc(row.created_at),
        export_enqueued_at=(
            as_utc(row.export_enqueued_at) if row.export_enqueued_at is not None else None
        ),
    )


_VERSION_COLUMNS = (
    TemplateVersion.id,
    TemplateVersion.template_id,
    TemplateVersion.version,
    TemplateVersion.status,
    TemplateVersion.content,
    TemplateVersion.created_at,
)


class SqlTenantRepository:
    """SQL implementation of TenantRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._lister = CursorLister(Tenant)

    async def create_tenant(self, name: str, slug: str, created_at: datetime) -> TenantRecord:
        """Insert a tenant."""
        row = Tenant(id=uuid.uuid4(), name=name, slug=slug, created_at=created_at)
        record = _tenant_record(row)

        self._session.add(row)
        try:
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            if is_unique_violation(e):
                raise TenantSlugTaken() from e
            raise

        return record

    async def get_tenant_by_slug(self, slug: str) -> TenantRecord | None:
        """Get tenant by slug."""
        result = await self._session.execute(select(Tenant).where(Tenant.slug == slug))
        row = result.scalar_one_or_none()
        return _tenant_record(row) if row is not None else None

    async def list_tenants(self, limit: int, cursor: Cursor | None) -> Page[TenantRecord]:
        """List tenants newest first."""
        page = await self._lister.list(self._session, limit, cursor)
        return page.map(_tenant_record)


class SqlTemplateRepository:
    """SQL implementation of TemplateRepository and TemplateVersionRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._lister = CursorLister(Template)

    async def create_template(
        self, tenant_id: uuid.UUID, name: str, slug: str, created_at: datetime
    ) -> TemplateRecord:
        """Insert a template."""
        row = Template(
            id=uuid.uuid4(), tenant_id=tenant_id, name=name, slug=slug, created_at=created_at
        )
        record = _template_record(row)

        self._session.add(row)
        try:
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            if is_unique_violation(e):
                raise TemplateSlugTaken() from e
            raise

        return record

    async def get_template_by_slug(
        self, tenant_id: uuid.UUID, slug: str
    ) -> TemplateRecord | None:
        """Get template by tenant-scoped slug."""
        result = await self._session.execute(
            select(Template).where(Template.tenant_id == tenant_id, Template.slug == slug)
        )
        row = result.scalar_one_or_none()
        return _template_record(row) if row is not None else None

    async def list_templates(
        self, tenant_id: uuid.UUID, limit: int, cursor: Cursor | None
    ) -> Page[TemplateRecord]:
        """List a tenant's templates newest first."""
        page = await self._lister.list(
            self._session, limit, cursor, Template.tenant_id == tenant_id
        )
        return page.map(_template_record)

    async def insert_next_draft(
        self, template_id: uuid.UUID, content: Any, created_at: datetime
    ) -> TemplateVersionRecord:
        """Assign max(version) + 1 and insert a draft in one transaction.

        The template row lock serializes concurrent draft creation for the
        same template; the (template_id, version) unique index backs it up.
        """
        locked = await self._session.execute(
            select(Template.id).where(Template.id == template_id).with_for_update()
        )
        if locked.scalar_one_or_none() is None:
            await self._session.rollback()
            raise TemplateNotFound()

        next_version = (
            select(func.coalesce(func.max(TemplateVersion.version), 0) + 1)
            .where(TemplateVersion.template_id == template_id)
            .scalar_subquery()
        )
        stmt = (
            insert(TemplateVersion)
            .values(
                id=uuid.uuid4(),
                template_id=template_id,
                version=next_version,
                status=DRAFT,
                content=content,
                created_at=created_at,
            )
            .returning(*_VERSION_COLUMNS)
        )

        try:
            result = await self._session.execute(stmt)
            row = result.one()
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            if is_unique_violation(e):
                raise ConflictError("version number taken") from e
            raise

        return _version_record(row)

    async def publish_version(
        self, template_id: uuid.UUID, version: int
    ) -> TemplateVersionRecord | None:
        """Swap the published slot to the given draft in one transaction.

        Concurrent readers see either the old or the new published version,
        never both. A concurrent publisher that loses the race hits the
        partial unique index and gets VersionAlreadyPublished.
        """
        demote = (
            update(TemplateVersion)
            .where(
                TemplateVersion.template_id == template_id,
                TemplateVersion.status == PUBLISHED,
                TemplateVersion.version != version,
            )
            .values(status=DRAFT)
            .execution_options(synchronize_session=False)
        )
        promote = (
            update(TemplateVersion)
            .where(
                TemplateVersion.template_id == template_id,
                TemplateVersion.version == version,
                TemplateVersion.status == DRAFT,
            )
            .values(status=PUBLISHED)
            .returning(*_VERSION_COLUMNS)
            .execution_options(synchronize_session=False)
        )

        try:
            await self._session.execute(demote)
            result = await self._session.execute(promote)
            row = result.one_or_none()
            if row is None:
                # Nothing matched: undo the demotion, caller classifies
                await self._session.rollback()
                return None
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            if is_unique_violation(e):
                raise VersionAlreadyPublished() from e
            raise

        return _version_record(row)

    async def get_version(
        self, template_id: uuid.UUID, version: int
    ) -> TemplateVersionRecord | None:
        """Get a version by number."""
        result = await self._session.execute(
            select(TemplateVersion)
            .where(
                TemplateVersion.template_id == template_id,
                TemplateVersion.version == version,
            )
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _version_record(row) if row is not None else None

    async def get_published(self, template_id: uuid.UUID) -> TemplateVersionRecord | None:
        """Get the published version of a template."""
        result = await self._session.execute(
            select(TemplateVersion)
            .where(
                TemplateVersion.template_id == template_id,
                TemplateVersion.status == PUBLISHED,
            )
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _version_record(row) if row is not None else None


class SqlSessionRepository:
    """SQL implementation of SessionRepository and MessageRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._lister = CursorLister(ChatSession)

    async def create_session(self, tenant_id: uuid.UUID, created_at: datetime) -> SessionRecord:
        """Open a new session."""
        row = ChatSession(id=uuid.uuid4(), tenant_id=tenant_id, created_at=created_at)
        record = _session_record(row)

        self._session.add(row)
        await self._session.commit()

        return record

    async def get_session(self, session_id: uuid.UUID) -> SessionRecord | None:
        """Get session by ID."""
        result = await self._session.execute(
            select(ChatSession)
            .where(ChatSession.id == session_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _session_record(row) if row is not None else None

    async def list_sessions(
        self, tenant_id: uuid.UUID, limit: int, cursor: Cursor | None
    ) -> Page[SessionRecord]:
        """List a tenant's sessions newest first."""
        page = await self._lister.list(
            self._session, limit, cursor, ChatSession.tenant_id == tenant_id
        )
        return page.map(_session_record)

    async def mark_session_closed(self, session_id: uuid.UUID, closed_at: datetime) -> bool:
        """Set closed_at if still open (conditional update)."""
        result = await self._session.execute(
            update(ChatSession)
            .where(ChatSession.id == session_id, ChatSession.closed_at.is_(None))
            .values(closed_at=closed_at)
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()
        return result.rowcount == 1

    async def get_lead_by_session(self, session_id: uuid.UUID) -> LeadRecord | None:
        """Get the lead created for a session."""
        result = await self._session.execute(
            select(Lead)
            .where(Lead.session_id == session_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _lead_record(row) if row is not None else None

    async def create_lead_for_session(
        self, session_id: uuid.UUID, created_at: datetime
    ) -> tuple[LeadRecord, bool]:
        """Insert the session's lead; the unique index decides the winner."""
        row = Lead(id=uuid.uuid4(), session_id=session_id, created_at=created_at)
        record = _lead_record(row)

        self._session.add(row)
        try:
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            if not is_unique_violation(e):
                raise
            existing = await self.get_lead_by_session(session_id)
            if existing is None:
                raise
            return existing, False

        return record, True

    async def claim_lead_export(self, lead_id: uuid.UUID, claimed_at: datetime) -> bool:
        """Set export_enqueued_at if still unset (conditional update)."""
        result = await self._session.execute(
            update(Lead)
            .where(Lead.id == lead_id, Lead.export_enqueued_at.is_(None))
            .values(export_enqueued_at=claimed_at)
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()
        return result.rowcount == 1

    async def release_lead_export(self, lead_id: uuid.UUID) -> None:
        """Clear export_enqueued_at after a failed enqueue."""
        await self._session.execute(
            update(Lead)
            .where(Lead.id == lead_id)
            .values(export_enqueued_at=None)
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()

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
        message_id = uuid.uuid4()
        row = Message(
            id=message_id,
            session_id=session_id,
            role=role,
            content=content,
            tool_name=tool_name,
            tool_data=tool_data,
            created_at=created_at,
        )
        self._session.add(row)
        await self._session.commit()

        return MessageRecord(
            id=message_id,
            session_id=session_id,
            role=role,
            content=content,
            tool_name=tool_name,
            tool_data=tool_data,
            created_at=as_utc(created_at),
        )
