"""Unit tests for tenant and template management."""

import uuid

import pytest

from backend.chatbot.clock import ManualClock
from backend.chatbot.db.inmemory import InMemoryTemplateRepository, InMemoryTenantRepository
from backend.chatbot.errors import (
    InvalidName,
    InvalidSlug,
    TemplateNotFound,
    TemplateSlugTaken,
    TenantNotFound,
    TenantSlugTaken,
)
from backend.chatbot.services.templates import TemplateService
from backend.chatbot.services.tenants import TenantService


@pytest.fixture
def tenants(clock: ManualClock) -> TenantService:
    return TenantService(InMemoryTenantRepository(), clock)


@pytest.fixture
def templates(clock: ManualClock) -> TemplateService:
    return TemplateService(InMemoryTemplateRepository(), clock)


class TestTenantService:
    @pytest.mark.asyncio
    async def test_create_normalizes_name_and_slug(self, tenants: TenantService) -> None:
        tenant = await tenants.create_tenant("  Acme Corp ", "Acme Corp")

        assert tenant.name == "Acme Corp"
        assert tenant.slug == "acme-corp"
        assert await tenants.get_tenant_by_slug("acme-corp") == tenant

    @pytest.mark.asyncio
    async def test_blank_name(self, tenants: TenantService) -> None:
        with pytest.raises(InvalidName):
            await tenants.create_tenant("   ", "acme")

    @pytest.mark.asyncio
    async def test_bad_slug(self, tenants: TenantService) -> None:
        with pytest.raises(InvalidSlug):
            await tenants.create_tenant("Acme", "!")

    @pytest.mark.asyncio
    async def test_duplicate_slug_after_normalization(self, tenants: TenantService) -> None:
        await tenants.create_tenant("Acme", "acme-corp")

        with pytest.raises(TenantSlugTaken):
            await tenants.create_tenant("Acme 2", "ACME corp")

    @pytest.mark.asyncio
    async def test_missing_tenant(self, tenants: TenantService) -> None:
        with pytest.raises(TenantNotFound):
            await tenants.get_tenant_by_slug("nobody")

    @pytest.mark.asyncio
    async def test_list_pages_through_all(self, tenants: TenantService) -> None:
        created = [await tenants.create_tenant(f"T{i}", f"tenant-{i}") for i in range(5)]

        first = await tenants.list_tenants(2)
        assert first.next_cursor is not None
        second = await tenants.list_tenants(2, first.next_cursor)
        assert second.next_cursor is not None
        third = await tenants.list_tenants(2, second.next_cursor)

        seen = [t.slug for t in first.items + second.items + third.items]
        assert seen == [t.slug for t in reversed(created)]
        assert third.next_cursor is None


class TestTemplateService:
    @pytest.mark.asyncio
    async def test_slugs_are_scoped_per_tenant(self, templates: TemplateService) -> None:
        first_tenant, second_tenant = uuid.uuid4(), uuid.uuid4()

        a = await templates.create_template(first_tenant, "Welcome", "welcome")
        b = await templates.create_template(second_tenant, "Welcome", "welcome")

        assert a.id != b.id
        assert await templates.get_template(first_tenant, "welcome") == a
        assert await templates.get_template(second_tenant, "welcome") == b

    @pytest.mark.asyncio
    async def test_duplicate_slug_in_tenant(self, templates: TemplateService) -> None:
        tenant_id = uuid.uuid4()
        await templates.create_template(tenant_id, "Welcome", "welcome")

        with pytest.raises(TemplateSlugTaken):
            await templates.create_template(tenant_id, "Welcome again", "Welcome")

    @pytest.mark.asyncio
    async def test_missing_template(self, templates: TemplateService) -> None:
        with pytest.raises(TemplateNotFound):
            await templates.get_template(uuid.uuid4(), "welcome")

    @pytest.mark.asyncio
    async def test_list_is_tenant_scoped(self, templates: TemplateService) -> None:
        tenant_id = uuid.uuid4()
        await templates.create_template(tenant_id, "One", "one-flow")
        await templates.create_template(tenant_id, "Two", "two-flow")
        await templates.create_template(uuid.uuid4(), "Other", "other-flow")

        page = await templates.list_templates(tenant_id, 10)

        assert [t.slug for t in page.items] == ["two-flow", "one-flow"]
