"""Template and template version endpoints.

- POST/GET /v1/tenants/{tenant_slug}/templates
- GET /v1/tenants/{tenant_slug}/templates/{template_slug}
- POST /v1/templates/{template_id}/drafts
- POST /v1/templates/{template_id}/publish
- GET /v1/templates/{template_id}/published
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from backend.chatbot.api.deps import (
    PageDep,
    TemplateServiceDep,
    TenantServiceDep,
    VersionServiceDep,
    next_token,
)
from backend.chatbot.db.repositories import TemplateRecord, TemplateVersionRecord

router = APIRouter(prefix="/v1", tags=["templates"])


class CreateTemplateRequest(BaseModel):
    """Request body for POST /v1/tenants/{tenant_slug}/templates."""

    name: str = Field(..., max_length=200)
    slug: str = Field(..., max_length=200)


class TemplateResponse(BaseModel):
    id: str
    tenant_id: str
    name: str
    slug: str
    created_at: datetime

    @classmethod
    def from_record(cls, record: TemplateRecord) -> "TemplateResponse":
        return cls(
            id=str(record.id),
            tenant_id=str(record.tenant_id),
            name=record.name,
            slug=record.slug,
            created_at=record.created_at,
        )


class TemplateListResponse(BaseModel):
    items: list[TemplateResponse]
    next_cursor: str | None


class CreateDraftRequest(BaseModel):
    """Request body for POST /v1/templates/{template_id}/drafts.

    content is stored as given and never interpreted.
    """

    content: Any = None


class PublishRequest(BaseModel):
    """Request body for POST /v1/templates/{template_id}/publish."""

    version: int


class TemplateVersionResponse(BaseModel):
    id: str
    template_id: str
    version: int
    status: str
    content: Any
    created_at: datetime

    @classmethod
    def from_record(cls, record: TemplateVersionRecord) -> "TemplateVersionResponse":
        return cls(
            id=str(record.id),
            template_id=str(record.template_id),
            version=record.version,
            status=record.status,
            content=record.content,
            created_at=record.created_at,
        )


@router.post(
    "/tenants/{tenant_slug}/templates",
    response_model=TemplateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_template(
    tenant_slug: str,
    request: CreateTemplateRequest,
    tenants: TenantServiceDep,
    templates: TemplateServiceDep,
) -> TemplateResponse:
    tenant = await tenants.get_tenant_by_slug(tenant_slug)
    record = await templates.create_template(tenant.id, request.name, request.slug)
    return TemplateResponse.from_record(record)


@router.get("/tenants/{tenant_slug}/templates", response_model=TemplateListResponse)
async def list_templates(
    tenant_slug: str,
    page: PageDep,
    tenants: TenantServiceDep,
    templates: TemplateServiceDep,
) -> TemplateListResponse:
    """List a tenant's templates newest first."""
    tenant = await tenants.get_tenant_by_slug(tenant_slug)
    result = await templates.list_templates(tenant.id, page.limit, page.cursor)
    return TemplateListResponse(
        items=[TemplateResponse.from_record(t) for t in result.items],
        next_cursor=next_token(result),
    )


@router.get("/tenants/{tenant_slug}/templates/{template_slug}", response_model=TemplateResponse)
async def get_template(
    tenant_slug: str,
    template_slug: str,
    tenants: TenantServiceDep,
    templates: TemplateServiceDep,
) -> TemplateResponse:
    tenant = await tenants.get_tenant_by_slug(tenant_slug)
    record = await templates.get_template(tenant.id, template_slug)
    return TemplateResponse.from_record(record)


@router.post(
    "/templates/{template_id}/drafts",
    response_model=TemplateVersionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_draft(
    template_id: UUID,
    versions: VersionServiceDep,
    request: CreateDraftRequest | None = None,
) -> TemplateVersionResponse:
    """Create the next draft version of a template.

    Returns:
        201 with the draft; 404 if the template does not exist
    """
    content = request.content if request is not None else None
    record = await versions.create_draft(template_id, content)
    return TemplateVersionResponse.from_record(record)


@router.post("/templates/{template_id}/publish", response_model=TemplateVersionResponse)
async def publish_version(
    template_id: UUID,
    request: PublishRequest,
    versions: VersionServiceDep,
) -> TemplateVersionResponse:
    """Publish a draft, unpublishing whatever was published before.

    Returns:
        200 with the published version; 404 if the version does not exist;
        409 if it is not a draft; 422 if version <= 0
    """
    record = await versions.publish(template_id, request.version)
    return TemplateVersionResponse.from_record(record)


@router.get("/templates/{template_id}/published", response_model=TemplateVersionResponse)
async def get_published(template_id: UUID, versions: VersionServiceDep) -> TemplateVersionResponse:
    record = await versions.get_published(template_id)
    return TemplateVersionResponse.from_record(record)
