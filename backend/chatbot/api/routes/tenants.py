"""Tenant endpoints - POST /v1/tenants, GET /v1/tenants, GET /v1/tenants/{slug}."""

from datetime import datetime

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from backend.chatbot.api.deps import PageDep, TenantServiceDep, next_token
from backend.chatbot.db.repositories import TenantRecord

router = APIRouter(prefix="/v1/tenants", tags=["tenants"])


class CreateTenantRequest(BaseModel):
    """Request body for POST /v1/tenants."""

    name: str = Field(..., max_length=200)
    slug: str = Field(..., max_length=200)


class TenantResponse(BaseModel):
    id: str
    name: str
    slug: str
    created_at: datetime

    @classmethod
    def from_record(cls, record: TenantRecord) -> "TenantResponse":
        return cls(
            id=str(record.id), name=record.name, slug=record.slug, created_at=record.created_at
        )


class TenantListResponse(BaseModel):
    """Response for GET /v1/tenants."""

    items: list[TenantResponse]
    next_cursor: str | None


@router.post("", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant(request: CreateTenantRequest, service: TenantServiceDep) -> TenantResponse:
    """Create a tenant.

    Returns:
        201 with the tenant; 409 if the slug is taken; 422 on a bad name/slug
    """
    record = await service.create_tenant(request.name, request.slug)
    return TenantResponse.from_record(record)


@router.get("", response_model=TenantListResponse)
async def list_tenants(page: PageDep, service: TenantServiceDep) -> TenantListResponse:
    """List tenants newest first, one page at a time."""
    result = await service.list_tenants(page.limit, page.cursor)
    return TenantListResponse(
        items=[TenantResponse.from_record(t) for t in result.items],
        next_cursor=next_token(result),
    )


@router.get("/{slug}", response_model=TenantResponse)
async def get_tenant(slug: str, service: TenantServiceDep) -> TenantResponse:
    record = await service.get_tenant_by_slug(slug)
    return TenantResponse.from_record(record)
