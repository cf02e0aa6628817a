"""Chat session endpoints.

- POST/GET /v1/tenants/{tenant_slug}/sessions
- POST /v1/sessions/{session_id}/messages
- POST /v1/sessions/{session_id}/close
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from backend.chatbot.api.deps import (
    MessageServiceDep,
    PageDep,
    SessionServiceDep,
    TenantServiceDep,
    next_token,
)
from backend.chatbot.db.repositories import MessageRecord, SessionRecord

router = APIRouter(prefix="/v1", tags=["sessions"])


class SessionResponse(BaseModel):
    id: str
    tenant_id: str
    created_at: datetime
    closed_at: datetime | None

    @classmethod
    def from_record(cls, record: SessionRecord) -> "SessionResponse":
        return cls(
            id=str(record.id),
            tenant_id=str(record.tenant_id),
            created_at=record.created_at,
            closed_at=record.closed_at,
        )


class SessionListResponse(BaseModel):
    items: list[SessionResponse]
    next_cursor: str | None


class AppendMessageRequest(BaseModel):
    """Request body for POST /v1/sessions/{session_id}/messages."""

    role: str
    content: str = Field("", max_length=32_000)
    tool_name: str | None = None
    tool_data: dict[str, Any] | None = None


class MessageResponse(BaseModel):
    id: str
    session_id: str
    role: str
    content: str
    tool_name: str | None
    tool_data: dict[str, Any] | None
    created_at: datetime

    @classmethod
    def from_record(cls, record: MessageRecord) -> "MessageResponse":
        return cls(
            id=str(record.id),
            session_id=str(record.session_id),
            role=record.role,
            content=record.content,
            tool_name=record.tool_name,
            tool_data=record.tool_data,
            created_at=record.created_at,
        )


class CloseResponse(BaseModel):
    status: str


@router.post(
    "/tenants/{tenant_slug}/sessions",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_session(
    tenant_slug: str,
    tenants: TenantServiceDep,
    sessions: SessionServiceDep,
) -> SessionResponse:
    tenant = await tenants.get_tenant_by_slug(tenant_slug)
    record = await sessions.create_session(tenant.id)
    return SessionResponse.from_record(record)


@router.get("/tenants/{tenant_slug}/sessions", response_model=SessionListResponse)
async def list_sessions(
    tenant_slug: str,
    page: PageDep,
    tenants: TenantServiceDep,
    sessions: SessionServiceDep,
) -> SessionListResponse:
    """List a tenant's sessions newest first."""
    tenant = await tenants.get_tenant_by_slug(tenant_slug)
    result = await sessions.list_sessions(tenant.id, page.limit, page.cursor)
    return SessionListResponse(
        items=[SessionResponse.from_record(s) for s in result.items],
        next_cursor=next_token(result),
    )


@router.post(
    "/sessions/{session_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def append_message(
    session_id: UUID,
    request: AppendMessageRequest,
    messages: MessageServiceDep,
) -> MessageResponse:
    """Append a message to an open session.

    Returns:
        201 with the message; 404 for an unknown session; 409 once closed;
        422 for a bad role or empty content
    """
    record = await messages.append_message(
        session_id, request.role, request.content, request.tool_name, request.tool_data
    )
    return MessageResponse.from_record(record)


@router.post("/sessions/{session_id}/close", response_model=CloseResponse)
async def close_session(session_id: UUID, sessions: SessionServiceDep) -> CloseResponse:
    """Close a session. Repeating the call is harmless."""
    await sessions.close(session_id)
    return CloseResponse(status="closed")
