"""Appending messages to open chat sessions."""

import logging
from enum import Enum
from typing import Any
from uuid import UUID

from backend.chatbot.clock import Clock, SystemClock
from backend.chatbot.db.repositories import MessageRecord, MessageRepository, SessionRepository
from backend.chatbot.errors import EmptyMessage, InvalidRole, SessionClosed, SessionNotFound

logger = logging.getLogger(__name__)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


def parse_role(value: str) -> Role:
    try:
        return Role(value.strip().lower())
    except ValueError as e:
        raise InvalidRole() from e


def normalize_content(role: Role, content: str) -> str:
    """Trim content; non-tool roles also lose one pair of outer double quotes."""
    content = content.strip()
    if role is not Role.TOOL and len(content) >= 2 and content[0] == '"' and content[-1] == '"':
        content = content[1:-1].strip()
    return content


class MessageService:
    """Validate and persist chat messages."""

    def __init__(
        self,
        sessions: SessionRepository,
        messages: MessageRepository,
        clock: Clock | None = None,
    ) -> None:
        self._sessions = sessions
        self._messages = messages
        self._clock = clock or SystemClock()

    async def append_message(
        self,
        session_id: UUID,
        role: str,
        content: str,
        tool_name: str | None = None,
        tool_data: dict[str, Any] | None = None,
    ) -> MessageRecord:
        """Append a message to an open session.

        Raises:
            InvalidRole: If role is not user/assistant/system/tool
            SessionNotFound: If the session does not exist
            SessionClosed: If the session has been closed
            EmptyMessage: If nothing remains after normalization (tool
                messages need a tool name instead)
        """
        parsed = parse_role(role)

        session = await self._sessions.get_session(session_id)
        if session is None:
            raise SessionNotFound()
        if session.is_closed:
            raise SessionClosed()

        text = normalize_content(parsed, content)
        tool_name = tool_name.strip() if tool_name else None

        if parsed is Role.TOOL:
            if not tool_name:
                raise EmptyMessage()
        elif not text:
            raise EmptyMessage()

        record = await self._messages.insert_message(
            session_id, parsed.value, text, tool_name, tool_data, self._clock.now()
        )

        logger.info(
            "Message appended",
            extra={
                "structured": {
                    "session_id": str(session_id),
                    "message_id": str(record.id),
                    "role": parsed.value,
                }
            },
        )
        return record
