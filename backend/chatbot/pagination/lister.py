"""Keyset pagination over (created_at DESC, id DESC) ordered tables."""

import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.chatbot.errors import InvalidCursor
from backend.chatbot.pagination.cursor import Cursor

T = TypeVar("T")
U = TypeVar("U")

DEFAULT_LIMIT = 50


@dataclass
class Page(Generic[T]):
    """One page of results.

    next_cursor is set whenever the page is full. A full page that happens
    to exhaust the collection therefore yields one trailing empty page.
    """

    items: list[T] = field(default_factory=list)
    next_cursor: Cursor | None = None

    def map(self, fn: Callable[[T], U]) -> "Page[U]":
        """Convert items while keeping the cursor."""
        return Page(items=[fn(item) for item in self.items], next_cursor=self.next_cursor)


def next_cursor_for(
    items: Sequence[Any],
    limit: int,
    key: Callable[[Any], tuple[Any, Any]],
) -> Cursor | None:
    """Build the cursor following a page, or None when the page is short."""
    if not items or len(items) < limit:
        return None
    created_at, item_id = key(items[-1])
    return Cursor(created_at=created_at, id=str(item_id))


class CursorLister(Generic[T]):
    """Lists rows of one ORM model newest-first with opaque cursors.

    The model must expose ``created_at`` and ``id`` columns. ``created_at``
    alone is not unique, so ``id`` breaks ties and makes the order total.
    """

    def __init__(
        self,
        model: type[T],
        *,
        default_limit: int = DEFAULT_LIMIT,
        parse_id: Callable[[str], Any] = uuid.UUID,
    ) -> None:
        self._model = model
        self._default_limit = default_limit
        self._parse_id = parse_id

    def build_query(self, limit: int, cursor: Cursor | None, *scope: Any) -> Select[tuple[T]]:
        """Build the page query for the given scope filters."""
        created_at = self._model.created_at  # type: ignore[attr-defined]
        row_id = self._model.id  # type: ignore[attr-defined]

        query = select(self._model).where(*scope)

        if cursor is not None:
            try:
                cursor_id = self._parse_id(cursor.id)
            except ValueError as e:
                raise InvalidCursor() from e

            # (created_at, id) < (cursor.created_at, cursor.id)
            query = query.where(
                or_(
                    created_at < cursor.created_at,
                    and_(created_at == cursor.created_at, row_id < cursor_id),
                )
            )

        return (
            query.order_by(created_at.desc(), row_id.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )

    async def list(
        self,
        session: AsyncSession,
        limit: int,
        cursor: Cursor | None = None,
        *scope: Any,
    ) -> Page[T]:
        """Fetch one page.

        Args:
            session: Database session
            limit: Page size; non-positive values fall back to the default
            cursor: Position after which to resume, None for the newest rows
            *scope: Extra WHERE clauses (e.g. tenant filter)

        Returns:
            Page of ORM rows
        """
        if limit <= 0:
            limit = self._default_limit

        result = await session.execute(self.build_query(limit, cursor, *scope))
        rows = list(result.scalars().all())

        return Page(
            items=rows,
            next_cursor=next_cursor_for(rows, limit, lambda row: (row.created_at, row.id)),
        )
