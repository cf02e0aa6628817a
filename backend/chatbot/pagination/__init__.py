"""Cursor pagination - re-exports for convenience."""

from backend.chatbot.pagination.cursor import Cursor, decode, encode
from backend.chatbot.pagination.lister import CursorLister, Page, next_cursor_for

__all__ = ["Cursor", "CursorLister", "Page", "decode", "encode", "next_cursor_for"]
