"""Global pytest configuration."""

import os

# Settings are read at import time of backend.chatbot.main
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_JSON", "false")
