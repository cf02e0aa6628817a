"""FastAPI application."""

from fastapi import FastAPI

from backend.chatbot.api.errors import register_error_handlers
from backend.chatbot.api.routes.health import router as health_router
from backend.chatbot.api.routes.metrics import router as metrics_router
from backend.chatbot.api.routes.sessions import router as sessions_router
from backend.chatbot.api.routes.templates import router as templates_router
from backend.chatbot.api.routes.tenants import router as tenants_router
from backend.chatbot.config import get_settings
from backend.chatbot.utils.logging import configure_logging

settings = get_settings()
configure_logging(settings.log_level, json_output=settings.log_json)

app = FastAPI(title="Chatbot API", version="0.1.0")
register_error_handlers(app)

# Register routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(tenants_router)
app.include_router(templates_router)
app.include_router(sessions_router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Chatbot API", "version": "0.1.0"}
