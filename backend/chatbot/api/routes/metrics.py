"""Prometheus metrics endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics")
async def metrics() -> Response:
    """Expose registered Prometheus metrics, including:

    - template_publish_total{outcome}
    - session_close_total{outcome}
    - jobs_enqueued_total{kind}
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
