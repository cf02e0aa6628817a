"""Prometheus metrics for templates, sessions and jobs."""

from prometheus_client import Counter

template_publish_total = Counter(
    "template_publish_total",
    "Template publish attempts by outcome",
    ["outcome"],
)

template_drafts_total = Counter(
    "template_drafts_total",
    "Template draft versions created",
)

session_close_total = Counter(
    "session_close_total",
    "Session close calls by outcome",
    ["outcome"],
)

leads_created_total = Counter(
    "leads_created_total",
    "Leads created by the session close workflow",
)

jobs_enqueued_total = Counter(
    "jobs_enqueued_total",
    "Downstream jobs enqueued",
    ["kind"],
)
