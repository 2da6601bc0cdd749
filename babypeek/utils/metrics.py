"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
jobs_created_total = Counter(
    "jobs_created_total",
    "Total number of jobs created",
)

jobs_completed_total = Counter(
    "jobs_completed_total",
    "Total number of jobs that reached the complete stage",
    ["partial"],  # "true" when some variants failed
)

jobs_failed_total = Counter(
    "jobs_failed_total",
    "Total number of failed jobs",
    ["reason"],  # total_failure, upstream
)

stage_transitions_total = Counter(
    "stage_transitions_total",
    "Applied stage transitions",
    ["to_stage"],
)

stage_transitions_rejected_total = Counter(
    "stage_transitions_rejected_total",
    "Stage transitions rejected by the engine",
    ["reason"],  # invalid_transition, stale_run, job_not_found
)

variants_generated_total = Counter(
    "variants_generated_total",
    "Portrait variant outcomes",
    ["outcome"],  # success, failed
)

purchases_total = Counter(
    "purchases_total",
    "Purchase status changes",
    ["tier", "status"],
)

downloads_total = Counter(
    "downloads_total",
    "HD download links issued",
    ["redownload"],  # "true" when the purchase was downloaded before
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
generation_duration_seconds = Histogram(
    "generation_duration_seconds",
    "Single variant generation duration",
    ["variant_descriptor"],
    buckets=[1, 5, 10, 30, 60, 120, 300],
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
