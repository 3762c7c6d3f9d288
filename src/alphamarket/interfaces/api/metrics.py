# src/alphamarket/interfaces/api/metrics.py
"""Prometheus request metrics, labelled by route template rather than raw path."""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Request, Response

router = APIRouter(prefix="/metrics", tags=["metrics"])

REQUESTS = Counter("am_requests_total", "Total API requests", ["method", "path", "status"])
LATENCY = Histogram("am_request_latency_seconds", "Request latency", ["method", "path"])

UNMATCHED = "unmatched"


def route_label(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", UNMATCHED)


def observe(request: Request, status_code: int, elapsed: float) -> None:
    path = route_label(request)
    REQUESTS.labels(request.method, path, str(status_code)).inc()
    LATENCY.labels(request.method, path).observe(elapsed)


@router.get("")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
