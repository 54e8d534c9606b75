# backend/lounge/routes/metrics.py
"""
Prometheus metrics endpoint.

Public, unauthenticated, following standard Prometheus practice. Exposes
what @measure_operation and the services record.
"""

from fastapi import APIRouter, Response

from ..monitoring.prometheus_metrics import prometheus_metrics

router = APIRouter()


@router.get("/metrics", include_in_schema=False)
def get_metrics() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
