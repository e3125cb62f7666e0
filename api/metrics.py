"""
Prometheus scrape endpoint for the filler API.

Collectors live in invoice_filler.metrics so the engine records them whether
or not the API is running; this module only exposes a registry over HTTP.
"""
from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, generate_latest


def build_metrics_router(registry: CollectorRegistry = REGISTRY, path: str = "/metrics") -> APIRouter:
    """Router serving `registry` in the Prometheus text format at `path`"""
    router = APIRouter(tags=["metrics"])

    @router.get(path, include_in_schema=False)
    def scrape() -> Response:
        return Response(content=generate_latest(registry), media_type=CONTENT_TYPE_LATEST)

    return router


router = build_metrics_router()
