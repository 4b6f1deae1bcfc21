"""
Métriques Prometheus pour l'application.

Ce module définit les métriques HTTP, celles du cache de thèmes et celles du fournisseur externe,
ainsi que l'endpoint `/metrics` et le middleware de mesure des requêtes.
"""

import time

from fastapi import APIRouter, Request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

metrics_router = APIRouter(tags=["metrics"])

REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "route", "status"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "Latency of HTTP requests", ["route"]
)

# Cache de thèmes
CHART_CACHE_LOOKUPS = Counter(
    "chart_cache_lookups_total",
    "Chart lookups by outcome (hit, miss, race)",
    ["result"],
)
CHART_STORE_ERRORS = Counter(
    "chart_store_errors_total",
    "Chart store failures surfaced to callers",
    ["backend"],
)

# Fournisseur externe
PROVIDER_LATENCY = Histogram(
    "chart_provider_latency_seconds",
    "Latency of chart provider calls",
    ["provider"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)
PROVIDER_ERRORS = Counter(
    "chart_provider_errors_total",
    "Chart provider failures",
    ["provider", "kind"],
)


@metrics_router.get("/metrics")
def metrics():
    """
    Expose les métriques Prometheus au format texte.

    Returns:
        Response: Réponse HTTP contenant les métriques au format Prometheus.
    """
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def route_label(request: Request) -> str:
    """Gabarit de route (`/charts/{chart_id}`) plutôt que le chemin brut, pour borner la cardinalité."""
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or "unmatched"


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware Prometheus pour mesurer les métriques HTTP.

    Collecte les métriques de comptage des requêtes et de latence par route pour l'exposition
    Prometheus.
    """

    async def dispatch(self, request: Request, call_next):
        """
        Traite une requête HTTP et collecte les métriques.

        Args:
            request: Requête HTTP entrante.
            call_next: Fonction pour appeler le middleware suivant.

        Returns:
            Response: Réponse HTTP avec métriques collectées.
        """
        start = time.perf_counter()
        response: Response = await call_next(request)
        route = route_label(request)
        REQUEST_COUNT.labels(request.method, route, str(response.status_code)).inc()
        REQUEST_LATENCY.labels(route).observe(time.perf_counter() - start)
        return response
