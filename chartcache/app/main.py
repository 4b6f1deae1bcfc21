"""
Application principale FastAPI.

Ce module assemble les composants du service de thèmes : conteneur de dépendances, middlewares,
gestion d'erreurs, routes et métriques.

Responsabilités du module:
- Initialiser le logging structuré
- Construire l'application FastAPI avec son titre/debug
- Ajouter les middlewares (request id, métriques)
- Monter les routers (santé, thèmes, métriques)
"""

from __future__ import annotations

from fastapi import FastAPI

from chartcache.api.errors import register_error_handlers
from chartcache.api.routes_charts import router as charts_router
from chartcache.api.routes_health import router as health_router
from chartcache.app.metrics import PrometheusMiddleware, metrics_router
from chartcache.core.container import Container
from chartcache.core.logging import setup_logging
from chartcache.middlewares.request_id import RequestIDMiddleware


def create_app(container: Container | None = None) -> FastAPI:
    """
    Construit et retourne l'application FastAPI prête à l'usage.

    Étapes:
    - Construit (ou reçoit) le conteneur: settings, store, fournisseur, cache
    - Configure le logging structuré (structlog)
    - Ajoute les middlewares utiles au debug/traçabilité
    - Publie les routes de santé, de thèmes et de métriques
    """
    container = container or Container()
    settings = container.settings
    setup_logging(settings.LOG_LEVEL)
    app = FastAPI(title=settings.APP_NAME, debug=settings.APP_DEBUG)
    app.state.container = container
    register_error_handlers(app)
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.include_router(health_router)
    app.include_router(charts_router)
    app.include_router(metrics_router)
    return app


app = create_app()


def run() -> None:  # pragma: no cover - script entry
    """Lance le serveur uvicorn avec les paramètres de l'application."""
    import uvicorn  # noqa: PLC0415

    settings = app.state.container.settings
    uvicorn.run(app, host=settings.APP_HOST, port=settings.APP_PORT)


if __name__ == "__main__":  # pragma: no cover - script entry
    run()
