"""
Conteneur d'injection de dépendances.

Instancie les composants centraux (settings, store de thèmes, fournisseur, cache) à partir d'un
objet `Settings` explicite. L'application FastAPI en conserve une instance dans `app.state`.
"""

from __future__ import annotations

import structlog

from chartcache.core.settings import Settings, get_settings
from chartcache.domain.services import ChartCache
from chartcache.infra.astro.base import ChartProvider
from chartcache.infra.astro.fake_deterministic import FakeDeterministicProvider
from chartcache.infra.astro.free_astrology_api import FreeAstrologyApiProvider
from chartcache.infra.repo.base import ChartStore
from chartcache.infra.repo.db import get_engine, is_memory_sqlite
from chartcache.infra.repo.sql_chart_store import SqlChartStore
from chartcache.infra.repositories import InMemoryChartStore, RedisChartStore

log = structlog.get_logger(__name__)


def build_store(settings: Settings) -> ChartStore:
    """Construit le store configuré par `CHART_STORE`."""
    if settings.CHART_STORE == "redis":
        if not settings.REDIS_URL:
            raise RuntimeError("CHART_STORE=redis but REDIS_URL not set")
        return RedisChartStore(settings.REDIS_URL, timeout_s=settings.STORE_TIMEOUT_S)
    if settings.CHART_STORE == "sql":
        if not settings.DATABASE_URL or is_memory_sqlite(settings.DATABASE_URL):
            raise RuntimeError("CHART_STORE=sql requires a persistent DATABASE_URL")
        engine = get_engine(settings.DATABASE_URL, timeout_s=settings.STORE_TIMEOUT_S)
        # sqlite (dev) n'a pas de migrations jouées: on crée le schéma
        return SqlChartStore(engine, create_schema=engine.dialect.name == "sqlite")
    return InMemoryChartStore()


def build_provider(settings: Settings) -> ChartProvider:
    """Construit le fournisseur configuré par `ASTRO_PROVIDER`."""
    if settings.ASTRO_PROVIDER == "freeastrologyapi":
        if not settings.ASTRO_API_KEY:
            log.warning("astro_api_key_missing", provider="freeastrologyapi")
        return FreeAstrologyApiProvider(
            settings.ASTRO_API_BASE_URL,
            settings.ASTRO_API_KEY,
            timeout_s=settings.ASTRO_API_TIMEOUT_S,
        )
    return FakeDeterministicProvider()


class Container:
    """Regroupe les dépendances partagées par les routes."""

    def __init__(
        self,
        settings: Settings | None = None,
        store: ChartStore | None = None,
        provider: ChartProvider | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store or build_store(self.settings)
        self.provider = provider or build_provider(self.settings)
        self.cache = ChartCache(self.store, self.provider)

    @property
    def storage_backend(self) -> str:
        return self.store.backend_name
