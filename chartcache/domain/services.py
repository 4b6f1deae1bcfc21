"""Cache de thèmes natals (lecture « cache-through »).

`ChartCache` sert un thème depuis le store lorsqu'une clé d'identité identique a déjà été
calculée, et n'appelle le fournisseur externe qu'en cas d'absence. Il ne détient aucun verrou:
l'unicité d'un thème par clé repose entièrement sur l'insertion atomique du store.
"""

from __future__ import annotations

import datetime as dt
import uuid
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

import structlog

from chartcache.app.metrics import CHART_CACHE_LOOKUPS, CHART_STORE_ERRORS
from chartcache.domain.entities import (
    BirthDetails,
    ChartCalculationParams,
    ChartLookup,
    ChartStats,
    StoredChart,
)
from chartcache.domain.errors import DuplicateChartError, ProviderError, StorageError
from chartcache.domain.identity import derive_key
from chartcache.domain.presentation import ChartSummary, summarize
from chartcache.infra.astro.base import ChartProvider
from chartcache.infra.repo.base import ChartStore

log = structlog.get_logger(__name__)

T = TypeVar("T")


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


class ChartCache:
    """Service métier du cache de thèmes.

    Responsabilités:
    - Dériver la clé d'identité des paramètres de calcul.
    - Servir les thèmes connus depuis `store` en mettant à jour les compteurs d'accès.
    - Calculer les thèmes inconnus via `provider` puis les persister.
    - Produire les statistiques agrégées du store.
    """

    def __init__(
        self,
        store: ChartStore,
        provider: ChartProvider,
        clock: Callable[[], dt.datetime] = _utcnow,
    ) -> None:
        """Initialise le service avec ses dépendances.

        Paramètres:
        - store: store de thèmes (mémoire, SQL ou Redis), partagé entre requêtes.
        - provider: fournisseur de calcul externe.
        - clock: horloge UTC (injectable pour les tests).
        """
        self.store = store
        self.provider = provider
        self._clock = clock

    def _store_call(self, fn: Callable[..., T], *args: Any) -> T:
        try:
            return fn(*args)
        except StorageError:
            CHART_STORE_ERRORS.labels(backend=self.store.backend_name).inc()
            raise

    def _record_access(self, chart: StoredChart) -> StoredChart:
        now = self._clock()
        updated = self._store_call(self.store.touch, chart.input_hash, now)
        if updated is not None:
            return updated
        # thème purgé entre la lecture et l'incrément: on rend la lecture
        return chart.model_copy(
            update={"access_count": chart.access_count + 1, "last_accessed_at": now}
        )

    def _compute(self, params: ChartCalculationParams) -> dict[str, Any]:
        try:
            payload = self.provider.compute_planets(params)
        except ProviderError:
            raise
        except Exception as err:
            raise ProviderError(f"{self.provider.name} provider failed: {err}") from err
        if not isinstance(payload, dict):
            raise ProviderError(f"{self.provider.name} provider returned a non-object payload")
        return payload

    def get_or_compute(
        self,
        params: ChartCalculationParams | Mapping[str, Any],
        birth: BirthDetails | None = None,
    ) -> ChartLookup:
        """Retourne le thème associé aux paramètres, en le calculant au besoin.

        Démarche:
        - Dérive la clé et cherche un thème existant (hit: incrément d'accès).
        - Sinon appelle le fournisseur avec les paramètres bruts et insère le thème
          (`access_count = 1`).
        - Une insertion concurrente sur la même clé est traitée comme un hit.

        Lève `ChartValidationError`, `ProviderError` ou `StorageError`.
        """
        if not isinstance(params, ChartCalculationParams):
            params = ChartCalculationParams.create(**params)
        input_hash = derive_key(params)
        key_prefix = input_hash[:12]

        existing = self._store_call(self.store.get_by_key, input_hash)
        if existing is not None:
            CHART_CACHE_LOOKUPS.labels(result="hit").inc()
            log.info("chart_cache_hit", key=key_prefix)
            return ChartLookup(chart=self._record_access(existing), cached=True)

        CHART_CACHE_LOOKUPS.labels(result="miss").inc()
        log.info("chart_cache_miss", key=key_prefix, provider=self.provider.name)
        chart_data = self._compute(params)

        now = self._clock()
        chart = StoredChart(
            id=str(uuid.uuid4()),
            input_hash=input_hash,
            params=params,
            birth=birth,
            chart_data=chart_data,
            created_at=now,
            updated_at=now,
            access_count=1,
            last_accessed_at=now,
        )
        try:
            stored = self._store_call(self.store.insert_if_absent, chart)
        except DuplicateChartError:
            CHART_CACHE_LOOKUPS.labels(result="race").inc()
            log.info("chart_cache_race", key=key_prefix)
            winner = self._store_call(self.store.get_by_key, input_hash)
            if winner is None:
                raise StorageError(f"chart {key_prefix} vanished after a duplicate insert") from None
            return ChartLookup(chart=self._record_access(winner), cached=True)
        return ChartLookup(chart=stored, cached=False)

    def get_chart(self, chart_id: str) -> StoredChart | None:
        """Charge un thème par identifiant (compte comme un accès), None si absent."""
        chart = self._store_call(self.store.get_by_id, chart_id)
        if chart is None:
            return None
        return self._record_access(chart)

    def recent_charts(self, limit: int = 10) -> list[ChartSummary]:
        """Résumés des derniers thèmes créés."""
        return [summarize(c) for c in self._store_call(self.store.recent, limit)]

    def get_stats(self) -> ChartStats:
        """Statistiques: thèmes distincts, appels évités, thème le plus consulté."""
        total = self._store_call(self.store.count)
        if total == 0:
            return ChartStats(total_charts=0, total_accesses_beyond_first=0, most_accessed_chart=None)
        accesses = self._store_call(self.store.total_access_count)
        return ChartStats(
            total_charts=total,
            total_accesses_beyond_first=max(0, accesses - total),
            most_accessed_chart=self._store_call(self.store.most_accessed),
        )
