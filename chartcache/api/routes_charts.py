"""Routes liées au calcul et à la consultation des thèmes (charts).

Objectif du module
------------------
- Calculer un thème à partir de données de naissance, en réutilisant le thème
  stocké quand les mêmes paramètres ont déjà été calculés.
- Retrouver un thème par identifiant, lister les derniers thèmes et exposer les
  statistiques d'utilisation du cache.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from chartcache.api.deps import get_chart_cache, get_container
from chartcache.api.schemas import (
    BirthChartRequest,
    ChartCalculationResponse,
    ChartDetailResponse,
    ChartStatsResponse,
)
from chartcache.core.container import Container
from chartcache.core.http_constants import DEFAULT_RECENT_LIMIT, HTTP_NOT_FOUND, MAX_RECENT_LIMIT
from chartcache.domain.entities import validate_birth_details
from chartcache.domain.errors import ChartValidationError
from chartcache.domain.presentation import ChartSummary, format_chart_for_display, summarize
from chartcache.domain.services import ChartCache

router = APIRouter(prefix="/charts", tags=["charts"])
cache_dep = Depends(get_chart_cache)
container_dep = Depends(get_container)


def cache_efficiency(total_charts: int, calls_saved: int) -> str:
    """Part des requêtes servies par le cache, en pourcentage à deux décimales."""
    if total_charts <= 0:
        return "0.00"
    return f"{calls_saved / (total_charts + calls_saved) * 100:.2f}"


@router.post("/calculate", response_model=ChartCalculationResponse)
def calculate_chart(payload: BirthChartRequest, container: Container = container_dep):
    """Calcule (ou relit) le thème correspondant aux données de naissance."""
    birth = payload.to_birth_details()
    errors = validate_birth_details(birth)
    if errors:
        raise ChartValidationError(errors)
    settings = container.settings
    params = birth.to_params(settings.CHART_OBSERVATION_POINT, settings.CHART_AYANAMSHA)
    lookup = container.cache.get_or_compute(params, birth=birth)
    return ChartCalculationResponse(
        id=lookup.chart.id,
        chart=format_chart_for_display(lookup.chart.chart_data),
        raw=lookup.chart.chart_data,
        cached=lookup.cached,
    )


@router.get("", response_model=list[ChartSummary])
def list_recent_charts(
    limit: int = Query(DEFAULT_RECENT_LIMIT, ge=1, le=MAX_RECENT_LIMIT),
    cache: ChartCache = cache_dep,
):
    """Résumés des derniers thèmes calculés."""
    return cache.recent_charts(limit)


@router.get("/stats", response_model=ChartStatsResponse)
def chart_stats(cache: ChartCache = cache_dep):
    """Statistiques du cache: thèmes stockés, appels évités, thème le plus consulté."""
    stats = cache.get_stats()
    most = stats.most_accessed_chart
    return ChartStatsResponse(
        total_charts=stats.total_charts,
        total_api_calls_saved=stats.total_accesses_beyond_first,
        most_accessed_chart=summarize(most) if most else None,
        cache_efficiency=cache_efficiency(stats.total_charts, stats.total_accesses_beyond_first),
    )


@router.get("/{chart_id}", response_model=ChartDetailResponse)
def get_chart(chart_id: str, cache: ChartCache = cache_dep):
    """Récupère un thème existant par identifiant, sinon 404."""
    chart = cache.get_chart(chart_id)
    if chart is None:
        raise HTTPException(status_code=HTTP_NOT_FOUND, detail="Chart not found")
    return ChartDetailResponse(
        id=chart.id,
        birth=chart.birth.model_dump(mode="json") if chart.birth else None,
        chart=format_chart_for_display(chart.chart_data),
        created_at=chart.created_at.isoformat(),
    )
