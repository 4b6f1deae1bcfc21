"""Dépendances partagées pour les routes de l'API.

But du module
-------------
- Exposer aux endpoints le conteneur attaché à l'application (`app.state.container`)
  et le cache de thèmes qu'il porte, via `Depends`.
- Permettre aux tests de substituer un conteneur complet sans toucher aux routes.
"""

from fastapi import Request

from chartcache.core.container import Container
from chartcache.domain.services import ChartCache


def get_container(request: Request) -> Container:
    """Retourne le conteneur de l'application courante."""
    return request.app.state.container


def get_chart_cache(request: Request) -> ChartCache:
    """Retourne le cache de thèmes de l'application courante."""
    return get_container(request).cache
