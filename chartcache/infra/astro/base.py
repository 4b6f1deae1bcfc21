"""Interface de base des fournisseurs de calcul de thèmes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from chartcache.domain.entities import ChartCalculationParams


class ChartProvider(ABC):
    """Calcule un thème à partir des paramètres bruts (jamais de la clé)."""

    name: str = "unknown"

    @abstractmethod
    def compute_planets(self, params: ChartCalculationParams) -> dict[str, Any]:
        """Retourne la charge utile structurée du fournisseur, ou lève `ProviderError`."""
        ...
