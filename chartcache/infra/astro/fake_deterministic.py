"""Fournisseur astrologique déterministe pour les tests et le développement.

Ce module produit une charge utile de même forme que l'API `/planets` (deux blocs `output`, slot
"13" pour l'ayanamsa) sans appel réseau: chaque longitude est dérivée d'un hachage des paramètres.
"""

from __future__ import annotations

import hashlib
from typing import Any

from chartcache.domain.entities import ChartCalculationParams
from chartcache.domain.identity import canonical_form
from chartcache.infra.astro.base import ChartProvider

BODIES = [
    "Ascendant",
    "Sun",
    "Moon",
    "Mars",
    "Mercury",
    "Jupiter",
    "Venus",
    "Saturn",
    "Rahu",
    "Ketu",
    "Uranus",
    "Neptune",
    "Pluto",
]
RETROGRADE_CAPABLE = {"Mars", "Mercury", "Jupiter", "Venus", "Saturn", "Uranus", "Neptune", "Pluto"}

# Ayanamsa de Lahiri en J2000 et précession annuelle (50.29")
LAHIRI_J2000 = 23.853
PRECESSION_PER_YEAR = 50.29 / 3600


class FakeDeterministicProvider(ChartProvider):
    """Fournisseur factice: mêmes paramètres, même charge utile."""

    name = "fake"

    def __init__(self) -> None:
        self.calls = 0

    @staticmethod
    def _longitude(seed: str, body: str) -> float:
        digest = hashlib.sha256(f"{seed}|{body}".encode()).hexdigest()
        return int(digest[:8], 16) % 36000 / 100

    def compute_planets(self, params: ChartCalculationParams) -> dict[str, Any]:
        """Calcule une charge utile factice déterministe.

        Args:
            params: paramètres de calcul.

        Returns:
            dict[str, Any]: réponse au format `/planets` (statusCode, input, output).
        """
        self.calls += 1
        seed = canonical_form(params)
        longitudes = {body: self._longitude(seed, body) for body in BODIES}
        # Rahu et Ketu sont toujours opposés
        longitudes["Ketu"] = (longitudes["Rahu"] + 180.0) % 360
        asc_sign = int(longitudes["Ascendant"] // 30) + 1

        by_slot: dict[str, Any] = {}
        by_name: dict[str, Any] = {}
        for slot, body in enumerate(BODIES):
            full = longitudes[body]
            sign = int(full // 30) + 1
            entry = {
                "name": body,
                "fullDegree": full,
                "normDegree": round(full % 30, 2),
                "isRetro": str(body in RETROGRADE_CAPABLE and int(full) % 7 == 0).lower(),
                "current_sign": sign,
                "house_number": (sign - asc_sign) % 12 + 1,
            }
            by_slot[str(slot)] = entry
            by_name[body] = entry

        ayanamsa = LAHIRI_J2000 + (params.year - 2000) * PRECESSION_PER_YEAR
        by_slot["13"] = {"name": "ayanamsa", "value": round(ayanamsa, 6)}
        return {
            "statusCode": 200,
            "input": params.to_provider_body(),
            "output": [by_slot, by_name],
        }
