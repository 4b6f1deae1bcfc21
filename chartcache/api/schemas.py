# Schémas Pydantic exposés par l'API (requêtes et réponses).

from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import BaseModel, StrictInt

from chartcache.domain.entities import BirthDetails, Gender
from chartcache.domain.errors import ChartValidationError
from chartcache.domain.presentation import ChartSummary


class BirthChartRequest(BaseModel):
    """Modèle de requête pour calculer un thème natal.

    Champs:
    - name: str
    - gender: "male" | "female"
    - year, month, day: date de naissance
    - hours, minutes, seconds: heure locale de naissance (0 par défaut)
    - place_of_birth: str (nom du lieu)
    - latitude, longitude: float (degrés décimaux)
    - timezone: float | None (décalage horaire; déduit de la longitude si absent)
    """

    name: str
    gender: Gender
    year: StrictInt
    month: StrictInt
    day: StrictInt
    hours: StrictInt = 0
    minutes: StrictInt = 0
    seconds: StrictInt = 0
    place_of_birth: str
    latitude: float
    longitude: float
    timezone: float | None = None

    def to_birth_details(self) -> BirthDetails:
        """Convertit la requête en `BirthDetails` (erreur de validation si la date n'existe pas)."""
        try:
            date_of_birth = dt.date(self.year, self.month, self.day)
        except ValueError as err:
            raise ChartValidationError(["Invalid date of birth"]) from err
        return BirthDetails(
            name=self.name,
            gender=self.gender,
            date_of_birth=date_of_birth,
            hours=self.hours,
            minutes=self.minutes,
            seconds=self.seconds,
            place_name=self.place_of_birth,
            latitude=self.latitude,
            longitude=self.longitude,
            timezone=self.timezone,
        )


class ChartCalculationResponse(BaseModel):
    """Réponse au calcul d'un thème.

    Champs:
    - id: str (identifiant du thème stocké)
    - chart: dict (vue formatée: planètes, ayanamsa, entrée)
    - raw: dict (charge utile brute du fournisseur)
    - cached: bool (servi depuis le store)
    """

    id: str
    chart: dict[str, Any]
    raw: dict[str, Any]
    cached: bool


class ChartDetailResponse(BaseModel):
    """Thème stocké, consulté par identifiant."""

    id: str
    birth: dict[str, Any] | None
    chart: dict[str, Any]
    created_at: str


class ChartStatsResponse(BaseModel):
    """Statistiques d'utilisation du cache."""

    total_charts: int
    total_api_calls_saved: int
    most_accessed_chart: ChartSummary | None
    cache_efficiency: str


class HealthResponse(BaseModel):
    status: str
    storage: str
    provider: str
