"""
Entités du domaine métier.

Ce module définit les paramètres de calcul d'un thème (identité du cache), les données de naissance
saisies par l'utilisateur et l'enregistrement persisté d'un thème.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    ValidationError,
    field_validator,
    model_validator,
)

from chartcache.domain.errors import ChartValidationError

ObservationPoint = Literal["topocentric", "geocentric"]
Ayanamsha = Literal["lahiri", "sayana", "krishnamurti"]
Gender = Literal["male", "female"]

# Quantification des flottants: toute valeur est ramenée à cette précision
# avant dérivation de clé. Ne jamais modifier sans invalider le cache.
COORDINATE_DECIMALS = 6
TIMEZONE_DECIMALS = 2

MIN_TIMEZONE_OFFSET = -12
MAX_TIMEZONE_OFFSET = 14
MIN_BIRTH_YEAR = 1900


def _quantize(value: float, decimals: int) -> float:
    # + 0.0 replie -0.0 sur 0.0
    return round(value, decimals) + 0.0


def _format_errors(err: ValidationError) -> list[str]:
    messages = []
    for item in err.errors():
        loc = ".".join(str(part) for part in item.get("loc", ())) or "params"
        messages.append(f"{loc}: {item.get('msg', 'invalid value')}")
    return messages


class ChartCalculationParams(BaseModel):
    """Paramètres bruts envoyés au fournisseur; déterminent entièrement l'identité du thème."""

    model_config = ConfigDict(frozen=True, extra="forbid", allow_inf_nan=False)

    year: int = Field(ge=1, le=9999, strict=True)
    month: int = Field(ge=1, le=12, strict=True)
    day: int = Field(ge=1, le=31, strict=True)
    hour: int = Field(ge=0, le=23, strict=True)
    minute: int = Field(ge=0, le=59, strict=True)
    second: int = Field(ge=0, le=59, strict=True)
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    timezone: float = Field(ge=MIN_TIMEZONE_OFFSET, le=MAX_TIMEZONE_OFFSET)
    observation_point: ObservationPoint
    ayanamsha: Ayanamsha

    @field_validator("observation_point", "ayanamsha", mode="before")
    @classmethod
    def _normalize_config(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("latitude", "longitude")
    @classmethod
    def _normalize_coordinate(cls, value: float) -> float:
        return _quantize(value, COORDINATE_DECIMALS)

    @field_validator("timezone")
    @classmethod
    def _normalize_timezone(cls, value: float) -> float:
        return _quantize(value, TIMEZONE_DECIMALS)

    @model_validator(mode="after")
    def _check_calendar_date(self) -> ChartCalculationParams:
        dt.date(self.year, self.month, self.day)
        return self

    @classmethod
    def create(cls, **fields: Any) -> ChartCalculationParams:
        """Construit des paramètres validés, ou lève `ChartValidationError`."""
        try:
            return cls(**fields)
        except ValidationError as err:
            raise ChartValidationError(_format_errors(err)) from err

    def to_provider_body(self) -> dict[str, Any]:
        """Corps JSON attendu par l'API `/planets` du fournisseur."""
        return {
            "year": self.year,
            "month": self.month,
            "date": self.day,
            "hours": self.hour,
            "minutes": self.minute,
            "seconds": self.second,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timezone": self.timezone,
            "config": {
                "observation_point": self.observation_point,
                "ayanamsha": self.ayanamsha,
            },
        }


def timezone_from_longitude(longitude: float) -> float:
    """Approximation du fuseau: 15 degrés de longitude par heure, borné à [-12, 14]."""
    offset = round(longitude / 15)
    return float(max(MIN_TIMEZONE_OFFSET, min(MAX_TIMEZONE_OFFSET, offset)))


class BirthDetails(BaseModel):
    """Données de naissance saisies par l'utilisateur."""

    name: str
    gender: Gender
    date_of_birth: dt.date
    hours: StrictInt = 0
    minutes: StrictInt = 0
    seconds: StrictInt = 0
    place_name: str
    latitude: float
    longitude: float
    timezone: float | None = None

    def to_params(self, observation_point: str, ayanamsha: str) -> ChartCalculationParams:
        """Résout le fuseau manquant puis construit les paramètres de calcul."""
        tz = self.timezone if self.timezone is not None else timezone_from_longitude(self.longitude)
        return ChartCalculationParams.create(
            year=self.date_of_birth.year,
            month=self.date_of_birth.month,
            day=self.date_of_birth.day,
            hour=self.hours,
            minute=self.minutes,
            second=self.seconds,
            latitude=self.latitude,
            longitude=self.longitude,
            timezone=tz,
            observation_point=observation_point,
            ayanamsha=ayanamsha,
        )


def validate_birth_details(birth: BirthDetails, today: dt.date | None = None) -> list[str]:
    """Retourne la liste des erreurs lisibles (vide si les données sont valides)."""
    today = today or dt.date.today()
    errors: list[str] = []
    if not birth.name.strip():
        errors.append("Name is required")
    if birth.date_of_birth > today:
        errors.append("Birth date cannot be in the future")
    if birth.date_of_birth.year < MIN_BIRTH_YEAR:
        errors.append(f"Birth year must be after {MIN_BIRTH_YEAR}")
    if not 0 <= birth.hours <= 23:
        errors.append("Hours must be between 0 and 23")
    if not 0 <= birth.minutes <= 59:
        errors.append("Minutes must be between 0 and 59")
    if not 0 <= birth.seconds <= 59:
        errors.append("Seconds must be between 0 and 59")
    if not -90 <= birth.latitude <= 90:
        errors.append("Latitude must be between -90 and 90")
    if not -180 <= birth.longitude <= 180:
        errors.append("Longitude must be between -180 and 180")
    if not birth.place_name.strip():
        errors.append("Place of birth is required")
    return errors


class StoredChart(BaseModel):
    """Thème persisté: paramètres, charge utile opaque et métadonnées d'accès."""

    id: str
    input_hash: str
    params: ChartCalculationParams
    birth: BirthDetails | None = None
    chart_data: dict[str, Any]
    created_at: dt.datetime
    updated_at: dt.datetime
    access_count: int = 1
    last_accessed_at: dt.datetime


@dataclass(frozen=True)
class ChartLookup:
    """Résultat d'un `get_or_compute`: le thème et son origine (store ou fournisseur)."""

    chart: StoredChart
    cached: bool


@dataclass(frozen=True)
class ChartStats:
    """Vue agrégée du store."""

    total_charts: int
    total_accesses_beyond_first: int
    most_accessed_chart: StoredChart | None
