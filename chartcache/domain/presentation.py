"""Vues publiques d'un thème (sans compteurs d'accès)."""

from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import BaseModel

from chartcache.domain.entities import StoredChart

# Index de l'entrée "Ayanamsa" dans le premier bloc de sortie du fournisseur
AYANAMSA_SLOT = "13"


class ChartSummary(BaseModel):
    """Résumé exposé aux clients: identité, naissance et positions planétaires."""

    id: str
    name: str | None
    date_of_birth: str
    place_of_birth: str | None
    created_at: str
    planets: dict[str, Any]


def _output_blocks(chart_data: dict[str, Any]) -> list[Any]:
    output = chart_data.get("output")
    return output if isinstance(output, list) else []


def extract_planets(chart_data: dict[str, Any]) -> dict[str, Any]:
    """Positions planétaires (deuxième bloc de `output`), vide si absentes."""
    blocks = _output_blocks(chart_data)
    if len(blocks) > 1 and isinstance(blocks[1], dict):
        return blocks[1]
    return {}


def extract_ayanamsa(chart_data: dict[str, Any]) -> float | None:
    blocks = _output_blocks(chart_data)
    if not blocks or not isinstance(blocks[0], dict):
        return None
    entry = blocks[0].get(AYANAMSA_SLOT)
    if isinstance(entry, dict) and isinstance(entry.get("value"), int | float):
        return float(entry["value"])
    return None


def format_chart_for_display(chart_data: dict[str, Any]) -> dict[str, Any]:
    """Met en forme la charge utile du fournisseur pour l'affichage."""
    return {
        "planets": extract_planets(chart_data),
        "ayanamsa": extract_ayanamsa(chart_data),
        "input": chart_data.get("input"),
        "calculated_at": dt.datetime.now(dt.UTC).isoformat(),
    }


def summarize(chart: StoredChart) -> ChartSummary:
    """Construit le résumé public d'un thème stocké."""
    params = chart.params
    birth = chart.birth
    return ChartSummary(
        id=chart.id,
        name=birth.name if birth else None,
        date_of_birth=dt.date(params.year, params.month, params.day).isoformat(),
        place_of_birth=birth.place_name if birth else None,
        created_at=chart.created_at.isoformat(),
        planets=extract_planets(chart.chart_data),
    )
