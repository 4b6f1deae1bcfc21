"""Erreurs du domaine des thèmes natals.

Trois familles sont remontées à l'appelant, sans retry interne:
- `ChartValidationError`: paramètres invalides, rejetés avant le calcul de clé;
- `ProviderError`: échec ou timeout du fournisseur de calcul;
- `StorageError`: stockage indisponible ou conflit hors course attendue.

`DuplicateChartError` est levée par les stores lors d'une insertion concurrente
sur une clé déjà présente; le cache la récupère localement.
"""

from __future__ import annotations


class ChartCacheError(Exception):
    """Erreur de base du cache de thèmes."""


class ChartValidationError(ChartCacheError):
    """Paramètres de calcul mal formés ou hors bornes."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors) or "invalid chart parameters")
        self.errors = list(errors)


class ProviderError(ChartCacheError):
    """Le fournisseur externe n'a pas pu produire de thème."""

    def __init__(self, message: str, *, kind: str = "error") -> None:
        super().__init__(message)
        self.kind = kind


class StorageError(ChartCacheError):
    """Lecture ou écriture impossible dans le store de thèmes."""


class DuplicateChartError(ChartCacheError):
    """Un thème existe déjà pour cette clé d'identité."""

    def __init__(self, input_hash: str) -> None:
        super().__init__(f"chart already stored for key {input_hash[:12]}")
        self.input_hash = input_hash
