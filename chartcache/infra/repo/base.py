"""Interface de base des stores de thèmes (clé d'identité -> thème stocké)."""

from __future__ import annotations

import datetime as dt
from abc import ABC, abstractmethod

from chartcache.domain.entities import StoredChart


class ChartStore(ABC):
    """Store clé-valeur `input_hash -> StoredChart` avec unicité de la clé.

    Les implémentations traduisent les erreurs de leur driver en `StorageError`
    et signalent un doublon de clé par `DuplicateChartError`.
    """

    backend_name: str = "unknown"

    @abstractmethod
    def get_by_key(self, input_hash: str) -> StoredChart | None:
        """Retourne le thème associé à la clé, ou None."""

    @abstractmethod
    def get_by_id(self, chart_id: str) -> StoredChart | None:
        """Retourne le thème par identifiant, ou None."""

    @abstractmethod
    def insert_if_absent(self, chart: StoredChart) -> StoredChart:
        """Insère atomiquement le thème; lève `DuplicateChartError` si la clé existe."""

    @abstractmethod
    def touch(self, input_hash: str, accessed_at: dt.datetime) -> StoredChart | None:
        """Incrémente `access_count` et met à jour `last_accessed_at`.

        Écriture de métadonnées uniquement; retourne le thème mis à jour, ou None si la
        clé a disparu entre-temps.
        """

    @abstractmethod
    def count(self) -> int:
        """Nombre de thèmes distincts."""

    @abstractmethod
    def total_access_count(self) -> int:
        """Somme des `access_count` de tous les thèmes."""

    @abstractmethod
    def most_accessed(self) -> StoredChart | None:
        """Thème le plus consulté (égalité: accès le plus récent), None si vide."""

    @abstractmethod
    def recent(self, limit: int) -> list[StoredChart]:
        """Derniers thèmes créés, du plus récent au plus ancien."""

    @abstractmethod
    def delete_stale(self, created_before: dt.datetime, min_access: int) -> int:
        """Supprime les thèmes créés avant la date et consultés moins de `min_access` fois."""
