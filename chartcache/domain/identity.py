"""Dérivation de la clé d'identité d'un thème.

La clé est un SHA-256 hexadécimal d'une forme canonique des paramètres:
ordre de champs fixe, préfixe de version, flottants à précision fixe
(`%.6f` pour les coordonnées, `%.2f` pour le fuseau), indépendante de la
locale. Changer ce format invalide toutes les clés déjà stockées.
"""

from __future__ import annotations

import hashlib

from chartcache.domain.entities import ChartCalculationParams

KEY_VERSION = "v1"
KEY_LENGTH = 64


def canonical_form(params: ChartCalculationParams) -> str:
    """Sérialisation stable des paramètres, utilisée uniquement pour le hachage."""
    parts = [
        KEY_VERSION,
        f"year={params.year:d}",
        f"month={params.month:d}",
        f"day={params.day:d}",
        f"hour={params.hour:d}",
        f"minute={params.minute:d}",
        f"second={params.second:d}",
        f"latitude={params.latitude:.6f}",
        f"longitude={params.longitude:.6f}",
        f"timezone={params.timezone:.2f}",
        f"observation_point={params.observation_point}",
        f"ayanamsha={params.ayanamsha}",
    ]
    return "|".join(parts)


def derive_key(params: ChartCalculationParams) -> str:
    """Retourne la clé d'identité (64 caractères hexadécimaux) des paramètres."""
    return hashlib.sha256(canonical_form(params).encode("utf-8")).hexdigest()
