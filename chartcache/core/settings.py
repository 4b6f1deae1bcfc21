"""Définition et chargement des paramètres de configuration applicative.

Objectif du module
------------------
- Centraliser les paramètres (env/.env) via Pydantic Settings
- Résoudre le fichier `.env` à utiliser selon la stratégie: ENV_FILE > .env.{APP_ENV} > .env
"""

import os
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from chartcache.domain.entities import Ayanamsha, ObservationPoint


def _resolve_env_file() -> Path | str:
    """Détermine le fichier .env à utiliser.

    Priorité:
    1) ENV_FILE (chemin explicite)
    2) .env.{APP_ENV} si présent
    3) .env (défaut)
    """
    explicit = os.getenv("ENV_FILE")
    if explicit:
        return explicit
    cwd = Path.cwd()
    app_env = os.getenv("APP_ENV", "dev")
    specific = cwd / f".env.{app_env}"
    if specific.exists():
        return specific
    return cwd / ".env"


class Settings(BaseSettings):
    """Modèle de configuration chargé depuis l'environnement et .env."""

    model_config = SettingsConfigDict(
        env_file=_resolve_env_file(),
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
    )
    APP_NAME: str = "chartcache"
    APP_ENV: str = "dev"
    APP_DEBUG: bool = False
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Stockage des thèmes
    CHART_STORE: Literal["memory", "sql", "redis"] = "memory"
    DATABASE_URL: str | None = None
    REDIS_URL: str | None = None
    STORE_TIMEOUT_S: float = 5.0

    # Fournisseur de calcul (API astrologique externe)
    ASTRO_PROVIDER: Literal["freeastrologyapi", "fake"] = "fake"
    ASTRO_API_BASE_URL: str = "https://json.freeastrologyapi.com"
    ASTRO_API_KEY: str | None = None
    ASTRO_API_TIMEOUT_S: float = 10.0

    # Configuration de calcul appliquée aux requêtes entrantes
    CHART_OBSERVATION_POINT: ObservationPoint = "topocentric"
    CHART_AYANAMSHA: Ayanamsha = "lahiri"

    # Rétention (script de purge, jamais appliquée par le cache lui-même)
    CHART_RETENTION_DAYS: int = 90
    CHART_RETENTION_MIN_ACCESS: int = 5


def get_settings() -> Settings:
    """Construit et retourne la configuration de l'application."""
    return Settings()
