"""
Environnement Alembic pour les migrations de la table des thèmes.

L'URL de connexion vient de `DATABASE_URL` (sqlite local par défaut). Les modes offline (SQL
généré) et online (connexion active) sont supportés.
"""

from __future__ import annotations

import os
import sys
from logging.config import fileConfig
from pathlib import Path

from sqlalchemy import create_engine, pool

from alembic import context  # type: ignore[attr-defined]

# Rendre le paquet importable lorsque la CLI Alembic est lancée depuis la racine
_repo_root = Path(__file__).resolve().parent.parent
for p in (_repo_root, Path.cwd()):
    if str(p) not in sys.path:
        sys.path.append(str(p))

from chartcache.infra.repo.models import Base  # noqa: E402

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
DEFAULT_URL = "sqlite:///./charts.db"


def _database_url() -> str:
    return os.getenv("DATABASE_URL", DEFAULT_URL)


def run_migrations_offline() -> None:
    """Génère le SQL des migrations sans connexion (bindings littéraux)."""
    context.configure(url=_database_url(), target_metadata=target_metadata, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Applique les migrations sur une connexion SQLAlchemy active."""
    connectable = create_engine(_database_url(), poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
