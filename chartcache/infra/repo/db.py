"""DB utilities for SQLAlchemy sessions/engine.

Uses `DATABASE_URL` env var or falls back to `sqlite+pysqlite:///:memory:` for tests.
"""

from __future__ import annotations

import math
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


def is_memory_sqlite(url: str) -> bool:
    """Vrai pour une base SQLite en mémoire (propre à une seule connexion)."""
    return url.startswith("sqlite") and (
        ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://")
    )


def get_engine(url: str | None = None, timeout_s: float = 5.0) -> Engine:
    """Crée un moteur SQLAlchemy borné par `timeout_s` (connexion et attente du pool)."""
    db_url = url or os.getenv("DATABASE_URL") or "sqlite+pysqlite:///:memory:"
    kwargs: dict[str, Any] = {"future": True, "echo": False}
    if db_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": timeout_s}
        if is_memory_sqlite(db_url):
            # une seule connexion partagée: réservé aux tests mono-thread
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_timeout"] = timeout_s
        if db_url.startswith("postgresql"):
            kwargs["connect_args"] = {"connect_timeout": max(1, math.ceil(timeout_s))}
    return create_engine(db_url, **kwargs)


def get_session_factory(engine: Engine) -> sessionmaker:
    """Crée une factory de sessions SQLAlchemy."""
    return sessionmaker(bind=engine, class_=Session, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    """Contexte de session SQLAlchemy avec gestion automatique des transactions.

    Valide la transaction en sortie normale, l'annule sur exception puis relance.
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
