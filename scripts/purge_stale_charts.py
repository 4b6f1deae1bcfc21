"""
Purge des thèmes anciens et peu consultés.

La rétention n'est jamais appliquée par le cache lui-même: ce script est lancé à part (cron, job)
sur le store configuré. Un thème est supprimé s'il a été créé avant `--days` jours et consulté
moins de `--min-access` fois.
"""

from __future__ import annotations

import argparse
import datetime as dt

import structlog

from chartcache.core.container import build_store
from chartcache.core.logging import setup_logging
from chartcache.core.settings import get_settings
from chartcache.infra.repo.base import ChartStore

log = structlog.get_logger(__name__)


def purge(store: ChartStore, days: int, min_access: int, now: dt.datetime | None = None) -> int:
    """Supprime les thèmes périmés et retourne leur nombre."""
    now = now or dt.datetime.now(dt.UTC)
    cutoff = now - dt.timedelta(days=days)
    deleted = store.delete_stale(cutoff, min_access)
    log.info(
        "stale_charts_purged",
        backend=store.backend_name,
        cutoff=cutoff.isoformat(),
        min_access=min_access,
        deleted=deleted,
    )
    return deleted


def main(argv: list[str] | None = None) -> int:
    """
    Point d'entrée principal de la purge.

    Les valeurs par défaut viennent de `CHART_RETENTION_DAYS` et `CHART_RETENTION_MIN_ACCESS`.
    """
    settings = get_settings()
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--days", type=int, default=settings.CHART_RETENTION_DAYS)
    parser.add_argument("--min-access", type=int, default=settings.CHART_RETENTION_MIN_ACCESS)
    args = parser.parse_args(argv)

    setup_logging(settings.LOG_LEVEL)
    deleted = purge(build_store(settings), args.days, args.min_access)
    print(f"purged charts={deleted}")
    return 0


if __name__ == "__main__":  # pragma: no cover - script entry
    raise SystemExit(main())
