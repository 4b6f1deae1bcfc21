"""Store de thèmes adossé à SQLAlchemy (table `birth_charts`).

L'unicité de `input_hash` est garantie par une contrainte en base: l'insertion
concurrente d'une même clé échoue avec `IntegrityError`, traduite en
`DuplicateChartError`. Les incréments d'accès sont faits côté SQL
(`access_count = access_count + 1`).
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Callable
from typing import TypeVar

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from chartcache.domain.entities import BirthDetails, ChartCalculationParams, StoredChart
from chartcache.domain.errors import DuplicateChartError, StorageError
from chartcache.infra.repo.base import ChartStore
from chartcache.infra.repo.db import get_session_factory, session_scope
from chartcache.infra.repo.models import Base, BirthChartORM

log = structlog.get_logger(__name__)

T = TypeVar("T")


def _aware(value: dt.datetime) -> dt.datetime:
    # SQLite rend des datetimes naïfs: ils sont stockés en UTC
    return value if value.tzinfo else value.replace(tzinfo=dt.UTC)


def _to_row(chart: StoredChart) -> BirthChartORM:
    return BirthChartORM(
        id=chart.id,
        input_hash=chart.input_hash,
        params=chart.params.model_dump(mode="json"),
        birth=chart.birth.model_dump(mode="json") if chart.birth else None,
        chart_data=chart.chart_data,
        created_at=chart.created_at,
        updated_at=chart.updated_at,
        access_count=chart.access_count,
        last_accessed_at=chart.last_accessed_at,
    )


def _from_row(row: BirthChartORM) -> StoredChart:
    return StoredChart(
        id=row.id,
        input_hash=row.input_hash,
        params=ChartCalculationParams.model_validate(row.params),
        birth=BirthDetails.model_validate(row.birth) if row.birth else None,
        chart_data=row.chart_data or {},
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
        access_count=row.access_count,
        last_accessed_at=_aware(row.last_accessed_at),
    )


class SqlChartStore(ChartStore):
    """Implémentation SQL du store de thèmes."""

    backend_name = "sql"

    def __init__(self, engine: Engine, create_schema: bool = False) -> None:
        """Construit le store sur un moteur existant.

        Args:
            engine: moteur SQLAlchemy (timeouts configurés par `get_engine`).
            create_schema: crée la table si absente (dev/tests; alembic en production).
        """
        self._engine = engine
        self._sessions = get_session_factory(engine)
        if create_schema:
            self._run("create_schema", lambda _s: Base.metadata.create_all(engine))

    def _run(self, op: str, fn: Callable[[Session], T]) -> T:
        try:
            with session_scope(self._sessions) as session:
                return fn(session)
        except SQLAlchemyError as err:
            log.error("chart_store_error", backend=self.backend_name, op=op, error=str(err))
            raise StorageError(f"sql store failed during {op}") from err

    def get_by_key(self, input_hash: str) -> StoredChart | None:
        def _q(session: Session) -> StoredChart | None:
            stmt = select(BirthChartORM).where(BirthChartORM.input_hash == input_hash)
            row = session.execute(stmt).scalar_one_or_none()
            return _from_row(row) if row else None

        return self._run("get_by_key", _q)

    def get_by_id(self, chart_id: str) -> StoredChart | None:
        def _q(session: Session) -> StoredChart | None:
            row = session.get(BirthChartORM, chart_id)
            return _from_row(row) if row else None

        return self._run("get_by_id", _q)

    def insert_if_absent(self, chart: StoredChart) -> StoredChart:
        try:
            with session_scope(self._sessions) as session:
                session.add(_to_row(chart))
                session.flush()
        except IntegrityError as err:
            raise DuplicateChartError(chart.input_hash) from err
        except SQLAlchemyError as err:
            log.error("chart_store_error", backend=self.backend_name, op="insert", error=str(err))
            raise StorageError("sql store failed during insert") from err
        return chart

    def touch(self, input_hash: str, accessed_at: dt.datetime) -> StoredChart | None:
        def _q(session: Session) -> StoredChart | None:
            stmt = (
                update(BirthChartORM)
                .where(BirthChartORM.input_hash == input_hash)
                .values(
                    access_count=BirthChartORM.access_count + 1,
                    last_accessed_at=accessed_at,
                )
                .execution_options(synchronize_session=False)
            )
            if session.execute(stmt).rowcount == 0:
                return None
            row = session.execute(
                select(BirthChartORM).where(BirthChartORM.input_hash == input_hash)
            ).scalar_one_or_none()
            return _from_row(row) if row else None

        return self._run("touch", _q)

    def count(self) -> int:
        return self._run(
            "count",
            lambda s: int(s.execute(select(func.count()).select_from(BirthChartORM)).scalar_one()),
        )

    def total_access_count(self) -> int:
        return self._run(
            "total_access_count",
            lambda s: int(
                s.execute(select(func.coalesce(func.sum(BirthChartORM.access_count), 0))).scalar_one()
            ),
        )

    def most_accessed(self) -> StoredChart | None:
        def _q(session: Session) -> StoredChart | None:
            stmt = (
                select(BirthChartORM)
                .order_by(
                    BirthChartORM.access_count.desc(),
                    BirthChartORM.last_accessed_at.desc(),
                )
                .limit(1)
            )
            row = session.execute(stmt).scalars().first()
            return _from_row(row) if row else None

        return self._run("most_accessed", _q)

    def recent(self, limit: int) -> list[StoredChart]:
        def _q(session: Session) -> list[StoredChart]:
            stmt = select(BirthChartORM).order_by(BirthChartORM.created_at.desc()).limit(limit)
            return [_from_row(r) for r in session.execute(stmt).scalars().all()]

        return self._run("recent", _q)

    def delete_stale(self, created_before: dt.datetime, min_access: int) -> int:
        def _q(session: Session) -> int:
            stmt = delete(BirthChartORM).where(
                BirthChartORM.created_at < created_before,
                BirthChartORM.access_count < min_access,
            )
            return int(session.execute(stmt).rowcount or 0)

        return self._run("delete_stale", _q)
