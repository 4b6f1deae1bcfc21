"""
Tests de contrat des stores de thèmes (mémoire et SQL).

Vérifie l'unicité de la clé, les écritures de métadonnées d'accès, les requêtes de statistiques et la
purge, puis les comportements propres au store SQL (erreurs traduites en `StorageError`).
"""

from __future__ import annotations

import datetime as dt

import pytest

from chartcache.domain.entities import StoredChart
from chartcache.domain.errors import DuplicateChartError, StorageError
from chartcache.domain.identity import derive_key
from chartcache.infra.repo.base import ChartStore
from chartcache.infra.repo.db import get_engine
from chartcache.infra.repo.sql_chart_store import SqlChartStore
from tests.fakes import make_params

T0 = dt.datetime(2024, 1, 1, 12, 0, tzinfo=dt.UTC)


def _chart(minute: int = 30, created_at: dt.datetime = T0, access_count: int = 1) -> StoredChart:
    params = make_params(minute=minute)
    return StoredChart(
        id=f"chart-{minute}",
        input_hash=derive_key(params),
        params=params,
        chart_data={"statusCode": 200, "output": [{}, {"Sun": {"fullDegree": 60.5}}]},
        created_at=created_at,
        updated_at=created_at,
        access_count=access_count,
        last_accessed_at=created_at,
    )


@pytest.fixture(params=["memory", "sql"])
def store(request) -> ChartStore:
    return request.getfixturevalue(f"{request.param}_store")


class TestChartStoreContract:
    """Comportement commun à tous les stores."""

    def test_insert_then_read_by_key_and_id(self, store) -> None:
        chart = _chart()
        store.insert_if_absent(chart)

        by_key = store.get_by_key(chart.input_hash)
        by_id = store.get_by_id(chart.id)
        assert by_key == chart
        assert by_id == chart

    def test_missing_chart_reads_none(self, store) -> None:
        assert store.get_by_key("0" * 64) is None
        assert store.get_by_id("missing") is None

    def test_duplicate_key_rejected(self, store) -> None:
        store.insert_if_absent(_chart())
        clone = _chart().model_copy(update={"id": "other-id"})

        with pytest.raises(DuplicateChartError) as exc:
            store.insert_if_absent(clone)
        assert exc.value.input_hash == clone.input_hash
        assert store.count() == 1
        assert store.get_by_key(clone.input_hash).id == "chart-30"

    def test_touch_increments_and_stamps(self, store) -> None:
        chart = _chart()
        store.insert_if_absent(chart)
        later = T0 + dt.timedelta(minutes=5)

        touched = store.touch(chart.input_hash, later)

        assert touched.access_count == 2
        assert touched.last_accessed_at == later
        assert touched.updated_at == chart.updated_at
        assert touched.chart_data == chart.chart_data

    def test_touch_missing_returns_none(self, store) -> None:
        assert store.touch("f" * 64, T0) is None

    def test_counts(self, store) -> None:
        assert store.count() == 0
        assert store.total_access_count() == 0
        store.insert_if_absent(_chart(minute=1, access_count=1))
        store.insert_if_absent(_chart(minute=2, access_count=4))

        assert store.count() == 2
        assert store.total_access_count() == 5

    def test_most_accessed(self, store) -> None:
        assert store.most_accessed() is None
        store.insert_if_absent(_chart(minute=1, access_count=2))
        store.insert_if_absent(_chart(minute=2, access_count=7))
        store.insert_if_absent(_chart(minute=3, access_count=3))

        assert store.most_accessed().id == "chart-2"

    def test_most_accessed_tie_prefers_latest_access(self, store) -> None:
        store.insert_if_absent(_chart(minute=1))
        store.insert_if_absent(_chart(minute=2))
        store.touch(_chart(minute=2).input_hash, T0 + dt.timedelta(minutes=1))
        store.touch(_chart(minute=1).input_hash, T0 + dt.timedelta(minutes=2))

        assert store.most_accessed().id == "chart-1"

    def test_recent_newest_first(self, store) -> None:
        for minute in (1, 2, 3):
            store.insert_if_absent(_chart(minute=minute, created_at=T0 + dt.timedelta(hours=minute)))

        assert [c.id for c in store.recent(2)] == ["chart-3", "chart-2"]
        assert len(store.recent(10)) == 3

    def test_delete_stale(self, store) -> None:
        old = T0 - dt.timedelta(days=120)
        store.insert_if_absent(_chart(minute=1, created_at=old, access_count=1))
        store.insert_if_absent(_chart(minute=2, created_at=old, access_count=9))
        store.insert_if_absent(_chart(minute=3, created_at=T0, access_count=1))

        deleted = store.delete_stale(T0 - dt.timedelta(days=90), min_access=5)

        assert deleted == 1
        assert store.get_by_id("chart-1") is None
        assert store.get_by_id("chart-2") is not None
        assert store.get_by_id("chart-3") is not None
        assert store.count() == 2


class TestSqlChartStore:
    """Comportements propres au store SQL."""

    def test_missing_schema_raises_storage_error(self) -> None:
        engine = get_engine("sqlite+pysqlite:///:memory:")
        store = SqlChartStore(engine, create_schema=False)

        with pytest.raises(StorageError):
            store.get_by_key("0" * 64)
        with pytest.raises(StorageError):
            store.insert_if_absent(_chart())
        engine.dispose()

    def test_datetimes_come_back_timezone_aware(self, sql_store) -> None:
        sql_store.insert_if_absent(_chart())
        loaded = sql_store.get_by_id("chart-30")
        assert loaded.created_at.tzinfo is not None
        assert loaded.created_at == T0

    def test_backend_name(self, sql_store) -> None:
        assert sql_store.backend_name == "sql"

    def test_file_database_shared_between_stores(self, tmp_path) -> None:
        """Deux stores sur la même base voient les écritures l'un de l'autre."""
        url = f"sqlite+pysqlite:///{tmp_path / 'charts.db'}"
        engine_a, engine_b = get_engine(url), get_engine(url)
        store_a = SqlChartStore(engine_a, create_schema=True)
        store_b = SqlChartStore(engine_b)

        store_a.insert_if_absent(_chart())
        with pytest.raises(DuplicateChartError):
            store_b.insert_if_absent(_chart().model_copy(update={"id": "other-id"}))
        assert store_b.touch(_chart().input_hash, T0).access_count == 2
        engine_a.dispose()
        engine_b.dispose()
