"""
Tests pour le store de thèmes Redis.

Le client Redis est simulé: on vérifie les clés et arguments passés aux scripts Lua, le décodage des
enregistrements et la traduction des erreurs Redis en `StorageError`.
"""

import datetime as dt
import json
from unittest.mock import Mock

import pytest
import redis
from redis.exceptions import ConnectionError, TimeoutError

from chartcache.domain.entities import StoredChart
from chartcache.domain.errors import DuplicateChartError, StorageError
from chartcache.domain.identity import derive_key
from chartcache.infra.repositories import RedisChartStore
from tests.fakes import make_params

T0 = dt.datetime(2024, 1, 1, 12, 0, tzinfo=dt.UTC)


def _chart(minute: int = 30, access_count: int = 1) -> StoredChart:
    params = make_params(minute=minute)
    return StoredChart(
        id=f"chart-{minute}",
        input_hash=derive_key(params),
        params=params,
        chart_data={"output": [{}, {"Sun": {"fullDegree": 60.5}}]},
        created_at=T0,
        updated_at=T0,
        access_count=access_count,
        last_accessed_at=T0,
    )


def _raw(chart: StoredChart, access_count: int | None = None, last: dt.datetime | None = None):
    record = chart.model_dump(mode="json", exclude={"access_count", "last_accessed_at"})
    return {
        "record": json.dumps(record),
        "access_count": str(access_count or chart.access_count),
        "last_accessed_at": (last or chart.last_accessed_at).isoformat(),
    }


class TestRedisChartStore:
    """Tests pour RedisChartStore."""

    def setup_method(self) -> None:
        """Setup test environment."""
        self.client = Mock(spec=redis.Redis)
        self.create_script = Mock()
        self.touch_script = Mock()
        self.delete_script = Mock()
        self.client.register_script.side_effect = [
            self.create_script,
            self.touch_script,
            self.delete_script,
        ]
        self.store = RedisChartStore("redis://localhost:6379/0", client=self.client)

    def test_scripts_registered_once(self) -> None:
        assert self.client.register_script.call_count == 3

    def test_insert_writes_all_keys_atomically(self) -> None:
        chart = _chart()
        self.create_script.return_value = 1

        assert self.store.insert_if_absent(chart) == chart

        kwargs = self.create_script.call_args.kwargs
        assert kwargs["keys"] == [
            f"chart:{chart.input_hash}",
            "chart:id:chart-30",
            RedisChartStore.ACCESS_INDEX,
            RedisChartStore.CREATED_INDEX,
        ]
        record = json.loads(kwargs["args"][0])
        assert "access_count" not in record
        assert record["id"] == "chart-30"
        assert kwargs["args"][1:4] == [1, T0.isoformat(), chart.input_hash]
        assert kwargs["args"][4] == T0.timestamp()

    def test_insert_existing_key_is_duplicate(self) -> None:
        self.create_script.return_value = 0
        with pytest.raises(DuplicateChartError):
            self.store.insert_if_absent(_chart())

    def test_insert_connection_error(self) -> None:
        self.create_script.side_effect = ConnectionError("Redis unavailable")
        with pytest.raises(StorageError):
            self.store.insert_if_absent(_chart())

    def test_get_by_key_decodes_mutable_fields(self) -> None:
        chart = _chart()
        later = T0 + dt.timedelta(hours=2)
        self.client.hgetall.return_value = _raw(chart, access_count=3, last=later)

        loaded = self.store.get_by_key(chart.input_hash)

        self.client.hgetall.assert_called_with(f"chart:{chart.input_hash}")
        assert loaded.access_count == 3
        assert loaded.last_accessed_at == later
        assert loaded.params == chart.params
        assert loaded.chart_data == chart.chart_data

    def test_get_by_key_missing(self) -> None:
        self.client.hgetall.return_value = {}
        assert self.store.get_by_key("0" * 64) is None

    def test_get_by_key_timeout(self) -> None:
        self.client.hgetall.side_effect = TimeoutError("Redis timeout")
        with pytest.raises(StorageError):
            self.store.get_by_key("0" * 64)

    def test_corrupt_record_is_storage_error(self) -> None:
        self.client.hgetall.return_value = {"record": "{not json", "access_count": "1"}
        with pytest.raises(StorageError):
            self.store.get_by_key("0" * 64)

    def test_get_by_id_resolves_key(self) -> None:
        chart = _chart()
        self.client.get.return_value = chart.input_hash
        self.client.hgetall.return_value = _raw(chart)

        assert self.store.get_by_id("chart-30").id == "chart-30"
        self.client.get.assert_called_with("chart:id:chart-30")

    def test_get_by_id_unknown(self) -> None:
        self.client.get.return_value = None
        assert self.store.get_by_id("missing") is None
        self.client.hgetall.assert_not_called()

    def test_touch_increments_via_script(self) -> None:
        chart = _chart()
        later = T0 + dt.timedelta(minutes=1)
        self.touch_script.return_value = 2
        self.client.hgetall.return_value = _raw(chart, access_count=2, last=later)

        touched = self.store.touch(chart.input_hash, later)

        self.touch_script.assert_called_once_with(
            keys=[f"chart:{chart.input_hash}", RedisChartStore.ACCESS_INDEX],
            args=[later.isoformat(), chart.input_hash],
        )
        assert touched.access_count == 2

    def test_touch_missing_key(self) -> None:
        self.touch_script.return_value = -1
        assert self.store.touch("0" * 64, T0) is None
        self.client.hgetall.assert_not_called()

    def test_count_and_total_accesses(self) -> None:
        self.client.zcard.return_value = 2
        self.client.zrange.return_value = [("a", 1.0), ("b", 4.0)]

        assert self.store.count() == 2
        assert self.store.total_access_count() == 5

    def test_count_error(self) -> None:
        self.client.zcard.side_effect = ConnectionError("Redis unavailable")
        with pytest.raises(StorageError):
            self.store.count()

    def test_most_accessed_breaks_ties_on_last_access(self) -> None:
        a, b = _chart(minute=1, access_count=3), _chart(minute=2, access_count=3)
        raws = {
            f"chart:{a.input_hash}": _raw(a, last=T0 + dt.timedelta(minutes=5)),
            f"chart:{b.input_hash}": _raw(b, last=T0 + dt.timedelta(minutes=1)),
        }
        self.client.zrevrange.return_value = [(b.input_hash, 3.0)]
        self.client.zrangebyscore.return_value = [b.input_hash, a.input_hash]
        self.client.hgetall.side_effect = lambda key: raws[key]

        assert self.store.most_accessed().id == "chart-1"
        self.client.zrangebyscore.assert_called_with(RedisChartStore.ACCESS_INDEX, 3.0, 3.0)

    def test_most_accessed_empty(self) -> None:
        self.client.zrevrange.return_value = []
        assert self.store.most_accessed() is None

    def test_recent_reads_created_index(self) -> None:
        chart = _chart()
        self.client.zrevrange.return_value = [chart.input_hash]
        self.client.hgetall.return_value = _raw(chart)

        assert [c.id for c in self.store.recent(5)] == ["chart-30"]
        self.client.zrevrange.assert_called_with(RedisChartStore.CREATED_INDEX, 0, 4)

    def test_recent_zero_limit(self) -> None:
        assert self.store.recent(0) == []
        self.client.zrevrange.assert_not_called()

    def test_delete_stale_skips_popular_charts(self) -> None:
        rare, popular = _chart(minute=1, access_count=1), _chart(minute=2, access_count=9)
        raws = {f"chart:{rare.input_hash}": _raw(rare), f"chart:{popular.input_hash}": _raw(popular)}
        self.client.zrangebyscore.return_value = [rare.input_hash, popular.input_hash]
        self.client.hgetall.side_effect = lambda key: raws[key]
        self.delete_script.return_value = 1
        cutoff = T0 + dt.timedelta(days=1)

        assert self.store.delete_stale(cutoff, min_access=5) == 1

        self.client.zrangebyscore.assert_called_with(
            RedisChartStore.CREATED_INDEX, "-inf", f"({cutoff.timestamp()}"
        )
        self.delete_script.assert_called_once_with(
            keys=[
                f"chart:{rare.input_hash}",
                "chart:id:chart-1",
                RedisChartStore.ACCESS_INDEX,
                RedisChartStore.CREATED_INDEX,
            ],
            args=[5, rare.input_hash],
        )

    def test_delete_stale_keeps_chart_touched_meanwhile(self) -> None:
        """Un accès survenu entre la lecture et la purge protège le thème."""
        rare = _chart(minute=1, access_count=1)
        self.client.zrangebyscore.return_value = [rare.input_hash]
        self.client.hgetall.return_value = _raw(rare)
        self.delete_script.return_value = 0

        assert self.store.delete_stale(T0 + dt.timedelta(days=1), min_access=2) == 0
        self.delete_script.assert_called_once()
        self.client.delete.assert_not_called()

    def test_delete_stale_error(self) -> None:
        rare = _chart(minute=1, access_count=1)
        self.client.zrangebyscore.return_value = [rare.input_hash]
        self.client.hgetall.return_value = _raw(rare)
        self.delete_script.side_effect = ConnectionError("Redis unavailable")
        with pytest.raises(StorageError):
            self.store.delete_stale(T0 + dt.timedelta(days=1), min_access=2)
