"""
Repositories pour les thèmes calculés.

Ce module fournit les implémentations en mémoire et Redis du store de thèmes. La version SQL vit dans
`chartcache.infra.repo.sql_chart_store`.
"""

from __future__ import annotations

import datetime as dt
import json
import threading

import redis
import structlog
from pydantic import ValidationError
from redis.exceptions import RedisError

from chartcache.domain.entities import StoredChart
from chartcache.domain.errors import DuplicateChartError, StorageError
from chartcache.infra.repo.base import ChartStore

log = structlog.get_logger(__name__)


class InMemoryChartStore(ChartStore):
    """
    Store de thèmes en mémoire (utilisé pour dev/tests).

    Stocke les enregistrements dans un dict local, non persistant. Le verrou ne protège que la
    structure interne du store (équivalent d'une contrainte d'unicité), pas le cache.
    """

    backend_name = "memory"

    def __init__(self) -> None:
        """Initialise une base mémoire vide."""
        self._by_key: dict[str, StoredChart] = {}
        self._key_by_id: dict[str, str] = {}
        self._lock = threading.Lock()

    def get_by_key(self, input_hash: str) -> StoredChart | None:
        return self._by_key.get(input_hash)

    def get_by_id(self, chart_id: str) -> StoredChart | None:
        key = self._key_by_id.get(chart_id)
        return self._by_key.get(key) if key else None

    def insert_if_absent(self, chart: StoredChart) -> StoredChart:
        with self._lock:
            if chart.input_hash in self._by_key:
                raise DuplicateChartError(chart.input_hash)
            self._by_key[chart.input_hash] = chart
            self._key_by_id[chart.id] = chart.input_hash
        return chart

    def touch(self, input_hash: str, accessed_at: dt.datetime) -> StoredChart | None:
        with self._lock:
            current = self._by_key.get(input_hash)
            if current is None:
                return None
            updated = current.model_copy(
                update={
                    "access_count": current.access_count + 1,
                    "last_accessed_at": accessed_at,
                }
            )
            self._by_key[input_hash] = updated
        return updated

    def count(self) -> int:
        return len(self._by_key)

    def total_access_count(self) -> int:
        return sum(c.access_count for c in list(self._by_key.values()))

    def most_accessed(self) -> StoredChart | None:
        charts = list(self._by_key.values())
        if not charts:
            return None
        return max(charts, key=lambda c: (c.access_count, c.last_accessed_at))

    def recent(self, limit: int) -> list[StoredChart]:
        charts = sorted(self._by_key.values(), key=lambda c: c.created_at, reverse=True)
        return charts[:limit]

    def delete_stale(self, created_before: dt.datetime, min_access: int) -> int:
        with self._lock:
            stale = [
                c
                for c in self._by_key.values()
                if c.created_at < created_before and c.access_count < min_access
            ]
            for chart in stale:
                del self._by_key[chart.input_hash]
                self._key_by_id.pop(chart.id, None)
        return len(stale)


# Création atomique: le thème, l'index id -> clé et les deux index triés
# sont écrits ensemble ou pas du tout.
CREATE_IF_ABSENT_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 1 then
    return 0
end
redis.call('HSET', KEYS[1], 'record', ARGV[1], 'access_count', ARGV[2], 'last_accessed_at', ARGV[3])
redis.call('SET', KEYS[2], ARGV[4])
redis.call('ZADD', KEYS[3], ARGV[2], ARGV[4])
redis.call('ZADD', KEYS[4], ARGV[5], ARGV[4])
return 1
"""

TOUCH_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return -1
end
local count = redis.call('HINCRBY', KEYS[1], 'access_count', 1)
redis.call('HSET', KEYS[1], 'last_accessed_at', ARGV[1])
redis.call('ZADD', KEYS[2], count, ARGV[2])
return count
"""

# Purge conditionnelle: le compteur est relu dans le script, un accès concurrent
# qui atteint le seuil protège le thème.
DELETE_IF_STALE_SCRIPT = """
local count = redis.call('HGET', KEYS[1], 'access_count')
if not count or tonumber(count) >= tonumber(ARGV[1]) then
    return 0
end
redis.call('DEL', KEYS[1], KEYS[2])
redis.call('ZREM', KEYS[3], ARGV[2])
redis.call('ZREM', KEYS[4], ARGV[2])
return 1
"""


class RedisChartStore(ChartStore):
    """Store de thèmes adossé à Redis.

    Clés:
    - `chart:{hash}`: hash avec `record` (JSON immuable), `access_count`, `last_accessed_at`;
    - `chart:id:{id}`: clé d'identité du thème `id`;
    - `chart:idx:access`: zset clé -> access_count (classement, comptage);
    - `chart:idx:created`: zset clé -> timestamp de création (récents, rétention).
    """

    backend_name = "redis"
    ACCESS_INDEX = "chart:idx:access"
    CREATED_INDEX = "chart:idx:created"

    def __init__(self, url: str, timeout_s: float = 5.0, client: redis.Redis | None = None):
        """Crée un client Redis à partir de l'URL fournie (timeouts socket bornés)."""
        self.client = client or redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout_s,
            socket_connect_timeout=timeout_s,
        )
        self._create = self.client.register_script(CREATE_IF_ABSENT_SCRIPT)
        self._touch = self.client.register_script(TOUCH_SCRIPT)
        self._delete_if_stale = self.client.register_script(DELETE_IF_STALE_SCRIPT)

    @staticmethod
    def _chart_key(input_hash: str) -> str:
        return f"chart:{input_hash}"

    @staticmethod
    def _id_key(chart_id: str) -> str:
        return f"chart:id:{chart_id}"

    def _fail(self, op: str, err: Exception) -> StorageError:
        log.error("chart_store_error", backend=self.backend_name, op=op, error=str(err))
        return StorageError(f"redis store failed during {op}")

    def _decode(self, raw: dict[str, str]) -> StoredChart | None:
        if not raw or "record" not in raw:
            return None
        record = json.loads(raw["record"])
        record["access_count"] = int(raw.get("access_count", record.get("access_count", 1)))
        record["last_accessed_at"] = raw.get("last_accessed_at", record.get("last_accessed_at"))
        return StoredChart.model_validate(record)

    def _load(self, input_hash: str, op: str) -> StoredChart | None:
        try:
            return self._decode(self.client.hgetall(self._chart_key(input_hash)))
        except RedisError as err:
            raise self._fail(op, err) from err
        except (ValueError, ValidationError) as err:
            raise self._fail(f"{op}:decode", err) from err

    def get_by_key(self, input_hash: str) -> StoredChart | None:
        return self._load(input_hash, "get_by_key")

    def get_by_id(self, chart_id: str) -> StoredChart | None:
        try:
            input_hash = self.client.get(self._id_key(chart_id))
        except RedisError as err:
            raise self._fail("get_by_id", err) from err
        return self._load(input_hash, "get_by_id") if input_hash else None

    def insert_if_absent(self, chart: StoredChart) -> StoredChart:
        record = chart.model_dump(mode="json", exclude={"access_count", "last_accessed_at"})
        try:
            created = self._create(
                keys=[
                    self._chart_key(chart.input_hash),
                    self._id_key(chart.id),
                    self.ACCESS_INDEX,
                    self.CREATED_INDEX,
                ],
                args=[
                    json.dumps(record),
                    chart.access_count,
                    chart.last_accessed_at.isoformat(),
                    chart.input_hash,
                    chart.created_at.timestamp(),
                ],
            )
        except RedisError as err:
            raise self._fail("insert", err) from err
        if int(created) == 0:
            raise DuplicateChartError(chart.input_hash)
        return chart

    def touch(self, input_hash: str, accessed_at: dt.datetime) -> StoredChart | None:
        try:
            count = self._touch(
                keys=[self._chart_key(input_hash), self.ACCESS_INDEX],
                args=[accessed_at.isoformat(), input_hash],
            )
        except RedisError as err:
            raise self._fail("touch", err) from err
        if int(count) < 0:
            return None
        return self._load(input_hash, "touch")

    def count(self) -> int:
        try:
            return int(self.client.zcard(self.ACCESS_INDEX))
        except RedisError as err:
            raise self._fail("count", err) from err

    def total_access_count(self) -> int:
        # O(n) sur l'index; suffisant pour les volumes visés
        try:
            entries = self.client.zrange(self.ACCESS_INDEX, 0, -1, withscores=True)
        except RedisError as err:
            raise self._fail("total_access_count", err) from err
        return int(sum(score for _member, score in entries))

    def most_accessed(self) -> StoredChart | None:
        try:
            top = self.client.zrevrange(self.ACCESS_INDEX, 0, 0, withscores=True)
            if not top:
                return None
            best_score = top[0][1]
            tied = self.client.zrangebyscore(self.ACCESS_INDEX, best_score, best_score)
        except RedisError as err:
            raise self._fail("most_accessed", err) from err
        charts = [c for c in (self._load(h, "most_accessed") for h in tied) if c is not None]
        if not charts:
            return None
        return max(charts, key=lambda c: (c.access_count, c.last_accessed_at))

    def recent(self, limit: int) -> list[StoredChart]:
        if limit <= 0:
            return []
        try:
            hashes = self.client.zrevrange(self.CREATED_INDEX, 0, limit - 1)
        except RedisError as err:
            raise self._fail("recent", err) from err
        return [c for c in (self._load(h, "recent") for h in hashes) if c is not None]

    def delete_stale(self, created_before: dt.datetime, min_access: int) -> int:
        try:
            candidates = self.client.zrangebyscore(
                self.CREATED_INDEX, "-inf", f"({created_before.timestamp()}"
            )
        except RedisError as err:
            raise self._fail("delete_stale", err) from err
        deleted = 0
        for input_hash in candidates:
            chart = self._load(input_hash, "delete_stale")
            if chart is None or chart.access_count >= min_access:
                continue
            # le seuil est revérifié dans le script
            try:
                removed = self._delete_if_stale(
                    keys=[
                        self._chart_key(input_hash),
                        self._id_key(chart.id),
                        self.ACCESS_INDEX,
                        self.CREATED_INDEX,
                    ],
                    args=[min_access, input_hash],
                )
            except RedisError as err:
                raise self._fail("delete_stale", err) from err
            deleted += int(removed)
        return deleted
