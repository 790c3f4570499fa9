from __future__ import annotations

import fnmatch
import json

import pytest
import redis


class FakePipeline:
    def __init__(self, conn: FakeRedis, transaction: bool) -> None:
        self.conn = conn
        self.transaction = transaction
        self.ops: list[tuple[str, int, int]] = []

    def lrange(self, key: str, start: int, end: int) -> FakePipeline:
        self.ops.append((key, start, end))
        return self

    def execute(self) -> list[list[str]]:
        self.conn._check("execute")
        self.conn.transactions.append((self.transaction, list(self.ops)))
        return [self.conn.lrange(*op) for op in self.ops]


class FakeRedis:
    """In-memory stand-in for the handful of redis commands hydra-cli uses."""

    def __init__(self) -> None:
        self.hashes: dict[str, dict[str, str]] = {}
        self.sets: dict[str, set[str]] = {}
        self.lists: dict[str, list[str]] = {}
        self.strings: dict[str, str] = {}
        self.published: list[tuple[str, str]] = []
        self.transactions: list[tuple[bool, list]] = []
        self.fail: set[str] = set()
        self.fail_message = "connection reset by peer"
        self.closed = False
        self.created: list[dict] = []

    def _check(self, op: str) -> None:
        if op in self.fail:
            raise redis.ConnectionError(self.fail_message)

    def ping(self) -> bool:
        self._check("ping")
        return True

    def keys(self, pattern: str) -> list[str]:
        self._check("keys")
        names = [*self.hashes, *self.sets, *self.lists, *self.strings]
        return [name for name in names if fnmatch.fnmatchcase(name, pattern)]

    def smembers(self, key: str) -> set[str]:
        self._check("smembers")
        return set(self.sets.get(key, set()))

    def hgetall(self, key: str) -> dict[str, str]:
        self._check("hgetall")
        return dict(self.hashes.get(key, {}))

    def hget(self, key: str, field: str) -> str | None:
        self._check("hget")
        return self.hashes.get(key, {}).get(field)

    def hdel(self, key: str, *fields: str) -> int:
        self._check("hdel")
        bucket = self.hashes.get(key, {})
        return sum(1 for field in fields if bucket.pop(field, None) is not None)

    def lrange(self, key: str, start: int, end: int) -> list[str]:
        self._check("lrange")
        return list(self.lists.get(key, [])[start : end + 1])

    def publish(self, channel: str, message: str) -> int:
        self._check("publish")
        self.published.append((channel, message))
        return 1

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self, transaction)

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    path = tmp_path / "missing-hydra-cli.json"
    monkeypatch.setenv("HYDRA_CLI_CONFIG", str(path))
    return path


@pytest.fixture
def config_file(tmp_path, monkeypatch, isolated_config):
    path = tmp_path / "hydra-cli.json"
    path.write_text(
        json.dumps({"redisUrl": "localhost", "redisPort": "6379", "redisDb": "0"}),
        encoding="utf-8",
    )
    monkeypatch.setenv("HYDRA_CLI_CONFIG", str(path))
    return path


@pytest.fixture
def fake_redis(monkeypatch) -> FakeRedis:
    conn = FakeRedis()

    def _factory(**kwargs):
        conn.created.append(kwargs)
        return conn

    monkeypatch.setattr(redis, "Redis", _factory)
    return conn
