"""Registry store client used by the hydra-cli commands."""

from __future__ import annotations

import json
from dataclasses import dataclass, field

import redis

from hydra_cli.cli.config import CLIConfig, ConfigError
from hydra_cli.errors import RegistryRequestError, RegistryUnavailableError

REDIS_PRE_KEY = "hydra:service"
NODES_KEY = f"{REDIS_PRE_KEY}:nodes"
MESSAGE_CHANNEL_PREFIX = f"{REDIS_PRE_KEY}:mc"


def routes_key(service_name: str) -> str:
    return f"{REDIS_PRE_KEY}:{service_name}:service:routes"


def health_log_pattern(service_name: str) -> str:
    return f"*:{service_name}:*:health:log"


def presence_pattern(service_name: str) -> str:
    return f"{REDIS_PRE_KEY}:{service_name}:*:presence"


@dataclass
class RegistryClient:
    host: str
    port: int
    db: int = 0
    timeout: float = 5.0
    _redis: redis.Redis | None = field(default=None, init=False, repr=False)

    @classmethod
    def from_config(cls, config: CLIConfig | None) -> RegistryClient:
        if config is None:
            raise RegistryUnavailableError(
                "hydra-cli is not configured; run `hydra-cli config` first"
            )
        try:
            host, port, db = config.connection_params()
        except ConfigError as exc:
            raise RegistryUnavailableError(str(exc)) from exc
        return cls(host=host, port=port, db=db)

    @property
    def connected(self) -> bool:
        return self._redis is not None

    def connect(self) -> RegistryClient:
        """Open the connection and select the configured database.

        A PING is issued immediately so that a refused connection or an
        out-of-range database index fails here rather than on first query.
        """
        conn = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            decode_responses=True,
            socket_connect_timeout=self.timeout,
            socket_timeout=self.timeout,
        )
        try:
            conn.ping()
        except redis.RedisError as exc:
            conn.close()
            raise RegistryUnavailableError(
                f"unable to connect to redis at {self.host}:{self.port} db {self.db}: {exc}"
            ) from exc
        self._redis = conn
        return self

    def close(self) -> None:
        if self._redis is None:
            return
        try:
            self._redis.close()
        finally:
            self._redis = None

    def _conn(self) -> redis.Redis:
        if not self.connected:
            raise RegistryUnavailableError("registry client is not connected")
        return self._redis

    def find_keys(self, pattern: str) -> list[str]:
        """Wildcard key lookup. Store errors read as "no matches"."""
        try:
            return list(self._conn().keys(pattern))
        except redis.RedisError:
            return []

    def get_routes(self, service_name: str) -> list[str]:
        key = routes_key(service_name)
        try:
            members = self._conn().smembers(key)
        except redis.RedisError as exc:
            raise RegistryRequestError(f"unable to read {key}: {exc}", key=key) from exc
        return sorted(members)

    def get_all_nodes(self) -> dict[str, str]:
        try:
            return dict(self._conn().hgetall(NODES_KEY))
        except redis.RedisError as exc:
            raise RegistryRequestError(f"unable to read {NODES_KEY}: {exc}", key=NODES_KEY) from exc

    def get_node(self, instance_id: str) -> dict | None:
        try:
            raw = self._conn().hget(NODES_KEY, instance_id)
        except redis.RedisError as exc:
            raise RegistryRequestError(f"unable to read {NODES_KEY}: {exc}", key=NODES_KEY) from exc
        if raw is None:
            return None
        try:
            node = json.loads(raw)
        except ValueError as exc:
            raise RegistryRequestError(
                f"node entry {instance_id} is not valid JSON", key=NODES_KEY
            ) from exc
        return node if isinstance(node, dict) else None

    def delete_node(self, instance_id: str) -> int:
        try:
            return int(self._conn().hdel(NODES_KEY, instance_id))
        except redis.RedisError as exc:
            raise RegistryRequestError(
                f"unable to remove {instance_id} from {NODES_KEY}: {exc}", key=NODES_KEY
            ) from exc

    def batch_list_range(self, keys: list[str], start: int, end: int) -> list[list[str]]:
        """Read ``LRANGE start end`` for every key inside one MULTI/EXEC block."""
        pipe = self._conn().pipeline(transaction=True)
        for key in keys:
            pipe.lrange(key, start, end)
        try:
            return [list(items) for items in pipe.execute()]
        except redis.RedisError as exc:
            raise RegistryRequestError(f"batch list read failed: {exc}") from exc

    def find_instances(self, service_name: str) -> list[str]:
        instances = []
        for key in self.find_keys(presence_pattern(service_name)):
            segments = key.split(":")
            if len(segments) >= 5:
                instances.append(segments[-2])
        return instances

    def publish(self, channel: str, message: str) -> int:
        try:
            return int(self._conn().publish(channel, message))
        except redis.RedisError as exc:
            raise RegistryRequestError(f"unable to publish on {channel}: {exc}", key=channel) from exc


__all__ = [
    "REDIS_PRE_KEY",
    "NODES_KEY",
    "MESSAGE_CHANNEL_PREFIX",
    "RegistryClient",
    "health_log_pattern",
    "presence_pattern",
    "routes_key",
]
