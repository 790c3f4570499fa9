"""UMF message envelopes and route parsing."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Union
from uuid import uuid4

from hydra_cli.errors import MessageFileError

UMF_VERSION = "UMF/1.4.6"
DEFAULT_HTTP_METHOD = "get"
HTTP_METHODS = frozenset({"get", "post", "put", "patch", "delete", "head", "options"})
_BODYLESS_METHODS = frozenset({"get", "delete"})


@dataclass(frozen=True)
class Route:
    service_name: str
    path: str
    method: str | None = None
    instance: str = ""

    @property
    def http_method(self) -> str:
        return self.method or DEFAULT_HTTP_METHOD


@dataclass(frozen=True)
class InvalidRoute:
    reason: str


ParsedRoute = Union[Route, InvalidRoute]


def _utc_timestamp() -> str:
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def create_envelope(
    *,
    to: str,
    frm: str,
    body: dict[str, Any] | None = None,
    rmid: str | None = None,
    type: str | None = None,
    headers: dict[str, Any] | None = None,
) -> dict[str, Any]:
    envelope: dict[str, Any] = {
        "mid": str(uuid4()),
        "timestamp": _utc_timestamp(),
        "version": UMF_VERSION,
        "to": to,
        "from": frm,
        "body": body if body is not None else {},
    }
    if rmid is not None:
        envelope["rmid"] = rmid
    if type is not None:
        envelope["type"] = type
    if headers is not None:
        envelope["headers"] = headers
    return envelope


def parse_route(route: str) -> ParsedRoute:
    """Parse ``[instance[-subID]@]serviceName:[method]/path``.

    Returns a :class:`Route` on success or an :class:`InvalidRoute` naming
    the first problem found.
    """
    segments = route.split(":")
    if len(segments) < 2:
        return InvalidRoute("route field has invalid number of routable segments")

    instance = ""
    head = segments[0]
    if "@" in head:
        instance, _, head = head.partition("@")
        # a -subID suffix addresses a worker inside the instance; delivery is per instance
        instance = instance.partition("-")[0]
        segments[0] = head

    # absolute URLs keep their scheme separator
    if segments[0].startswith("http") and len(segments) > 2:
        segments = [f"{segments[0]}:{segments[1]}", *segments[2:]]

    service_name = segments[0]
    path = ":".join(segments[1:])
    method = None
    if path.startswith("["):
        close = path.find("]")
        if close < 0:
            return InvalidRoute("route has a missing right bracket")
        method = path[1:close].strip().lower()
        path = path[close + 1 :]
        if method not in HTTP_METHODS:
            return InvalidRoute(f"route has an unsupported HTTP method: {method or '(empty)'}")

    if not service_name:
        return InvalidRoute("route is missing a service name")
    if not path:
        return InvalidRoute("route is missing a path")
    return Route(
        service_name=service_name,
        path=path,
        method=method,
        instance=instance,
    )


def payload_allowed(method: str) -> bool:
    return method.lower() not in _BODYLESS_METHODS


def load_message_file(path: str | Path) -> dict[str, Any]:
    file_path = Path(path)
    try:
        payload = json.loads(file_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise MessageFileError(f"Unable to open {file_path}") from exc
    except ValueError as exc:
        raise MessageFileError(f"{file_path} is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise MessageFileError(f"{file_path} must contain a JSON object")
    return payload
