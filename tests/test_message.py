from __future__ import annotations

import json
import re
import uuid

import pytest

from hydra_cli.errors import MessageFileError
from hydra_cli.message import (
    UMF_VERSION,
    InvalidRoute,
    Route,
    create_envelope,
    load_message_file,
    parse_route,
    payload_allowed,
)


def test_create_envelope_fills_generated_fields() -> None:
    envelope = create_envelope(to="alpha:/v1/items", frm="hydra-cli:/", body={"a": 1})

    assert envelope["to"] == "alpha:/v1/items"
    assert envelope["from"] == "hydra-cli:/"
    assert envelope["body"] == {"a": 1}
    assert envelope["version"] == UMF_VERSION
    uuid.UUID(envelope["mid"])
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", envelope["timestamp"])
    assert "rmid" not in envelope


def test_create_envelope_generates_unique_mids() -> None:
    first = create_envelope(to="alpha:/", frm="hydra-cli:/")
    second = create_envelope(to="alpha:/", frm="hydra-cli:/")
    assert first["mid"] != second["mid"]
    assert first["body"] == {}


def test_create_envelope_includes_optional_fields_when_given() -> None:
    envelope = create_envelope(to="alpha:/", frm="hydra-cli:/", rmid="m-1", type="ping")
    assert envelope["rmid"] == "m-1"
    assert envelope["type"] == "ping"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("alpha:/v1/items", Route(service_name="alpha", path="/v1/items")),
        ("alpha:[POST]/v1/items", Route(service_name="alpha", path="/v1/items", method="post")),
        (
            "abc123@alpha:[delete]/v1/items/7",
            Route(service_name="alpha", path="/v1/items/7", method="delete", instance="abc123"),
        ),
        (
            "abc123-9@alpha:/v1",
            Route(service_name="alpha", path="/v1", instance="abc123"),
        ),
        ("alpha:/v1/items?at=10:30", Route(service_name="alpha", path="/v1/items?at=10:30")),
    ],
)
def test_parse_route_valid(raw: str, expected: Route) -> None:
    assert parse_route(raw) == expected


def test_parse_route_defaults_method_to_get() -> None:
    route = parse_route("alpha:/v1/items")
    assert isinstance(route, Route)
    assert route.method is None
    assert route.http_method == "get"


@pytest.mark.parametrize(
    ("raw", "reason"),
    [
        ("alpha", "invalid number of routable segments"),
        ("alpha:", "missing a path"),
        ("alpha:[get]", "missing a path"),
        ("alpha:[get/v1", "missing right bracket"),
        ("alpha:[fetch]/v1", "unsupported HTTP method"),
        (":/v1", "missing a service name"),
    ],
)
def test_parse_route_invalid(raw: str, reason: str) -> None:
    route = parse_route(raw)
    assert isinstance(route, InvalidRoute)
    assert reason in route.reason


@pytest.mark.parametrize(
    ("method", "allowed"),
    [("get", False), ("GET", False), ("delete", False), ("post", True), ("put", True), ("patch", True)],
)
def test_payload_allowed(method: str, allowed: bool) -> None:
    assert payload_allowed(method) is allowed


def test_load_message_file_reads_object(tmp_path) -> None:
    path = tmp_path / "message.json"
    path.write_text(json.dumps({"to": "alpha:/", "body": {}}), encoding="utf-8")
    assert load_message_file(path) == {"to": "alpha:/", "body": {}}


def test_load_message_file_missing(tmp_path) -> None:
    with pytest.raises(MessageFileError, match="Unable to open"):
        load_message_file(tmp_path / "nope.json")


def test_load_message_file_rejects_invalid_json(tmp_path) -> None:
    path = tmp_path / "message.json"
    path.write_text("{nope", encoding="utf-8")
    with pytest.raises(MessageFileError, match="not valid JSON"):
        load_message_file(path)


def test_load_message_file_rejects_non_object(tmp_path) -> None:
    path = tmp_path / "message.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(MessageFileError, match="JSON object"):
        load_message_file(path)
