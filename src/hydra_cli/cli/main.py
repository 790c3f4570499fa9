"""Command-line interface for hydra-cli."""

from __future__ import annotations

import argparse
import math
import re
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from pathlib import Path
from typing import Any, Sequence

from hydra_cli.cli.config import (
    CLIConfig,
    ConfigError,
    load_cli_config,
    resolve_config_path,
    save_cli_config,
)
from hydra_cli.cli.output import parse_json_or_raw, render_json
from hydra_cli.client import RegistryClient, health_log_pattern
from hydra_cli.errors import MessageFileError, RegistryUnavailableError, TransportError
from hydra_cli.message import (
    InvalidRoute,
    create_envelope,
    load_message_file,
    parse_route,
    payload_allowed,
)
from hydra_cli.transport import HydraTransport

EXIT_SUCCESS = 0
GRACE_PERIOD_SECONDS = 0.25
HEALTH_LOG_LAST_INDEX = 100
ROUTES_FANOUT_WORKERS = 8
CLI_ROUTE = "hydra-cli:/"
MESSAGE_TEMPLATE_TO = "{serviceName here}:/"

_SECRET_PATTERNS = (
    (re.compile(r"(?i)(rediss?://[^:/@\s]*:)([^@\s]+)(@)"), r"\1[REDACTED]\3"),
    (re.compile(r"(?i)((?:password|passwd|auth)\s*[=:]\s*)([^,\s]+)"), r"\1[REDACTED]"),
)

_HELP_COMMANDS = (
    ("help", "this help list"),
    ("config", "configure connection to redis"),
    ("config list", "display current configuration"),
    ("message create", "create a message object"),
    ("message send message.json", "send a message"),
    ("nodes", "same as nodes list"),
    ("nodes list [serviceName]", "display service instance nodes"),
    ("nodes remove id", "remove a service from nodes list"),
    ("rest path [payload.json]", "make an HTTP RESTful call to a service"),
    ("routes [serviceName]", "display service API routes"),
    ("healthlog serviceName", "display service health log"),
)


@dataclass
class CLIContext:
    """Per-invocation state handed to every command handler."""

    config: CLIConfig | None
    config_path: Path
    grace_period: float = GRACE_PERIOD_SECONDS
    client: RegistryClient | None = None

    def connect(self) -> RegistryClient:
        if self.client is None:
            self.client = RegistryClient.from_config(self.config).connect()
        return self.client


def _cli_version() -> str:
    try:
        return pkg_version("hydra-cli")
    except PackageNotFoundError:
        return "0.0.0+local"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hydra-cli",
        description="A command line interface for Hydra services",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"hydra-cli {_cli_version()}",
    )
    parser.add_argument("command", nargs="?", default=None)
    parser.add_argument("args", nargs=argparse.REMAINDER)
    return parser


def _print_help(stdout) -> None:
    print(f"hydra-cli version {_cli_version()}", file=stdout)
    print("Usage: hydra-cli command [parameters]", file=stdout)
    print("", file=stdout)
    print("A command line interface for Hydra services", file=stdout)
    print("", file=stdout)
    print("Commands:", file=stdout)
    for usage, summary in _HELP_COMMANDS:
        print(f"  {usage:<28}- {summary}", file=stdout)
    print("", file=stdout)


def _sanitize_error_text(value: str) -> str:
    redacted = value
    for pattern, replacement in _SECRET_PATTERNS:
        redacted = pattern.sub(replacement, redacted)
    return redacted


def _print_error(stderr, prefix: str, message: str) -> int:
    print(f"{prefix}: {_sanitize_error_text(message)}", file=stderr)
    return EXIT_SUCCESS


def _print_usage_error(stderr, message: str) -> int:
    print(message, file=stderr)
    return EXIT_SUCCESS


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _elapsed_seconds(updated_on: Any, now: datetime) -> int | None:
    updated = _parse_timestamp(updated_on)
    if updated is None:
        return None
    return math.floor((now - updated).total_seconds())


def _prompt(label: str, *, stdin, stdout) -> str:
    print(f"{label}: ", end="", file=stdout)
    stdout.flush()
    return stdin.readline().rstrip("\r\n")


def _shutdown(ctx: CLIContext) -> None:
    # fixed grace period so pending socket writes can drain before close
    if ctx.grace_period > 0:
        time.sleep(ctx.grace_period)
    if ctx.client is not None:
        try:
            ctx.client.close()
        finally:
            ctx.client = None


def _run_config(*, args: list[str], ctx: CLIContext, stdout, stderr, stdin) -> int:
    if args == ["list"]:
        render_json(ctx.config.raw if ctx.config is not None else None, stdout)
        return EXIT_SUCCESS
    if args and args[0] == "list":
        return _print_usage_error(stderr, "Too many parameters")
    if args:
        return _print_usage_error(stderr, f"Unknown config options: {args[0]}")

    redis_url = _prompt("redisUrl", stdin=stdin, stdout=stdout)
    redis_port = _prompt("redisPort", stdin=stdin, stdout=stdout)
    redis_db = _prompt("redisDb", stdin=stdin, stdout=stdout)
    print("", file=stdout)
    try:
        save_cli_config(
            ctx.config_path,
            redis_url=redis_url,
            redis_port=redis_port,
            redis_db=redis_db,
            existing=ctx.config,
        )
    except ConfigError as exc:
        return _print_error(stderr, "config error", str(exc))
    return EXIT_SUCCESS


def _run_message_create(*, stdout) -> int:
    envelope = create_envelope(to=MESSAGE_TEMPLATE_TO, frm=CLI_ROUTE, body={})
    render_json(envelope, stdout)
    return EXIT_SUCCESS


def _run_message_send(*, args: list[str], ctx: CLIContext, stdout, stderr) -> int:
    if len(args) != 2:
        return _print_usage_error(stderr, "Invalid number of parameters")

    try:
        message = load_message_file(args[1])
    except MessageFileError as exc:
        return _print_error(stderr, "message error", str(exc))

    try:
        transport = HydraTransport(registry=ctx.connect())
        try:
            instance_id = transport.send_message(message)
        finally:
            transport.close()
    except RegistryUnavailableError as exc:
        return _print_error(stderr, "registry error", str(exc))
    except TransportError as exc:
        return _print_error(stderr, "transport error", str(exc))

    print(f"message sent to {instance_id}", file=stdout)
    return EXIT_SUCCESS


def _run_nodes_list(*, args: list[str], ctx: CLIContext, stdout, stderr) -> int:
    if len(args) > 2:
        return _print_usage_error(stderr, "Too many parameters")
    name_filter = args[1] if len(args) == 2 else ""

    try:
        entries = ctx.connect().get_all_nodes()
    except RegistryUnavailableError as exc:
        return _print_error(stderr, "registry error", str(exc))

    now = _utc_now()
    nodes = []
    for instance_id, raw in entries.items():
        item = parse_json_or_raw(raw)
        if not isinstance(item, dict):
            print(f"skipping malformed node entry {instance_id}", file=stderr)
            continue
        if name_filter and name_filter not in str(item.get("serviceName", "")):
            continue
        item["elapsed"] = _elapsed_seconds(item.get("updatedOn"), now)
        nodes.append(item)
    render_json(nodes, stdout)
    return EXIT_SUCCESS


def _run_nodes_remove(*, args: list[str], ctx: CLIContext, stdout, stderr) -> int:
    if len(args) != 2:
        return _print_usage_error(stderr, "Missing parameter id")
    instance_id = args[1]

    try:
        ctx.connect().delete_node(instance_id)
    except RegistryUnavailableError as exc:
        return _print_error(stderr, "registry error", str(exc))

    print(f"nodes entry {instance_id} removed", file=stdout)
    return EXIT_SUCCESS


def _run_rest(*, args: list[str], ctx: CLIContext, stdout, stderr) -> int:
    if not args:
        return _print_usage_error(stderr, "Missing parameter route")
    if len(args) > 2:
        return _print_usage_error(stderr, "Invalid number of parameters")

    route = parse_route(args[0])
    if isinstance(route, InvalidRoute):
        return _print_error(stderr, "route error", route.reason)

    method = route.http_method
    has_payload = len(args) > 1
    if has_payload and not payload_allowed(method):
        return _print_usage_error(stderr, f"Payload not allowed for HTTP '{method}' method")

    body: dict = {}
    if has_payload:
        try:
            body = load_message_file(args[1])
        except MessageFileError as exc:
            return _print_error(stderr, "payload error", str(exc))

    envelope = create_envelope(to=args[0], frm=CLI_ROUTE, body=body)
    try:
        transport = HydraTransport(registry=ctx.connect())
        try:
            response = transport.make_api_request(envelope)
        finally:
            transport.close()
    except RegistryUnavailableError as exc:
        return _print_error(stderr, "registry error", str(exc))
    except TransportError as exc:
        _print_error(stderr, "transport error", str(exc))
        if exc.body is not None:
            render_json(exc.body, stdout)
        return EXIT_SUCCESS

    render_json(response, stdout)
    return EXIT_SUCCESS


def _fetch_route_sets(client: RegistryClient, service_names: list[str]) -> list[list[str]]:
    if not service_names:
        return []
    workers = min(ROUTES_FANOUT_WORKERS, len(service_names))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(client.get_routes, service_names))


def _run_routes(*, args: list[str], ctx: CLIContext, stdout, stderr) -> int:
    if len(args) > 1:
        return _print_usage_error(stderr, "Too many parameters")
    name_filter = args[0] if args else ""

    try:
        client = ctx.connect()
        service_names = []
        for key in client.find_keys("*:routes"):
            segments = key.split(":")
            if len(segments) < 3:
                continue
            service_name = segments[2]
            if name_filter and name_filter not in service_name:
                continue
            service_names.append(service_name)
        route_sets = _fetch_route_sets(client, service_names)
    except RegistryUnavailableError as exc:
        return _print_error(stderr, "registry error", str(exc))

    render_json(dict(zip(service_names, route_sets)), stdout)
    return EXIT_SUCCESS


def _run_healthlog(*, args: list[str], ctx: CLIContext, stdout, stderr) -> int:
    if len(args) != 1:
        return _print_usage_error(stderr, "Missing parameter serviceName")

    try:
        client = ctx.connect()
        instances = client.find_keys(health_log_pattern(args[0]))
        if not instances:
            print("[]", file=stdout)
            return EXIT_SUCCESS
        batches = client.batch_list_range(instances, 0, HEALTH_LOG_LAST_INDEX)
    except RegistryUnavailableError as exc:
        return _print_error(stderr, "registry error", str(exc))

    entries = [parse_json_or_raw(entry) for batch in batches for entry in batch]
    render_json(entries, stdout)
    return EXIT_SUCCESS


def _dispatch(command: str, args: list[str], *, ctx: CLIContext, stdout, stderr, stdin) -> int:
    if command == "config":
        return _run_config(args=args, ctx=ctx, stdout=stdout, stderr=stderr, stdin=stdin)

    if command == "message":
        sub_command = args[0] if args else ""
        if sub_command == "create":
            return _run_message_create(stdout=stdout)
        if sub_command == "send":
            return _run_message_send(args=args, ctx=ctx, stdout=stdout, stderr=stderr)
        return _print_usage_error(stderr, f"Unknown message options: {sub_command}")

    if command == "nodes":
        if not args or args[0] == "list":
            return _run_nodes_list(args=args, ctx=ctx, stdout=stdout, stderr=stderr)
        if args[0] == "remove":
            return _run_nodes_remove(args=args, ctx=ctx, stdout=stdout, stderr=stderr)
        return _print_usage_error(stderr, f"Unknown nodes options: {args[0]}")

    if command == "rest":
        return _run_rest(args=args, ctx=ctx, stdout=stdout, stderr=stderr)

    if command == "routes":
        return _run_routes(args=args, ctx=ctx, stdout=stdout, stderr=stderr)

    if command == "healthlog":
        return _run_healthlog(args=args, ctx=ctx, stdout=stdout, stderr=stderr)

    return _print_usage_error(stderr, f"Unknown command: {command}")


def main(
    argv: Sequence[str] | None = None,
    *,
    stdout=sys.stdout,
    stderr=sys.stderr,
    stdin=sys.stdin,
    grace_period: float = GRACE_PERIOD_SECONDS,
) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None or args.command == "help":
        _print_help(stdout)
        return EXIT_SUCCESS

    config_path = resolve_config_path()
    ctx = CLIContext(
        config=load_cli_config(config_path),
        config_path=config_path,
        grace_period=grace_period,
    )
    try:
        return _dispatch(
            args.command,
            list(args.args),
            ctx=ctx,
            stdout=stdout,
            stderr=stderr,
            stdin=stdin,
        )
    finally:
        _shutdown(ctx)


if __name__ == "__main__":
    raise SystemExit(main())
