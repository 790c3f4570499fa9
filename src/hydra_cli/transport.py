"""Outbound delivery of UMF envelopes to running Hydra service instances."""

from __future__ import annotations

import json
from dataclasses import dataclass

import requests

from hydra_cli.client import MESSAGE_CHANNEL_PREFIX, RegistryClient
from hydra_cli.errors import RegistryRequestError, TransportError
from hydra_cli.message import InvalidRoute, Route, parse_route, payload_allowed


@dataclass
class HydraTransport:
    registry: RegistryClient
    timeout: float = 10.0

    def __post_init__(self) -> None:
        self._session = requests.Session()

    def close(self) -> None:
        self._session.close()

    def _route(self, envelope: dict) -> Route:
        to = envelope.get("to")
        if not isinstance(to, str):
            raise TransportError("message is missing a 'to' route")
        route = parse_route(to)
        if isinstance(route, InvalidRoute):
            raise TransportError(route.reason)
        return route

    def _resolve_instance(self, route: Route) -> str:
        if route.instance:
            return route.instance
        instances = self.registry.find_instances(route.service_name)
        if not instances:
            raise TransportError(f"no {route.service_name} instances available")
        return instances[0]

    def send_message(self, envelope: dict) -> str:
        """Publish ``envelope`` on the target instance's message channel."""
        route = self._route(envelope)
        instance_id = self._resolve_instance(route)
        channel = f"{MESSAGE_CHANNEL_PREFIX}:{route.service_name}:{instance_id}"
        try:
            self.registry.publish(channel, json.dumps(envelope))
        except RegistryRequestError as exc:
            raise TransportError(str(exc)) from exc
        return instance_id

    def make_api_request(self, envelope: dict) -> object:
        route = self._route(envelope)
        instance_id = self._resolve_instance(route)
        try:
            node = self.registry.get_node(instance_id)
        except RegistryRequestError as exc:
            raise TransportError(str(exc)) from exc
        if not node or not node.get("serviceIP") or not node.get("servicePort"):
            raise TransportError(f"no address registered for {route.service_name} instance {instance_id}")

        url = f"http://{node['serviceIP']}:{node['servicePort']}/{route.path.lstrip('/')}"
        method = route.http_method
        body = envelope.get("body")
        try:
            response = self._session.request(
                method.upper(),
                url,
                json=body if payload_allowed(method) and body else None,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"{method.upper()} {url} failed: {exc}") from exc

        try:
            result: object = response.json()
        except ValueError:
            result = response.text
        if response.status_code >= 400:
            raise TransportError(
                f"{route.service_name} responded {response.status_code}",
                status_code=response.status_code,
                body=result,
            )
        return result


__all__ = ["HydraTransport"]
