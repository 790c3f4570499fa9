"""hydra-cli public surface."""

from hydra_cli.client import RegistryClient
from hydra_cli.errors import (
    HydraCLIError,
    MessageFileError,
    RegistryRequestError,
    RegistryUnavailableError,
    TransportError,
)
from hydra_cli.message import (
    UMF_VERSION,
    InvalidRoute,
    Route,
    create_envelope,
    load_message_file,
    parse_route,
    payload_allowed,
)
from hydra_cli.transport import HydraTransport

__all__ = [
    "HydraCLIError",
    "RegistryUnavailableError",
    "RegistryRequestError",
    "TransportError",
    "MessageFileError",
    "RegistryClient",
    "HydraTransport",
    "UMF_VERSION",
    "Route",
    "InvalidRoute",
    "create_envelope",
    "parse_route",
    "payload_allowed",
    "load_message_file",
]
