import ipaddress
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from wakeword_service.core.logger import get_logger
from wakeword_service.domain.errors import InvalidConfiguration, UnsupportedDetector
from wakeword_service.domain.models import DetectorConfig, NetworkDetectorConfig
from wakeword_service.ports.transport import TransportFactory

logger = get_logger("services.registry")

ConfigBuilder = Callable[[str, Mapping[str, Any]], DetectorConfig]

NETWORK_DETECTOR = "network"

_HOSTNAME_RE = re.compile(r"^(?=.{1,253}$)(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.(?!-)[A-Za-z0-9-]{1,63}(?<!-))*\.?$")


def _parse_port(value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidConfiguration("port must be an integer")
    if isinstance(value, int):
        port = value
    elif isinstance(value, str) and value.strip().isdigit():
        port = int(value.strip())
    elif isinstance(value, float) and value.is_integer():
        port = int(value)
    else:
        raise InvalidConfiguration(f"port must be an integer, got {value!r}")
    if not 0 < port <= 65535:
        raise InvalidConfiguration(f"port must be within 1..65535, got {port}")
    return port


def _parse_address(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidConfiguration("address must be a non-empty string")
    address = value.strip()
    try:
        ipaddress.ip_address(address)
        return address
    except ValueError:
        pass
    if not _HOSTNAME_RE.match(address):
        raise InvalidConfiguration(f"address is neither an IP address nor a hostname: {address!r}")
    return address


def build_network_config(kind: str, arguments: Mapping[str, Any]) -> NetworkDetectorConfig:
    """Validate `address`/`port` (legacy clients send `ip` for the address)."""
    address = arguments.get("address", arguments.get("ip"))
    if address is None:
        raise InvalidConfiguration("missing required parameter 'address'")
    if "port" not in arguments or arguments["port"] is None:
        raise InvalidConfiguration("missing required parameter 'port'")
    return NetworkDetectorConfig(
        kind=kind,
        address=_parse_address(address),
        port=_parse_port(arguments["port"]),
    )


@dataclass(frozen=True, slots=True)
class DetectorEntry:
    kind: str
    build: ConfigBuilder
    transport: TransportFactory


@dataclass(slots=True)
class DetectorRegistry:
    """Maps detector kind names to config builders and transport factories."""

    _entries: dict[str, DetectorEntry] = field(default_factory=dict, init=False)
    _aliases: dict[str, str] = field(default_factory=dict, init=False)

    def register(
        self,
        kind: str,
        build: ConfigBuilder,
        transport: TransportFactory,
        *,
        aliases: tuple[str, ...] = (),
    ) -> None:
        if kind in self._entries:
            raise ValueError(f"Detector kind '{kind}' already registered")
        self._entries[kind] = DetectorEntry(kind=kind, build=build, transport=transport)
        for alias in aliases:
            self._aliases[alias] = kind
        logger.debug("Registered detector kind=%s aliases=%s", kind, aliases)

    def resolve(self, kind: str) -> DetectorEntry:
        canonical = self._aliases.get(kind, kind)
        try:
            return self._entries[canonical]
        except KeyError:
            raise UnsupportedDetector(f"Detector '{kind}' is not supported") from None

    def build_config(self, kind: Any, arguments: Mapping[str, Any] | None = None) -> DetectorConfig:
        if kind is None or kind == "":
            raise InvalidConfiguration("missing required parameter 'detector'")
        if not isinstance(kind, str):
            raise UnsupportedDetector(f"Detector '{kind}' is not supported")
        entry = self.resolve(kind)
        return entry.build(entry.kind, arguments or {})

    def transport_for(self, config: DetectorConfig) -> TransportFactory:
        return self.resolve(config.kind).transport

    def supported(self) -> list[str]:
        return list(self._entries)


def default_registry(network_transport: TransportFactory) -> DetectorRegistry:
    registry = DetectorRegistry()
    registry.register(NETWORK_DETECTOR, build_network_config, network_transport, aliases=("UDP", "udp"))
    return registry
