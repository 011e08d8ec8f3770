"""Tests for detector registry config building."""

import pytest

from tests.fakes import RecordingTransportFactory
from wakeword_service.domain.errors import InvalidConfiguration, UnsupportedDetector
from wakeword_service.domain.models import NetworkDetectorConfig
from wakeword_service.services.registry import DetectorRegistry, build_network_config, default_registry


@pytest.fixture
def reg() -> DetectorRegistry:
    return default_registry(RecordingTransportFactory())


def test_supported_lists_canonical_kinds_only(reg):
    assert reg.supported() == ["network"]


@pytest.mark.parametrize("kind", ["network", "UDP", "udp"])
def test_network_kind_and_aliases(reg, kind):
    config = reg.build_config(kind, {"address": "10.0.0.5", "port": 5555})
    assert config == NetworkDetectorConfig(kind="network", address="10.0.0.5", port=5555)


@pytest.mark.parametrize("kind", ["bluetooth", "Network", 42])
def test_unsupported_kinds(reg, kind):
    with pytest.raises(UnsupportedDetector):
        reg.build_config(kind, {})


@pytest.mark.parametrize("kind", [None, ""])
def test_missing_kind(reg, kind):
    with pytest.raises(InvalidConfiguration):
        reg.build_config(kind, {"address": "10.0.0.5", "port": 5555})


@pytest.mark.parametrize(
    "port, expected",
    [(5555, 5555), ("12202", 12202), (" 80 ", 80), (8080.0, 8080)],
)
def test_port_coercion(port, expected):
    assert build_network_config("network", {"address": "host.local", "port": port}).port == expected


@pytest.mark.parametrize("port", [True, "12a", 0, 65536, -1, 1.5, None, [5555]])
def test_invalid_ports(port):
    with pytest.raises(InvalidConfiguration):
        build_network_config("network", {"address": "10.0.0.5", "port": port})


@pytest.mark.parametrize("address", ["", "   ", "bad host", "-leading.dash", 1234])
def test_invalid_addresses(address):
    with pytest.raises(InvalidConfiguration):
        build_network_config("network", {"address": address, "port": 5555})


@pytest.mark.parametrize("address", ["::1", "192.168.0.10", "rhasspy.local", "localhost"])
def test_valid_addresses(address):
    assert build_network_config("network", {"address": address, "port": 5555}).address == address


def test_duplicate_registration_rejected(reg):
    with pytest.raises(ValueError):
        reg.register("network", build_network_config, RecordingTransportFactory())


def test_transport_for_resolves_factory():
    factory = RecordingTransportFactory()
    reg = default_registry(factory)
    config = reg.build_config("network", {"address": "10.0.0.5", "port": 1})
    assert reg.transport_for(config) is factory
