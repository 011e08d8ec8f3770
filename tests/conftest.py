"""Shared pytest fixtures for the wake-word service test suite."""

import pytest

from tests.fakes import FakeAudioStream, RecordingTransportFactory
from wakeword_service.services.controller import ServiceController
from wakeword_service.services.registry import DetectorRegistry, default_registry


@pytest.fixture
def stream() -> FakeAudioStream:
    return FakeAudioStream()


@pytest.fixture
def transports() -> RecordingTransportFactory:
    return RecordingTransportFactory()


@pytest.fixture
def registry(transports: RecordingTransportFactory) -> DetectorRegistry:
    return default_registry(transports)


@pytest.fixture
def controller(stream: FakeAudioStream, registry: DetectorRegistry):
    ctrl = ServiceController(
        stream=stream,
        registry=registry,
        poll_interval=0.01,
        stop_timeout=1.0,
    )
    yield ctrl
    ctrl.stop()
