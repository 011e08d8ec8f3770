"""Tests for the UDP detector transport against a loopback receiver."""

import io
import socket
import wave

import numpy as np
import pytest

from tests.fakes import FORMAT, make_frame
from wakeword_service.adapters.transport.udp import (
    UdpDetectorTransport,
    UdpTransportFactory,
    encode_datagrams,
)
from wakeword_service.domain.errors import UnreachableConfiguration
from wakeword_service.domain.models import AudioFormat, AudioFrame, DetectorConfig, NetworkDetectorConfig


@pytest.fixture
def receiver():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(2.0)
    yield sock
    sock.close()


def _config(port: int, address: str = "127.0.0.1") -> NetworkDetectorConfig:
    return NetworkDetectorConfig(kind="network", address=address, port=port)


class FailingSocket:
    def __init__(self) -> None:
        self.fail = True
        self.sent: list[bytes] = []
        self.closed = 0

    def sendto(self, payload: bytes, addr) -> int:
        if self.fail:
            raise OSError("network unreachable")
        self.sent.append(payload)
        return len(payload)

    def close(self) -> None:
        self.closed += 1


class TestEncodeDatagrams:

    def test_raw_pcm(self):
        pcm = np.arange(10, dtype=np.int16)
        payloads = encode_datagrams(pcm, sample_rate=16000, max_datagram_bytes=8192, wrap_wav=False)
        assert payloads == [pcm.astype("<i2").tobytes()]

    def test_wav_wrapped_chunks_respect_limit(self):
        pcm = np.arange(1000, dtype=np.int16)
        payloads = encode_datagrams(pcm, sample_rate=16000, max_datagram_bytes=544, wrap_wav=True)
        assert all(len(p) <= 544 for p in payloads)
        total = 0
        for payload in payloads:
            with wave.open(io.BytesIO(payload), "rb") as wav:
                assert wav.getframerate() == 16000
                assert wav.getnchannels() == 1
                assert wav.getsampwidth() == 2
                total += wav.getnframes()
        assert total == 1000

    def test_empty_frame(self):
        assert encode_datagrams(np.array([], dtype=np.int16), sample_rate=16000, max_datagram_bytes=512, wrap_wav=True) == []


class TestUdpTransportFactory:

    def test_bind_and_send(self, receiver):
        port = receiver.getsockname()[1]
        transport = UdpTransportFactory(wrap_wav=False).bind(_config(port))
        frame = make_frame(7)
        transport.send(frame)
        data, _ = receiver.recvfrom(65535)
        assert data == frame.data.astype("<i2").tobytes()
        assert transport.frames_sent == 1
        assert transport.endpoint == f"127.0.0.1:{port}"
        transport.close()

    def test_wav_datagram(self, receiver):
        port = receiver.getsockname()[1]
        transport = UdpTransportFactory(wrap_wav=True).bind(_config(port))
        transport.send(make_frame(3))
        data, _ = receiver.recvfrom(65535)
        with wave.open(io.BytesIO(data), "rb") as wav:
            assert wav.getnframes() == FORMAT.blocksize
        transport.close()

    def test_float_frames_converted_to_int16(self, receiver):
        port = receiver.getsockname()[1]
        fmt = AudioFormat(sample_rate=16000, channels=2, blocksize=4, dtype="float32")
        frame = AudioFrame(data=np.full((4, 2), 0.5, dtype=np.float32), format=fmt)
        transport = UdpTransportFactory(wrap_wav=False).bind(_config(port))
        transport.send(frame)
        data, _ = receiver.recvfrom(65535)
        samples = np.frombuffer(data, dtype="<i2")
        assert samples.tolist() == [16383] * 4
        transport.close()

    @pytest.mark.parametrize(
        "config",
        [
            NetworkDetectorConfig(kind="network", address="", port=5555),
            NetworkDetectorConfig(kind="network", address="127.0.0.1", port=0),
            NetworkDetectorConfig(kind="network", address="no-such-host.invalid", port=5555),
            DetectorConfig(kind="other"),
        ],
    )
    def test_bind_rejects(self, config):
        with pytest.raises(UnreachableConfiguration):
            UdpTransportFactory().bind(config)


class TestUdpDetectorTransport:

    def _transport(self, sock, threshold: int = 3) -> UdpDetectorTransport:
        return UdpDetectorTransport(
            sock,  # type: ignore[arg-type]
            ("127.0.0.1", 9),
            "127.0.0.1:9",
            wrap_wav=False,
            error_streak_threshold=threshold,
        )

    def test_send_errors_are_counted_not_raised(self):
        sock = FailingSocket()
        transport = self._transport(sock)
        for i in range(4):
            transport.send(make_frame(i))
        assert transport.send_errors == 4
        assert transport.consecutive_errors == 4
        assert transport.frames_sent == 0
        assert transport.degraded is True

    def test_recovery_resets_streak(self):
        sock = FailingSocket()
        transport = self._transport(sock)
        transport.send(make_frame(1))
        sock.fail = False
        transport.send(make_frame(2))
        assert transport.consecutive_errors == 0
        assert transport.send_errors == 1
        assert transport.frames_sent == 1
        assert transport.degraded is False

    def test_close_is_idempotent_and_stops_sending(self):
        sock = FailingSocket()
        sock.fail = False
        transport = self._transport(sock)
        transport.close()
        transport.close()
        transport.send(make_frame(1))
        assert sock.closed == 1
        assert sock.sent == []
        assert transport.closed is True
