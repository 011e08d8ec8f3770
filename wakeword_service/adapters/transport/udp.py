import io
import socket
import threading
import wave

import numpy as np

from wakeword_service.core.logger import get_logger
from wakeword_service.domain.errors import UnreachableConfiguration
from wakeword_service.domain.models import AudioFrame, DetectorConfig, NetworkDetectorConfig

logger = get_logger("adapters.transport.udp")

_SAMPLE_WIDTH = 2  # int16


def encode_datagrams(
    pcm: np.ndarray,
    *,
    sample_rate: int,
    max_datagram_bytes: int,
    wrap_wav: bool,
) -> list[bytes]:
    """Split mono int16 PCM into datagram payloads, each WAV-wrapped if requested."""
    raw = np.ascontiguousarray(pcm, dtype="<i2").tobytes()
    if not raw:
        return []
    header_bytes = 44 if wrap_wav else 0
    budget = max_datagram_bytes - header_bytes
    budget -= budget % _SAMPLE_WIDTH
    if budget <= 0:
        raise ValueError("max_datagram_bytes too small for a single sample")

    payloads: list[bytes] = []
    for offset in range(0, len(raw), budget):
        chunk = raw[offset : offset + budget]
        payloads.append(_wav_wrap(chunk, sample_rate) if wrap_wav else chunk)
    return payloads


def _wav_wrap(chunk: bytes, sample_rate: int) -> bytes:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(_SAMPLE_WIDTH)
        wav.setframerate(sample_rate)
        wav.writeframes(chunk)
    return buf.getvalue()


class UdpDetectorTransport:
    """Fire-and-forget datagram forwarding of audio frames to a remote recognizer."""

    def __init__(
        self,
        sock: socket.socket,
        sockaddr: tuple,
        endpoint: str,
        *,
        wrap_wav: bool = True,
        max_datagram_bytes: int = 8192,
        error_streak_threshold: int = 25,
    ) -> None:
        self._sock = sock
        self._sockaddr = sockaddr
        self._endpoint = endpoint
        self._wrap_wav = wrap_wav
        self._max_datagram_bytes = max_datagram_bytes
        self._error_streak_threshold = max(1, error_streak_threshold)
        self._lock = threading.Lock()
        self._closed = False
        self._frames_sent = 0
        self._send_errors = 0
        self._consecutive_errors = 0

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def frames_sent(self) -> int:
        return self._frames_sent

    @property
    def send_errors(self) -> int:
        return self._send_errors

    @property
    def consecutive_errors(self) -> int:
        return self._consecutive_errors

    @property
    def degraded(self) -> bool:
        return self._consecutive_errors >= self._error_streak_threshold

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, frame: AudioFrame) -> None:
        if self._closed:
            return
        payloads = encode_datagrams(
            frame.to_mono_int16(),
            sample_rate=frame.format.sample_rate,
            max_datagram_bytes=self._max_datagram_bytes,
            wrap_wav=self._wrap_wav,
        )
        try:
            for payload in payloads:
                self._sock.sendto(payload, self._sockaddr)
        except OSError as exc:
            self._record_failure(frame, exc)
            return

        if self._consecutive_errors:
            logger.info(
                "Send to %s recovered after %d failed frames",
                self._endpoint,
                self._consecutive_errors,
            )
        self._consecutive_errors = 0
        self._frames_sent += 1

    def _record_failure(self, frame: AudioFrame, exc: OSError) -> None:
        self._send_errors += 1
        self._consecutive_errors += 1
        if self._consecutive_errors == 1:
            logger.warning("Send to %s failed for frame seq=%d: %s", self._endpoint, frame.sequence, exc)
        elif self._consecutive_errors == self._error_streak_threshold:
            logger.error(
                "Transport to %s degraded: %d consecutive send failures",
                self._endpoint,
                self._consecutive_errors,
            )
        else:
            logger.debug("Send to %s failed for frame seq=%d: %s", self._endpoint, frame.sequence, exc)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._sock.close()
        logger.info(
            "UDP transport to %s closed: sent=%d errors=%d",
            self._endpoint,
            self._frames_sent,
            self._send_errors,
        )


class UdpTransportFactory:
    """Binds UdpDetectorTransport instances for `NetworkDetectorConfig`."""

    def __init__(
        self,
        *,
        wrap_wav: bool = True,
        max_datagram_bytes: int = 8192,
        error_streak_threshold: int = 25,
    ) -> None:
        self.wrap_wav = wrap_wav
        self.max_datagram_bytes = max_datagram_bytes
        self.error_streak_threshold = error_streak_threshold

    def bind(self, config: DetectorConfig) -> UdpDetectorTransport:
        if not isinstance(config, NetworkDetectorConfig):
            raise UnreachableConfiguration(f"UDP transport cannot serve detector kind '{config.kind}'")
        if not config.address:
            raise UnreachableConfiguration("Remote address is empty")
        if not 0 < config.port <= 65535:
            raise UnreachableConfiguration(f"Port {config.port} is out of range")

        try:
            infos = socket.getaddrinfo(config.address, config.port, type=socket.SOCK_DGRAM)
        except (socket.gaierror, UnicodeError) as exc:
            raise UnreachableConfiguration(f"Cannot resolve {config.endpoint}: {exc}") from exc
        if not infos:
            raise UnreachableConfiguration(f"Cannot resolve {config.endpoint}")

        family, socktype, proto, _, sockaddr = infos[0]
        try:
            sock = socket.socket(family, socktype, proto)
        except OSError as exc:
            raise UnreachableConfiguration(f"Cannot open socket for {config.endpoint}: {exc}") from exc

        logger.info("UDP transport bound: endpoint=%s resolved=%s", config.endpoint, sockaddr)
        return UdpDetectorTransport(
            sock,
            sockaddr,
            config.endpoint,
            wrap_wav=self.wrap_wav,
            max_datagram_bytes=self.max_datagram_bytes,
            error_streak_threshold=self.error_streak_threshold,
        )
