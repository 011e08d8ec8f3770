from typing import Protocol

from wakeword_service.domain.models import AudioFrame, DetectorConfig


class DetectorTransport(Protocol):
    """Forwards audio frames to a wake-word recognizer.

    Sending is best-effort: implementations count and log failures instead
    of raising, so a flaky network never ends the session.
    """

    def send(self, frame: AudioFrame) -> None:
        ...

    def close(self) -> None:
        """Release the underlying channel. Safe to call more than once."""
        ...

    @property
    def endpoint(self) -> str:
        ...

    @property
    def frames_sent(self) -> int:
        ...

    @property
    def send_errors(self) -> int:
        ...

    @property
    def consecutive_errors(self) -> int:
        ...

    @property
    def degraded(self) -> bool:
        ...


class TransportFactory(Protocol):
    """Binds a transport for one detector kind."""

    def bind(self, config: DetectorConfig) -> DetectorTransport:
        """Open a transport for ``config``.

        Raises:
            UnreachableConfiguration: If the endpoint cannot be resolved
                or the channel cannot be opened.
        """
        ...
