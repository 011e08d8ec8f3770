from typing import Protocol

from wakeword_service.domain.models import AudioFormat, AudioFrame


class AudioStreamReader(Protocol):
    """Handle a detection session holds on the audio source.

    Each reader owns its own frame queue, so a session can be torn down
    (reader closed) without stopping the capture device.
    """

    def read(self, timeout_seconds: float | None = None) -> AudioFrame | None:
        """Read the next frame from the stream.

        Args:
            timeout_seconds: Maximum time to wait for a frame.
                If None, blocks indefinitely.
                If 0, returns immediately (non-blocking).

        Returns:
            AudioFrame if available, None on timeout or once closed.
        """
        ...

    def close(self) -> None:
        """Detach from the stream. Subsequent reads return None."""
        ...


class AudioStreamPort(Protocol):
    """Microphone-like capture source fanning frames out to subscribers."""

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...

    def is_running(self) -> bool:
        ...

    def audio_format(self) -> AudioFormat:
        ...

    def subscribe(self, *, name: str, max_frames: int = 1024) -> AudioStreamReader:
        """Create a reader receiving every frame captured after this call.

        Args:
            name: Subscriber identifier, used in logs.
            max_frames: Frames buffered before the oldest one is dropped.
        """
        ...
