import queue
import threading
from typing import Any

import numpy as np
import sounddevice as sd  # type: ignore

from wakeword_service.core.logger import get_logger
from wakeword_service.domain.models import AudioFormat, AudioFrame

logger = get_logger("adapters.audio.sounddevice_stream")


class _QueueReader:
    """Per-subscriber queue. Oldest frame is dropped when full."""

    def __init__(self, name: str, max_frames: int, on_close: Any) -> None:
        self.name = name
        self._queue: queue.Queue[AudioFrame] = queue.Queue(maxsize=max_frames)
        self._closed = threading.Event()
        self._on_close = on_close
        self.dropped = 0

    def push(self, frame: AudioFrame) -> None:
        if self._closed.is_set():
            return
        while True:
            try:
                self._queue.put_nowait(frame)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except queue.Empty:
                    pass

    def read(self, timeout_seconds: float | None = None) -> AudioFrame | None:
        if self._closed.is_set():
            return None
        try:
            if timeout_seconds == 0:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout_seconds)
        except queue.Empty:
            return None

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        with self._queue.mutex:
            self._queue.queue.clear()
        self._on_close(self)


class SoundDeviceAudioStreamAdapter:
    """
    Microphone capture fanned out to any number of readers.

    Device selection: configured device if given, otherwise the default input.
    """

    def __init__(self, *, audio_format: AudioFormat, device: int | str | None = None) -> None:
        self._format = audio_format
        self._requested_device = device
        self._stream: sd.RawInputStream | None = None
        self._selected_device: int | str | None = None
        self._readers: list[_QueueReader] = []
        self._lock = threading.Lock()
        self._sequence = 0

    def start(self) -> None:
        with self._lock:
            if self._stream:
                return
            device = self._requested_device
            if device is None:
                device = self._auto_select_device()
            self._selected_device = device
            self._sequence = 0
            stream = sd.RawInputStream(
                samplerate=self._format.sample_rate,
                channels=self._format.channels,
                blocksize=self._format.blocksize,
                dtype=self._format.dtype,
                device=device,
                callback=self._callback,
            )
            stream.start()
            self._stream = stream
        logger.info("Audio capture started: device=%s format=%s", device, self._format)

    def stop(self) -> None:
        with self._lock:
            stream = self._stream
            self._stream = None
        if stream is None:
            return
        stream.stop()
        stream.close()
        logger.info("Audio capture stopped")

    def is_running(self) -> bool:
        return self._stream is not None

    def audio_format(self) -> AudioFormat:
        return self._format

    def subscribe(self, *, name: str, max_frames: int = 1024) -> _QueueReader:
        reader = _QueueReader(name, max_frames, self._unsubscribe)
        with self._lock:
            self._readers.append(reader)
        logger.debug("Subscriber attached: %s", name)
        return reader

    def _unsubscribe(self, reader: _QueueReader) -> None:
        with self._lock:
            if reader in self._readers:
                self._readers.remove(reader)
        logger.debug("Subscriber detached: %s (dropped=%d)", reader.name, reader.dropped)

    def _callback(self, indata: bytes, frames: int, time: Any, status: Any) -> None:
        if status:
            logger.warning("sounddevice status: %s", status)
        array = np.frombuffer(bytes(indata), dtype=np.dtype(self._format.dtype))
        if self._format.channels > 1:
            array = array.reshape(-1, self._format.channels)
        self._sequence += 1
        frame = AudioFrame(data=array, format=self._format, sequence=self._sequence)
        with self._lock:
            readers = list(self._readers)
        for reader in readers:
            reader.push(frame)

    @staticmethod
    def _auto_select_device() -> int | str | None:
        try:
            devices: list[dict[str, Any]] = sd.query_devices()  # type: ignore
        except Exception:
            logger.exception("Could not enumerate audio devices")
            return None

        candidate = sd.default.device[0]
        if candidate is not None and candidate != -1:
            return candidate

        for idx, dev in enumerate(devices):
            if dev.get("max_input_channels", 0) > 0:
                return idx
        return None
