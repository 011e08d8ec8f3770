from dataclasses import dataclass, field
import time
from threading import Event, Lock, Thread

from wakeword_service.core.logger import get_logger
from wakeword_service.ports.audiostream import AudioStreamReader
from wakeword_service.ports.transport import DetectorTransport

logger = get_logger("services.session")


@dataclass(slots=True)
class DetectionSession:
	"""Couples one audio reader to one detector transport behind a pause gate.

	Pausing drops frames at the next frame boundary but keeps both handles
	open, so resuming needs no renegotiation. Frames captured before the
	latest resume are dropped even if they were still queued. Only close()
	tears down.
	"""

	reader: AudioStreamReader
	transport: DetectorTransport
	poll_interval: float = 0.1
	_paused: Event = field(default_factory=Event, init=False)
	_stop: Event = field(default_factory=Event, init=False)
	_lock: Lock = field(default_factory=Lock, init=False)
	_thread: Thread | None = field(default=None, init=False)
	_closed: bool = field(default=False, init=False)
	_frames_dropped: int = field(default=0, init=False)
	_resumed_ns: int = field(default=0, init=False)

	def start(self) -> None:
		with self._lock:
			if self._closed:
				raise RuntimeError("Detection session is closed")
			if self._thread is not None:
				return
			self._thread = Thread(target=self._run, name="wakeword-audio-loop", daemon=True)
			self._thread.start()

	def set_paused(self, paused: bool) -> None:
		if paused:
			self._paused.set()
		else:
			# frames captured before this instant are still stale after the gate opens
			self._resumed_ns = time.monotonic_ns()
			self._paused.clear()

	def is_paused(self) -> bool:
		return self._paused.is_set()

	def is_alive(self) -> bool:
		thread = self._thread
		return thread is not None and thread.is_alive()

	@property
	def closed(self) -> bool:
		return self._closed

	@property
	def frames_dropped(self) -> int:
		return self._frames_dropped

	def close(self, timeout: float = 2.0) -> None:
		"""Stop the audio loop, then release reader and transport exactly once."""
		with self._lock:
			if self._closed:
				return
			self._closed = True
			self._stop.set()
			thread = self._thread

		if thread is not None:
			thread.join(timeout=timeout)
			if thread.is_alive():
				logger.warning("Audio loop did not exit within %.2fs; releasing handles anyway", timeout)

		try:
			self.reader.close()
		finally:
			self.transport.close()
		logger.debug("Detection session closed: dropped=%d", self._frames_dropped)

	def _run(self) -> None:
		logger.debug("Audio loop started")
		while not self._stop.is_set():
			try:
				frame = self.reader.read(timeout_seconds=self.poll_interval)
			except Exception:
				logger.exception("Audio reader raised; retrying after %.2fs", self.poll_interval)
				self._stop.wait(self.poll_interval)
				continue
			if frame is None or self._stop.is_set():
				continue
			if self._paused.is_set() or frame.timestamp_ns < self._resumed_ns:
				self._frames_dropped += 1
				continue
			try:
				self.transport.send(frame)
			except Exception:
				logger.exception("Transport raised while sending frame seq=%d", frame.sequence)
		logger.debug("Audio loop exited")
