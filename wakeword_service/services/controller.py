from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Mapping

from wakeword_service.core.logger import get_logger
from wakeword_service.domain.errors import AlreadyRunning, NoActiveSession, ServiceError
from wakeword_service.domain.models import DetectorConfig, ServiceState, ServiceStatus
from wakeword_service.ports.audiostream import AudioStreamPort, AudioStreamReader
from wakeword_service.ports.transport import DetectorTransport
from wakeword_service.services.registry import DetectorRegistry
from wakeword_service.services.session import DetectionSession

logger = get_logger("services.controller")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ServiceController:
    """Lifecycle state machine of the background wake-word service.

    State machine:
    - STOPPED: no session; only start() changes state
    - STARTING: config validated, audio and transport being bound
    - RUNNING: session forwarding frames
    - PAUSED: session alive, frames dropped
    - STOPPING: session being torn down

    Every state-mutating command runs under one lock, so no two commands
    interleave. Queries read a snapshot without taking the lock.
    """

    stream: AudioStreamPort
    registry: DetectorRegistry
    poll_interval: float = 0.1
    stop_timeout: float = 2.0
    reader_max_frames: int = 64

    _lock: Lock = field(default_factory=Lock, init=False)
    _state: ServiceState = field(default=ServiceState.STOPPED, init=False)
    _session: DetectionSession | None = field(default=None, init=False)
    _config: DetectorConfig | None = field(default=None, init=False)
    _owns_stream: bool = field(default=False, init=False)
    _started_at: datetime | None = field(default=None, init=False)

    @property
    def state(self) -> ServiceState:
        return self._state

    def start(self, detector: Any, arguments: Mapping[str, Any] | None = None) -> bool:
        """Validate the detector selection and begin forwarding audio.

        Raises:
            AlreadyRunning: If a session exists (any state but STOPPED).
            UnsupportedDetector: If ``detector`` is not a registered kind.
            InvalidConfiguration: If ``arguments`` are missing or malformed.
            UnreachableConfiguration: If the transport cannot be bound.
        """
        with self._lock:
            if self._state is not ServiceState.STOPPED:
                raise AlreadyRunning(f"Service is {self._state.value}")

            config = self.registry.build_config(detector, arguments)
            factory = self.registry.transport_for(config)

            logger.info("Starting session: detector=%s", config.kind)
            self._state = ServiceState.STARTING
            reader: AudioStreamReader | None = None
            transport: DetectorTransport | None = None
            try:
                if not self.stream.is_running():
                    self.stream.start()
                    self._owns_stream = True
                reader = self.stream.subscribe(name="wakeword-session", max_frames=self.reader_max_frames)
                transport = factory.bind(config)
                session = DetectionSession(reader=reader, transport=transport, poll_interval=self.poll_interval)
                session.start()
            except ServiceError as exc:
                logger.warning("Session start rejected: %s", exc.message)
                self._rollback_start(reader, transport)
                raise
            except BaseException:
                logger.exception("Session start failed; rolling back")
                self._rollback_start(reader, transport)
                raise

            self._session = session
            self._config = config
            self._started_at = _utcnow()
            self._state = ServiceState.RUNNING
            logger.info("Session running: detector=%s endpoint=%s", config.kind, transport.endpoint)
            return True

    def stop(self) -> bool:
        """Tear down any session. Succeeds as a no-op when already stopped."""
        with self._lock:
            if self._state is ServiceState.STOPPED and self._session is None:
                logger.debug("Stop requested while already stopped")
                return True

            logger.info("Stopping session from state=%s", self._state.value)
            self._state = ServiceState.STOPPING
            session = self._session
            try:
                if session is not None:
                    session.close(timeout=self.stop_timeout)
            finally:
                self._session = None
                self._config = None
                self._started_at = None
                self._release_stream()
                self._state = ServiceState.STOPPED
            logger.info("Session stopped")
            return True

    def pause(self) -> bool:
        with self._lock:
            session = self._require_session()
            session.set_paused(True)
            self._state = ServiceState.PAUSED
            logger.info("Session paused")
            return True

    def resume(self) -> bool:
        with self._lock:
            session = self._require_session()
            session.set_paused(False)
            self._state = ServiceState.RUNNING
            logger.info("Session resumed")
            return True

    def is_running(self) -> bool:
        return self._state in (ServiceState.RUNNING, ServiceState.PAUSED)

    def is_listening(self) -> bool:
        session = self._session
        return self._state is ServiceState.RUNNING and session is not None and not session.is_paused()

    def is_paused(self) -> bool:
        session = self._session
        return session is not None and session.is_paused()

    def supported_detectors(self) -> list[str]:
        return self.registry.supported()

    def status(self) -> ServiceStatus:
        session = self._session
        config = self._config
        state = self._state
        if session is None or config is None:
            return ServiceStatus(state=state)
        transport = session.transport
        return ServiceStatus(
            state=state,
            detector=config.kind,
            endpoint=transport.endpoint,
            paused=session.is_paused(),
            frames_sent=transport.frames_sent,
            frames_dropped=session.frames_dropped,
            send_errors=transport.send_errors,
            consecutive_send_errors=transport.consecutive_errors,
            degraded=transport.degraded,
            started_at=self._started_at,
        )

    def _require_session(self) -> DetectionSession:
        if self._session is None or self._state not in (ServiceState.RUNNING, ServiceState.PAUSED):
            raise NoActiveSession("No wake-word session is active")
        return self._session

    def _rollback_start(self, reader: AudioStreamReader | None, transport: DetectorTransport | None) -> None:
        if transport is not None:
            transport.close()
        if reader is not None:
            reader.close()
        self._release_stream()
        self._state = ServiceState.STOPPED

    def _release_stream(self) -> None:
        if not self._owns_stream:
            return
        self._owns_stream = False
        try:
            self.stream.stop()
        except Exception:
            logger.exception("Failed to stop audio stream")
