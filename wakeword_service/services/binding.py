from dataclasses import dataclass, field
from threading import Lock

from wakeword_service.core.logger import get_logger
from wakeword_service.domain.errors import NotBound
from wakeword_service.services.controller import ServiceController

logger = get_logger("services.binding")


@dataclass(slots=True, eq=False)
class LocalBinding:
    """Direct handle on a controller for callers sharing its process.

    Valid between bind() and unbind(); detaching never touches the
    controller's own state.
    """

    _controller: ServiceController | None

    @property
    def bound(self) -> bool:
        return self._controller is not None

    def get_service(self) -> ServiceController:
        if self._controller is None:
            raise NotBound("Binding has been released")
        return self._controller

    def is_paused(self) -> bool:
        return self.get_service().is_paused()

    def is_running(self) -> bool:
        return self.get_service().is_running()

    def is_listening(self) -> bool:
        return self.get_service().is_listening()

    def pause(self) -> bool:
        return self.get_service().pause()

    def resume(self) -> bool:
        return self.get_service().resume()

    def _release(self) -> None:
        self._controller = None


@dataclass(slots=True)
class ServiceBinder:
    """Attach/detach protocol for in-process handles on the controller."""

    controller: ServiceController
    _bindings: list[LocalBinding] = field(default_factory=list, init=False)
    _lock: Lock = field(default_factory=Lock, init=False)

    @property
    def bound_count(self) -> int:
        return len(self._bindings)

    def bind(self) -> LocalBinding:
        binding = LocalBinding(self.controller)
        with self._lock:
            self._bindings.append(binding)
        logger.debug(
            "Binding attached: state=%s bound=%d",
            self.controller.state.value,
            len(self._bindings),
        )
        return binding

    def unbind(self, binding: LocalBinding) -> None:
        with self._lock:
            if binding in self._bindings:
                self._bindings.remove(binding)
        binding._release()
        logger.debug("Binding detached: bound=%d", len(self._bindings))
