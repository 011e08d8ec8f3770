from dataclasses import dataclass
from typing import Any, Mapping, assert_never

from pydantic import TypeAdapter, ValidationError

from wakeword_service.core.logger import get_logger
from wakeword_service.domain.commands import (
    KNOWN_METHODS,
    Command,
    CommandId,
    GetStatusCommand,
    GetSupportedDetectorsCommand,
    IsListeningCommand,
    IsRunningCommand,
    PauseCommand,
    ResumeCommand,
    StartCommand,
    StopCommand,
)
from wakeword_service.domain.errors import InvalidCommand, ServiceError, UnknownCommand
from wakeword_service.domain.models import ServiceStatus
from wakeword_service.services.controller import ServiceController

logger = get_logger("services.dispatch")

INTERNAL_ERROR = "InternalError"

_command_adapter: TypeAdapter[Command] = TypeAdapter(Command)


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Exactly one completion per command: a value or a named error."""

    id: CommandId
    method: str | None
    ok: bool
    value: Any = None
    error: str | None = None
    message: str | None = None

    @classmethod
    def success(cls, id: CommandId, method: str | None, value: Any) -> "CommandResult":
        return cls(id=id, method=method, ok=True, value=value)

    @classmethod
    def failure(cls, id: CommandId, method: str | None, error: str, message: str) -> "CommandResult":
        return cls(id=id, method=method, ok=False, error=error, message=message)


def decode_command(raw: Any) -> Command:
    """Decode a raw request mapping into a command variant.

    Raises:
        UnknownCommand: If ``method`` names no known command.
        InvalidCommand: If the envelope or the command's fields are malformed.
    """
    if not isinstance(raw, Mapping):
        raise InvalidCommand("Command must be a JSON object")
    method = raw.get("method")
    if not isinstance(method, str) or not method:
        raise InvalidCommand("Command is missing 'method'")
    if method not in KNOWN_METHODS:
        raise UnknownCommand(f"Unknown command '{method}'")
    try:
        return _command_adapter.validate_python(dict(raw))
    except ValidationError as exc:
        details = "; ".join(f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors())
        raise InvalidCommand(f"Invalid '{method}' command: {details}") from exc


def status_payload(status: ServiceStatus) -> dict[str, Any]:
    return {
        "state": status.state.value,
        "detector": status.detector,
        "endpoint": status.endpoint,
        "paused": status.paused,
        "frames_sent": status.frames_sent,
        "frames_dropped": status.frames_dropped,
        "send_errors": status.send_errors,
        "consecutive_send_errors": status.consecutive_send_errors,
        "degraded": status.degraded,
        "started_at": status.started_at.isoformat() if status.started_at else None,
    }


class CommandDispatcher:
    """Routes decoded commands to the controller and reports one completion each."""

    def __init__(self, controller: ServiceController) -> None:
        self.controller = controller

    def dispatch_raw(self, raw: Any) -> CommandResult:
        request_id = raw.get("id") if isinstance(raw, Mapping) else None
        method = raw.get("method") if isinstance(raw, Mapping) else None
        if not isinstance(request_id, (int, str)):
            request_id = None
        try:
            command = decode_command(raw)
        except ServiceError as exc:
            logger.info("Rejected request id=%s method=%s: %s", request_id, method, exc.code)
            return CommandResult.failure(request_id, method if isinstance(method, str) else None, exc.code, exc.message)
        except Exception as exc:
            logger.exception("Decoding request id=%s method=%s raised unexpectedly", request_id, method)
            return CommandResult.failure(request_id, method if isinstance(method, str) else None, INTERNAL_ERROR, str(exc))
        return self.dispatch(command)

    def dispatch(self, command: Command) -> CommandResult:
        logger.info("Command id=%s method=%s", command.id, command.method)
        try:
            value = self._execute(command)
        except ServiceError as exc:
            logger.info("Command %s failed: %s (%s)", command.method, exc.code, exc.message)
            return CommandResult.failure(command.id, command.method, exc.code, exc.message)
        except Exception as exc:
            logger.exception("Command %s raised unexpectedly", command.method)
            return CommandResult.failure(command.id, command.method, INTERNAL_ERROR, str(exc))
        return CommandResult.success(command.id, command.method, value)

    def _execute(self, command: Command) -> Any:
        controller = self.controller
        match command:
            case StartCommand(detector=detector, params=params):
                return controller.start(detector, params)
            case StopCommand():
                return controller.stop()
            case PauseCommand():
                return controller.pause()
            case ResumeCommand():
                return controller.resume()
            case IsRunningCommand():
                return controller.is_running()
            case IsListeningCommand():
                return controller.is_listening()
            case GetSupportedDetectorsCommand():
                return controller.supported_detectors()
            case GetStatusCommand():
                return status_payload(controller.status())
            case _:
                assert_never(command)
