"""Tagged command variants accepted over the control channel."""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

CommandId = int | str | None

_ENVELOPE_KEYS = frozenset({"id", "method", "detector", "params"})


class _Command(BaseModel):
	model_config = ConfigDict(extra="forbid", frozen=True)

	id: CommandId = None


class StartCommand(_Command):
	"""Start a session. Legacy clients send flat `wakeWordDetector`/`ip`/`port`."""

	method: Literal["start"] = "start"
	detector: Any = None
	params: dict[str, Any] = Field(default_factory=dict)

	@model_validator(mode="before")
	@classmethod
	def _fold_flat_arguments(cls, data: Any) -> Any:
		if not isinstance(data, dict):
			return data
		folded = {k: v for k, v in data.items() if k in _ENVELOPE_KEYS}
		if "detector" not in folded and "wakeWordDetector" in data:
			folded["detector"] = data["wakeWordDetector"]
		extra = {k: v for k, v in data.items() if k not in _ENVELOPE_KEYS and k != "wakeWordDetector"}
		params = folded.get("params")
		if extra and (params is None or isinstance(params, dict)):
			folded["params"] = {**(params or {}), **extra}
		# a non-object params is left for field validation to reject
		return folded


class StopCommand(_Command):
	method: Literal["stop"] = "stop"


class PauseCommand(_Command):
	method: Literal["pause"] = "pause"


class ResumeCommand(_Command):
	method: Literal["resume"] = "resume"


class IsRunningCommand(_Command):
	method: Literal["isRunning"] = "isRunning"


class IsListeningCommand(_Command):
	method: Literal["isListening"] = "isListening"


class GetSupportedDetectorsCommand(_Command):
	method: Literal["getSupportedDetectors", "getWakeWordDetector"] = "getSupportedDetectors"


class GetStatusCommand(_Command):
	method: Literal["getStatus"] = "getStatus"


Command = Annotated[
	Union[
		StartCommand,
		StopCommand,
		PauseCommand,
		ResumeCommand,
		IsRunningCommand,
		IsListeningCommand,
		GetSupportedDetectorsCommand,
		GetStatusCommand,
	],
	Field(discriminator="method"),
]

KNOWN_METHODS = frozenset(
	{
		"start",
		"stop",
		"pause",
		"resume",
		"isRunning",
		"isListening",
		"getSupportedDetectors",
		"getWakeWordDetector",
		"getStatus",
	}
)
