from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from wakeword_service.domain.commands import CommandId
from wakeword_service.domain.models import ServiceStatus


class StartRequest(BaseModel):
	model_config = ConfigDict(extra="forbid")

	detector: str | None = Field(default=None, description="Detector kind, e.g. 'network'")
	params: dict[str, Any] = Field(default_factory=dict, description="Kind-specific parameters")


class CommandResponse(BaseModel):
	model_config = ConfigDict(extra="forbid")

	method: str
	value: bool


class DetectorsResponse(BaseModel):
	model_config = ConfigDict(extra="forbid")

	detectors: list[str]


class StatusResponse(BaseModel):
	model_config = ConfigDict(extra="forbid")

	state: str
	detector: str | None = None
	endpoint: str | None = None
	paused: bool = False
	frames_sent: int = 0
	frames_dropped: int = 0
	send_errors: int = 0
	consecutive_send_errors: int = 0
	degraded: bool = False
	started_at: datetime | None = None

	@classmethod
	def from_status(cls, status: ServiceStatus) -> "StatusResponse":
		return cls(
			state=status.state.value,
			detector=status.detector,
			endpoint=status.endpoint,
			paused=status.paused,
			frames_sent=status.frames_sent,
			frames_dropped=status.frames_dropped,
			send_errors=status.send_errors,
			consecutive_send_errors=status.consecutive_send_errors,
			degraded=status.degraded,
			started_at=status.started_at,
		)


# WebSocket message models for the control channel

class WsAttachedEvent(BaseModel):
	"""Sent once on connect, carrying the controller's current status."""
	model_config = ConfigDict(extra="forbid")

	type: Literal["attached"] = "attached"
	status: StatusResponse
	timestamp: datetime


class WsResultEvent(BaseModel):
	"""Successful completion of one command."""
	model_config = ConfigDict(extra="forbid")

	type: Literal["result"] = "result"
	id: CommandId = None
	method: str | None = None
	value: Any = None


class WsErrorEvent(BaseModel):
	"""Failed completion of one command, with its named error."""
	model_config = ConfigDict(extra="forbid")

	type: Literal["error"] = "error"
	id: CommandId = None
	method: str | None = None
	code: str
	message: str
