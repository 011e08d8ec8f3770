from fastapi import APIRouter, Depends, HTTPException, status

from wakeword_service.api.response_models import (
    CommandResponse,
    DetectorsResponse,
    StartRequest,
    StatusResponse,
)
from wakeword_service.core.di import get_dispatcher
from wakeword_service.domain.commands import (
    GetStatusCommand,
    GetSupportedDetectorsCommand,
    IsListeningCommand,
    IsRunningCommand,
    PauseCommand,
    ResumeCommand,
    StartCommand,
    StopCommand,
)
from wakeword_service.domain.errors import (
    AlreadyRunning,
    InvalidCommand,
    InvalidConfiguration,
    NoActiveSession,
    NotRunning,
    UnknownCommand,
    UnreachableConfiguration,
    UnsupportedDetector,
)
from wakeword_service.services.dispatch import CommandDispatcher, CommandResult

router = APIRouter(prefix="/wake_word", tags=["wake_word"])

_HTTP_STATUS = {
    UnsupportedDetector.code: status.HTTP_400_BAD_REQUEST,
    InvalidConfiguration.code: status.HTTP_400_BAD_REQUEST,
    UnknownCommand.code: status.HTTP_400_BAD_REQUEST,
    InvalidCommand.code: status.HTTP_400_BAD_REQUEST,
    UnreachableConfiguration.code: status.HTTP_422_UNPROCESSABLE_ENTITY,
    AlreadyRunning.code: status.HTTP_409_CONFLICT,
    NoActiveSession.code: status.HTTP_409_CONFLICT,
    NotRunning.code: status.HTTP_409_CONFLICT,
}


def _unwrap(result: CommandResult) -> object:
    if result.ok:
        return result.value
    code = result.error or "InternalError"
    raise HTTPException(
        status_code=_HTTP_STATUS.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"code": code, "message": result.message or code},
    )


@router.post("/start", response_model=CommandResponse)
def start(
    payload: StartRequest,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> CommandResponse:
    """Start forwarding microphone audio to the selected detector.

    Raises:
        HTTPException 400: Unsupported detector or invalid parameters.
        HTTPException 409: A session is already active.
        HTTPException 422: The detector endpoint cannot be resolved.
    """
    command = StartCommand(detector=payload.detector, params=payload.params)
    value = _unwrap(dispatcher.dispatch(command))
    return CommandResponse(method="start", value=bool(value))


@router.post("/stop", response_model=CommandResponse)
def stop(dispatcher: CommandDispatcher = Depends(get_dispatcher)) -> CommandResponse:
    """Stop the session. Succeeds when nothing is running."""
    value = _unwrap(dispatcher.dispatch(StopCommand()))
    return CommandResponse(method="stop", value=bool(value))


@router.post("/pause", response_model=CommandResponse)
def pause(dispatcher: CommandDispatcher = Depends(get_dispatcher)) -> CommandResponse:
    value = _unwrap(dispatcher.dispatch(PauseCommand()))
    return CommandResponse(method="pause", value=bool(value))


@router.post("/resume", response_model=CommandResponse)
def resume(dispatcher: CommandDispatcher = Depends(get_dispatcher)) -> CommandResponse:
    value = _unwrap(dispatcher.dispatch(ResumeCommand()))
    return CommandResponse(method="resume", value=bool(value))


@router.get("/is_running", response_model=CommandResponse)
def is_running(dispatcher: CommandDispatcher = Depends(get_dispatcher)) -> CommandResponse:
    value = _unwrap(dispatcher.dispatch(IsRunningCommand()))
    return CommandResponse(method="isRunning", value=bool(value))


@router.get("/is_listening", response_model=CommandResponse)
def is_listening(dispatcher: CommandDispatcher = Depends(get_dispatcher)) -> CommandResponse:
    value = _unwrap(dispatcher.dispatch(IsListeningCommand()))
    return CommandResponse(method="isListening", value=bool(value))


@router.get("/detectors", response_model=DetectorsResponse)
def detectors(dispatcher: CommandDispatcher = Depends(get_dispatcher)) -> DetectorsResponse:
    value = _unwrap(dispatcher.dispatch(GetSupportedDetectorsCommand()))
    return DetectorsResponse(detectors=list(value))  # type: ignore[call-overload]


@router.get("/status", response_model=StatusResponse)
def get_status(dispatcher: CommandDispatcher = Depends(get_dispatcher)) -> StatusResponse:
    """Current state plus transport counters of the active session."""
    value = _unwrap(dispatcher.dispatch(GetStatusCommand()))
    return StatusResponse.model_validate(value)
