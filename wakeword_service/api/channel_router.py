import asyncio
import json
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from wakeword_service.api.response_models import (
    StatusResponse,
    WsAttachedEvent,
    WsErrorEvent,
    WsResultEvent,
)
from wakeword_service.core.di import get_binder, get_dispatcher
from wakeword_service.core.logger import get_logger
from wakeword_service.domain.errors import InvalidCommand
from wakeword_service.services.binding import ServiceBinder
from wakeword_service.services.dispatch import CommandDispatcher, CommandResult

logger = get_logger("api.channel_router")

router = APIRouter(prefix="/wake_word", tags=["wake_word"])


def _utcnow() -> datetime:
    return datetime.now(UTC)


@router.websocket("/ws")
async def control_channel(
    websocket: WebSocket,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
    binder: ServiceBinder = Depends(get_binder),
) -> None:
    """Asynchronous command channel to the wake-word service.

    Connection lifecycle:
    1. Client connects to /wake_word/ws
    2. Server attaches and sends an 'attached' event with the current status
    3. Client sends requests; each gets exactly one 'result' or 'error' reply,
       in the order the requests were received
    4. Client disconnects; the background session keeps running

    Incoming messages:
        {"id": 1, "method": "start", "detector": "network", "params": {"address": "...", "port": 12202}}
        {"id": 2, "method": "pause"} / "resume" / "stop"
        {"id": 3, "method": "isRunning"} / "isListening" / "getSupportedDetectors" / "getStatus"

    Outgoing events:
        {"type": "attached", "status": {...}, "timestamp": "..."}
        {"type": "result", "id": 1, "method": "start", "value": true}
        {"type": "error", "id": 1, "method": "start", "code": "UnsupportedDetector", "message": "..."}
    """
    await websocket.accept()
    binding = binder.bind()

    try:
        attached = WsAttachedEvent(
            status=StatusResponse.from_status(binding.get_service().status()),
            timestamp=_utcnow(),
        )
        await websocket.send_json(attached.model_dump(mode="json"))

        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            text = message.get("text")
            if text is None:
                result = CommandResult.failure(None, None, InvalidCommand.code, "Binary frames are not supported")
                await websocket.send_json(_to_event(result))
                continue
            try:
                data = json.loads(text)
            except json.JSONDecodeError as e:
                result = CommandResult.failure(None, None, InvalidCommand.code, f"Malformed JSON: {e.msg}")
            else:
                result = await asyncio.to_thread(dispatcher.dispatch_raw, data)
            await websocket.send_json(_to_event(result))

    except WebSocketDisconnect:
        logger.info("Control channel detached; service state left as %s", dispatcher.controller.state.value)
    finally:
        binder.unbind(binding)


def _to_event(result: CommandResult) -> dict:
    if result.ok:
        return WsResultEvent(id=result.id, method=result.method, value=result.value).model_dump(mode="json")
    return WsErrorEvent(
        id=result.id,
        method=result.method,
        code=result.error or "InternalError",
        message=result.message or "",
    ).model_dump(mode="json")
