"""
WebSocket transport for live AskQL runs.

Protocol (JSON messages, each with a "type"):
- server -> client  session-started    {"session_id"}
- client -> server  {"question", "include_debug_info"?}
- server -> client  workflow-step      one ProgressEvent per stage transition
- server -> client  workflow-complete  {"status", "timestamp", "result": AskResponse}
- server -> client  workflow-error     {"error", "timestamp", "result"?: AskResponse}

The connection's session id is the key progress events are addressed to.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from ..domain.events import ProgressEvent
from ..domain.requests import WebSocketAskMessage
from ..services.askql_service import AskQLService
from ..utils.logging import get_module_logger
from ..utils.tracing import generate_trace_id, set_trace_id

logger = get_module_logger()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConnectionManager:
    """Open WebSocket connections keyed by session id."""

    def __init__(self):
        self._connections: Dict[str, WebSocket] = {}

    @property
    def active_sessions(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        session_id = str(uuid.uuid4())
        self._connections[session_id] = websocket
        logger.info("WebSocket client connected", session_id=session_id)
        return session_id

    def disconnect(self, session_id: str) -> None:
        if self._connections.pop(session_id, None) is not None:
            logger.info("WebSocket client disconnected", session_id=session_id)

    def get(self, session_id: str) -> Optional[WebSocket]:
        return self._connections.get(session_id)

    async def send(self, session_id: str, message: Dict[str, Any]) -> bool:
        """
        Send a JSON message to a session.

        Returns:
            False when the session has no open connection
        """
        websocket = self._connections.get(session_id)
        if websocket is None:
            return False
        await websocket.send_json(message)
        return True


class WebSocketProgressSink:
    """Progress sink that forwards events to the session's WebSocket."""

    def __init__(self, manager: ConnectionManager):
        self.manager = manager

    async def notify(self, session_id: str, event: ProgressEvent) -> None:
        delivered = await self.manager.send(session_id, {"type": "workflow-step", **event.to_message()})
        if delivered:
            logger.debug("Emitted workflow step", stage=event.stage, phase=event.phase.value)


async def serve_session(websocket: WebSocket, manager: ConnectionManager, askql_service: AskQLService) -> None:
    """Handle one WebSocket connection until the client disconnects."""
    session_id = await manager.connect(websocket)

    try:
        await manager.send(session_id, {"type": "session-started", "session_id": session_id})

        while True:
            payload = await websocket.receive_json()
            set_trace_id(generate_trace_id())

            try:
                message = WebSocketAskMessage.model_validate(payload)
            except PydanticValidationError as e:
                await manager.send(
                    session_id,
                    {
                        "type": "workflow-error",
                        "error": f"Invalid message: {e.error_count()} invalid field(s)",
                        "timestamp": _timestamp(),
                    },
                )
                continue

            logger.info("Starting query for session", session_id=session_id, question_length=len(message.question))

            response = await askql_service.ask(
                message.question,
                session_id=session_id,
                include_debug_info=message.include_debug_info,
            )
            # Step events are delivered before the final message
            await askql_service.workflow.drain(session_id)

            result = response.model_dump(mode="json", exclude_none=True)
            if response.success:
                await manager.send(
                    session_id,
                    {"type": "workflow-complete", "status": "completed", "timestamp": _timestamp(), "result": result},
                )
            else:
                await manager.send(
                    session_id,
                    {"type": "workflow-error", "error": response.error, "timestamp": _timestamp(), "result": result},
                )

    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(session_id)
