from typing import Dict, Set, Optional, Any
from fastapi import WebSocket
import asyncio
from datetime import datetime
import structlog

from .schema.events import (
    EventCodec, JsonEventCodec, OutboundEvent, ErrorEvent, RestoreEvent
)
from mentor.domain.session.session_actor import SessionActor
from mentor.infrastructure.observability.logging import metrics

logger = structlog.get_logger(__name__)


class ConnectionManager:
    """Attaches WebSocket connections to sessions and fans events out to them"""

    def __init__(self, codec: Optional[EventCodec] = None):
        self.codec = codec or JsonEventCodec()
        self.connections: Dict[str, Set[WebSocket]] = {}
        self.connection_metadata: Dict[WebSocket, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def attach(self, websocket: WebSocket, session_id: str, actor: SessionActor):
        """Accept a connection, register it and replay stored session state.

        The connection's send lock is held until the replay is written, so a
        concurrent broadcast lands after every restore frame.
        """
        await websocket.accept()

        send_lock = asyncio.Lock()
        async with send_lock:
            async with self._lock:
                self.connections.setdefault(session_id, set()).add(websocket)
                self.connection_metadata[websocket] = {
                    "session_id": session_id,
                    "connected_at": datetime.utcnow(),
                    "send_lock": send_lock
                }
                total = len(self.connection_metadata)

            metrics.set_gauge("active_connections", total)
            logger.info("WebSocket attached", session_id=session_id)

            state = await actor.on_attach()
            if not state.is_empty:
                await self._write(
                    websocket,
                    RestoreEvent(
                        baseline_text=state.baseline_text,
                        last_result=state.last_result,
                        session_id=session_id
                    )
                )

    async def detach(self, websocket: WebSocket, close: bool = False):
        """Unregister a connection; in-flight analysis for its session keeps running"""
        async with self._lock:
            metadata = self.connection_metadata.pop(websocket, None)
            if metadata is None:
                return

            session_id = metadata["session_id"]
            sockets = self.connections.get(session_id)
            if sockets is not None:
                sockets.discard(websocket)
                if not sockets:
                    del self.connections[session_id]
            total = len(self.connection_metadata)

        if close:
            try:
                await websocket.close()
            except Exception as e:
                logger.error("Error closing WebSocket", session_id=session_id, error=str(e))

        metrics.set_gauge("active_connections", total)
        logger.info("WebSocket detached", session_id=session_id)

    async def send_event(self, websocket: WebSocket, event: OutboundEvent) -> bool:
        """Send an event to a single connection"""
        metadata = self.connection_metadata.get(websocket)
        if metadata is None:
            logger.warning("Attempted to send to detached connection", event_type=event.type.value)
            return False

        async with metadata["send_lock"]:
            return await self._write(websocket, event)

    async def _write(self, websocket: WebSocket, event: OutboundEvent) -> bool:
        # All frames of one event go out back to back; caller holds the send lock
        try:
            for frame in self.codec.encode(event):
                await websocket.send_text(frame)
            return True

        except Exception as e:
            logger.error("Failed to send event", session_id=event.session_id, error=str(e))
            await self.detach(websocket)
            return False

    async def broadcast(self, session_id: str, event: OutboundEvent):
        """Send an event to every connection attached to a session"""
        sockets = list(self.connections.get(session_id, ()))
        if not sockets:
            logger.debug("No connections to broadcast to", session_id=session_id)
            return

        tasks = [self.send_event(websocket, event) for websocket in sockets]
        await asyncio.gather(*tasks, return_exceptions=True)

    async def send_error(
        self,
        websocket: WebSocket,
        error_message: str,
        error_code: Optional[str] = None,
        session_id: Optional[str] = None
    ):
        """Send an error event to a single connection"""
        error_event = ErrorEvent(
            message=error_message,
            error_code=error_code,
            session_id=session_id
        )
        await self.send_event(websocket, error_event)

    def connection_count(self, session_id: Optional[str] = None) -> int:
        """Number of attached connections, optionally for one session"""
        if session_id is not None:
            return len(self.connections.get(session_id, ()))
        return len(self.connection_metadata)

    def get_active_sessions(self) -> Set[str]:
        """Session ids with at least one attached connection"""
        return set(self.connections.keys())

    async def close_all(self):
        """Detach and close every connection"""
        for websocket in list(self.connection_metadata.keys()):
            await self.detach(websocket, close=True)
