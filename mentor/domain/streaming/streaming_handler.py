import structlog

from mentor.application.websocket.connection_manager import ConnectionManager
from mentor.application.websocket.schema.events import ResultEvent, ErrorEvent
from mentor.domain.models.session_state import Analyzed, Failed, Skipped, SnapshotOutcome

logger = structlog.get_logger(__name__)


class StreamingHandler:
    """Streams snapshot outcomes to every connection attached to a session"""

    def __init__(self, connection_manager: ConnectionManager):
        self.connection_manager = connection_manager

    async def handle_outcome(self, session_id: str, outcome: SnapshotOutcome):
        """Outcome listener registered on each session actor"""

        if isinstance(outcome, Analyzed):
            await self.send_result(session_id, outcome.result, outcome.magnitude)
        elif isinstance(outcome, Failed):
            await self.send_error(session_id, outcome.error, outcome.stage.value)
        elif isinstance(outcome, Skipped):
            # Previous advisory stays the latest one the client knows about
            logger.debug(
                "Snapshot skipped",
                session_id=session_id,
                magnitude=outcome.magnitude,
                reason=outcome.reason.value
            )

    async def send_result(self, session_id: str, result: str, magnitude: int):
        """Broadcast a fresh advisory"""

        await self.connection_manager.broadcast(
            session_id,
            ResultEvent(result=result, magnitude=magnitude, session_id=session_id)
        )

    async def send_error(self, session_id: str, message: str, error_code: str):
        """Broadcast a failed analysis"""

        await self.connection_manager.broadcast(
            session_id,
            ErrorEvent(message=message, error_code=error_code, session_id=session_id)
        )
