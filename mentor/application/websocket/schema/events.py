from typing import List, Literal, Optional, Union
from pydantic import BaseModel, Field, ValidationError
from datetime import datetime
from enum import Enum


class EventType(str, Enum):
    """WebSocket event types"""
    SNAPSHOT = "snapshot"
    RESULT = "result"
    RESTORE = "restore"
    ERROR = "error"


class BaseEvent(BaseModel):
    """Base event model for all WebSocket messages"""
    type: EventType
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    session_id: Optional[str] = None


class SnapshotMessage(BaseEvent):
    """Full document snapshot sent by the editor; the type tag is mandatory"""
    type: Literal["snapshot"]
    content: str


class ResultEvent(BaseEvent):
    """Fresh advisory for the latest analyzed snapshot"""
    type: Literal[EventType.RESULT] = EventType.RESULT
    result: str
    magnitude: Optional[int] = None


class RestoreEvent(BaseEvent):
    """Stored session state replayed to a newly attached connection"""
    type: Literal[EventType.RESTORE] = EventType.RESTORE
    baseline_text: str
    last_result: str


class ErrorEvent(BaseEvent):
    """Error event"""
    type: Literal[EventType.ERROR] = EventType.ERROR
    message: str
    error_code: Optional[str] = None


OutboundEvent = Union[ResultEvent, RestoreEvent, ErrorEvent]


def parse_snapshot(frame: str) -> str:
    """Extract the document from an inbound text frame.

    Frames that are a valid snapshot envelope yield its content; anything
    else is the raw document itself.
    """
    try:
        return SnapshotMessage.model_validate_json(frame).content
    except ValidationError:
        return frame


class EventCodec:
    """Turns outbound events into WebSocket text frames"""

    name = "base"

    def encode(self, event: OutboundEvent) -> List[str]:
        raise NotImplementedError


class JsonEventCodec(EventCodec):
    """One JSON object per event, tagged by type"""

    name = "json"

    def encode(self, event: OutboundEvent) -> List[str]:
        return [event.model_dump_json()]


class TextEventCodec(EventCodec):
    """Prefix framing understood by the plain browser editor client"""

    name = "text"

    TIP_PREFIX = "AI TIP:"
    RESTORE_PREFIX = "RESTORE_CODE:"
    ERROR_TIP = "Error generating tip."

    def encode(self, event: OutboundEvent) -> List[str]:
        if isinstance(event, ResultEvent):
            return [f"{self.TIP_PREFIX} {event.result}"]

        if isinstance(event, RestoreEvent):
            frames = []
            if event.baseline_text:
                frames.append(f"{self.RESTORE_PREFIX}{event.baseline_text}")
            if event.last_result:
                frames.append(f"{self.TIP_PREFIX}{event.last_result}")
            return frames

        if isinstance(event, ErrorEvent):
            return [f"{self.TIP_PREFIX} {self.ERROR_TIP}"]

        raise TypeError(f"Unsupported event: {type(event).__name__}")


def get_codec(wire_format: str) -> EventCodec:
    """Codec for a configured wire format"""
    if wire_format == "text":
        return TextEventCodec()
    if wire_format == "json":
        return JsonEventCodec()
    raise ValueError(f"Unknown wire format: {wire_format}")
