from typing import Literal, Union
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from enum import Enum


class OutcomeStatus(str, Enum):
    """Result of processing a single snapshot"""
    SKIPPED = "skipped"
    ANALYZED = "analyzed"
    FAILED = "failed"


class SkipReason(str, Enum):
    """Why a snapshot did not reach the inference gateway"""
    BELOW_THRESHOLD = "below_threshold"
    SUPERSEDED = "superseded"


class FailureStage(str, Enum):
    """Where a failed snapshot broke down"""
    GATEWAY = "gateway"
    STORE = "store"
    INTERNAL = "internal"


class SessionState(BaseModel):
    """Analyzed baseline and the advisory produced for it.

    Instances are immutable; the session actor swaps in a new value on every
    accepted update so that baseline_text and last_result never drift apart.
    """
    model_config = ConfigDict(frozen=True)

    session_id: str
    baseline_text: str = ""
    last_result: str = ""
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_empty(self) -> bool:
        return not self.baseline_text and not self.last_result

    def advance(self, baseline_text: str, last_result: str) -> "SessionState":
        """Return the state that follows a successful analysis"""
        return SessionState(
            session_id=self.session_id,
            baseline_text=baseline_text,
            last_result=last_result
        )


class GateDecision(BaseModel):
    """Gate evaluation for one snapshot"""
    model_config = ConfigDict(frozen=True)

    magnitude: int = Field(ge=0)
    threshold: int
    should_analyze: bool


class Skipped(BaseModel):
    """Snapshot was not analyzed; session state is untouched"""
    status: Literal[OutcomeStatus.SKIPPED] = OutcomeStatus.SKIPPED
    magnitude: int = 0
    reason: SkipReason = SkipReason.BELOW_THRESHOLD


class Analyzed(BaseModel):
    """Snapshot was analyzed and became the new baseline"""
    status: Literal[OutcomeStatus.ANALYZED] = OutcomeStatus.ANALYZED
    magnitude: int
    result: str


class Failed(BaseModel):
    """Analysis or persistence failed; session state is untouched"""
    status: Literal[OutcomeStatus.FAILED] = OutcomeStatus.FAILED
    magnitude: int = 0
    error: str
    stage: FailureStage = FailureStage.GATEWAY


SnapshotOutcome = Union[Skipped, Analyzed, Failed]
