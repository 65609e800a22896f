from abc import ABC, abstractmethod

from mentor.domain.models.session_state import SessionState


class BaselineStore(ABC):
    """Durable mirror of each session's analyzed baseline and last result.

    Implementations must write baseline_text and last_result together:
    a reader never observes one without the other.
    """

    @abstractmethod
    async def get(self, session_id: str) -> SessionState:
        """Load stored state; unknown sessions come back with empty fields.

        Raises:
            BaselineStoreError: If the backing storage cannot be read
        """

    @abstractmethod
    async def put(self, session_id: str, baseline_text: str, last_result: str) -> None:
        """Persist both fields for a session.

        Raises:
            BaselineStoreError: If the write was not durably applied
        """

    async def close(self) -> None:
        """Release any resources held by the store"""
