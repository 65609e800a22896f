from typing import Dict, Any, Tuple
import asyncio
from datetime import datetime

from mentor.domain.models.session_state import SessionState
from .base import BaselineStore


class InMemoryBaselineStore(BaselineStore):
    """Process-local baseline store, for development and tests"""

    def __init__(self):
        self.entries: Dict[str, Tuple[str, str, datetime]] = {}
        self._lock = asyncio.Lock()

    async def get(self, session_id: str) -> SessionState:
        """Get stored state for a session"""

        async with self._lock:
            if session_id not in self.entries:
                return SessionState(session_id=session_id)

            baseline_text, last_result, updated_at = self.entries[session_id]
            return SessionState(
                session_id=session_id,
                baseline_text=baseline_text,
                last_result=last_result,
                updated_at=updated_at
            )

    async def put(self, session_id: str, baseline_text: str, last_result: str) -> None:
        """Replace stored state for a session"""

        async with self._lock:
            self.entries[session_id] = (baseline_text, last_result, datetime.utcnow())

    async def delete(self, session_id: str) -> bool:
        """Delete a session's stored state"""

        async with self._lock:
            if session_id in self.entries:
                del self.entries[session_id]
                return True
            return False

    async def get_stats(self) -> Dict[str, Any]:
        """Get store statistics"""

        async with self._lock:
            return {
                "backend": "memory",
                "sessions": len(self.entries)
            }
