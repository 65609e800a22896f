from typing import Dict, List, Optional
import asyncio

import structlog

from mentor.domain.inference.gateway import InferenceGateway
from mentor.domain.session.gating import GatePolicy
from mentor.domain.session.session_actor import OutcomeListener, SessionActor
from mentor.domain.session.store.base import BaselineStore

logger = structlog.get_logger(__name__)


class SessionRegistry:
    """Creates session actors lazily and keeps one actor per session id"""

    def __init__(
        self,
        store: BaselineStore,
        gateway: InferenceGateway,
        gate_policy: Optional[GatePolicy] = None,
        gateway_timeout: float = 30.0,
        coalesce: bool = True,
        listeners: Optional[List[OutcomeListener]] = None
    ):
        self.store = store
        self.gateway = gateway
        self.gate_policy = gate_policy or GatePolicy()
        self.gateway_timeout = gateway_timeout
        self.coalesce = coalesce
        self.listeners: List[OutcomeListener] = list(listeners or [])
        self.actors: Dict[str, SessionActor] = {}
        self._lock = asyncio.Lock()

    async def get_or_create(self, session_id: str) -> SessionActor:
        """Return the running actor for a session, starting it on first use.

        Raises:
            BaselineStoreError: If a new actor cannot load its stored state
        """

        async with self._lock:
            actor = self.actors.get(session_id)
            if actor is not None and actor.is_running:
                return actor

            actor = SessionActor(
                session_id=session_id,
                store=self.store,
                gateway=self.gateway,
                gate_policy=self.gate_policy,
                gateway_timeout=self.gateway_timeout,
                coalesce=self.coalesce
            )
            for listener in self.listeners:
                actor.add_listener(listener)

            # Not registered unless start succeeds
            await actor.start()
            self.actors[session_id] = actor

        logger.info("Session created", session_id=session_id, active_sessions=len(self.actors))
        return actor

    def get(self, session_id: str) -> Optional[SessionActor]:
        """Get an already running actor"""
        return self.actors.get(session_id)

    def get_active_sessions(self) -> List[str]:
        return list(self.actors.keys())

    async def shutdown(self):
        """Stop every actor"""

        async with self._lock:
            actors = list(self.actors.values())
            self.actors.clear()

        for actor in actors:
            await actor.stop()

        logger.info("Session registry shut down", stopped=len(actors))
