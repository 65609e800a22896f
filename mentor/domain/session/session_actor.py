"""
Session actor: the single owner of one session's mutable state.

Snapshots go through an asyncio.Queue mailbox drained by one worker task, so
at most one snapshot per session is processed at any time. Each snapshot is
compared against the last analyzed baseline; only when the change exceeds the
gate threshold is the inference gateway called. A successful analysis is
written to the baseline store first and only then becomes the in-memory
state, after which the outcome is released to the caller and to listeners.
Failures never touch the state.
"""

from typing import Awaitable, Callable, List, Optional, Tuple
import asyncio
import time

import structlog

from mentor.domain.errors import BaselineStoreError
from mentor.domain.inference.gateway import InferenceGateway
from mentor.domain.models.session_state import (
    Analyzed, Failed, FailureStage, SessionState, SkipReason, Skipped, SnapshotOutcome
)
from mentor.domain.session.gating import GatePolicy
from mentor.domain.session.store.base import BaselineStore
from mentor.infrastructure.observability.logging import metrics, session_logger

logger = structlog.get_logger(__name__)

OutcomeListener = Callable[[str, SnapshotOutcome], Awaitable[None]]


class SessionActor:
    """Serializes snapshots for one session and applies the gating policy"""

    def __init__(
        self,
        session_id: str,
        store: BaselineStore,
        gateway: InferenceGateway,
        gate_policy: Optional[GatePolicy] = None,
        gateway_timeout: float = 30.0,
        coalesce: bool = True
    ):
        self.session_id = session_id
        self.store = store
        self.gateway = gateway
        self.gate_policy = gate_policy or GatePolicy()
        self.gateway_timeout = gateway_timeout
        self.coalesce = coalesce

        self.state = SessionState(session_id=session_id)
        self._mailbox: "asyncio.Queue[Tuple[str, asyncio.Future]]" = asyncio.Queue()
        self._listeners: List[OutcomeListener] = []
        self._worker: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def start(self):
        """Rehydrate state from the store and start the worker.

        Raises:
            BaselineStoreError: If stored state cannot be loaded
        """
        if self.is_running:
            return

        self.state = await self.store.get(self.session_id)
        self._worker = asyncio.create_task(self._run(), name=f"session-actor:{self.session_id}")

        logger.info(
            "Session actor started",
            session_id=self.session_id,
            restored=not self.state.is_empty
        )

    async def stop(self):
        """Stop the worker; the in-flight snapshot and any still queued resolve as failed"""
        if self._worker is None:
            return

        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None

        while not self._mailbox.empty():
            _, future = self._mailbox.get_nowait()
            self._resolve(future, Failed(error="Session actor stopped", stage=FailureStage.INTERNAL))

        logger.info("Session actor stopped", session_id=self.session_id)

    def add_listener(self, listener: OutcomeListener):
        """Register a coroutine called with every outcome"""
        self._listeners.append(listener)

    def submit(self, snapshot: str) -> asyncio.Future:
        """Queue a snapshot and return a future for its outcome"""
        if not self.is_running:
            raise RuntimeError(f"Session actor {self.session_id} is not running")

        future = asyncio.get_running_loop().create_future()
        self._mailbox.put_nowait((snapshot, future))
        metrics.increment_counter("snapshots_received")
        return future

    async def on_snapshot(self, snapshot: str) -> SnapshotOutcome:
        """Process a snapshot and wait for its outcome.

        Cancelling the caller does not cancel the analysis: the snapshot stays
        queued and its result is still persisted and broadcast.
        """
        return await asyncio.shield(self.submit(snapshot))

    async def on_attach(self) -> SessionState:
        """Current baseline and result, for replay to a new observer"""
        return self.state

    async def _run(self):
        structlog.contextvars.bind_contextvars(session_id=self.session_id)

        while True:
            snapshot, future = await self._mailbox.get()
            try:
                if self.coalesce:
                    # Only the newest document state matters
                    while not self._mailbox.empty():
                        superseded = self.gate_policy.evaluate(self.state.baseline_text, snapshot)
                        self._resolve(future, Skipped(
                            magnitude=superseded.magnitude,
                            reason=SkipReason.SUPERSEDED
                        ))
                        metrics.increment_counter("snapshots_superseded")
                        snapshot, future = self._mailbox.get_nowait()

                try:
                    outcome = await self._process(snapshot)
                except Exception as e:
                    logger.exception("Unexpected error processing snapshot", session_id=self.session_id)
                    outcome = Failed(error=str(e) or e.__class__.__name__, stage=FailureStage.INTERNAL)

                self._resolve(future, outcome)
                await self._notify(outcome)
            finally:
                # Reached with an unresolved future only when stop() cancels us mid-snapshot
                self._resolve(future, Failed(error="Session actor stopped", stage=FailureStage.INTERNAL))

    async def _process(self, snapshot: str) -> SnapshotOutcome:
        decision = self.gate_policy.evaluate(self.state.baseline_text, snapshot)

        session_logger.log_gate_decision(
            session_id=self.session_id,
            length=len(snapshot),
            magnitude=decision.magnitude,
            threshold=decision.threshold,
            should_analyze=decision.should_analyze
        )

        if not decision.should_analyze:
            metrics.increment_counter("snapshots_skipped")
            return Skipped(magnitude=decision.magnitude)

        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(self.gateway.analyze(snapshot), timeout=self.gateway_timeout)
        except asyncio.TimeoutError:
            return self._gateway_failed(
                decision.magnitude,
                f"Inference gateway timed out after {self.gateway_timeout}s",
                started
            )
        except Exception as e:
            return self._gateway_failed(decision.magnitude, str(e) or e.__class__.__name__, started)

        duration_ms = (time.perf_counter() - started) * 1000
        metrics.record_latency("gateway_call", duration_ms)
        session_logger.log_analysis(
            session_id=self.session_id,
            success=True,
            duration_ms=duration_ms,
            result_chars=len(result)
        )

        # Write-ahead: memory follows only a confirmed durable write
        try:
            await self.store.put(self.session_id, snapshot, result)
        except BaselineStoreError as e:
            session_logger.log_store_write(self.session_id, len(snapshot), success=False, error=str(e))
            metrics.increment_counter("analyses_failed", tags={"stage": FailureStage.STORE.value})
            return Failed(magnitude=decision.magnitude, error=str(e), stage=FailureStage.STORE)

        session_logger.log_store_write(self.session_id, len(snapshot))
        self.state = self.state.advance(snapshot, result)
        metrics.increment_counter("analyses_succeeded")

        return Analyzed(magnitude=decision.magnitude, result=result)

    def _gateway_failed(self, magnitude: int, error: str, started: float) -> Failed:
        duration_ms = (time.perf_counter() - started) * 1000
        session_logger.log_analysis(
            session_id=self.session_id,
            success=False,
            duration_ms=duration_ms,
            error=error
        )
        metrics.increment_counter("analyses_failed", tags={"stage": FailureStage.GATEWAY.value})
        return Failed(magnitude=magnitude, error=error, stage=FailureStage.GATEWAY)

    def _resolve(self, future: asyncio.Future, outcome: SnapshotOutcome):
        if not future.done():
            future.set_result(outcome)

    async def _notify(self, outcome: SnapshotOutcome):
        for listener in list(self._listeners):
            try:
                await listener(self.session_id, outcome)
            except Exception as e:
                logger.error(
                    "Error in outcome listener",
                    session_id=self.session_id,
                    error=str(e)
                )
