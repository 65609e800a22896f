"""
Shared fixtures and doubles for mentor session tests.
"""

import asyncio
from typing import List, Optional

import pytest

from mentor.domain.errors import BaselineStoreError
from mentor.domain.inference.gateway import InferenceGateway
from mentor.domain.session.gating import GatePolicy
from mentor.domain.session.store.memory_store import InMemoryBaselineStore
from mentor.infrastructure.observability.logging import metrics

# Longer than the default threshold of 50 characters
FIRST_DOCUMENT = (
    "function add(a, b) {\n"
    "  var result = a + b;\n"
    "  return result;\n"
    "}\n"
)
SECOND_DOCUMENT = FIRST_DOCUMENT + (
    "\nfunction multiply(a, b) {\n"
    "  var product = a * b;\n"
    "  return product;\n"
    "}\n"
)


class StubGateway(InferenceGateway):
    """Gateway double returning canned advisories, optionally held until released"""

    def __init__(
        self,
        responses: Optional[List[str]] = None,
        error: Optional[Exception] = None,
        release: Optional[asyncio.Event] = None
    ):
        self.responses = list(responses or ["use const"])
        self.error = error
        self.release = release
        self.calls: List[str] = []

    async def analyze(self, text: str) -> str:
        self.calls.append(text)
        if self.release is not None:
            await self.release.wait()
        if self.error is not None:
            raise self.error
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


class FlakyStore(InMemoryBaselineStore):
    """In-memory store whose writes fail while fail_writes is set"""

    def __init__(self):
        super().__init__()
        self.fail_writes = False

    async def put(self, session_id: str, baseline_text: str, last_result: str) -> None:
        if self.fail_writes:
            raise BaselineStoreError("disk full")
        await super().put(session_id, baseline_text, last_result)


class RecordingGatePolicy(GatePolicy):
    """Gate policy that remembers the (baseline, snapshot) pairs it evaluated"""

    def __init__(self, threshold: int = 50):
        super().__init__(threshold)
        self.evaluated = []

    def evaluate(self, baseline: str, snapshot: str):
        self.evaluated.append((baseline, snapshot))
        return super().evaluate(baseline, snapshot)


async def wait_until(predicate, timeout: float = 1.0):
    """Yield to the loop until predicate() holds"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def store():
    return InMemoryBaselineStore()


@pytest.fixture
def flaky_store():
    return FlakyStore()
