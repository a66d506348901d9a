# tests/fixtures/mock_orchestrator.py
"""
Mock orchestrator-side collaborators.

RecordingReporter collects outbound messages for MissionController tests;
MockOrchestratorLink stands in for OrchestratorLink in AppController tests;
FakeSession/FakeWebSocket replace aiohttp for OrchestratorLink tests.
"""

import asyncio
from types import SimpleNamespace
from typing import Any, List, Optional, Type

import aiohttp


class RecordingReporter:
    """Async callable collecting every outbound message."""

    def __init__(self, result: bool = True):
        self.messages: List[Any] = []
        self.result = result

    async def __call__(self, message) -> bool:
        self.messages.append(message)
        return self.result

    def of_type(self, message_class: Type) -> List[Any]:
        return [m for m in self.messages if isinstance(m, message_class)]


class MockOrchestratorLink:

    def __init__(self, handler=None, on_connect=None):
        self.handler = handler
        self.on_connect = on_connect
        self.sent: List[Any] = []
        self.running = False
        self.stopped = False
        self._stop = asyncio.Event()

    async def send(self, message) -> bool:
        self.sent.append(message)
        return True

    async def run(self) -> None:
        self.running = True
        await self._stop.wait()

    async def stop(self) -> None:
        self.stopped = True
        self._stop.set()


# ============================================================================
# aiohttp stand-ins
# ============================================================================

def text_message(data: str) -> SimpleNamespace:
    return SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=data)


class FakeWebSocket:
    """Yields the given frames, then ends as if the server closed the socket."""

    def __init__(self, frames: Optional[List[Any]] = None):
        self._frames = list(frames or [])
        self.closed = False
        self.sent: List[str] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True
        return False

    def __aiter__(self):
        return self

    async def __anext__(self):
        await asyncio.sleep(0)
        if not self._frames:
            raise StopAsyncIteration
        return self._frames.pop(0)

    async def send_str(self, data: str) -> None:
        self.sent.append(data)

    async def close(self) -> None:
        self.closed = True

    def exception(self):
        return None


class FakeSession:
    """
    Minimal aiohttp.ClientSession replacement.

    ``outcomes`` are consumed by successive ws_connect() calls: a FakeWebSocket
    is returned, an exception is raised. When exhausted, empty sockets are returned.
    """

    def __init__(self, outcomes: Optional[List[Any]] = None):
        self.outcomes = list(outcomes or [])
        self.connect_calls: List[tuple] = []
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True
        return False

    def ws_connect(self, url: str, heartbeat=None):
        self.connect_calls.append((url, heartbeat))
        outcome = self.outcomes.pop(0) if self.outcomes else FakeWebSocket()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome
