"""Shared fakes for pyprocmon tests."""

import threading
import time
from collections import deque

import pytest

from pyprocmon.errors import ConnectError, SubscribeError


class ScriptedStream:
    """
    EventStream that replays a fixed script.

    Items are raw records or exceptions to raise. Once the script is used up
    each call waits briefly and reports a timeout.
    """

    def __init__(self, items=()) -> None:
        self._items = deque(items)
        self._lock = threading.Lock()
        self.closed = False

    def push(self, item) -> None:
        with self._lock:
            self._items.append(item)

    def next(self, timeout=None):
        with self._lock:
            item = self._items.popleft() if self._items else None
        if item is None:
            time.sleep(min(timeout or 0.01, 0.01))
            return None
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


class FakeSource:
    """EventSource that fails a set number of times before succeeding."""

    def __init__(self, stream=None, connect_failures=0, subscribe_failures=0) -> None:
        self.stream = stream if stream is not None else ScriptedStream()
        self.connect_failures = connect_failures
        self.subscribe_failures = subscribe_failures
        self.attempts = 0
        self.filters: list[str] = []
        self.attempt_times: list[float] = []

    def connect(self):
        self.attempts += 1
        self.attempt_times.append(time.monotonic())
        if self.attempts <= self.connect_failures:
            raise ConnectError(f"connection refused ({self.attempts})")
        return object()

    def subscribe(self, connection, event_filter):
        self.filters.append(event_filter)
        if self.subscribe_failures > 0:
            self.subscribe_failures -= 1
            raise SubscribeError("query rejected")
        return self.stream


class FailingSource(FakeSource):
    """EventSource whose connections always fail."""

    def __init__(self) -> None:
        super().__init__(connect_failures=10**9)


@pytest.fixture
def scripted_stream():
    """Factory for ScriptedStream instances."""
    return ScriptedStream


@pytest.fixture
def fake_source():
    """Factory for FakeSource instances."""
    return FakeSource


@pytest.fixture
def failing_source():
    """A source that never connects."""
    return FailingSource()
