"""Process-creation notification sources."""

import logging
import threading
import time
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import psutil

from pyprocmon.errors import ConnectError, StreamDisconnected, SubscribeError

logger = logging.getLogger(__name__)

PROCESS_CREATION = "process-creation"

RawRecord = Mapping[str, Any]


class EventStream(Protocol):
    """Lazy, non-restartable sequence of raw notification records."""

    def next(self, timeout: float | None = None) -> RawRecord | None:
        """Block until the next record arrives; None if the timeout elapsed."""
        ...

    def close(self) -> None:
        """Release the subscription."""
        ...


class EventSource(Protocol):
    """Access to an OS facility that reports process creation."""

    def connect(self) -> Any:
        """Open a session with the facility, raising ConnectError on failure."""
        ...

    def subscribe(self, connection: Any, event_filter: str) -> EventStream:
        """Register for events matching the filter, raising SubscribeError on failure."""
        ...


@dataclass(slots=True, frozen=True)
class PsutilConnection:
    """Session state for the psutil source: PIDs alive when it was opened."""

    baseline: frozenset[int]


class PsutilEventStream:
    """
    Event stream that detects new processes by diffing the PID table.

    Polls psutil.pids() every poll_interval seconds. A PID counts as new when
    it was absent from the previous scan, so PIDs reused after an exit are
    reported again. Records found in one scan are ordered by creation time.
    """

    ATTRS = ["pid", "name", "exe", "ppid", "cmdline", "create_time"]

    def __init__(self, known_pids: frozenset[int], poll_interval: float = 0.25) -> None:
        """
        Initialize the stream.

        Args:
            known_pids: PIDs that must not be reported.
            poll_interval: Seconds between PID table scans.
        """
        self._known: set[int] = set(known_pids)
        self._poll_interval = poll_interval
        self._pending: deque[RawRecord] = deque()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        """Check if the stream has been closed."""
        return self._closed.is_set()

    def next(self, timeout: float | None = None) -> RawRecord | None:
        """
        Return the next new-process record.

        Raises:
            StreamDisconnected: If the process table can no longer be read.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while not self._closed.is_set():
            if not self._pending:
                self._scan()
            if self._pending:
                return self._pending.popleft()

            wait = self._poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                wait = min(wait, remaining)
            self._closed.wait(timeout=wait)
        return None

    def close(self) -> None:
        """Stop producing records."""
        self._closed.set()
        self._pending.clear()

    def _scan(self) -> None:
        """Queue a record for every PID that appeared since the last scan."""
        try:
            current = set(psutil.pids())
        except (psutil.Error, OSError) as e:
            raise StreamDisconnected(f"Cannot read the process table: {e}") from e

        new_pids = current - self._known
        self._known = current

        records: list[RawRecord] = []
        for pid in new_pids:
            try:
                # Attributes we may not read come back as None
                records.append(psutil.Process(pid).as_dict(attrs=self.ATTRS, ad_value=None))
            except psutil.NoSuchProcess:
                logger.debug("Process %d exited before it could be inspected", pid)
                continue

        records.sort(
            key=lambda r: (r.get("create_time") is None, r.get("create_time") or 0.0, r["pid"])
        )
        self._pending.extend(records)


class PsutilEventSource:
    """Portable process-creation source built on psutil."""

    def __init__(self, poll_interval: float = 0.25) -> None:
        """
        Initialize the source.

        Args:
            poll_interval: Seconds between PID table scans of opened streams.
        """
        self._poll_interval = poll_interval

    def connect(self) -> PsutilConnection:
        """Snapshot the PIDs that are already running."""
        try:
            return PsutilConnection(baseline=frozenset(psutil.pids()))
        except (psutil.Error, OSError) as e:
            raise ConnectError(f"Cannot read the process table: {e}") from e

    def subscribe(self, connection: PsutilConnection, event_filter: str) -> PsutilEventStream:
        """Open a stream of processes created after the connection was made."""
        if event_filter != PROCESS_CREATION:
            raise SubscribeError(f"Unsupported event filter: {event_filter!r}")
        return PsutilEventStream(connection.baseline, poll_interval=self._poll_interval)
