"""Hand-off channel between the subscription thread and a sink."""

import threading
from queue import Empty, Queue

from pyprocmon.errors import ChannelClosed
from pyprocmon.models import ProcessEvent


class HandoffChannel:
    """
    Unbounded single-producer, single-consumer FIFO of ProcessEvents.

    The producer never waits on the consumer. Closing is a one-way signal
    from the consumer: once closed, further puts raise ChannelClosed while
    already queued events remain readable.
    """

    def __init__(self) -> None:
        """Initialize an empty, open channel."""
        self._queue: Queue[ProcessEvent] = Queue()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        """Check if the consumer has closed the channel."""
        return self._closed.is_set()

    def put(self, event: ProcessEvent) -> None:
        """
        Push an event without blocking.

        Raises:
            ChannelClosed: If the consumer has torn the channel down.
        """
        if self._closed.is_set():
            raise ChannelClosed("Hand-off channel is closed")
        self._queue.put_nowait(event)

    def get(self, timeout: float | None = None) -> ProcessEvent | None:
        """
        Wait for the next event.

        Args:
            timeout: Seconds to wait; None blocks until an event arrives.

        Returns:
            The next event, or None if the wait timed out.
        """
        try:
            return self._queue.get(timeout=timeout)
        except Empty:
            return None

    def drain(self) -> list[ProcessEvent]:
        """Remove and return every event currently queued, oldest first."""
        events: list[ProcessEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except Empty:
                break
        return events

    def close(self) -> None:
        """Signal the producer that no more events will be consumed."""
        self._closed.set()

    def __len__(self) -> int:
        return self._queue.qsize()
