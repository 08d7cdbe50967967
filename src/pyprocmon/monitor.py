"""Subscription manager for pyprocmon."""

import logging
import threading

from pyprocmon.channel import HandoffChannel
from pyprocmon.config import MonitorConfig
from pyprocmon.errors import (
    ChannelClosed,
    ConnectError,
    ExhaustedRetries,
    RecordParseError,
    StreamDisconnected,
    SubscribeError,
    SubscriptionCancelled,
)
from pyprocmon.models import SubscriptionState
from pyprocmon.normalize import parse_record
from pyprocmon.source import PROCESS_CREATION, EventSource, EventStream

logger = logging.getLogger(__name__)


class SubscriptionManager:
    """
    Subscribes to process-creation notifications and feeds a HandoffChannel.

    Runs in a separate daemon thread. Connection and subscription failures are
    retried up to config.max_attempts times; malformed records are dropped;
    a closed channel ends the worker cleanly. The outcome is kept on the
    manager: done is set when the worker exits and error holds the terminal
    exception, if any.
    """

    def __init__(
        self,
        channel: HandoffChannel,
        source: EventSource,
        config: MonitorConfig | None = None,
    ) -> None:
        """
        Initialize the SubscriptionManager.

        Args:
            channel: Channel to push normalized events to.
            source: Notification facility to subscribe to.
            config: Retry and receive settings. Defaults to MonitorConfig().
        """
        self._channel = channel
        self._source = source
        self._config = config or MonitorConfig()
        self._state = SubscriptionState.DISCONNECTED
        self._stop_event = threading.Event()
        self._done = threading.Event()
        self._subscribed = threading.Event()
        self._thread: threading.Thread | None = None
        self._error: BaseException | None = None

    @property
    def config(self) -> MonitorConfig:
        """Get the active configuration."""
        return self._config

    @property
    def state(self) -> SubscriptionState:
        """Get the current subscription state."""
        return self._state

    @property
    def error(self) -> BaseException | None:
        """Get the exception that ended the worker, if any."""
        return self._error

    @property
    def done(self) -> threading.Event:
        """Event set once the worker has exited."""
        return self._done

    @property
    def subscribed(self) -> threading.Event:
        """Event set once a subscription has been established."""
        return self._subscribed

    @property
    def is_running(self) -> bool:
        """Check if the worker thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the worker thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._done.clear()
        self._subscribed.clear()
        self._error = None
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name="SubscriptionManager",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the worker thread.

        Args:
            timeout: How long to wait for the thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            # A worker that outlives the join keeps its handle; one producer per channel
            if not self._thread.is_alive():
                self._thread = None

    def establish(self) -> EventStream:
        """
        Connect to the source and subscribe to process creation.

        Returns:
            The live event stream.

        Raises:
            ExhaustedRetries: If all config.max_attempts attempts failed.
            SubscriptionCancelled: If stop() was called while retrying.
        """
        max_attempts = self._config.max_attempts
        for attempt in range(1, max_attempts + 1):
            if self._stop_event.is_set():
                raise SubscriptionCancelled("Stopped before a subscription was established")

            self._state = SubscriptionState.CONNECTING
            try:
                connection = self._source.connect()
                stream = self._source.subscribe(connection, PROCESS_CREATION)
            except (ConnectError, SubscribeError) as e:
                self._state = SubscriptionState.DISCONNECTED
                logger.warning(
                    "Failed to get filtered notification (attempt %d/%d): %s",
                    attempt,
                    max_attempts,
                    e,
                )
                if attempt < max_attempts:
                    # Wait for retry_delay seconds or until stop is requested
                    self._stop_event.wait(timeout=self._config.retry_delay)
                continue

            self._state = SubscriptionState.SUBSCRIBED
            self._subscribed.set()
            logger.info("Monitoring new processes.")
            return stream

        raise ExhaustedRetries(max_attempts)

    def _run(self) -> None:
        """Worker entry point: establish, then receive until told to stop."""
        stream: EventStream | None = None
        try:
            stream = self.establish()
            self._receive_loop(stream)
        except SubscriptionCancelled:
            logger.debug("Subscription cancelled during retry")
        except ExhaustedRetries as e:
            logger.error("%s", e)
            self._error = e
        except Exception as e:
            logger.exception("Subscription worker failed")
            self._error = e
        finally:
            if stream is not None:
                stream.close()
            self._state = SubscriptionState.DISCONNECTED
            self._done.set()

    def _receive_loop(self, stream: EventStream) -> None:
        """Parse records from the stream and push them to the channel."""
        while not self._stop_event.is_set():
            try:
                raw = stream.next(timeout=self._config.receive_timeout)
            except StreamDisconnected as e:
                logger.error("Event stream disconnected: %s", e)
                return

            if raw is None:
                continue

            try:
                event = parse_record(raw)
            except RecordParseError as e:
                logger.warning("Dropping malformed notification: %s", e)
                continue

            try:
                self._channel.put(event)
            except ChannelClosed:
                logger.debug("Hand-off channel closed, stopping subscription")
                return
