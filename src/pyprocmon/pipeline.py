"""Pipeline composition: source, subscription manager, channel and sink."""

import logging
import sys
from typing import Protocol

from pyprocmon.channel import HandoffChannel
from pyprocmon.config import MonitorConfig
from pyprocmon.errors import ExhaustedRetries
from pyprocmon.monitor import SubscriptionManager
from pyprocmon.source import EventSource, PsutilEventSource

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Sink(Protocol):
    """Consumer of the hand-off channel."""

    def consume(self, channel: HandoffChannel, manager: SubscriptionManager) -> None:
        """Consume events until done; blocks the calling thread."""
        ...


def configure_logging(level: int = logging.INFO, handler: logging.Handler | None = None) -> None:
    """
    Send diagnostics to stderr, or to the given handler.

    Does nothing if the root logger is already configured.
    """
    if handler is None:
        logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)
    else:
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.basicConfig(level=level, handlers=[handler])


def run_pipeline(
    sink: Sink,
    config: MonitorConfig | None = None,
    source: EventSource | None = None,
) -> int:
    """
    Wire a source to a sink and run until the sink returns.

    Args:
        sink: The consumer to attach.
        config: Pipeline settings. Defaults to MonitorConfig().
        source: Notification facility. Defaults to a PsutilEventSource.

    Returns:
        Process exit status: 1 if the subscription could never be
        established, 0 otherwise.
    """
    configure_logging()
    config = config or MonitorConfig()
    if source is None:
        source = PsutilEventSource(poll_interval=config.poll_interval)

    channel = HandoffChannel()
    manager = SubscriptionManager(channel, source, config)
    manager.start()
    try:
        sink.consume(channel, manager)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        channel.close()
        manager.stop()

    if isinstance(manager.error, ExhaustedRetries):
        return 1
    return 0
