"""pyprocmon - Live-view Textual application."""

import logging
import sys

from textual.app import App, ComposeResult
from textual.containers import VerticalScroll
from textual.logging import TextualHandler
from textual.widgets import Footer, Static

from pyprocmon.channel import HandoffChannel
from pyprocmon.config import MonitorConfig
from pyprocmon.errors import ExhaustedRetries
from pyprocmon.models import ProcessEvent
from pyprocmon.monitor import SubscriptionManager
from pyprocmon.normalize import format_timestamp
from pyprocmon.pipeline import configure_logging, run_pipeline
from pyprocmon.stream import quote

logger = logging.getLogger(__name__)


def format_card(event: ProcessEvent) -> str:
    """Format the lines shown for one process."""
    executable = event.executable_path if event.executable_path is not None else "None"
    command = event.command_line if event.command_line is not None else "None"
    parent = str(event.parent_process_id) if event.parent_process_id is not None else "N/A"
    created = format_timestamp(event.created_at) if event.created_at is not None else "N/A"
    return "\n".join(
        [
            f"PID: {event.process_id}",
            f"Name: {event.name}",
            f"Executable: {quote(executable)}",
            f"Parent PID: {parent}",
            f"Command Line: {quote(command)}",
            f"Created: {created}",
        ]
    )


class ProcessEventCard(Static):
    """A single new-process record."""

    DEFAULT_CSS = """
    ProcessEventCard {
        height: auto;
        border: round $primary;
        padding: 0 1;
        margin-bottom: 1;
    }
    """

    def __init__(self, event: ProcessEvent, **kwargs) -> None:
        """Initialize the card for an event."""
        # Command lines may contain brackets, so render as plain text
        super().__init__(format_card(event), markup=False, **kwargs)
        self.event = event


class ProcessList(VerticalScroll):
    """Scrollable list of every process seen, in arrival order."""

    DEFAULT_CSS = """
    ProcessList {
        height: 1fr;
    }
    """


class ProcessMonitorApp(App):
    """Live view of newly created processes."""

    TITLE = "pyprocmon"
    SUB_TITLE = "Process Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #heading {
        dock: top;
        height: 1;
        padding: 0 1;
        text-style: bold;
        background: $surface;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("end", "scroll_end", "Newest"),
    ]

    def __init__(
        self,
        channel: HandoffChannel | None = None,
        manager: SubscriptionManager | None = None,
        refresh_interval: float = 0.1,
    ) -> None:
        """
        Initialize the ProcessMonitorApp.

        Args:
            channel: Channel to drain events from.
            manager: Producer to stop when the app quits.
            refresh_interval: Seconds between redraw ticks.
        """
        super().__init__()
        self._channel = channel if channel is not None else HandoffChannel()
        self._manager = manager
        self._refresh_interval = refresh_interval
        self._events: list[ProcessEvent] = []
        self._failed = False

    @property
    def events(self) -> list[ProcessEvent]:
        """Get every event shown so far, oldest first."""
        return list(self._events)

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield Static("Process Monitor", id="heading")
        yield ProcessList(id="process-list")
        yield Footer()

    def on_mount(self) -> None:
        """Start the redraw tick; it fires whether or not events arrived."""
        self.set_interval(self._refresh_interval, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the channel without blocking and show any new events."""
        events = self._channel.drain()
        if events:
            self._append_events(events)
        self._check_subscription()

    def _check_subscription(self) -> None:
        """End the app with status 1 once the producer has given up subscribing."""
        if self._failed or self._manager is None:
            return
        if isinstance(self._manager.error, ExhaustedRetries):
            self._failed = True
            self._channel.close()
            self.exit(return_code=1)

    def _append_events(self, events: list[ProcessEvent]) -> None:
        """Append events to the list and mount one card per event."""
        self._events.extend(events)
        process_list = self.query_one("#process-list", ProcessList)
        process_list.mount(*(ProcessEventCard(event) for event in events))

    def action_scroll_end(self) -> None:
        """Scroll to the newest record."""
        self.query_one("#process-list", ProcessList).scroll_end(animate=False)

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._channel.close()
        if self._manager is not None:
            self._manager.stop()
        self.exit()


class LiveViewSink:
    """Runs the Textual live view as the pipeline's consumer."""

    def consume(self, channel: HandoffChannel, manager: SubscriptionManager) -> None:
        """Run the app until the user quits or the subscription is exhausted."""
        config: MonitorConfig = manager.config
        app = ProcessMonitorApp(channel, manager, refresh_interval=config.refresh_interval)
        app.run()
        if isinstance(manager.error, ExhaustedRetries):
            # Output logged while the app held the terminal was captured by it
            logger.error("%s", manager.error)


def main() -> None:
    """Entry point for the live-view monitor."""
    # Keep diagnostics off the terminal the UI is drawing on
    configure_logging(handler=TextualHandler())
    sys.exit(run_pipeline(LiveViewSink()))


if __name__ == "__main__":
    main()
