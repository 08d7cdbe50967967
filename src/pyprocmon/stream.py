"""Line-oriented text sink for pyprocmon."""

import sys
from typing import TextIO

from pyprocmon.channel import HandoffChannel
from pyprocmon.models import ProcessEvent
from pyprocmon.monitor import SubscriptionManager
from pyprocmon.normalize import format_timestamp
from pyprocmon.pipeline import run_pipeline

SEPARATOR = "============NEW PROCESS============"
BANNER = "Monitoring new processes."

_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\t": "\\t",
    "\r": "\\r",
    "\n": "\\n",
    "\0": "\\0",
}


def quote(value: str) -> str:
    """
    Render a string quoted the way debug output does.

    Quotes and backslashes are escaped, tab, CR, LF and NUL use their short
    escapes, and other non-printable characters become \\u{hex}, e.g.
    "C:\\\\Windows" or "bell\\u{7}".
    """
    escaped = []
    for char in value:
        if char in _ESCAPES:
            escaped.append(_ESCAPES[char])
        elif not char.isprintable():
            escaped.append(f"\\u{{{ord(char):x}}}")
        else:
            escaped.append(char)
    return '"' + "".join(escaped) + '"'


def format_event(event: ProcessEvent) -> str:
    """Format one event as a block of labelled lines."""
    created = format_timestamp(event.created_at) if event.created_at is not None else "N/A"
    # Absent parent PID renders as 0 to keep the established output format
    parent = event.parent_process_id if event.parent_process_id is not None else 0
    lines = [
        SEPARATOR,
        f"PID:        {event.process_id}",
        f"Name:       {event.name}",
        f"Executable: {quote(event.executable_path if event.executable_path is not None else 'None')}",
        f"Parent PID: {parent}",
        f"Command:    {quote(event.command_line if event.command_line is not None else 'None')}",
        f"Created:    {created}",
    ]
    return "\n".join(lines) + "\n"


class StreamSink:
    """Writes each received event to a text stream."""

    def __init__(self, output: TextIO | None = None, poll_timeout: float = 0.5) -> None:
        """
        Initialize the StreamSink.

        Args:
            output: Stream to write to. Defaults to sys.stdout at write time.
            poll_timeout: Seconds to block on the channel before re-checking
                whether the producer has finished.
        """
        self._output = output
        self._poll_timeout = poll_timeout
        self._announced = False

    @property
    def output(self) -> TextIO:
        """Get the output stream."""
        return self._output if self._output is not None else sys.stdout

    def write(self, event: ProcessEvent) -> None:
        """Write a single event and flush."""
        self.output.write(format_event(event))
        self.output.flush()

    def consume(self, channel: HandoffChannel, manager: SubscriptionManager) -> None:
        """
        Receive events until the producer exits and the channel is empty.

        Blocks the calling thread.
        """
        while True:
            event = channel.get(timeout=self._poll_timeout)
            self._announce(manager)
            if event is not None:
                self.write(event)
                continue
            if manager.done.is_set() and len(channel) == 0:
                return

    def _announce(self, manager: SubscriptionManager) -> None:
        if not self._announced and manager.subscribed.is_set():
            self.output.write(BANNER + "\n")
            self.output.flush()
            self._announced = True


def main() -> None:
    """Entry point for the streaming text monitor."""
    sys.exit(run_pipeline(StreamSink()))


if __name__ == "__main__":
    main()
