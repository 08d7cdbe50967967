"""Tests for the text stream sink and pipeline wiring."""

import io

from pyprocmon.channel import HandoffChannel
from pyprocmon.config import MonitorConfig
from pyprocmon.errors import StreamDisconnected
from pyprocmon.models import ProcessEvent
from pyprocmon.monitor import SubscriptionManager
from pyprocmon.normalize import parse_record, parse_timestamp
from pyprocmon.pipeline import run_pipeline
from pyprocmon.stream import BANNER, SEPARATOR, StreamSink, format_event, quote

FAST = MonitorConfig(max_attempts=3, retry_delay=0.0, receive_timeout=0.05)

NOTEPAD = {
    "pid": 4321,
    "name": "notepad.exe",
    "exe": None,
    "ppid": 1000,
    "cmdline": None,
    "create_time": None,
}


def test_quote_escapes_like_debug_output():
    """Test strings are quoted with backslashes and quotes escaped."""
    assert quote("None") == '"None"'
    assert quote("C:\\Windows\\notepad.exe") == '"C:\\\\Windows\\\\notepad.exe"'
    assert quote('say "hi"') == '"say \\"hi\\""'


def test_quote_escapes_control_characters():
    """Test control characters use short or \\u{hex} escapes."""
    assert quote("a\tb\r\n") == '"a\\tb\\r\\n"'
    assert quote("nul\0") == '"nul\\0"'
    assert quote("bell\x07") == '"bell\\u{7}"'
    assert quote("del\x7f") == '"del\\u{7f}"'


def test_quote_leaves_printable_text_alone():
    """Test apostrophes and non-ASCII letters are not escaped."""
    assert quote("it's caf\u00e9") == "\"it's caf\u00e9\""


class TestFormatEvent:
    """Tests for format_event."""

    def test_absent_fields_use_placeholders(self):
        """Test the notepad scenario renders every placeholder."""
        lines = format_event(parse_record(NOTEPAD)).splitlines()

        assert lines == [
            SEPARATOR,
            "PID:        4321",
            "Name:       notepad.exe",
            'Executable: "None"',
            "Parent PID: 1000",
            'Command:    "None"',
            "Created:    N/A",
        ]

    def test_present_fields(self):
        """Test present values are rendered in full."""
        event = ProcessEvent(
            process_id=8,
            name="cmd.exe",
            executable_path="C:\\Windows\\System32\\cmd.exe",
            parent_process_id=4,
            command_line="cmd.exe /c echo",
            created_at=parse_timestamp("2024-03-05T14:22:01+02:00"),
        )
        text = format_event(event)

        assert 'Executable: "C:\\\\Windows\\\\System32\\\\cmd.exe"\n' in text
        assert "Parent PID: 4\n" in text
        assert 'Command:    "cmd.exe /c echo"\n' in text
        assert "Created:    2024-03-05 14:22:01 +0200\n" in text

    def test_absent_parent_renders_zero(self):
        """Test a missing parent PID keeps the established 0 output."""
        text = format_event(ProcessEvent(process_id=3, name="x"))
        assert "Parent PID: 0\n" in text

    def test_empty_command_line_distinct_from_absent(self):
        """Test a literal empty string is not shown as an empty value."""
        text = format_event(ProcessEvent(process_id=3, name="x", command_line=None))
        assert 'Command:    "None"' in text
        assert 'Command:    ""' not in text


class TestStreamSink:
    """Tests for StreamSink."""

    def test_write(self):
        """Test write emits one formatted record."""
        output = io.StringIO()
        StreamSink(output).write(ProcessEvent(process_id=1, name="init"))

        assert output.getvalue().startswith(SEPARATOR + "\n")
        assert output.getvalue().count(SEPARATOR) == 1

    def test_consume_until_producer_done(self, fake_source, scripted_stream):
        """Test the sink writes every event and returns when the producer exits."""
        stream = scripted_stream([NOTEPAD, {"pid": 5, "name": "sh"}, StreamDisconnected("done")])
        channel = HandoffChannel()
        manager = SubscriptionManager(channel, fake_source(stream), FAST)
        output = io.StringIO()

        manager.start()
        StreamSink(output, poll_timeout=0.05).consume(channel, manager)
        manager.stop()

        text = output.getvalue()
        assert text.startswith(BANNER + "\n")
        assert text.count(SEPARATOR) == 2
        assert text.index("PID:        4321") < text.index("PID:        5")
        assert "Name:       notepad.exe" in text


class TestRunPipeline:
    """Tests for run_pipeline."""

    def test_exit_status_on_exhausted_retries(self, failing_source):
        """Test a subscription that never succeeds yields status 1."""
        output = io.StringIO()

        status = run_pipeline(StreamSink(output, poll_timeout=0.05), FAST, failing_source)

        assert status == 1
        assert failing_source.attempts == FAST.max_attempts
        assert output.getvalue() == ""

    def test_clean_run(self, fake_source, scripted_stream):
        """Test a pipeline whose stream ends normally yields status 0."""
        stream = scripted_stream([NOTEPAD, StreamDisconnected("done")])
        output = io.StringIO()

        status = run_pipeline(StreamSink(output, poll_timeout=0.05), FAST, fake_source(stream))

        assert status == 0
        assert "PID:        4321" in output.getvalue()
        assert stream.closed

    def test_sink_is_interchangeable(self, fake_source, scripted_stream):
        """Test any object with consume() can be attached."""

        class CollectingSink:
            def __init__(self) -> None:
                self.events: list[ProcessEvent] = []

            def consume(self, channel, manager) -> None:
                while not (manager.done.is_set() and len(channel) == 0):
                    event = channel.get(timeout=0.05)
                    if event is not None:
                        self.events.append(event)

        stream = scripted_stream([{"pid": 1, "name": "a"}, {"pid": 2, "name": "b"}, StreamDisconnected("x")])
        sink = CollectingSink()

        assert run_pipeline(sink, FAST, fake_source(stream)) == 0
        assert [e.process_id for e in sink.events] == [1, 2]
