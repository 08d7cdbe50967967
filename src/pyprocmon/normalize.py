"""Normalization of raw notification records into ProcessEvent values."""

import re
from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

from pyprocmon.errors import RecordParseError
from pyprocmon.models import ProcessEvent

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S %z"

# CIM DATETIME as reported by WMI: yyyymmddHHMMSS.ffffff followed by the
# UTC offset in minutes, e.g. 20240305142201.123456+120
_CIM_DATETIME = re.compile(
    r"^(?P<stamp>\d{14})\.(?P<micro>\d{6})(?P<sign>[+-])(?P<offset>\d{3})$"
)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _parse_cim_datetime(text: str) -> datetime | None:
    match = _CIM_DATETIME.match(text)
    if match is None:
        return None
    minutes = int(match["offset"])
    if match["sign"] == "-":
        minutes = -minutes
    naive = datetime.strptime(match["stamp"], "%Y%m%d%H%M%S")
    return naive.replace(tzinfo=timezone(timedelta(minutes=minutes)))


def parse_timestamp(value: Any) -> datetime | None:
    """
    Convert a source creation time to an offset-aware datetime.

    Accepts aware or naive datetimes, ISO-8601 strings, CIM DATETIME strings
    and epoch seconds. Naive values and epoch seconds take the host's local
    offset; explicit offsets are kept as reported. The result is truncated
    to whole seconds.

    Raises:
        RecordParseError: If the value cannot be interpreted as a timestamp.
    """
    if value is None:
        return None

    try:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, str):
            parsed = _parse_cim_datetime(value) or datetime.fromisoformat(value)
        elif _is_int(value) or isinstance(value, float):
            parsed = datetime.fromtimestamp(value)
        else:
            raise RecordParseError(f"Unsupported timestamp type: {type(value).__name__}")
    except (ValueError, OverflowError, OSError) as e:
        raise RecordParseError(f"Invalid timestamp {value!r}: {e}") from e

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        parsed = parsed.astimezone()
    return parsed.replace(microsecond=0)


def format_timestamp(value: datetime) -> str:
    """Format a normalized timestamp for display."""
    return value.strftime(TIMESTAMP_FORMAT)


def _optional_text(raw: Mapping[str, Any], key: str) -> str | None:
    value = raw.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise RecordParseError(f"Field {key!r} must be a string, got {type(value).__name__}")
    return value


def _command_line(raw: Mapping[str, Any]) -> str | None:
    value = raw.get("cmdline")
    if value is None:
        return None
    if isinstance(value, str):
        return value or None
    if isinstance(value, Sequence):
        if not all(isinstance(arg, str) for arg in value):
            raise RecordParseError("Field 'cmdline' must contain only strings")
        return " ".join(value) or None
    raise RecordParseError(f"Field 'cmdline' has unsupported type {type(value).__name__}")


def parse_record(raw: Mapping[str, Any]) -> ProcessEvent:
    """
    Build a ProcessEvent from a raw notification record.

    The record uses psutil attribute names: pid, name, exe, ppid, cmdline and
    create_time. Missing optional fields stay absent.

    Raises:
        RecordParseError: If a required field is missing or any field is
            malformed.
    """
    pid = raw.get("pid")
    if not _is_int(pid) or pid < 0:
        raise RecordParseError(f"Missing or invalid process id: {pid!r}")

    name = raw.get("name")
    if not isinstance(name, str) or not name:
        raise RecordParseError(f"Missing or invalid name for pid {pid}: {name!r}")

    ppid = raw.get("ppid")
    if ppid is not None and (not _is_int(ppid) or ppid < 0):
        raise RecordParseError(f"Invalid parent process id for pid {pid}: {ppid!r}")

    return ProcessEvent(
        process_id=pid,
        name=name,
        executable_path=_optional_text(raw, "exe"),
        parent_process_id=ppid,
        command_line=_command_line(raw),
        created_at=parse_timestamp(raw.get("create_time")),
    )
