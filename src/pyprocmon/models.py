"""Data models for pyprocmon."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


@dataclass(slots=True, frozen=True)
class ProcessEvent:
    """Immutable record of a newly created process."""

    process_id: int
    name: str
    executable_path: str | None = None
    parent_process_id: int | None = None  # None is distinct from a reported 0
    command_line: str | None = None
    created_at: datetime | None = None  # Offset-aware, whole seconds


class SubscriptionState(Enum):
    """Connection states of the subscription manager."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
