"""Runtime configuration for the monitoring pipeline."""

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class MonitorConfig:
    """
    Tunables for subscription retry, event receipt and view refresh.

    Attributes:
        max_attempts: Total subscription attempts before giving up.
        retry_delay: Seconds to wait between failed attempts.
        receive_timeout: Seconds a single stream receive may block.
        poll_interval: Seconds between PID scans of the psutil source.
        refresh_interval: Seconds between live-view redraw ticks.
    """

    max_attempts: int = 1000
    retry_delay: float = 1.0
    receive_timeout: float = 1.0
    poll_interval: float = 0.25
    refresh_interval: float = 0.1

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.retry_delay < 0:
            raise ValueError(f"retry_delay must not be negative, got {self.retry_delay}")
        for name in ("receive_timeout", "poll_interval", "refresh_interval"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
