"""Timer package."""

from .engine import (
    CountdownTimerEngine,
    TimerSession,
    RunState,
    POLL_INTERVAL_MS,
)

__all__ = [
    "CountdownTimerEngine",
    "TimerSession",
    "RunState",
    "POLL_INTERVAL_MS",
]
