"""Shared test helpers for StudyPulse."""

from studypulse.timer.engine import CountdownTimerEngine


class SignalCollector:
    """Utility to capture pyqtSignal emissions into a list."""

    def __init__(self):
        self.items: list = []

    def slot(self, *args):
        self.items.append(args if len(args) > 1 else args[0] if args else None)

    def __call__(self, *args):
        self.slot(*args)

    def __len__(self):
        return len(self.items)

    def __getitem__(self, idx):
        return self.items[idx]

    @property
    def last(self):
        return self.items[-1] if self.items else None

    def clear(self):
        self.items.clear()


class FakeClock:
    """Clock counting whole milliseconds so second boundaries stay exact."""

    def __init__(self, start_ms: int = 1_000_000):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms / 1000

    def advance(self, seconds: float) -> None:
        self.now_ms += round(seconds * 1000)


def poll_for(engine: CountdownTimerEngine, clock: FakeClock, seconds: float,
             step_ms: int = 100) -> None:
    """Advance *clock* by *seconds*, polling the engine every *step_ms*."""
    for _ in range(round(seconds * 1000) // step_ms):
        clock.now_ms += step_ms
        engine._on_poll()


def finish_run(engine: CountdownTimerEngine, clock: FakeClock) -> None:
    """Jump to the deadline of the current run and poll once."""
    clock.advance(engine.sample_remaining())
    engine._on_poll()
