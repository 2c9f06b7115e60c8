import pytest

from kothaboli.storage import MemoryStorage
from kothaboli.store import ManuscriptStore


class ManualHandle:
    def __init__(self, due, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Deterministic scheduler: timers fire only when ``advance`` passes them."""

    def __init__(self):
        self.now = 0.0
        self.handles = []

    def schedule(self, delay_seconds, callback):
        handle = ManualHandle(self.now + delay_seconds, callback)
        self.handles.append(handle)
        return handle

    @property
    def live(self):
        return [h for h in self.handles if not h.cancelled]

    def advance(self, seconds):
        self.now += seconds
        for handle in list(self.handles):
            if not handle.cancelled and handle.due <= self.now:
                handle.cancelled = True
                handle.callback()


class FakeClock:
    def __init__(self, start=1_700_000_000_000):
        self.value = start

    def __call__(self):
        return self.value


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage, scheduler, clock):
    return ManuscriptStore(storage, auto_save_interval_ms=2000, scheduler=scheduler, clock=clock)
