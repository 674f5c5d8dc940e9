import pytest
from pyglet.clock import Clock


class FakeTime:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_time():
    return FakeTime()


@pytest.fixture
def clock(fake_time):
    return Clock(time_function=fake_time)


@pytest.fixture
def run_ticks(clock, fake_time):
    def run(ticks, step=0.05):
        for _ in range(ticks):
            fake_time.advance(step)
            clock.tick()

    return run
