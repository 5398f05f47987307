"""Shared test fixtures for sleep-monitor."""

import pytest

from sleep_monitor.autokill import KillOutcome
from sleep_monitor.config import Config
from sleep_monitor.powermode import PowerModeController


def assertion_line(
    pid: int,
    name: str,
    label: str,
    kind: str = "PreventUserIdleSystemSleep",
) -> str:
    """Format one process line the way `pmset -g assertions` prints it."""
    return f'   pid {pid}({name}): [0x0000b8a10001a2f3] 00:01:12 {kind} named: "{label}"'


def assertions_output(*lines: str) -> str:
    """Wrap process lines in a realistic `pmset -g assertions` report."""
    header = [
        "2024/01/15 10:30:15",
        "Assertion status system-wide:",
        "   BackgroundTask                 0",
        "   PreventUserIdleSystemSleep     1",
        "   PreventUserIdleDisplaySleep    0",
        "Listed by owning process:",
    ]
    footer = [
        "Kernel Assertions: 0x4=USB",
        "   id=500  level=255 0x4=USB mod=01/01/1970, 00:00 description=com.apple.usb",
    ]
    return "\n".join(header + list(lines) + footer) + "\n"


class FakeChannel:
    """Records notification calls instead of talking to terminal-notifier."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def show(self, body: str, title: str, subtitle: str, group_id: str) -> bool:
        self.calls.append(("show", body, title, subtitle, group_id))
        return True

    def remove(self, group_id: str) -> bool:
        self.calls.append(("remove", group_id))
        return True

    @property
    def shows(self) -> list[tuple]:
        return [c for c in self.calls if c[0] == "show"]

    @property
    def removes(self) -> list[tuple]:
        return [c for c in self.calls if c[0] == "remove"]


class FakePowerMode(PowerModeController):
    """PowerModeController with pmset replaced by an in-memory flag."""

    def __init__(self, mode: int | None = 1, writable: bool = True, enabled: bool = True) -> None:
        super().__init__(enabled=enabled)
        self.mode = mode
        self.writable = writable
        self.writes: list[bool] = []

    def read_mode(self) -> int | None:
        return self.mode

    def set_mode(self, enabled: bool) -> bool:
        self.writes.append(enabled)
        if not self.writable:
            return False
        self.mode = 1 if enabled else 0
        return True


class FakeAssertions:
    """Callable assertions source whose output the test sets per cycle."""

    def __init__(self, output: str = "") -> None:
        self.output = output
        self.error: Exception | None = None

    def __call__(self) -> str:
        if self.error is not None:
            raise self.error
        return self.output


class FakeKiller:
    """Records SIGTERM requests and returns a preset outcome."""

    def __init__(self, outcome: KillOutcome = KillOutcome.DELIVERED) -> None:
        self.outcome = outcome
        self.pids: list[int] = []

    def __call__(self, pid: int) -> KillOutcome:
        self.pids.append(pid)
        return self.outcome


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def power_mode() -> FakePowerMode:
    return FakePowerMode()


@pytest.fixture
def assertions() -> FakeAssertions:
    return FakeAssertions()


@pytest.fixture
def killer() -> FakeKiller:
    return FakeKiller()


@pytest.fixture
def config() -> Config:
    return Config()
