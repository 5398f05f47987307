"""Per-process sleep assertion tracking."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from sleep_monitor.assertions import AssertionRecord

log = structlog.get_logger()


@dataclass
class TrackedProcess:
    """A process continuously holding a sleep assertion since first_seen."""

    process_name: str
    first_seen: float

    def elapsed(self, now: float) -> float:
        """Seconds since the process was first seen asserting."""
        return now - self.first_seen


@dataclass
class MonitorState:
    """All cross-cycle memory of the monitor.

    Owned by the Monitor and mutated only from the poll loop.
    """

    tracked: dict[str, TrackedProcess] = field(default_factory=dict)
    current_names: set[str] = field(default_factory=set)
    alert_active: bool = False
    last_alert_text: str | None = None
    original_power_mode: int | None = None
    power_mode_disabled_by_us: bool = False
    power_mode_write_attempted: bool = False  # Reset when the monitor goes idle
    sudo_warning_shown: bool = False

    @property
    def is_active(self) -> bool:
        """True while at least one process is tracked."""
        return bool(self.tracked)


@dataclass
class TrackerUpdate:
    """Result of one tracker update."""

    started: set[str] = field(default_factory=set)
    stopped: set[str] = field(default_factory=set)
    changed: bool = False  # Active name set differs, or no alert shown yet
    became_idle: bool = False  # Active -> Idle transition this cycle


def active_names(records: Iterable[AssertionRecord]) -> list[str]:
    """Distinct process names in first-appearance order."""
    return list(dict.fromkeys(r.process_name for r in records))


class SleepPreventionTracker:
    """Tracks which process names hold sleep assertions, and since when."""

    def update(
        self,
        state: MonitorState,
        records: list[AssertionRecord],
        now: float,
    ) -> TrackerUpdate:
        """Update tracking with the current assertion snapshot.

        Names seen for the first time are tracked from `now`; tracked names
        missing from the snapshot are dropped on this cycle.
        """
        names = set(active_names(records))
        previous_names = state.current_names
        result = TrackerUpdate()

        if not names:
            result.stopped = set(state.tracked)
            result.became_idle = bool(previous_names) or state.alert_active
            state.tracked.clear()
            state.current_names = set()
            state.alert_active = False
            state.last_alert_text = None
            state.power_mode_write_attempted = False
            for name in sorted(result.stopped):
                log.info("tracking_stopped", process=name)
            return result

        for name in active_names(records):
            if name not in state.tracked:
                state.tracked[name] = TrackedProcess(process_name=name, first_seen=now)
                result.started.add(name)
                log.info("tracking_started", process=name, first_seen=now)

        for name in list(state.tracked):
            if name not in names:
                del state.tracked[name]
                result.stopped.add(name)
                log.info("tracking_stopped", process=name)

        result.changed = names != previous_names or not state.alert_active
        state.current_names = names
        return result

    def elapsed(self, state: MonitorState, process_name: str, now: float) -> float | None:
        """Seconds the named process has been tracked, or None if untracked."""
        tracked = state.tracked.get(process_name)
        if tracked is None:
            return None
        return tracked.elapsed(now)
