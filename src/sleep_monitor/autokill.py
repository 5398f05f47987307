"""Auto-kill policy for long-running sleep preventers."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

import psutil
import structlog

from sleep_monitor.assertions import AssertionRecord
from sleep_monitor.tracker import TrackedProcess

log = structlog.get_logger()


class KillOutcome(Enum):
    """Result of sending SIGTERM to a process."""

    DELIVERED = "delivered"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"


@dataclass(frozen=True)
class Victim:
    """A process past the auto-kill threshold."""

    process_id: int
    process_name: str
    elapsed: float


def select_victims(
    records: list[AssertionRecord],
    tracked: dict[str, TrackedProcess],
    threshold_seconds: float,
    now: float,
    never_kill: Iterable[str] = (),
) -> list[Victim]:
    """Select processes that have held an assertion for at least threshold_seconds.

    Only tracked names are considered, and names in never_kill are skipped.
    Each process id appears at most once, in record order.
    """
    protected = frozenset(never_kill)
    victims = []
    seen_pids: set[int] = set()

    for record in records:
        tracked_process = tracked.get(record.process_name)
        if tracked_process is None:
            continue
        if record.process_name in protected:
            continue
        if record.process_id in seen_pids:
            continue

        elapsed = tracked_process.elapsed(now)
        if elapsed >= threshold_seconds:
            seen_pids.add(record.process_id)
            victims.append(
                Victim(
                    process_id=record.process_id,
                    process_name=record.process_name,
                    elapsed=elapsed,
                )
            )

    return victims


def protected_names(records: list[AssertionRecord], never_kill: Iterable[str]) -> list[str]:
    """Distinct names in records that are on the never-kill list."""
    protected = frozenset(never_kill)
    return list(dict.fromkeys(r.process_name for r in records if r.process_name in protected))


def terminate_process(pid: int) -> KillOutcome:
    """Send SIGTERM to pid.

    Never escalates to SIGKILL. Errors other than a missing process or
    insufficient privilege propagate to the caller.
    """
    try:
        psutil.Process(pid).terminate()
    except psutil.NoSuchProcess:
        return KillOutcome.NOT_FOUND
    except psutil.AccessDenied:
        return KillOutcome.PERMISSION_DENIED

    log.info("process_terminated", pid=pid)
    return KillOutcome.DELIVERED
