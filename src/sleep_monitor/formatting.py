"""Formatting utilities for consistent output across alerts, CLI and logs."""

import time


def elapsed_seconds(first_seen: float, *, now: float | None = None) -> float:
    """Seconds a process has been holding its assertion.

    Args:
        first_seen: Timestamp the process was first seen asserting
        now: Current time (defaults to time.time())
    """
    if now is None:
        now = time.time()
    return now - first_seen


def elapsed_minutes(first_seen: float, *, now: float | None = None) -> int:
    """Whole minutes elapsed since first_seen, rounded down."""
    return int(elapsed_seconds(first_seen, now=now) // 60)


def apps_preventing_sleep(count: int) -> str:
    """Alert subtitle for a number of apps.

    Returns:
        "1 app preventing sleep" or "N apps preventing sleep"
    """
    if count == 1:
        return "1 app preventing sleep"
    return f"{count} apps preventing sleep"
