"""macOS notifications for sleep-monitor."""

from __future__ import annotations

import subprocess
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import structlog

from sleep_monitor import logging as console
from sleep_monitor.assertions import AssertionRecord
from sleep_monitor.config import AlertsConfig
from sleep_monitor.formatting import apps_preventing_sleep, elapsed_minutes
from sleep_monitor.tracker import MonitorState, TrackedProcess, active_names

log = structlog.get_logger()


class Channel(Protocol):
    """Anything that can show and remove grouped notifications."""

    def show(self, body: str, title: str, subtitle: str, group_id: str) -> bool: ...

    def remove(self, group_id: str) -> bool: ...


class NotificationChannel:
    """Sends notifications through the terminal-notifier CLI.

    Unlike `osascript display notification`, terminal-notifier supports a group
    id, so a notification can be replaced or withdrawn later.
    """

    def __init__(self, executable: str = "terminal-notifier", timeout: float = 10.0) -> None:
        self.executable = executable
        self.timeout = timeout

    def _run(self, args: list[str]) -> bool:
        try:
            result = subprocess.run(
                [self.executable, *args],
                capture_output=True,
                timeout=self.timeout,
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            log.warning("notification_failed", args=args[:2], error=str(e))
            return False
        return result.returncode == 0

    def show(self, body: str, title: str, subtitle: str, group_id: str) -> bool:
        """Show a notification in the given group."""
        sent = self._run(
            ["-message", body, "-title", title, "-subtitle", subtitle, "-group", group_id]
        )
        log.debug("notification_sent", title=title, group=group_id, ok=sent)
        return sent

    def remove(self, group_id: str) -> bool:
        """Remove the notification(s) in the given group."""
        removed = self._run(["-remove", group_id])
        log.debug("notification_removed", group=group_id, ok=removed)
        return removed


@dataclass(frozen=True)
class AlertContent:
    """Rendered alert: subtitle (header line) and body (one line per app)."""

    subtitle: str
    body: str

    @property
    def text(self) -> str:
        """Full text, used to detect changes between cycles."""
        return f"{self.subtitle}\n{self.body}"


def render_alert(
    records: list[AssertionRecord],
    tracked: dict[str, TrackedProcess],
    now: float,
) -> AlertContent:
    """Render the alert for the active sleep preventers.

    Each process gets one "• name" line; once it has been tracked for at
    least a minute the whole minutes are appended, e.g. "• Xcode (6m)".
    """
    names = active_names(records)
    lines = []
    for name in names:
        tracked_process = tracked.get(name)
        minutes = (
            elapsed_minutes(tracked_process.first_seen, now=now) if tracked_process else 0
        )
        if minutes >= 1:
            lines.append(f"• {name} ({minutes}m)")
        else:
            lines.append(f"• {name}")

    return AlertContent(subtitle=apps_preventing_sleep(len(names)), body="\n".join(lines))


class AlertPresenter:
    """Keeps a single grouped notification in sync with the tracked apps."""

    def __init__(self, channel: Channel, config: AlertsConfig | None = None) -> None:
        self.channel = channel
        self.config = config or AlertsConfig()

    def present(self, state: MonitorState, records: list[AssertionRecord], now: float) -> bool:
        """Replace the alert if its text changed.

        Returns True if a notification was sent, False if the text matched
        the one already shown.
        """
        content = render_alert(records, state.tracked, now)
        if content.text == state.last_alert_text:
            return False

        if state.alert_active:
            self.channel.remove(self.config.group_id)

        self.channel.show(
            content.body,
            title=self.config.title,
            subtitle=content.subtitle,
            group_id=self.config.group_id,
        )
        state.last_alert_text = content.text
        state.alert_active = True

        console.alert_sent(active_names(records))
        log.info("alert_shown", subtitle=content.subtitle, processes=active_names(records))
        return True

    def withdraw(self, state: MonitorState) -> None:
        """Remove the alert and forget its text."""
        self.channel.remove(self.config.group_id)
        state.last_alert_text = None
        state.alert_active = False
        log.info("alert_withdrawn")


def send_test_notification(
    channel: Channel,
    config: AlertsConfig | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Show a test notification, wait, then remove it."""
    config = config or AlertsConfig()

    console.info("Sending test notification...")
    channel.show(
        "This is a test notification",
        title="Test Alert",
        subtitle="Testing notification system",
        group_id=config.group_id,
    )

    console.info(f"Notification sent. Waiting {config.test_delay:g} seconds...")
    sleep(config.test_delay)

    console.info("Removing notification...")
    channel.remove(config.group_id)
    console.info("Notification removal attempted. Test complete.")
