"""Centralized console logging with Rich formatting.

This module provides:
1. Icon vocabulary (Icon class namespace)
2. Level-based styling
3. Core log functions (log, info, warn, error)
4. Domain-specific helpers (tracking_started, power_mode_disabling, etc.)
5. Structlog configuration (configure)

Console output uses Rich markup for colors. JSON file output via structlog
remains separate (machine-parseable, no colors).
"""

from __future__ import annotations

import logging
import logging.handlers
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    from sleep_monitor.config import Config

# Rich console for colorful human-readable output
_console = Console(highlight=False)


# ─────────────────────────────────────────────────────────────────────────────
# Icons
# ─────────────────────────────────────────────────────────────────────────────


class Icon:
    """Icon vocabulary for console output."""

    OK = "[bold green]✓[/]"
    FAIL = "[bold red]✗[/]"
    WAIT = "⏳"
    TRACK_START = "[bright_green]▲[/]"
    TRACK_STOP = "[bright_red]▼[/]"
    POWER = "🔋"
    KILL = "⚡"
    ALERT = "🔔"
    SHIELD = "🛡"


# ─────────────────────────────────────────────────────────────────────────────
# Level Styles
# ─────────────────────────────────────────────────────────────────────────────

_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "warn": "[yellow]\\[warn][/]",
    "error": "[bold red]\\[err][/] ",
}


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────


def log(level: str, msg: str, icon: str = "") -> None:
    """Print a log message with timestamp and level.

    Args:
        level: Log level (info, warn, error)
        msg: Message to print (can include Rich markup)
        icon: Optional icon to show after level (e.g., Icon.OK)
    """
    ts = datetime.now().strftime("%H:%M:%S")
    lvl = _LEVEL_STYLES.get(level, f"[{level}]")
    icon_part = f" {icon}" if icon else ""
    _console.print(f"[dim]{ts}[/] {lvl}{icon_part} {msg}")


def info(msg: str, icon: str = "") -> None:
    """Log an info message."""
    log("info", msg, icon)


def warn(msg: str, icon: str = "") -> None:
    """Log a warning message."""
    log("warn", msg, icon)


def error(msg: str, icon: str = "") -> None:
    """Log an error message."""
    log("error", msg, icon)


def _name(process_name: str) -> str:
    # Process names come from pmset output and may contain Rich markup characters
    return f"[cyan]{escape(process_name)}[/]"


# ─────────────────────────────────────────────────────────────────────────────
# Domain Helpers
# ─────────────────────────────────────────────────────────────────────────────


def monitor_starting() -> None:
    """Log monitor startup."""
    info("Starting sleep prevention monitor...", Icon.WAIT)


def monitor_stopping() -> None:
    """Log shutdown initiated."""
    info("Shutting down sleep monitor...", Icon.WAIT)


def monitor_stopped() -> None:
    """Log shutdown complete."""
    info("Monitor stopped", Icon.OK)


def signal_received(name: str) -> None:
    """Log signal received."""
    info(f"Received [bold]{name}[/]", Icon.KILL)


def filter_summary(enabled: bool) -> None:
    """Log whether system services are filtered."""
    state = "[green]enabled[/]" if enabled else "[yellow]disabled[/]"
    info(f"System service filtering: {state}")


def auto_kill_summary(enabled: bool, threshold_seconds: float) -> None:
    """Log auto-kill configuration."""
    if enabled:
        minutes = threshold_seconds / 60
        info(f"Auto-kill: [green]enabled[/] [dim](threshold: {minutes:g} minutes)[/]")
    else:
        info("Auto-kill: [dim]disabled[/]")


def power_mode_summary(mode: int | None) -> None:
    """Log the Low Power Mode state found at startup."""
    if mode is None:
        info("Low power mode: [dim]unknown[/] (will not be changed)", Icon.POWER)
    elif mode == 1:
        info(
            "Low power mode: [green]enabled[/] [dim](will be disabled when apps prevent sleep)[/]",
            Icon.POWER,
        )
    else:
        info("Low power mode: [dim]disabled[/]", Icon.POWER)


def tracking_started(process_name: str, at: float) -> None:
    """Log process started holding a sleep assertion."""
    ts = datetime.fromtimestamp(at).strftime("%H:%M:%S")
    info(f"Started tracking: {_name(process_name)} at {ts}", Icon.TRACK_START)


def tracking_stopped(process_name: str) -> None:
    """Log process no longer holding a sleep assertion."""
    info(f"Stopped tracking: {_name(process_name)}", Icon.TRACK_STOP)


def power_mode_disabling() -> None:
    """Log Low Power Mode being disabled."""
    info("Disabling low power mode to speed up task completion...", Icon.POWER)


def power_mode_restoring() -> None:
    """Log Low Power Mode being restored."""
    info("Restoring low power mode to original state...", Icon.POWER)


def sudo_hint(username: str) -> None:
    """Log how to grant passwordless sudo for pmset."""
    warn("Unable to change low power mode (sudo access required)")
    warn("To enable this feature, configure passwordless sudo for pmset:")
    warn("  [bold]sudo visudo -f /etc/sudoers.d/pmset[/]")
    warn(f"  Add: [bold]{escape(username)} ALL=(ALL) NOPASSWD: /usr/bin/pmset[/]")


def kill_protected(process_name: str) -> None:
    """Log a process skipped by the never-kill list."""
    info(f"Skipping {_name(process_name)} (protected from auto-kill)", Icon.SHIELD)


def killing(process_name: str, pid: int, elapsed: float) -> None:
    """Log a terminate signal about to be sent."""
    minutes = round(elapsed / 60, 1)
    info(
        f"Killing {_name(process_name)} [dim](PID: {pid})[/] - running for {minutes} minutes",
        Icon.KILL,
    )


def process_killed(process_name: str) -> None:
    """Log terminate signal delivered."""
    info(f"Successfully sent TERM signal to {_name(process_name)}", Icon.OK)


def process_gone(process_name: str, pid: int) -> None:
    """Log kill target already exited."""
    info(f"Process {_name(process_name)} [dim](PID: {pid})[/] no longer exists")


def kill_denied(process_name: str, pid: int) -> None:
    """Log kill target not signalable."""
    warn(f"Permission denied to kill {_name(process_name)} [dim](PID: {pid})[/]", Icon.FAIL)


def kill_failed(process_name: str, error_msg: str) -> None:
    """Log unexpected kill failure."""
    error(f"Error killing {_name(process_name)}: {escape(error_msg)}", Icon.FAIL)


def alert_sent(process_names: list[str]) -> None:
    """Log notification refreshed."""
    names = ", ".join(escape(n) for n in process_names)
    info(f"Notification sent: [cyan]{names}[/]", Icon.ALERT)


def alert_removed() -> None:
    """Log idle transition."""
    info("No apps preventing sleep - notification removed", Icon.OK)


def cycle_failed(error_msg: str) -> None:
    """Log poll cycle failure."""
    error(f"Error: {escape(error_msg)}", Icon.FAIL)


def config_created(path: str) -> None:
    """Log config file created."""
    info(f"Created config at [cyan]{path}[/]")


def version_info(name: str, version: str) -> None:
    """Log version info."""
    info(f"[bold cyan]{name}[/] v{version}")


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def _add_source(source: str) -> structlog.types.Processor:
    """Create a processor that adds a source field to log events."""

    def processor(
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict["source"] = source
        return event_dict

    return processor


def configure(config: Config) -> None:
    """Configure structlog to write JSON Lines to a rotating log file.

    Console output is handled by Rich (see log functions above); structlog
    only writes to the JSON file for machine parsing. Timestamps use local
    time.

    Args:
        config: Application config with paths
    """
    config.state_dir.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_path,
        maxBytes=config.system.log_max_bytes,
        backupCount=config.system.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.INFO)

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(logging.INFO)
    stdlib_root.handlers.clear()

    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                structlog.processors.add_log_level,
                _add_source("monitor"),
                structlog.processors.format_exc_info,
            ],
        )
    )
    stdlib_root.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
            structlog.processors.add_log_level,
            _add_source("monitor"),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
