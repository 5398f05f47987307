"""Poll loop for sleep-monitor."""

import asyncio
import signal
import time
from collections.abc import Callable

import structlog

from sleep_monitor import logging as console
from sleep_monitor.assertions import AssertionRecord, parse_assertions, query_assertions
from sleep_monitor.autokill import (
    KillOutcome,
    Victim,
    protected_names,
    select_victims,
    terminate_process,
)
from sleep_monitor.config import Config
from sleep_monitor.notifications import AlertPresenter, Channel, NotificationChannel
from sleep_monitor.powermode import PowerModeController
from sleep_monitor.tracker import MonitorState, SleepPreventionTracker, TrackerUpdate

log = structlog.get_logger()


class Monitor:
    """Main monitor class: query, track, then act on power mode, kills and alerts.

    Every external effect goes through an injectable collaborator so a cycle
    can be driven with fakes and an explicit clock.
    """

    def __init__(
        self,
        config: Config,
        *,
        assertions_source: Callable[[], str] | None = None,
        power_mode: PowerModeController | None = None,
        channel: Channel | None = None,
        kill_process: Callable[[int], KillOutcome] = terminate_process,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.state = MonitorState()
        self.tracker = SleepPreventionTracker()

        timeout = config.monitor.command_timeout
        self._query = assertions_source or (lambda: query_assertions(timeout=timeout))
        self.power_mode = power_mode or PowerModeController(
            timeout=timeout, enabled=config.power_mode.enabled
        )
        self.presenter = AlertPresenter(
            channel or NotificationChannel(timeout=timeout), config.alerts
        )
        self._kill_process = kill_process
        self._clock = clock

        self.running = False
        self.cycle_count = 0
        self._protected_logged: set[str] = set()
        self._shutdown_event = asyncio.Event()

        # Read once: this is the value restored when apps stop preventing sleep
        if config.power_mode.enabled:
            self.state.original_power_mode = self.power_mode.read_mode()

    def run_cycle(self, now: float | None = None) -> TrackerUpdate:
        """Run one poll cycle.

        Raises whatever the assertions query raises; the caller decides
        whether a failed cycle is fatal.
        """
        if now is None:
            now = self._clock()

        output = self._query()
        records = parse_assertions(output, self.config.filter.excluded_names)
        update = self.tracker.update(self.state, records, now)
        self.cycle_count += 1

        for name in sorted(update.started):
            console.tracking_started(name, now)
        for name in sorted(update.stopped):
            console.tracking_stopped(name)
            self._protected_logged.discard(name)

        if self.state.is_active:
            self.power_mode.suppress(self.state)
            if self.config.auto_kill.enabled:
                self._auto_kill(records, now)
            self.presenter.present(self.state, records, now)
        else:
            if update.became_idle:
                self.presenter.withdraw(self.state)
                console.alert_removed()
            self.power_mode.restore(self.state)

        return update

    def _auto_kill(self, records: list[AssertionRecord], now: float) -> list[Victim]:
        """Send SIGTERM to processes past the threshold.

        Returns the victims a signal was attempted for.
        """
        cfg = self.config.auto_kill

        for name in protected_names(records, cfg.never_kill):
            elapsed = self.tracker.elapsed(self.state, name, now)
            if elapsed is None or name in self._protected_logged:
                continue
            if elapsed >= cfg.threshold_seconds:
                console.kill_protected(name)
                self._protected_logged.add(name)

        victims = select_victims(
            records, self.state.tracked, cfg.threshold_seconds, now, cfg.never_kill
        )
        signaled: list[Victim] = []
        for victim in victims:
            # An earlier pid with the same name already ended this tracking session
            if victim.process_name not in self.state.tracked:
                continue
            console.killing(victim.process_name, victim.process_id, victim.elapsed)
            signaled.append(victim)
            try:
                outcome = self._kill_process(victim.process_id)
            except Exception as e:
                log.exception(
                    "kill_failed",
                    process=victim.process_name,
                    pid=victim.process_id,
                    error=str(e),
                )
                console.kill_failed(victim.process_name, str(e))
                continue

            log.info(
                "kill_attempted",
                process=victim.process_name,
                pid=victim.process_id,
                elapsed=round(victim.elapsed, 1),
                outcome=outcome.value,
            )
            if outcome is KillOutcome.DELIVERED:
                self.state.tracked.pop(victim.process_name, None)
                console.process_killed(victim.process_name)
            elif outcome is KillOutcome.NOT_FOUND:
                self.state.tracked.pop(victim.process_name, None)
                console.process_gone(victim.process_name, victim.process_id)
            else:
                # Still tracked, so the next qualifying cycle retries
                console.kill_denied(victim.process_name, victim.process_id)

        return signaled

    async def start(self) -> None:
        """Start the monitor and run until shutdown."""
        from importlib.metadata import version

        pkg_version = version("sleep-monitor")
        log.info("monitor_starting", version=pkg_version)
        console.version_info("sleep-monitor", pkg_version)
        console.monitor_starting()
        console.auto_kill_summary(
            self.config.auto_kill.enabled, self.config.auto_kill.threshold_seconds
        )
        console.power_mode_summary(self.state.original_power_mode)
        log.info(
            "monitor_config",
            poll_interval=self.config.monitor.poll_interval,
            auto_kill=self.config.auto_kill.enabled,
            threshold_seconds=self.config.auto_kill.threshold_seconds,
            excluded=sorted(self.config.filter.excluded_names),
            original_power_mode=self.state.original_power_mode,
        )

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: self._handle_signal(s))

        self.running = True
        await self._main_loop()

    async def stop(self) -> None:
        """Withdraw the alert and restore Low Power Mode before exiting."""
        console.monitor_stopping()
        log.info("monitor_stopping")
        self.running = False

        if self.state.alert_active:
            self.presenter.withdraw(self.state)
        self.power_mode.restore(self.state)

        console.monitor_stopped()
        log.info("monitor_stopped", cycles=self.cycle_count)

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signals."""
        log.info("signal_received", signal=sig.name)
        console.signal_received(sig.name)
        self._shutdown_event.set()

    async def _main_loop(self) -> None:
        """Run a cycle every poll_interval seconds until shutdown.

        A failing cycle is logged and followed by the normal wait; it never
        ends the loop.
        """
        poll_interval = self.config.monitor.poll_interval

        while not self._shutdown_event.is_set():
            try:
                self.run_cycle()
            except Exception as e:
                log.error("cycle_failed", error=str(e))
                console.cycle_failed(str(e))

            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=poll_interval)
                break  # Shutdown requested during sleep
            except asyncio.TimeoutError:
                pass  # Normal timeout, continue to next cycle


async def run_monitor(config: Config | None = None) -> None:
    """Run the monitor until shutdown.

    Args:
        config: Optional config, loads from file if not provided
    """
    if config is None:
        config = Config.load()

    console.configure(config)

    monitor = Monitor(config)

    try:
        await monitor.start()
    except Exception as e:
        log.exception("monitor_crashed", error=str(e))
        raise
    finally:
        await monitor.stop()
