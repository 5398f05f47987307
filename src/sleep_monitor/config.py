"""Configuration system for sleep-monitor."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

# System services that hold transient sleep assertions as part of normal operation
DEFAULT_FILTERED_SERVICES = [
    "powerd",  # System power management
    "CloudTelemetryService",  # macOS telemetry service
    "runningboardd",  # Process lifecycle daemon
    "coreaudiod",  # Core Audio daemon
    "sharingd",  # File sharing daemon
    "useractivityd",  # User activity tracking daemon
    "cloudd",  # iCloud sync daemon
    "appstoreagent",  # App Store background agent
    "AddressBookSourceSync",  # Contacts sync service
    "bluetoothd",  # Bluetooth daemon
]

# Filter used when the user asks for unfiltered visibility
MINIMAL_FILTERED_SERVICES = ["powerd"]

# Processes that are never sent a terminate signal
DEFAULT_NEVER_KILL = [
    "caffeinate",  # User-initiated sleep prevention
    "appleh13camerad",  # Camera daemon
]


@dataclass
class MonitorConfig:
    """Poll loop configuration."""

    poll_interval: float = 5.0  # Seconds between assertion checks
    command_timeout: float = 10.0  # Seconds before an external command is abandoned


@dataclass
class FilterConfig:
    """Process-name exclusion sets for the assertion parser."""

    filtered_services: list[str] = field(default_factory=lambda: list(DEFAULT_FILTERED_SERVICES))
    minimal_services: list[str] = field(default_factory=lambda: list(MINIMAL_FILTERED_SERVICES))
    use_minimal: bool = False  # Set by --no-filter

    @property
    def excluded_names(self) -> frozenset[str]:
        """Names the parser should drop this run."""
        if self.use_minimal:
            return frozenset(self.minimal_services)
        return frozenset(self.filtered_services)


@dataclass
class AutoKillConfig:
    """Auto-kill policy configuration.

    A process that keeps a sleep assertion for threshold_seconds is sent
    SIGTERM, unless its name is in never_kill.
    """

    enabled: bool = False
    threshold_seconds: float = 300.0  # 5 minutes
    never_kill: list[str] = field(default_factory=lambda: list(DEFAULT_NEVER_KILL))


@dataclass
class PowerModeConfig:
    """Low Power Mode handling."""

    enabled: bool = True  # Disable Low Power Mode while apps prevent sleep


@dataclass
class AlertsConfig:
    """Desktop notification configuration."""

    title: str = "Sleep Prevention Alert"
    group_id: str = "com.sleepmonitor.prevent-sleep"
    test_delay: float = 5.0  # Seconds the --test notification stays up


@dataclass
class SystemConfig:
    """Log file rotation."""

    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    filter: FilterConfig = field(default_factory=FilterConfig)
    auto_kill: AutoKillConfig = field(default_factory=AutoKillConfig)
    power_mode: PowerModeConfig = field(default_factory=PowerModeConfig)
    alerts: AlertsConfig = field(default_factory=AlertsConfig)
    system: SystemConfig = field(default_factory=SystemConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "sleep-monitor"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "sleep-monitor"

    @property
    def log_path(self) -> Path:
        """Monitor log path (JSON Lines)."""
        return self.state_dir / "monitor.log"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ["monitor", "filter", "auto_kill", "power_mode", "alerts", "system"]:
            table = _dataclass_to_table(getattr(self, name))
            if name == "filter":
                # Runtime-only switch, driven by --no-filter
                table.remove("use_minimal")
            doc.add(name, table)
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions, so Config() and
        Config.load() on a missing file are identical.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        # unwrap() turns tomlkit containers into plain dicts/lists
        data = data.unwrap()

        return cls(
            monitor=_load_monitor_config(data.get("monitor", {})),
            filter=_load_filter_config(data.get("filter", {})),
            auto_kill=_load_auto_kill_config(data.get("auto_kill", {})),
            power_mode=PowerModeConfig(
                enabled=data.get("power_mode", {}).get("enabled", defaults.power_mode.enabled),
            ),
            alerts=_load_alerts_config(data.get("alerts", {})),
            system=_load_system_config(data.get("system", {})),
        )


def _load_monitor_config(data: dict) -> MonitorConfig:
    """Load monitor config from TOML data, using dataclass defaults for missing fields."""
    defaults = MonitorConfig()

    poll_interval = data.get("poll_interval", defaults.poll_interval)
    command_timeout = data.get("command_timeout", defaults.command_timeout)

    if poll_interval <= 0:
        raise ValueError(f"poll_interval must be > 0, got {poll_interval}")
    if command_timeout <= 0:
        raise ValueError(f"command_timeout must be > 0, got {command_timeout}")

    return MonitorConfig(poll_interval=poll_interval, command_timeout=command_timeout)


def _load_filter_config(data: dict) -> FilterConfig:
    """Load filter config from TOML data."""
    d = FilterConfig()
    return FilterConfig(
        filtered_services=list(data.get("filtered_services", d.filtered_services)),
        minimal_services=list(data.get("minimal_services", d.minimal_services)),
    )


def _load_auto_kill_config(data: dict) -> AutoKillConfig:
    """Load auto-kill config from TOML data."""
    defaults = AutoKillConfig()

    threshold_seconds = data.get("threshold_seconds", defaults.threshold_seconds)
    if threshold_seconds < 0:
        raise ValueError(f"threshold_seconds must be >= 0, got {threshold_seconds}")

    return AutoKillConfig(
        enabled=data.get("enabled", defaults.enabled),
        threshold_seconds=threshold_seconds,
        never_kill=list(data.get("never_kill", defaults.never_kill)),
    )


def _load_alerts_config(data: dict) -> AlertsConfig:
    """Load alerts config from TOML data."""
    a = AlertsConfig()
    return AlertsConfig(
        title=data.get("title", a.title),
        group_id=data.get("group_id", a.group_id),
        test_delay=data.get("test_delay", a.test_delay),
    )


def _load_system_config(data: dict) -> SystemConfig:
    """Load system config from TOML data."""
    s = SystemConfig()
    return SystemConfig(
        log_max_bytes=data.get("log_max_bytes", s.log_max_bytes),
        log_backup_count=data.get("log_backup_count", s.log_backup_count),
    )
