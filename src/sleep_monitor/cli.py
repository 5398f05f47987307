"""CLI commands for sleep-monitor."""

import click


def _load_config():
    from sleep_monitor.config import Config

    try:
        return Config.load()
    except ValueError as e:
        raise click.ClickException(str(e)) from e


@click.group(invoke_without_command=True)
@click.version_option(package_name="sleep-monitor")
@click.option("--test", "run_test", is_flag=True, help="Send a test notification and exit")
@click.option("--no-filter", is_flag=True, help="Only filter out powerd, show all other services")
@click.option("--auto-kill", is_flag=True, help="Terminate apps preventing sleep too long")
@click.option(
    "--threshold",
    type=click.IntRange(min=0),
    default=None,
    metavar="MINUTES",
    help="Auto-kill threshold in minutes (default: 5)",
)
@click.pass_context
def main(ctx, run_test: bool, no_filter: bool, auto_kill: bool, threshold: int | None) -> None:
    """Watch which apps prevent your Mac from sleeping.

    With no command, runs the monitor until interrupted.
    """
    if ctx.invoked_subcommand is not None:
        return

    from sleep_monitor import logging as console
    from sleep_monitor.notifications import NotificationChannel, send_test_notification

    config = _load_config()
    config.filter.use_minimal = no_filter
    if auto_kill:
        config.auto_kill.enabled = True
    if threshold is not None:
        config.auto_kill.threshold_seconds = threshold * 60

    if run_test:
        console.info("Running notification test...")
        channel = NotificationChannel(timeout=config.monitor.command_timeout)
        send_test_notification(channel, config.alerts)
        return

    import asyncio

    from sleep_monitor.daemon import run_monitor

    console.filter_summary(not no_filter)
    asyncio.run(run_monitor(config))


@main.command()
@click.option("--no-filter", is_flag=True, help="Only filter out powerd")
def status(no_filter: bool) -> None:
    """Show apps currently preventing sleep."""
    from sleep_monitor.assertions import AssertionQueryError, get_sleep_preventing_apps
    from sleep_monitor.formatting import apps_preventing_sleep

    config = _load_config()
    config.filter.use_minimal = no_filter

    try:
        records = get_sleep_preventing_apps(
            config.filter.excluded_names, timeout=config.monitor.command_timeout
        )
    except AssertionQueryError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    if not records:
        click.echo("No apps preventing sleep.")
        return

    names = list(dict.fromkeys(r.process_name for r in records))
    click.echo(apps_preventing_sleep(len(names)))
    click.echo(f"{'PID':>7}  {'Process':24}  Assertion")
    click.echo("-" * 60)
    for record in records:
        click.echo(
            f"{record.process_id:>7}  {record.process_name[:24]:24}  {record.assertion_label}"
        )


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
def config_show() -> None:
    """Display current configuration."""
    cfg = _load_config()

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Exists: {cfg.config_path.exists()}")
    click.echo()
    click.echo("[monitor]")
    click.echo(f"  poll_interval = {cfg.monitor.poll_interval}")
    click.echo(f"  command_timeout = {cfg.monitor.command_timeout}")
    click.echo()
    click.echo("[filter]")
    click.echo(f"  filtered_services = {', '.join(cfg.filter.filtered_services)}")
    click.echo(f"  minimal_services = {', '.join(cfg.filter.minimal_services)}")
    click.echo()
    click.echo("[auto_kill]")
    click.echo(f"  enabled = {cfg.auto_kill.enabled}")
    click.echo(f"  threshold_seconds = {cfg.auto_kill.threshold_seconds}")
    click.echo(f"  never_kill = {', '.join(cfg.auto_kill.never_kill)}")
    click.echo()
    click.echo("[power_mode]")
    click.echo(f"  enabled = {cfg.power_mode.enabled}")


@config.command("edit")
def config_edit() -> None:
    """Open config file in editor."""
    import os
    import subprocess

    from sleep_monitor import logging as console

    cfg = _load_config()

    if not cfg.config_path.exists():
        cfg.save()
        console.config_created(str(cfg.config_path))

    editor = os.environ.get("EDITOR", "nano")
    subprocess.run([editor, str(cfg.config_path)])


@config.command("reset")
@click.confirmation_option(prompt="Reset config to defaults?")
def config_reset() -> None:
    """Reset configuration to defaults."""
    from sleep_monitor.config import Config

    cfg = Config()
    cfg.save()
    click.echo(f"Config reset to defaults at {cfg.config_path}")


if __name__ == "__main__":
    main()
