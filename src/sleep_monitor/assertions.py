"""Power assertion parsing for sleep-monitor."""

import re
import subprocess
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

log = structlog.get_logger()

# One process-level assertion line from `pmset -g assertions`, e.g.
#   pid 412(Xcode): [0x0000a1b2] 00:03:12 PreventUserIdleSystemSleep named: "build"
ASSERTION_PATTERN = re.compile(
    r'pid (\d+)\(([^)]+)\):.*PreventUserIdleSystemSleep.*named: "([^"]+)"'
)


class AssertionQueryError(Exception):
    """Raised when the assertions snapshot cannot be read."""


@dataclass(frozen=True)
class AssertionRecord:
    """A process holding a PreventUserIdleSystemSleep assertion."""

    process_id: int
    process_name: str
    assertion_label: str


def parse_assertions(output: str, excluded_names: Iterable[str] = ()) -> list[AssertionRecord]:
    """Parse `pmset -g assertions` output for idle-sleep preventers.

    Args:
        output: Raw output from `pmset -g assertions`
        excluded_names: Process names to drop from the result

    Returns:
        List of AssertionRecord in input line order
    """
    excluded = frozenset(excluded_names)
    records = []

    for line in output.splitlines():
        match = ASSERTION_PATTERN.search(line)
        if not match:
            continue

        pid_str, process_name, label = match.groups()
        if process_name in excluded:
            continue

        records.append(
            AssertionRecord(
                process_id=int(pid_str),
                process_name=process_name,
                assertion_label=label,
            )
        )

    return records


def query_assertions(timeout: float = 10.0) -> str:
    """Run `pmset -g assertions` and return its output.

    Raises:
        AssertionQueryError: If pmset is missing, times out or fails.
    """
    try:
        result = subprocess.run(
            ["pmset", "-g", "assertions"],
            capture_output=True,
            timeout=timeout,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        raise AssertionQueryError(f"pmset -g assertions failed: {e}") from e

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise AssertionQueryError(
            f"pmset -g assertions exited with {result.returncode}: {stderr}"
        )

    # Process names can contain non-UTF-8 bytes
    return result.stdout.decode("utf-8", errors="replace")


def get_sleep_preventing_apps(
    excluded_names: Iterable[str] = (),
    timeout: float = 10.0,
) -> list[AssertionRecord]:
    """Query and parse current sleep-preventing assertions."""
    records = parse_assertions(query_assertions(timeout=timeout), excluded_names)
    log.debug("assertions_parsed", count=len(records))
    return records
