"""
Host introspection through standard system utilities.

Every parser works on raw text and degrades to ``None`` / ``"unknown"`` for the
fields it cannot read, so one unexpected line never fails the whole source.
"""

import asyncio
import re
import sys
from datetime import UTC, datetime, timedelta

import structlog

from src.core.models import PowerEvent, PowerSnapshot, SystemSnapshot

from .process import run_command

logger = structlog.get_logger(__name__)

DEFAULT_PAGE_SIZE = 16384

_MAC_CPU = re.compile(
    r"CPU usage:\s+([\d.]+)%\s+user,\s+([\d.]+)%\s+sys,\s+([\d.]+)%\s+idle"
)
_LINUX_CPU = re.compile(r"Cpu\(s\):.*?([\d.]+)\s*id")
_PAGE_SIZE = re.compile(r"page size of (\d+) bytes")
_FREE_MEM = re.compile(r"^Mem:\s+(\d+)\s+(\d+)", re.MULTILINE)
_UPTIME_USERS = re.compile(r"up\s+(.+?),\s+\d+\s+users?")
_UPTIME_LOAD = re.compile(r"up\s+(.+?),\s+load averages?")
_POWER_LINE = re.compile(
    r"^(\d{4}-\d{2}-\d{2}\s+\d{2}:\d{2}:\d{2})\s+([+-]\d{4})\s+(Sleep|Wake|DarkWake)(?=\s|$)"
)


def _vm_stat_pages(vm_stat: str, label: str) -> int | None:
    match = re.search(rf"{re.escape(label)}:\s+(\d+)", vm_stat)
    return int(match.group(1)) if match else None


def parse_cpu_percent(top_output: str) -> float | None:
    """CPU busy percentage from macOS or procps ``top`` output"""
    match = _MAC_CPU.search(top_output)
    if match:
        idle = float(match.group(3))
        return round(100.0 - idle, 1)

    match = _LINUX_CPU.search(top_output)
    if match:
        try:
            idle = float(match.group(1))
        except ValueError:
            return None
        return round(100.0 - idle, 1)

    return None


def parse_memory_percent_vm_stat(vm_stat: str, memsize: str) -> float | None:
    """Used memory percentage from ``vm_stat`` and ``sysctl -n hw.memsize``

    Used = active + wired + compressed pages.
    """
    try:
        total = int(memsize.strip())
    except ValueError:
        return None
    if total <= 0:
        return None

    page_size = DEFAULT_PAGE_SIZE
    match = _PAGE_SIZE.search(vm_stat)
    if match:
        page_size = int(match.group(1))

    counts = [
        _vm_stat_pages(vm_stat, label)
        for label in ("Pages active", "Pages wired down", "Pages occupied by compressor")
    ]
    if all(count is None for count in counts):
        return None
    used_pages = sum(count or 0 for count in counts)
    return float(round(used_pages * page_size / total * 100.0))


def parse_memory_percent_free(free_output: str) -> float | None:
    """Used memory percentage from ``free -b``"""
    match = _FREE_MEM.search(free_output)
    if not match:
        return None
    total, used = int(match.group(1)), int(match.group(2))
    if total <= 0:
        return None
    return float(round(used / total * 100.0))


def parse_disk_percent(df_output: str) -> int | None:
    """Root filesystem usage from ``df -h /``

    Tokens after the header are joined so a device name that wraps onto its own
    line does not shift the columns.
    """
    lines = [line for line in df_output.splitlines() if line.strip()]
    if len(lines) < 2:
        return None

    parts = " ".join(lines[1:]).split()
    if len(parts) < 5:
        return None
    try:
        return int(parts[4].rstrip("%"))
    except ValueError:
        return None


def parse_uptime(uptime_output: str) -> str:
    for pattern in (_UPTIME_USERS, _UPTIME_LOAD):
        match = pattern.search(uptime_output)
        if match:
            return " ".join(match.group(1).split())
    return "unknown"


def parse_power_events(
    pmset_log: str, now: datetime | None = None, window: timedelta = timedelta(minutes=10)
) -> list[PowerEvent]:
    """Sleep / wake events from ``pmset -g log`` within ``[now - window, now]``

    Only the interval since the previous collection is kept so consecutive
    cycles never report the same event twice.
    """
    now = now or datetime.now(UTC)
    cutoff = now - window
    events: list[PowerEvent] = []

    for line in pmset_log.splitlines():
        match = _POWER_LINE.match(line.strip())
        if not match:
            continue
        try:
            local = datetime.strptime(
                f"{match.group(1)} {match.group(2)}", "%Y-%m-%d %H:%M:%S %z"
            )
        except ValueError:
            continue

        event_time = local.astimezone(UTC)
        if cutoff <= event_time <= now:
            events.append(PowerEvent(timestamp=event_time, type=match.group(3)))

    return events


async def collect_system_snapshot(timeout: float = 10.0) -> SystemSnapshot:
    """Sample CPU, memory, disk and uptime concurrently"""
    if sys.platform == "darwin":
        top, vm_stat, memsize, df, uptime = await asyncio.gather(
            run_command("top", "-l", "1", "-s", "0", "-n", "0", timeout=timeout),
            run_command("vm_stat", timeout=timeout),
            run_command("sysctl", "-n", "hw.memsize", timeout=timeout),
            run_command("df", "-h", "/", timeout=timeout),
            run_command("uptime", timeout=timeout),
        )
        memory = parse_memory_percent_vm_stat(vm_stat, memsize)
    else:
        top, free, df, uptime = await asyncio.gather(
            run_command("top", "-b", "-n", "1", timeout=timeout),
            run_command("free", "-b", timeout=timeout),
            run_command("df", "-h", "/", timeout=timeout),
            run_command("uptime", timeout=timeout),
        )
        memory = parse_memory_percent_free(free)

    snapshot = SystemSnapshot(
        cpu_percent=parse_cpu_percent(top),
        memory_percent=memory,
        disk_percent=parse_disk_percent(df),
        uptime=parse_uptime(uptime),
    )
    logger.debug(
        "System snapshot collected",
        cpu=snapshot.cpu_percent,
        memory=snapshot.memory_percent,
        disk=snapshot.disk_percent,
    )
    return snapshot


async def collect_power_snapshot(
    window: timedelta = timedelta(minutes=10), timeout: float = 10.0
) -> PowerSnapshot:
    output = await run_command("pmset", "-g", "log", timeout=timeout)
    return PowerSnapshot(recent_events=parse_power_events(output, window=window))
