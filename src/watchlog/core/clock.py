"""
Environment sources used by the recorder: wall clock, memory usage, runtime version.

Everything that touches the host process lives here so the recorder
itself stays pure bookkeeping and can be driven by injected fakes.
"""

import math
import os
import platform
import resource
import sys
import time
import tracemalloc
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

READABLE_FORMAT = "%Y-%m-%d %H:%M:%S"
FRACTION_DIGITS = 4
STATM_PATH = "/proc/self/statm"


def wall_clock() -> float:
    """Return the current wall-clock time in seconds since the Unix epoch."""
    return time.time()


def readable_time(timestamp: float) -> str:
    """
    Format a Unix timestamp as local 'YYYY-MM-DD HH:MM:SS.ffff'.

    The fraction keeps four zero-padded digits, matching the default
    rounding applied to every recorded timestamp.
    """
    seconds = math.floor(timestamp)
    scale = 10 ** FRACTION_DIGITS
    fraction = min(round((timestamp - seconds) * scale), scale - 1)
    moment = datetime.fromtimestamp(seconds)
    return f"{moment.strftime(READABLE_FORMAT)}.{fraction:0{FRACTION_DIGITS}d}"


def runtime_version() -> str:
    """Return the interpreter version string, e.g. '3.12.1'."""
    return platform.python_version()


def _max_rss_bytes() -> int:
    """Peak resident set size of this process in bytes."""
    usage = resource.getrusage(resource.RUSAGE_SELF)
    # macOS reports bytes, Linux reports KB
    if sys.platform == "darwin":
        return usage.ru_maxrss
    return usage.ru_maxrss * 1024


def _current_rss_bytes() -> Optional[int]:
    """Current resident set size from /proc, or None where /proc is unavailable."""
    try:
        with open(STATM_PATH, encoding="ascii") as statm:
            resident_pages = int(statm.read().split()[1])
    except (OSError, ValueError, IndexError):
        return None
    return resident_pages * os.sysconf("SC_PAGE_SIZE")


def process_memory_usage() -> int:
    """
    Return current memory usage in bytes.

    Uses the traced Python heap when tracemalloc is running, otherwise
    the resident set size from /proc. Platforms without /proc only
    expose the peak resident size, which is returned instead.
    """
    if tracemalloc.is_tracing():
        current, _ = tracemalloc.get_traced_memory()
        return current
    rss = _current_rss_bytes()
    if rss is None:
        return _max_rss_bytes()
    return rss


def process_peak_memory() -> int:
    """Return the peak memory usage in bytes seen so far."""
    peak = _max_rss_bytes()
    if tracemalloc.is_tracing():
        _, traced_peak = tracemalloc.get_traced_memory()
        peak = max(peak, traced_peak)
    return peak


@dataclass(frozen=True)
class MemorySource:
    """Pair of callables reporting current and peak memory usage in bytes."""

    usage: Callable[[], int] = process_memory_usage
    peak: Callable[[], int] = process_peak_memory


default_memory_source = MemorySource()
