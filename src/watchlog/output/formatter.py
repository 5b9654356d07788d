"""
Minimalist output renderers for recorded documents.

Handles console summaries, file persistence and the log sink used by
the middleware. Color output uses ANSI codes via colorama for Windows
compatibility. Console width is detected dynamically from the terminal.
"""

import logging
import shutil
from pathlib import Path
from typing import Optional

import colorama

from ..core.recorder import Recorder
from ..core.records import Event

colorama.just_fix_windows_console()

logger = logging.getLogger("watchlog")


class _Color:
    """ANSI color constants."""

    RESET   = colorama.Style.RESET_ALL
    DIM     = colorama.Style.DIM
    BOLD    = colorama.Style.BRIGHT
    CYAN    = colorama.Fore.CYAN
    GREEN   = colorama.Fore.GREEN
    YELLOW  = colorama.Fore.YELLOW
    RED     = colorama.Fore.RED
    WHITE   = colorama.Fore.WHITE
    MAGENTA = colorama.Fore.MAGENTA


def _console_width() -> int:
    """Return current terminal width, with a sensible fallback."""
    return shutil.get_terminal_size(fallback=(80, 24)).columns


def _separator(char: str = "-") -> str:
    """Return a separator line sized to the current terminal width."""
    return char * _console_width()


_THRESHOLD_FAST_S   = 0.001     # under 1 ms   -> green
_THRESHOLD_MEDIUM_S = 0.01      # under 10 ms  -> yellow
                                # 10 ms and above -> red


def _color_for_duration(seconds: float) -> str:
    """Return the appropriate color code based on how slow the measurement is."""
    if seconds < _THRESHOLD_FAST_S:
        return _Color.GREEN
    if seconds < _THRESHOLD_MEDIUM_S:
        return _Color.YELLOW
    return _Color.RED


def _format_duration(seconds: float) -> str:
    """Return a human-readable string for a duration in seconds."""
    if seconds < 1:
        return f"{seconds * 1_000:.1f} ms"
    return f"{seconds:.4f} s"


def _format_bytes(size: int) -> str:
    """Return a human-readable string for a byte count."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 ** 2:
        return f"{size / 1024:.1f} KiB"
    return f"{size / 1024 ** 2:.1f} MiB"


def _format_tags(tags: Optional[dict]) -> str:
    """Render a tag map as a dim '[k=v, ...]' suffix."""
    if not tags:
        return ""
    parts = [f"{k}={v}" for k, v in tags.items()]
    return f"  {_Color.DIM}[{', '.join(parts)}]{_Color.RESET}"


def group_stats(events: list[Event]) -> dict:
    """
    Compute aggregate figures for one group of events.

    Returns:
        Dict with count, completed and open counts, and min/max/total
        run time in seconds (None when no event completed).
    """
    run_times = [e.run_time for e in events if e.is_complete]
    return {
        "count": len(events),
        "completed": len(run_times),
        "open": sum(1 for e in events if e.is_open),
        "min_s": min(run_times) if run_times else None,
        "max_s": max(run_times) if run_times else None,
        "total_s": round(sum(run_times), 4) if run_times else None,
    }


def _format_group_block(name: str, stats: dict) -> str:
    """Render aggregate stats for one group."""
    lines = [
        f"  {_Color.CYAN}{_Color.BOLD}{name}{_Color.RESET}",
        f"    events : {_Color.WHITE}{stats['count']}{_Color.RESET}"
        f"  {_Color.DIM}({stats['completed']} timed, {stats['open']} open){_Color.RESET}",
    ]
    if stats["completed"]:
        lines += [
            f"    min    : {_Color.GREEN}{_format_duration(stats['min_s'])}{_Color.RESET}",
            f"    max    : {_color_for_duration(stats['max_s'])}{_format_duration(stats['max_s'])}{_Color.RESET}",
            f"    total  : {_Color.WHITE}{_format_duration(stats['total_s'])}{_Color.RESET}",
        ]
    return "\n".join(lines)


def format_event_line(group: str, event: Event) -> str:
    """Render a single event as a compact colored one-line string."""
    name_str = f"{_Color.CYAN}{group:<30}{_Color.RESET}"
    key_str = f"{event.key or '':<16}"

    if event.is_complete:
        status = f"{_color_for_duration(event.run_time)}{_format_duration(event.run_time):>12}{_Color.RESET}"
    elif event.is_open:
        status = f"{_Color.YELLOW}{'open':>12}{_Color.RESET}"
    else:
        status = f"{_Color.DIM}{'instant':>12}{_Color.RESET}"

    return f"  {name_str} {key_str} {status}{_format_tags(event.tags)}"


def print_summary(recorder: Recorder) -> None:
    """Print a full summary report to stdout from a recorder."""
    records = recorder.get_records()
    groups = recorder.groups()
    thick = _separator("=")
    thin  = _separator("-")

    if not records:
        print(f"  {_Color.DIM}[watchlog] Nothing recorded.{_Color.RESET}")
        return

    print(f"{_Color.MAGENTA}{thick}{_Color.RESET}")
    print(f"  {_Color.BOLD}{_Color.WHITE}watchlog{_Color.RESET} | Event Summary")
    init = records.get("init", {})
    if "readable_start_time" in init:
        print(f"  {_Color.DIM}started {init['readable_start_time']}{_Color.RESET}")
    print(f"{_Color.MAGENTA}{thick}{_Color.RESET}")

    for name, events in groups.items():
        if len(events) == 1:
            print(format_event_line(name, events[0]))
        else:
            print(_format_group_block(name, group_stats(events)))
        print(f"{_Color.DIM}{thin}{_Color.RESET}")

    tags = recorder.global_tags()
    if tags:
        print(f"  Tags         :{_format_tags(tags)}")
    if "run_time" in init:
        print(f"  Run time     : {_Color.WHITE}{_format_duration(init['run_time'])}{_Color.RESET}")
    if "max_memory" in init:
        print(f"  Peak memory  : {_Color.WHITE}{_format_bytes(init['max_memory'])}{_Color.RESET}")
    print(f"  Total events : {_Color.WHITE}{sum(len(e) for e in groups.values())}{_Color.RESET}")
    print(f"{_Color.MAGENTA}{thick}{_Color.RESET}")


def save_to_file(recorder: Recorder, path: str, pretty: bool = True) -> Path:
    """
    Persist the recorded document to a JSON file.

    Args:
        recorder: The recorder holding the document
        path: File path to write (will overwrite if exists)
        pretty: Write indented JSON instead of compact form

    Returns:
        The resolved output path
    """
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", encoding="utf-8") as file:
        file.write(recorder.serialize(pretty=pretty))

    logger.info("records saved to %s", output_path.resolve())
    return output_path.resolve()


def log_records(recorder: Recorder, level: int = logging.INFO) -> None:
    """Log the compact JSON document on the 'watchlog' logger."""
    if logger.isEnabledFor(level):
        logger.log(level, "%s", recorder.serialize())
