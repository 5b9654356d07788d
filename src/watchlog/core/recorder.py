"""
The Recorder: in-memory bookkeeping for timed events.

Callers mark start/stop pairs, loop iterations and single-shot
detections by group (and optional key). The recorder accumulates them
in a Document that can be snapshotted or serialized to JSON at the end
of a process or request.

Not thread-safe: use one Recorder per logical task or request.
"""

import dataclasses
import json
import logging
from typing import Callable, Optional

from .clock import (
    MemorySource,
    default_memory_source,
    readable_time,
    runtime_version,
    wall_clock,
)
from .records import (
    RESERVED_GROUPS,
    Document,
    Event,
    InitMetadata,
    TagMap,
    TagValue,
    check_tag_value,
    copy_tags,
    is_scalar,
)

logger = logging.getLogger(__name__)

DEFAULT_PRECISION = 4


def _check_group(group: str) -> None:
    if not isinstance(group, str):
        raise TypeError(f"group must be a string, got {type(group).__name__}")
    if group in RESERVED_GROUPS:
        raise ValueError(f"group name {group!r} is reserved")


def _check_key(key: Optional[str]) -> None:
    if key is not None and not isinstance(key, str):
        raise TypeError(f"key must be a string, got {type(key).__name__}")


def _check_tags(tags: Optional[TagMap]) -> None:
    if tags is None:
        return
    if not isinstance(tags, dict):
        raise TypeError(f"tags must be a dict, got {type(tags).__name__}")
    for key, value in tags.items():
        check_tag_value(key, value)


class Recorder:
    """
    Records named events and process metadata on a single timeline.

    Events are addressed by group and optional key. start() registers an
    open handle per (group, key); stop() consumes it. loop() keeps one
    open iteration per group. detect() records an instant.
    """

    def __init__(
        self,
        clock: Callable[[], float] = wall_clock,
        memory: Optional[MemorySource] = None,
        precision: int = DEFAULT_PRECISION,
    ):
        """
        Initialize an empty recorder.

        Args:
            clock: Wall-clock source returning seconds since the Unix epoch
            memory: Memory usage source; defaults to the current process
            precision: Default number of decimals for recorded times
        """
        self._clock = clock
        self._memory = memory or default_memory_source
        self._precision = precision
        self._document = Document()
        self._open: dict[str, dict[str, Event]] = {}
        self._loops: dict[str, Event] = {}
        self._epoch: Optional[float] = None

    def __enter__(self) -> "Recorder":
        """Initialize process metadata on context entry."""
        self.init()
        return self

    def __exit__(self, *_) -> None:
        """Finalize process metadata on context exit."""
        self.finalize()

    @property
    def epoch(self) -> Optional[float]:
        """Relative time origin set by init(), or None."""
        return self._epoch

    # -- time --------------------------------------------------------------

    def get_time(self, round_digits: Optional[int] = None, since: Optional[float] = None) -> float:
        """
        Return the current wall-clock time, rounded.

        Args:
            round_digits: Decimal places to keep; defaults to the recorder precision
            since: When given, return the time elapsed since this timestamp instead
        """
        digits = self._precision if round_digits is None else round_digits
        now = float(self._clock())
        if since:
            now -= since
        return round(now, digits)

    def get_runtime(self, round_digits: Optional[int] = None) -> float:
        """Return seconds since init(), or absolute time if init() was not called."""
        return self.get_time(round_digits, self._epoch)

    def _since_epoch(self, now: float) -> Optional[float]:
        if self._epoch is None:
            return None
        return round(now - self._epoch, self._precision)

    # -- process lifecycle -------------------------------------------------

    def init(self) -> None:
        """
        Set the epoch and record process start metadata.

        Meant to be called once, first. Optional: without it every
        relative time is recorded as null.
        """
        self._epoch = self.get_time()
        self._document.init = InitMetadata(
            version=runtime_version(),
            readable_start_time=readable_time(self._epoch),
            start_time=self._epoch,
            start_memory=self._memory.usage(),
        )

    def finalize(self) -> None:
        """Record process end time, run time and memory usage. Meant to be called last."""
        end = self.get_time()
        if self._document.init is None:
            self._document.init = InitMetadata()

        meta = self._document.init
        meta.readable_end_time = readable_time(end)
        meta.end_time = end
        if isinstance(meta.start_time, (int, float)):
            meta.run_time = round(end - meta.start_time, self._precision)
        meta.end_memory = self._memory.usage()
        meta.max_memory = self._memory.peak()

    def reset(self) -> None:
        """Drop all records, open handles, loop handles and the epoch."""
        abandoned = sum(len(handles) for handles in self._open.values()) + len(self._loops)
        if abandoned:
            logger.debug("reset discards %d open event(s)", abandoned)
        self._document = Document()
        self._open = {}
        self._loops = {}
        self._epoch = None

    # -- global tags -------------------------------------------------------

    def tag(self, key: str, value: TagValue) -> None:
        """
        Set a global tag, replacing any previous value.

        Args:
            key: Tag name
            value: Scalar, or list of scalars
        """
        check_tag_value(key, value)
        if self._document.tags is None:
            self._document.tags = {}
        self._document.tags[key] = list(value) if isinstance(value, list) else value

    def tag_append(self, key: str, *values) -> None:
        """
        Append values to a global tag, turning it into a list.

        A single list argument is flattened one level. An existing scalar
        becomes the first element of the new list.
        """
        if len(values) == 1 and isinstance(values[0], (list, tuple)):
            values = tuple(values[0])
        for value in values:
            if not is_scalar(value):
                raise TypeError(
                    f"tag {key!r} values must be scalars, got {type(value).__name__}"
                )

        if self._document.tags is None:
            self._document.tags = {}
        tags = self._document.tags

        current = tags.get(key)
        if current is None:
            tags[key] = list(values)
        elif isinstance(current, list):
            current.extend(values)
        else:
            tags[key] = [current, *values]

    # -- events ------------------------------------------------------------

    def _open_event(self, now: float, key: Optional[str] = None) -> Event:
        return Event(
            key=key,
            readable_start_time=readable_time(now),
            unix_start_time=now,
            start_time=self._since_epoch(now),
            readable_end_time=None,
            unix_end_time=None,
            end_time=None,
            run_time=None,
        )

    def _close_event(self, event: Event, now: float) -> None:
        event.readable_end_time = readable_time(now)
        event.unix_end_time = now
        event.end_time = self._since_epoch(now)
        event.run_time = round(now - event.unix_start_time, self._precision)

    def start_event(self, group: str, key: Optional[str] = None,
                    tags: Optional[TagMap] = None) -> Event:
        """
        Start a new event in group and return it without registering a handle.

        The caller closes exactly this event with stop_event(), so
        overlapping or recursive intervals with the same (group, key)
        never shadow each other.

        Args:
            group: Group name
            key: Optional sub-identifier stored on the event
            tags: Optional tags merged into the event
        """
        _check_group(group)
        _check_key(key)
        _check_tags(tags)

        event = self._open_event(self.get_time(), key or None)
        event.add_tags(tags)
        self._document.append(group, event)
        return event

    def stop_event(self, event: Event, tags: Optional[TagMap] = None) -> None:
        """Close an event returned by start_event() and merge tags into it."""
        _check_tags(tags)
        self._close_event(event, self.get_time())
        event.add_tags(tags)

    def start(self, group: str, key: Optional[str] = None, tags: Optional[TagMap] = None) -> None:
        """
        Start a new event in group and register it for stop().

        Always appends a new event. A previous open event with the same
        (group, key) stays in the document but can no longer be stopped.

        Args:
            group: Group name
            key: Optional sub-identifier; the group name is used when omitted
            tags: Optional tags merged into the event
        """
        event = self.start_event(group, key, tags)

        handle = key or group
        handles = self._open.setdefault(group, {})
        if handle in handles:
            logger.debug("start(%r, %r) shadows an event that was never stopped", group, key)
        handles[handle] = event

    def stop(self, group: str, key: Optional[str] = None, tags: Optional[TagMap] = None) -> None:
        """
        Stop the open event for (group, key).

        Without a matching start() a new end-only event is appended; its
        key is stored only when one was passed here.

        Args:
            group: Group name
            key: Optional sub-identifier; the group name is used when omitted
            tags: Optional tags merged into the event
        """
        _check_group(group)
        _check_key(key)
        _check_tags(tags)

        now = self.get_time()
        handles = self._open.get(group, {})
        event = handles.pop(key or group, None)

        if event is not None:
            self._close_event(event, now)
        else:
            logger.debug("stop(%r, %r) without a matching start", group, key)
            event = Event(
                key=key,
                readable_start_time=None,
                unix_start_time=None,
                start_time=None,
                readable_end_time=readable_time(now),
                unix_end_time=now,
                end_time=self._since_epoch(now),
                run_time=None,
            )
            self._document.append(group, event)

        event.add_tags(tags)

    def loop(self, group: str, tags: Optional[TagMap] = None) -> None:
        """
        Close the current iteration of group (if any) and start a new one.

        Both happen at the same instant, so consecutive iterations tile
        the timeline without gaps.
        """
        _check_group(group)
        _check_tags(tags)

        now = self.get_time()
        previous = self._loops.pop(group, None)
        if previous is not None:
            self._close_event(previous, now)

        event = self._open_event(now)
        event.add_tags(tags)
        self._document.append(group, event)
        self._loops[group] = event

    def end_loop(self, group: str) -> None:
        """Close the current iteration of group. No-op when none is open."""
        event = self._loops.pop(group, None)
        if event is None:
            return
        self._close_event(event, self.get_time())

    def detect(self, group: str, tags: Optional[TagMap] = None) -> None:
        """
        Record a single instant in group.

        The relative start time is included only after init().
        """
        _check_group(group)
        _check_tags(tags)

        now = self.get_time()
        event = Event(readable_start_time=readable_time(now), unix_start_time=now)
        if self._epoch is not None:
            event.start_time = self._since_epoch(now)
        event.add_tags(tags)
        self._document.append(group, event)

    # -- output ------------------------------------------------------------

    def get_records(self) -> dict:
        """
        Return a snapshot of everything recorded so far.

        The result is a deep copy in plain dicts and lists, shaped like the
        JSON output; mutating it does not affect the recorder.
        """
        return self._document.to_dict()

    def serialize(self, pretty: bool = False) -> str:
        """
        Render the recorded document as JSON.

        Args:
            pretty: Indent the output over multiple lines instead of compact form
        """
        if pretty:
            return json.dumps(self.get_records(), indent=4)
        return json.dumps(self.get_records(), separators=(",", ":"))

    def groups(self) -> dict[str, list[Event]]:
        """
        Return copies of the recorded events by group, in first-use order.

        Editing the returned events does not change the recorder.
        """
        return {
            group: [dataclasses.replace(e, tags=copy_tags(e.tags) if e.tags else e.tags) for e in events]
            for group, events in self._document.groups.items()
        }

    def global_tags(self) -> TagMap:
        """Return a copy of the global tags."""
        return copy_tags(self._document.tags or {})
