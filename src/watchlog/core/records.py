"""
Typed document model for everything a Recorder accumulates.

A field left at UNSET was never assigned and is omitted from the
rendered output; a field assigned None is rendered as null.
"""

from dataclasses import dataclass, field, fields
from typing import Optional, Union

Scalar = Union[str, int, float, bool, None]
TagValue = Union[Scalar, list]
TagMap = dict

RESERVED_GROUPS = frozenset({"init", "tags"})


class _Unset:
    """Marker type for a field that was never assigned."""

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()

MaybeFloat = Union[float, None, _Unset]
MaybeStr = Union[str, None, _Unset]
MaybeInt = Union[int, None, _Unset]


def is_scalar(value) -> bool:
    """Return True for values that may be stored as a single tag value."""
    return value is None or isinstance(value, (str, int, float, bool))


def check_tag_value(key: str, value) -> None:
    """Raise TypeError unless value is a scalar or a list of scalars."""
    if is_scalar(value):
        return
    if isinstance(value, list) and all(is_scalar(item) for item in value):
        return
    raise TypeError(
        f"tag {key!r} must be a scalar or a list of scalars, got {type(value).__name__}"
    )


def copy_tags(tags: TagMap) -> TagMap:
    """Return a copy of a tag map that shares no lists with the original."""
    return {k: list(v) if isinstance(v, list) else v for k, v in tags.items()}


def _render(obj) -> dict:
    """Render assigned dataclass fields in declaration order."""
    out = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if value is UNSET:
            continue
        if isinstance(value, dict):
            value = copy_tags(value)
        out[f.metadata.get("json", f.name)] = value
    return out


@dataclass
class Event:
    """
    One recorded interval or instant within a group.

    key and tags are omitted when None; every other field is omitted
    only while UNSET.
    """

    key: Optional[str] = None
    readable_start_time: MaybeStr = UNSET
    unix_start_time: MaybeFloat = UNSET
    start_time: MaybeFloat = UNSET
    readable_end_time: MaybeStr = UNSET
    unix_end_time: MaybeFloat = UNSET
    end_time: MaybeFloat = UNSET
    run_time: MaybeFloat = UNSET
    tags: Optional[TagMap] = None

    @property
    def is_open(self) -> bool:
        """True when the event was started and has not been stopped."""
        started = self.unix_start_time is not UNSET and self.unix_start_time is not None
        return started and self.unix_end_time is None

    @property
    def is_complete(self) -> bool:
        """True when both ends were recorded and a run time is known."""
        return isinstance(self.run_time, (int, float))

    def add_tags(self, tags: Optional[TagMap]) -> None:
        """Merge tags into the event; later keys win on conflict."""
        if not tags:
            return
        merged = dict(self.tags) if self.tags else {}
        merged.update(copy_tags(tags))
        self.tags = merged

    def to_dict(self) -> dict:
        out = _render(self)
        if self.key is None:
            out.pop("key")
        if self.tags is None:
            out.pop("tags")
        return out


@dataclass
class InitMetadata:
    """Process-level metadata written by init() and finalize()."""

    version: MaybeStr = UNSET
    readable_start_time: MaybeStr = UNSET
    start_time: MaybeFloat = UNSET
    start_memory: MaybeInt = UNSET
    # Serialized under its historical misspelled name for output compatibility.
    readable_end_time: MaybeStr = field(default=UNSET, metadata={"json": "readble_end_time"})
    end_time: MaybeFloat = UNSET
    run_time: MaybeFloat = UNSET
    end_memory: MaybeInt = UNSET
    max_memory: MaybeInt = UNSET

    def to_dict(self) -> dict:
        return _render(self)


@dataclass
class Document:
    """Root container: init metadata, global tags and ordered event groups."""

    init: Optional[InitMetadata] = None
    tags: Optional[TagMap] = None
    groups: dict[str, list[Event]] = field(default_factory=dict)

    def append(self, group: str, event: Event) -> None:
        """Append an event to a group, creating the group on first use."""
        self.groups.setdefault(group, []).append(event)

    def to_dict(self) -> dict:
        """Return a deep, JSON-shaped snapshot of the document."""
        out = {}
        if self.init is not None:
            out["init"] = self.init.to_dict()
        if self.tags is not None:
            out["tags"] = copy_tags(self.tags)
        for group, events in self.groups.items():
            out[group] = [event.to_dict() for event in events]
        return out
