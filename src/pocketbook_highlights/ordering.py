"""Ordering of highlights by their EPUB CFI location markers."""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .models import Highlight

CFI_TOKEN = "epubcfi"

_STEP_PATTERN = re.compile(r"/(\d+)")
_NUMBER = r"\d+(?:\.\d+)?"
_TEMPORAL_PATTERN = re.compile(rf"~({_NUMBER})")
_SPATIAL_PATTERN = re.compile(rf"@({_NUMBER}):({_NUMBER})")
_OFFSET_PATTERN = re.compile(r":(\d+)")


class OrderingFailure(ValueError):
    """Raised when a location marker cannot be parsed or compared."""


class Ordering(enum.IntEnum):
    LESS = -1
    EQUAL = 0
    GREATER = 1


@dataclass(frozen=True)
class Cfi:
    """A parsed EPUB canonical fragment identifier.

    ``steps`` holds the child indices of every path step, with indirections
    (``!``) flattened into a single sequence. Range CFIs are reduced to their
    start position.
    """

    steps: Tuple[int, ...]
    offset: Optional[int] = None
    temporal: Optional[float] = None
    spatial: Optional[Tuple[float, float]] = None

    def sort_key(self) -> tuple:
        # A bare path sorts before any character offset inside it.
        offset = (-1,) if self.offset is None else (self.offset,)
        temporal = (-1.0,) if self.temporal is None else (self.temporal,)
        # Spatial offsets compare by y, then x.
        spatial = (-1.0, -1.0) if self.spatial is None else (self.spatial[1], self.spatial[0])
        return (self.steps, offset, temporal, spatial)


def strip_scheme(marker: str) -> str:
    """Drop anything in front of the ``epubcfi`` token (``book.epub#epubcfi(...)``)."""

    index = marker.find(CFI_TOKEN)
    if index == -1:
        return marker
    return marker[index:]


def _skip_assertion(body: str, pos: int) -> int:
    """Return the index after a ``[...]`` assertion starting at ``pos``."""

    pos += 1
    while pos < len(body):
        char = body[pos]
        if char == "^":
            pos += 2
            continue
        if char == "]":
            return pos + 1
        pos += 1
    raise OrderingFailure("unterminated assertion")


def _parse_path(body: str) -> Tuple[List[int], Optional[int], Optional[float], Optional[Tuple[float, float]]]:
    steps: List[int] = []
    offset: Optional[int] = None
    temporal: Optional[float] = None
    spatial: Optional[Tuple[float, float]] = None
    pos = 0
    while pos < len(body):
        char = body[pos]
        if char == "!":
            pos += 1
            continue
        if char == "/":
            if offset is not None or temporal is not None or spatial is not None:
                raise OrderingFailure(f"step after terminal offset in {body!r}")
            match = _STEP_PATTERN.match(body, pos)
            if not match:
                raise OrderingFailure(f"invalid step at position {pos} in {body!r}")
            steps.append(int(match.group(1)))
            pos = match.end()
        elif char == ":":
            match = _OFFSET_PATTERN.match(body, pos)
            if not match or offset is not None:
                raise OrderingFailure(f"invalid character offset in {body!r}")
            offset = int(match.group(1))
            pos = match.end()
        elif char == "~":
            match = _TEMPORAL_PATTERN.match(body, pos)
            if not match:
                raise OrderingFailure(f"invalid temporal offset in {body!r}")
            temporal = float(match.group(1))
            pos = match.end()
        elif char == "@":
            match = _SPATIAL_PATTERN.match(body, pos)
            if not match:
                raise OrderingFailure(f"invalid spatial offset in {body!r}")
            spatial = (float(match.group(1)), float(match.group(2)))
            pos = match.end()
        elif char == "[":
            if not steps:
                raise OrderingFailure(f"assertion without step in {body!r}")
            pos = _skip_assertion(body, pos)
        else:
            raise OrderingFailure(f"unexpected character {char!r} in {body!r}")
    return steps, offset, temporal, spatial


def _split_range(body: str) -> List[str]:
    parts: List[str] = []
    depth = 0
    current = []
    pos = 0
    while pos < len(body):
        char = body[pos]
        if char == "^":
            current.append(body[pos : pos + 2])
            pos += 2
            continue
        if char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
        if char == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
        pos += 1
    parts.append("".join(current))
    return parts


def parse_cfi(marker: Any) -> Cfi:
    """Parse ``marker`` into a :class:`Cfi`, raising :class:`OrderingFailure` if malformed."""

    if not isinstance(marker, str):
        raise OrderingFailure(f"location marker must be a string, got {type(marker).__name__}")
    value = strip_scheme(marker.strip())
    if not (value.startswith(f"{CFI_TOKEN}(") and value.endswith(")")):
        raise OrderingFailure(f"not an epubcfi marker: {marker!r}")
    body = value[len(CFI_TOKEN) + 1 : -1]

    parts = _split_range(body)
    if len(parts) == 3:
        body = parts[0] + parts[1]
    elif len(parts) != 1:
        raise OrderingFailure(f"invalid range in {marker!r}")

    steps, offset, temporal, spatial = _parse_path(body)
    if not steps:
        raise OrderingFailure(f"empty path in {marker!r}")
    return Cfi(tuple(steps), offset, temporal, spatial)


def compare_markers(a: Any, b: Any) -> Ordering:
    """Structurally compare two location markers from the same book."""

    key_a = parse_cfi(a).sort_key()
    key_b = parse_cfi(b).sort_key()
    if key_a < key_b:
        return Ordering.LESS
    if key_a > key_b:
        return Ordering.GREATER
    return Ordering.EQUAL


def timestamp_key(value: Any) -> float:
    """Coerce an ``updated`` value to a number; missing values sort first."""

    if value is None or isinstance(value, bool):
        return float("-inf")
    if isinstance(value, (int, float)):
        return float("-inf") if value != value else float(value)
    text = str(value).strip()
    if not text:
        return float("-inf")
    try:
        return float(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return float("-inf")


def order_by_timestamp(highlights: Iterable[Highlight]) -> List[Highlight]:
    return sorted(highlights, key=lambda highlight: timestamp_key(highlight.updated))


def order_highlights(highlights: Sequence[Highlight]) -> List[Highlight]:
    """Return ``highlights`` in reading order.

    The batch is first sorted structurally by the ``begin`` marker. If any
    marker in the batch fails to parse, the structural attempt is discarded
    as a whole and the batch is sorted by ascending ``updated`` timestamp
    instead, so a single sort never mixes both strategies.
    """

    try:
        keyed = [(parse_cfi(highlight.begin).sort_key(), highlight) for highlight in highlights]
    except OrderingFailure:
        return order_by_timestamp(highlights)
    keyed.sort(key=lambda pair: pair[0])
    return [highlight for _, highlight in keyed]
