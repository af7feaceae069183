"""Inline citation resolution.

Generated answers reference sources in two ways:

* ``[3]`` - the third entry of a numbered citation list;
* ``[8ec7796]`` or ``【8ec7796】`` - a passage short id.

``resolve`` splits an answer into plain text and resolved references. Markers
are processed in order of appearance; when both patterns match at the same
offset (``[1234567]`` is a valid number and a valid short id) the numbered
reading is tried first and the short-id reading is used if the number does
not resolve. Unresolved markers stay in the output as literal text.
"""

import re
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel

from citechat.models.schemas import NumberedCitation, Passage

NUMBERED_MARKER_RE = re.compile(r"\[(\d+)\]")
SHORT_ID_MARKER_RE = re.compile(r"\[([0-9a-f]{7})\]|【([0-9a-f]{7})】")


class CitationRef(BaseModel):
    """A ``[n]`` marker resolved against the numbered citation list."""

    kind: Literal["citation"] = "citation"
    label: str
    number: int
    citation: NumberedCitation


class PassageRef(BaseModel):
    """A short-id marker resolved against the passage table."""

    kind: Literal["passage"] = "passage"
    label: str
    short_id: str
    passage: Passage


Segment = str | CitationRef | PassageRef


@dataclass(frozen=True)
class _Marker:
    start: int
    end: int
    kind: Literal["numbered", "short_id"]
    key: str
    literal: str


def _scan(text: str) -> list[_Marker]:
    markers = [
        _Marker(m.start(), m.end(), "numbered", m.group(1), m.group(0))
        for m in NUMBERED_MARKER_RE.finditer(text)
    ]
    markers.extend(
        _Marker(m.start(), m.end(), "short_id", m.group(1) or m.group(2), m.group(0))
        for m in SHORT_ID_MARKER_RE.finditer(text)
    )
    # sort is stable: numbered markers stay ahead at equal offsets
    markers.sort(key=lambda marker: marker.start)
    return markers


class CitationSegments:
    """Lazy, restartable sequence of answer segments.

    Each iteration rescans the text, so iterating twice yields the same
    segments and no state is kept between iterations.
    """

    def __init__(
        self,
        text: str,
        numbered_citations: Sequence[NumberedCitation],
        short_id_table: Mapping[str, Passage],
    ) -> None:
        self._text = text
        self._citations = tuple(numbered_citations)
        self._table = short_id_table

    def _lookup(self, marker: _Marker) -> CitationRef | PassageRef | None:
        if marker.kind == "numbered":
            number = int(marker.key)
            if 1 <= number <= len(self._citations):
                return CitationRef(label=marker.literal, number=number, citation=self._citations[number - 1])
            return None
        passage = self._table.get(marker.key)
        if passage is None:
            return None
        return PassageRef(label=marker.literal, short_id=marker.key, passage=passage)

    def __iter__(self) -> Iterator[Segment]:
        text = self._text
        markers = _scan(text)
        cursor = 0

        for index, marker in enumerate(markers):
            if marker.start < cursor:
                continue
            reference = self._lookup(marker)
            if reference is None:
                following = markers[index + 1] if index + 1 < len(markers) else None
                if following is not None and following.start == marker.start:
                    continue
            if marker.start > cursor:
                yield text[cursor : marker.start]
            yield reference if reference is not None else marker.literal
            cursor = marker.end

        if cursor < len(text):
            yield text[cursor:]

    def references(self) -> list[CitationRef | PassageRef]:
        return [segment for segment in self if not isinstance(segment, str)]


def resolve(
    text: str,
    numbered_citations: Sequence[NumberedCitation] = (),
    short_id_table: Mapping[str, Passage] | None = None,
) -> CitationSegments:
    """Split rendered answer text into plain segments and resolved references.

    Args:
        text: Answer text as rendered so far.
        numbered_citations: Ordered citation list for ``[n]`` markers.
        short_id_table: Passages of the same turn, keyed by short id.

    Returns:
        A restartable iterable of ``str``, ``CitationRef`` and ``PassageRef``.
    """
    return CitationSegments(text, numbered_citations, short_id_table or {})
