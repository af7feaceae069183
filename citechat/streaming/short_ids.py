"""Short-ID table: compact inline keys for retrieved passages.

Generated text references passages as ``[8ec7796]``, the first seven
characters of the passage id. The table maps those keys back to passages and
is transmitted once per response.
"""

import logging
import re
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from pydantic import ValidationError

from citechat.models.schemas import NumberedCitation, Passage

logger = logging.getLogger(__name__)

SHORT_ID_LENGTH = 7
_SHORT_ID_RE = re.compile(r"[0-9a-f]{7}")


def short_id_for(passage_id: str) -> str | None:
    """Return the short key for a passage id, or None if it cannot have one."""
    candidate = passage_id[:SHORT_ID_LENGTH].lower()
    if not _SHORT_ID_RE.fullmatch(candidate):
        return None
    return candidate


class ShortIdTable(Mapping[str, Passage]):
    """Read-only mapping of short id to passage, scoped to one response.

    Insertion order follows the backend's ranking. When two passages share a
    key the later one wins; the overwritten passages are kept in
    ``collisions``.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Passage] = {}
        self.collisions: dict[str, list[Passage]] = {}

    def __getitem__(self, key: str) -> Passage:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ShortIdTable({list(self._entries)!r})"

    def _put(self, key: str, passage: Passage) -> None:
        previous = self._entries.get(key)
        if previous is not None:
            self.collisions.setdefault(key, []).append(previous)
            logger.warning(f"Short id collision on {key}: {previous.id} replaced by {passage.id}")
        self._entries[key] = passage

    def numbered_citations(self) -> list[NumberedCitation]:
        """Passages in table order as a numbered citation list."""
        return [NumberedCitation.from_passage(p) for p in self._entries.values()]

    def to_wire(self) -> dict[str, dict[str, Any]]:
        return {key: passage.to_wire() for key, passage in self._entries.items()}

    @classmethod
    def from_passages(cls, passages: Iterable[Passage]) -> "ShortIdTable":
        table = cls()
        for passage in passages:
            if not passage.id:
                continue
            key = short_id_for(passage.id)
            if key is None:
                logger.debug(f"Passage id {passage.id!r} has no hex prefix, not referenceable")
                continue
            table._put(key, passage)
        return table

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> "ShortIdTable":
        """Rebuild a table received in a metadata frame.

        Keys that are not short ids and entries that are not valid passages
        are dropped.
        """
        table = cls()
        for key, value in data.items():
            if not isinstance(key, str) or not _SHORT_ID_RE.fullmatch(key):
                logger.warning(f"Ignoring search result with invalid key {key!r}")
                continue
            try:
                passage = value if isinstance(value, Passage) else Passage.model_validate(value)
            except ValidationError:
                logger.warning(f"Ignoring malformed search result {key}")
                continue
            table._put(key, passage)
        return table


def build_short_id_table(passages: Iterable[Passage]) -> ShortIdTable:
    """Build the short-id table for an ordered passage list."""
    return ShortIdTable.from_passages(passages)
