"""
Suggestion Manager (Position Tracker)
=====================================
Keeps each Suggestion's highlight attached to the right live text while
the user types.

The manager is the only owner of live-document spans. Suggestions carry
plain-text-origin coordinates; TrackedPosition records are built here and
nowhere else.

Locating a Suggestion in a freshly analysed document:
1. its original plain span, mapped to live coordinates, if the live text
   there still equals ``original_text``;
2. otherwise an occurrence scan for ``match_text``. The wanted occurrence
   is ``Suggestion.occurrence`` when recorded, else the id's position key
   (matched against occurrence offsets first, then used as an ordinal).
   Contextual matches are narrowed to ``original_text``. Two Suggestions
   of the same category and rule never claim the same range; the later
   one moves on to the next unclaimed occurrence.

Suggestions that cannot be located stay listed without a position.
"""

from typing import Dict, Iterable, List, Optional, Set, Tuple

from config_logging import get_logger

from .document import Document, Transaction
from .extractor import TextExtraction, extract_text_with_mapping
from .factory import context_offset, position_key_of
from .models import Suggestion, TrackedPosition

logger = get_logger('wordwise.tracker')

LiveRange = Tuple[int, int]


def find_occurrences(text: str, needle: str) -> List[int]:
    """All (overlapping) start offsets of needle in text."""
    if not needle:
        return []
    offsets = []
    index = text.find(needle)
    while index != -1:
        offsets.append(index)
        index = text.find(needle, index + 1)
    return offsets


class SuggestionManager:
    """Tracks live positions for the current Suggestion set."""

    def __init__(self, block_separator: Optional[str] = None):
        if block_separator is None:
            from .config import get_config
            block_separator = get_config().extractor.block_separator
        self.block_separator = block_separator
        self._suggestions: Dict[str, Suggestion] = {}
        self._positions: Dict[str, TrackedPosition] = {}
        self._doc: Optional[Document] = None

    def __len__(self):
        return len(self._suggestions)

    def __contains__(self, suggestion_id: str) -> bool:
        return suggestion_id in self._suggestions

    @property
    def doc(self) -> Optional[Document]:
        return self._doc

    # ------------------------------------------------------------------
    # Full replace
    # ------------------------------------------------------------------

    def add_suggestions(
        self,
        suggestions: Iterable[Suggestion],
        doc: Document,
        extraction: Optional[TextExtraction] = None
    ):
        """Replace every tracked Suggestion and position with a new set."""
        extraction = extraction or extract_text_with_mapping(doc, self.block_separator)
        self._suggestions = {}
        self._positions = {}
        self._doc = doc
        claimed: Dict[Tuple[str, str], Set[LiveRange]] = {}

        for suggestion in suggestions:
            self._suggestions[suggestion.id] = suggestion
            if not (suggestion.match_text or suggestion.original_text):
                continue

            rule_key = (suggestion.category, suggestion.rule_id)
            taken = claimed.setdefault(rule_key, set())
            live = self._locate(suggestion, doc, extraction, taken)
            if live is None:
                logger.debug("Suggestion not located", suggestion_id=suggestion.id)
                continue
            taken.add(live)
            self._positions[suggestion.id] = TrackedPosition(suggestion.id, live[0], live[1])

    def _locate(
        self,
        suggestion: Suggestion,
        doc: Document,
        extraction: TextExtraction,
        taken: Set[LiveRange]
    ) -> Optional[LiveRange]:
        target = suggestion.original_text or suggestion.match_text

        if suggestion.position is not None:
            live = extraction.plain_range_to_live(suggestion.position.start, suggestion.position.end)
            if live is not None and live not in taken and doc.text_between(*live) == target:
                return live

        needle = suggestion.match_text or target
        occurrences = find_occurrences(extraction.text, needle)
        if not occurrences:
            return None

        narrow = context_offset(suggestion) if suggestion.original_text else 0
        if narrow < 0:
            narrow, target = 0, needle
        starts = [offset + narrow for offset in occurrences]

        for start in starts[self._wanted_index(suggestion, starts):]:
            live = extraction.plain_range_to_live(start, start + len(target))
            if live is None or live in taken:
                continue
            if doc.text_between(*live) == target:
                return live
        return None

    @staticmethod
    def _wanted_index(suggestion: Suggestion, starts: List[int]) -> int:
        if suggestion.occurrence is not None:
            return suggestion.occurrence
        key = position_key_of(suggestion.id)
        if key is None:
            return 0
        if key in starts:
            return starts.index(key)
        return key

    # ------------------------------------------------------------------
    # Incremental remap
    # ------------------------------------------------------------------

    def update_positions(self, tr: Transaction):
        """
        Map every tracked span through an edit.

        Runs synchronously on each transaction. Spans that collapse, leave
        the document or no longer cover the Suggestion's original text are
        dropped, never clamped.
        """
        if not tr.doc_changed:
            return

        doc = tr.doc
        remapped: Dict[str, TrackedPosition] = {}
        for suggestion_id, tracked in self._positions.items():
            new_from = tr.mapping.map(tracked.from_pos, 1)
            new_to = tr.mapping.map(tracked.to_pos, -1)

            if new_from >= new_to or new_from < 0 or new_to > doc.content_size:
                logger.debug("Dropping collapsed position", suggestion_id=suggestion_id)
                continue

            suggestion = self._suggestions[suggestion_id]
            expected = suggestion.original_text or suggestion.match_text
            if doc.text_between(new_from, new_to) != expected:
                logger.debug("Dropping position whose text changed", suggestion_id=suggestion_id)
                continue

            remapped[suggestion_id] = TrackedPosition(suggestion_id, new_from, new_to)

        self._positions = remapped
        self._doc = doc

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_position(self, suggestion_id: str) -> Optional[TrackedPosition]:
        return self._positions.get(suggestion_id)

    def get_suggestion(self, suggestion_id: str) -> Optional[Suggestion]:
        return self._suggestions.get(suggestion_id)

    def get_positions(self) -> List[TrackedPosition]:
        """Tracked positions ordered by live start."""
        return sorted(self._positions.values(), key=lambda p: (p.from_pos, p.to_pos))

    def get_all_suggestions(self) -> List[Suggestion]:
        return list(self._suggestions.values())

    def find_at(self, pos: int) -> List[str]:
        """Ids whose tracked range contains the live position."""
        return [p.suggestion_id for p in self.get_positions() if p.from_pos <= pos < p.to_pos]

    def remove_suggestion(self, suggestion_id: str) -> bool:
        self._positions.pop(suggestion_id, None)
        return self._suggestions.pop(suggestion_id, None) is not None

    def clear(self):
        self._suggestions.clear()
        self._positions.clear()
