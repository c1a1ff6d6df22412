"""
Text Extractor
==============
Produces a plain-text snapshot of a live Document plus the table needed
to map plain-text offsets back to live positions.

One TextNodeMapping is recorded per text run. Within a block runs are
contiguous in both coordinate spaces; between blocks the live space skips
the closing and opening tokens while the plain text advances only by the
configured block separator (empty by default).

A mapping is only valid for the document it was built from. Extract again
after every edit.
"""

from bisect import bisect_right
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .document import Document
from .models import Heading

# Returned when a plain offset has no unambiguous live position
UNMAPPABLE = -1


@dataclass(frozen=True)
class TextNodeMapping:
    plain_start: int
    plain_end: int
    live_start: int
    live_end: int
    text: str


class TextExtraction:
    """Plain-text snapshot with bidirectional offset mapping."""

    def __init__(self, text: str, mappings: List[TextNodeMapping], block_separator: str = ''):
        self.text = text
        self.mappings = mappings
        self.block_separator = block_separator
        self._plain_starts = [m.plain_start for m in mappings]
        self._live_starts = [m.live_start for m in mappings]

    @property
    def block_starts(self) -> List[int]:
        """Plain offsets where a block other than the first begins."""
        return [
            right.plain_start
            for left, right in zip(self.mappings, self.mappings[1:])
            if left.live_end != right.live_start
        ]

    def __len__(self):
        return len(self.text)

    def _neighbours(self, offset: int) -> Tuple[Optional[TextNodeMapping], Optional[TextNodeMapping], Optional[int]]:
        """
        Return (left, right, direct) for a plain offset.

        `direct` is set when the offset lies strictly inside one node.
        `left` is the node ending at the offset, `right` the node starting there.
        """
        index = bisect_right(self._plain_starts, offset) - 1
        if index < 0:
            return None, None, None

        node = self.mappings[index]
        if node.plain_start < offset < node.plain_end:
            return None, None, node.live_start + offset - node.plain_start

        right = node if node.plain_start == offset else None
        left_index = index - 1 if right is not None else index
        left = None
        if left_index >= 0 and self.mappings[left_index].plain_end == offset:
            left = self.mappings[left_index]
        return left, right, None

    def plain_to_live(self, offset: int, assoc: int = 0) -> int:
        """
        Map a plain-text offset to a live position.

        When the offset sits on a boundary between two nodes that are not
        contiguous in the live document, `assoc` picks a side: negative
        means the end of the left node, positive the start of the right
        node, zero returns UNMAPPABLE.
        """
        if offset < 0 or offset > len(self.text):
            return UNMAPPABLE

        left, right, direct = self._neighbours(offset)
        if direct is not None:
            return direct

        if left is not None and right is not None:
            if left.live_end == right.live_start:
                return left.live_end
            if assoc < 0:
                return left.live_end
            if assoc > 0:
                return right.live_start
            return UNMAPPABLE

        if left is not None:
            return left.live_end
        if right is not None:
            return right.live_start
        return UNMAPPABLE

    def is_contiguous(self, start: int, end: int) -> bool:
        """True when every character of the plain span sits in one unbroken live run."""
        index = max(bisect_right(self._plain_starts, start) - 1, 0)
        covered = start
        previous = None
        for node in self.mappings[index:]:
            if node.plain_start >= end:
                break
            if node.plain_end <= start:
                continue
            if node.plain_start > covered:
                return False
            if previous is not None and previous.live_end != node.live_start:
                return False
            covered = node.plain_end
            previous = node
        return covered >= end

    def plain_range_to_live(self, start: int, end: int) -> Optional[Tuple[int, int]]:
        """
        Map a non-empty plain span to a live range, or None.

        Spans crossing a block boundary have no single live range and are
        rejected even when the plain text reads continuously.
        """
        if start >= end or not self.is_contiguous(start, end):
            return None
        live_from = self.plain_to_live(start, assoc=1)
        live_to = self.plain_to_live(end, assoc=-1)
        if live_from == UNMAPPABLE or live_to == UNMAPPABLE or live_from >= live_to:
            return None
        return live_from, live_to

    def live_to_plain(self, pos: int) -> int:
        """Map a live position to a plain offset (UNMAPPABLE for structural slots)."""
        index = bisect_right(self._live_starts, pos) - 1
        if index < 0:
            return UNMAPPABLE
        node = self.mappings[index]
        if pos <= node.live_end:
            return node.plain_start + pos - node.live_start
        return UNMAPPABLE


def extract_text_with_mapping(doc: Document, block_separator: str = '') -> TextExtraction:
    """Build the plain-text snapshot and mapping table for a document."""
    parts: List[str] = []
    mappings: List[TextNodeMapping] = []
    plain_pos = 0

    for index, block, text_start in doc.iter_text_blocks():
        if index > 0 and block_separator:
            parts.append(block_separator)
            plain_pos += len(block_separator)

        live_pos = text_start
        for run in block.runs:
            length = len(run.text)
            mappings.append(TextNodeMapping(
                plain_start=plain_pos,
                plain_end=plain_pos + length,
                live_start=live_pos,
                live_end=live_pos + length,
                text=run.text,
            ))
            parts.append(run.text)
            plain_pos += length
            live_pos += length

    return TextExtraction(''.join(parts), mappings, block_separator)


def extract_headings(doc: Document) -> List[Heading]:
    return [
        Heading(level=block.level or 1, text=block.text)
        for block in doc.blocks
        if block.type == 'heading' and block.text.strip()
    ]


def extract_paragraphs(doc: Document) -> List[str]:
    return [
        block.text for block in doc.blocks
        if block.type == 'paragraph' and block.text.strip()
    ]
