"""
Live Document Model
===================
A minimal ProseMirror-style document used as the live editing surface.

Position space: the document is a flat sequence of blocks. Every block
consumes one slot for its opening token, one per character of text and
one for its closing token. Block *i*'s text therefore starts at
``sum(len(b.text) + 2 for b in blocks[:i]) + 1``. Plain-text offsets and
live positions differ by the structural slots in between.

Edits are made through a Transaction, which records a Mapping of
StepMaps that translate old positions into new ones.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from config_logging import PositionMappingError

BLOCK_TYPES = ('paragraph', 'heading')


@dataclass(frozen=True)
class TextRun:
    """Leaf text with optional marks (bold, link, ...)."""
    text: str
    marks: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Block:
    """A paragraph or heading holding text runs."""
    type: str = 'paragraph'
    runs: Tuple[TextRun, ...] = ()
    level: int = 0

    def __post_init__(self):
        if self.type not in BLOCK_TYPES:
            raise ValueError(f"Unknown block type: {self.type}")

    @property
    def text(self) -> str:
        return ''.join(run.text for run in self.runs)

    @property
    def node_size(self) -> int:
        return len(self.text) + 2

    @classmethod
    def of(cls, text: str, type: str = 'paragraph', level: int = 0) -> 'Block':
        runs = (TextRun(text),) if text else ()
        return cls(type=type, runs=runs, level=level)

    def with_runs(self, runs: Sequence[TextRun]) -> 'Block':
        return Block(type=self.type, runs=_normalize_runs(runs), level=self.level)


def _normalize_runs(runs: Sequence[TextRun]) -> Tuple[TextRun, ...]:
    """Drop empty runs and join neighbours that share marks."""
    out: List[TextRun] = []
    for run in runs:
        if not run.text:
            continue
        if out and out[-1].marks == run.marks:
            out[-1] = TextRun(out[-1].text + run.text, run.marks)
        else:
            out.append(run)
    return tuple(out)


def _slice_runs(runs: Sequence[TextRun], start: int, end: int) -> List[TextRun]:
    """Runs covering [start, end) of the block text."""
    out = []
    pos = 0
    for run in runs:
        run_start, run_end = pos, pos + len(run.text)
        pos = run_end
        lo, hi = max(start, run_start), min(end, run_end)
        if lo < hi:
            out.append(TextRun(run.text[lo - run_start:hi - run_start], run.marks))
    return out


def _marks_at(runs: Sequence[TextRun], offset: int) -> Tuple[str, ...]:
    """Marks inherited by text inserted at `offset`."""
    pos = 0
    for run in runs:
        run_end = pos + len(run.text)
        if pos < offset <= run_end:
            return run.marks
        pos = run_end
    return ()


class Document:
    """Immutable document snapshot."""

    def __init__(self, blocks: Sequence[Block] = ()):
        self.blocks: Tuple[Block, ...] = tuple(blocks) or (Block(),)
        self._starts: List[int] = []
        pos = 0
        for block in self.blocks:
            self._starts.append(pos)
            pos += block.node_size
        self.content_size = pos

    def __repr__(self):
        return f"Document({[b.text for b in self.blocks]!r})"

    def __eq__(self, other):
        return isinstance(other, Document) and self.blocks == other.blocks

    def __hash__(self):
        return hash(self.blocks)

    @classmethod
    def from_paragraphs(cls, paragraphs: Sequence[str]) -> 'Document':
        return cls([Block.of(p) for p in paragraphs])

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Document':
        """Build from ProseMirror JSON (doc > paragraph|heading > text)."""
        if data.get('type') != 'doc':
            raise ValueError("Expected a node of type 'doc'")
        blocks = []
        for node in data.get('content') or []:
            node_type = node.get('type', 'paragraph')
            level = int((node.get('attrs') or {}).get('level', 0)) if node_type == 'heading' else 0
            runs = []
            for leaf in node.get('content') or []:
                if leaf.get('type') != 'text':
                    continue
                marks = tuple(m.get('type', '') for m in leaf.get('marks') or [])
                runs.append(TextRun(leaf.get('text', ''), marks))
            blocks.append(Block(type=node_type, runs=_normalize_runs(runs), level=level))
        return cls(blocks)

    def to_dict(self) -> Dict[str, Any]:
        content = []
        for block in self.blocks:
            node: Dict[str, Any] = {'type': block.type}
            if block.type == 'heading':
                node['attrs'] = {'level': block.level}
            leaves = []
            for run in block.runs:
                leaf: Dict[str, Any] = {'type': 'text', 'text': run.text}
                if run.marks:
                    leaf['marks'] = [{'type': m} for m in run.marks]
                leaves.append(leaf)
            if leaves:
                node['content'] = leaves
            content.append(node)
        return {'type': 'doc', 'content': content}

    def block_start(self, index: int) -> int:
        """Live position of the block's opening token."""
        return self._starts[index]

    def text_start(self, index: int) -> int:
        """Live position of the first character of the block's text."""
        return self._starts[index] + 1

    def iter_text_blocks(self) -> Iterator[Tuple[int, Block, int]]:
        """Yield (index, block, text_start) in document order."""
        for index, block in enumerate(self.blocks):
            yield index, block, self._starts[index] + 1

    def resolve(self, pos: int) -> Optional[Tuple[int, int]]:
        """
        Resolve a live position to (block_index, text_offset).

        Returns None for positions that are not inside (or at the edges
        of) a block's text.
        """
        for index, block, text_start in self.iter_text_blocks():
            if text_start <= pos <= text_start + len(block.text):
                return index, pos - text_start
        return None

    def text_between(self, from_pos: int, to_pos: int) -> str:
        """Leaf text between two live positions (block boundaries add nothing)."""
        parts = []
        for _, block, text_start in self.iter_text_blocks():
            text = block.text
            lo = max(from_pos, text_start)
            hi = min(to_pos, text_start + len(text))
            if lo < hi:
                parts.append(text[lo - text_start:hi - text_start])
        return ''.join(parts)

    def text_content(self, block_separator: str = '') -> str:
        return block_separator.join(block.text for block in self.blocks)


@dataclass(frozen=True)
class StepMap:
    """Position map for one replaced range [start, start + old_size)."""
    start: int
    old_size: int
    new_size: int

    def map(self, pos: int, assoc: int = 1) -> int:
        end = self.start + self.old_size
        if pos < self.start:
            return pos
        if pos > end:
            return pos + self.new_size - self.old_size
        if not self.old_size:
            side = assoc
        elif pos == self.start:
            side = -1
        elif pos == end:
            side = 1
        else:
            side = assoc
        return self.start + (0 if side < 0 else self.new_size)


@dataclass
class Mapping:
    """Ordered sequence of StepMaps."""
    maps: List[StepMap] = field(default_factory=list)

    def append(self, step_map: StepMap):
        self.maps.append(step_map)

    def map(self, pos: int, assoc: int = 1) -> int:
        for step_map in self.maps:
            pos = step_map.map(pos, assoc)
        return pos


class Transaction:
    """
    Accumulates edits against a document.

    Every method returns the transaction so calls can be chained:
    ``Transaction(doc).insert_text(1, "Hello ").doc``
    """

    def __init__(self, doc: Document):
        self.before = doc
        self.doc = doc
        self.mapping = Mapping()

    @property
    def doc_changed(self) -> bool:
        return bool(self.mapping.maps)

    def _resolve_text_pos(self, pos: int) -> Tuple[int, int]:
        resolved = self.doc.resolve(pos)
        if resolved is None:
            raise PositionMappingError(f"Position {pos} is not inside a text block")
        return resolved

    def replace_text(self, from_pos: int, to_pos: int, text: str) -> 'Transaction':
        """Replace [from_pos, to_pos) with text, joining blocks if the range spans them."""
        if from_pos > to_pos:
            raise ValueError(f"Invalid range [{from_pos}, {to_pos})")
        if from_pos == to_pos and not text:
            return self

        start_index, start_offset = self._resolve_text_pos(from_pos)
        end_index, end_offset = self._resolve_text_pos(to_pos)
        blocks = list(self.doc.blocks)
        first, last = blocks[start_index], blocks[end_index]

        runs = _slice_runs(first.runs, 0, start_offset)
        runs.append(TextRun(text, _marks_at(first.runs, start_offset)))
        runs.extend(_slice_runs(last.runs, end_offset, len(last.text)))
        blocks[start_index:end_index + 1] = [first.with_runs(runs)]

        self.doc = Document(blocks)
        self.mapping.append(StepMap(from_pos, to_pos - from_pos, len(text)))
        return self

    def insert_text(self, pos: int, text: str) -> 'Transaction':
        return self.replace_text(pos, pos, text)

    def delete(self, from_pos: int, to_pos: int) -> 'Transaction':
        return self.replace_text(from_pos, to_pos, '')

    def split_block(self, pos: int) -> 'Transaction':
        """Split the block containing pos into two blocks of the same type."""
        index, offset = self._resolve_text_pos(pos)
        blocks = list(self.doc.blocks)
        block = blocks[index]
        head = block.with_runs(_slice_runs(block.runs, 0, offset))
        tail = Block(type='paragraph' if block.type == 'heading' else block.type,
                     runs=_normalize_runs(_slice_runs(block.runs, offset, len(block.text))))
        blocks[index:index + 1] = [head, tail]

        self.doc = Document(blocks)
        self.mapping.append(StepMap(pos, 0, 2))
        return self

    def insert_block(self, pos: int, text: str = '', type: str = 'paragraph',
                     level: int = 0) -> 'Transaction':
        """Insert a new block at a block boundary."""
        boundaries = [self.doc.block_start(i) for i in range(len(self.doc.blocks))]
        boundaries.append(self.doc.content_size)
        if pos not in boundaries:
            raise ValueError(f"Position {pos} is not a block boundary")
        index = boundaries.index(pos)
        block = Block.of(text, type=type, level=level)
        blocks = list(self.doc.blocks)
        blocks.insert(index, block)

        self.doc = Document(blocks)
        self.mapping.append(StepMap(pos, 0, block.node_size))
        return self
