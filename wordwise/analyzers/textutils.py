"""
Text helpers shared by the rule-based analyzers.
"""

import re
from typing import Iterator, List, Tuple

WORD_RE = re.compile(r"[A-Za-z]+(?:'[A-Za-z]+)*")
SENTENCE_RE = re.compile(r'[^.!?]+(?:[.!?]+|$)')


def match_case(source: str, replacement: str) -> str:
    """Give replacement the capitalization pattern of source."""
    if not replacement or not source:
        return replacement
    if len(source) > 1 and source.isupper():
        return replacement.upper()
    if source[0].isupper():
        return replacement[0].upper() + replacement[1:]
    return replacement


def iter_words(text: str) -> Iterator[Tuple[int, str]]:
    """Yield (offset, word) for every word token."""
    for match in WORD_RE.finditer(text):
        yield match.start(), match.group(0)


def word_count(text: str) -> int:
    return len(text.split())


def iter_sentences(text: str) -> Iterator[Tuple[int, int, str]]:
    """
    Yield (start, end, sentence) with surrounding whitespace trimmed.

    Sentences end at runs of . ! or ?, or at the end of the text.
    """
    for match in SENTENCE_RE.finditer(text):
        raw = match.group(0)
        stripped = raw.strip()
        if not stripped:
            continue
        start = match.start() + (len(raw) - len(raw.lstrip()))
        yield start, start + len(stripped), stripped


def split_paragraphs(text: str) -> List[str]:
    """Split on blank lines, dropping empty paragraphs."""
    return [p for p in re.split(r'\n\s*\n', text) if p.strip()]
