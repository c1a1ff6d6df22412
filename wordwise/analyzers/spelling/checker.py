"""
Spelling Analyzer
=================
Instant-tier spelling check: a built-in table of common misspellings
followed by a SymSpell dictionary lookup.

Every occurrence of a misspelled word is reported, and replacements keep
the capitalization of the original word.
"""

import re
from typing import Dict, List, Optional, Set

from ...base import AnalysisResult, AnalyzerBase, Finding
from ...models import DocumentMetadata
from ..textutils import iter_words, match_case
from .symspell import SymSpellDictionary

COMMON_MISSPELLINGS: Dict[str, str] = {
    'teh': 'the',
    'recieve': 'receive',
    'recieved': 'received',
    'beleive': 'believe',
    'acheive': 'achieve',
    'definately': 'definitely',
    'occured': 'occurred',
    'seperate': 'separate',
    'untill': 'until',
    'wich': 'which',
    'accomodate': 'accommodate',
    'occassion': 'occasion',
    'occassionally': 'occasionally',
    'tommorrow': 'tomorrow',
    'neccessary': 'necessary',
    'dissappoint': 'disappoint',
    'embarass': 'embarrass',
    'therefor': 'therefore',
    'alot': 'a lot',
    'everytime': 'every time',
    'noone': 'no one',
}


class SpellingAnalyzer(AnalyzerBase):
    """Dictionary spelling check over word tokens."""

    ANALYZER_NAME = "Spelling"
    ANALYZER_VERSION = "1.0.0"
    CATEGORY = "spelling"

    SUB_CATEGORY = "misspelling"
    MAX_FIXES = 3

    # Words to never flag
    SKIP_WORDS: Set[str] = {
        # Blogging and web vocabulary
        'blog', 'blogs', 'blogging', 'blogger', 'bloggers', 'vlog',
        'seo', 'serp', 'serps', 'cms', 'permalink', 'permalinks',
        'metadata', 'hashtag', 'hashtags', 'wordwise',
        # Common technical abbreviations
        'api', 'apis', 'sdk', 'url', 'urls', 'ui', 'ux',
        'html', 'css', 'json', 'yaml', 'xml', 'sql',
        'http', 'https', 'pdf', 'png', 'jpg', 'jpeg', 'gif', 'svg',
        # Common proper nouns in tech
        'github', 'gitlab', 'wordpress', 'tiptap', 'javascript',
        'typescript', 'python', 'linux', 'macos', 'ios', 'android',
    }

    # Patterns to skip (regex)
    SKIP_PATTERNS = [
        r'^[A-Z]{2,}$',        # All caps (acronyms)
        r'^[A-Z][a-z]+[A-Z]',  # CamelCase
        r'^[a-z]+[A-Z]',       # camelCase
    ]

    def __init__(
        self,
        enabled: bool = True,
        min_word_length: int = 2,
        dictionary: Optional[SymSpellDictionary] = None
    ):
        """
        Initialize the spelling analyzer.

        Args:
            enabled: Whether the analyzer is enabled
            min_word_length: Minimum word length to check
            dictionary: Dictionary to use (defaults to the shared instance)
        """
        super().__init__(enabled)
        self.min_word_length = min_word_length
        self._dictionary = dictionary
        self._skip_patterns = [re.compile(p) for p in self.SKIP_PATTERNS]

    @classmethod
    def from_config(cls, spelling_config=None) -> 'SpellingAnalyzer':
        if spelling_config is None:
            from ...config import get_config
            spelling_config = get_config().spelling
        return cls(enabled=spelling_config.enabled,
                   min_word_length=spelling_config.min_word_length)

    def _initialize(self) -> bool:
        """Attach the dictionary; the common-misspelling table works without it."""
        if self._dictionary is None:
            from . import get_dictionary
            self._dictionary = get_dictionary()
        if not self._dictionary.is_available:
            self._init_error = self._dictionary.error
        return True

    @property
    def dictionary_available(self) -> bool:
        return self._dictionary is not None and self._dictionary.is_available

    def _run_impl(
        self,
        text: str,
        metadata: DocumentMetadata,
        result: AnalysisResult
    ) -> List[Finding]:
        findings = []
        # Lookups are per distinct lowercase word; results reused for repeats
        lookups: Dict[str, List[str]] = {}

        for offset, word in iter_words(text):
            if self._should_skip(word):
                continue

            lowered = word.lower()
            if lowered not in lookups:
                lookups[lowered] = self._candidates(lowered)
            candidates = lookups[lowered]
            if not candidates:
                continue

            fixes = [match_case(word, c) for c in candidates[:self.MAX_FIXES]]
            findings.append(self.create_finding(
                sub_category=self.SUB_CATEGORY,
                title="Spelling Error",
                message=f'"{word}" may be misspelled.',
                span_start=offset,
                span_end=offset + len(word),
                candidate_fixes=fixes,
                severity='error',
            ))

        result.metrics['dictionary_available'] = self.dictionary_available
        return findings

    def _candidates(self, lowered: str) -> List[str]:
        """Replacement candidates for a word, or [] when it is spelled correctly."""
        if lowered in COMMON_MISSPELLINGS:
            return [COMMON_MISSPELLINGS[lowered]]
        if not self.dictionary_available:
            return []
        return [c.term for c in self._dictionary.lookup(lowered)]

    def _should_skip(self, word: str) -> bool:
        """Check if a word should be skipped."""
        if len(word) < self.min_word_length:
            return True

        # Contractions and possessives
        if "'" in word:
            return True

        if word.lower() in self.SKIP_WORDS:
            return True

        for pattern in self._skip_patterns:
            if pattern.match(word):
                return True

        return False
