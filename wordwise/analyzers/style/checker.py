"""
Style Analyzer
==============
Fast-tier style heuristics in the spirit of write-good, plus proselint's
editorial checks when the library is installed.

Checks:
- passive-voice       "was written", "is being reviewed"
- lexical-illusion    "the the" across a line or space
- so-start            sentences opening with "So"
- adverb              adverbs that weaken the verb
- weasel-word         vague qualifiers ("very", "various", "quite")
- cliche              worn-out phrases
- long-sentence       > 25 words (warning above 35)
- conjunction-start   sentences opening with and/but/or/yet
"""

import re
from typing import Dict, List, Optional

from config_logging import get_logger

from ...base import AnalysisResult, AnalyzerBase, Finding
from ...models import DocumentMetadata
from ..textutils import iter_sentences

logger = get_logger('wordwise.style')

IRREGULAR_PARTICIPLES = (
    'awoken', 'been', 'born', 'beat', 'become', 'begun', 'bent', 'bound',
    'bitten', 'blown', 'broken', 'brought', 'built', 'bought', 'caught',
    'chosen', 'done', 'drawn', 'driven', 'eaten', 'fallen', 'felt', 'found',
    'forgotten', 'forgiven', 'frozen', 'given', 'gone', 'grown', 'heard',
    'held', 'hidden', 'hit', 'hurt', 'kept', 'known', 'laid', 'led', 'left',
    'lent', 'lost', 'made', 'meant', 'met', 'paid', 'put', 'read', 'ridden',
    'run', 'said', 'seen', 'sent', 'set', 'shaken', 'shown', 'shut', 'sold',
    'spent', 'spoken', 'stolen', 'struck', 'sung', 'taken', 'taught', 'told',
    'thought', 'thrown', 'understood', 'won', 'worn', 'written',
)

ADVERBS = (
    'really', 'actually', 'basically', 'totally', 'literally', 'absolutely',
    'definitely', 'simply', 'truly', 'seriously', 'certainly', 'probably',
    'honestly', 'obviously', 'highly', 'utterly', 'entirely', 'mainly',
    'practically', 'virtually', 'essentially', 'incredibly', 'extremely',
    'completely', 'surprisingly', 'remarkably', 'exceedingly', 'interestingly',
)

WEASEL_WORDS = (
    'very', 'many', 'various', 'fairly', 'several', 'quite', 'few', 'mostly',
    'largely', 'huge', 'tiny', 'excellent', 'significantly', 'substantially',
    'clearly', 'vast', 'relatively', 'somewhat', 'arguably', 'just',
)

CLICHES = (
    'at the end of the day', 'think outside the box', 'low-hanging fruit',
    'in this day and age', 'a game changer', 'game-changer', 'move the needle',
    'take it to the next level', 'avoid it like the plague', 'the bottom line',
    'at this point in time', 'last but not least', 'it goes without saying',
    'only time will tell', 'better late than never', 'few and far between',
    'needle in a haystack', 'tip of the iceberg', 'when all is said and done',
    'easier said than done', 'all walks of life', 'in the nick of time',
    'read between the lines', 'paradigm shift', 'best of both worlds',
)

CONJUNCTIONS = ('and', 'but', 'or', 'yet')


def _word_pattern(words) -> re.Pattern:
    return re.compile(r'\b(' + '|'.join(re.escape(w) for w in words) + r')\b', re.IGNORECASE)


class StyleAnalyzer(AnalyzerBase):
    """Heuristic style checks with optional proselint."""

    ANALYZER_NAME = "Style"
    ANALYZER_VERSION = "1.0.0"
    CATEGORY = "style"

    PASSIVE = re.compile(
        r'\b(am|are|is|was|were|be|been|being)\s+'
        r'([A-Za-z]+ed|' + '|'.join(IRREGULAR_PARTICIPLES) + r')\b',
        re.IGNORECASE)
    LEXICAL_ILLUSION = re.compile(r'\b([A-Za-z]+)\s+\1\b', re.IGNORECASE)
    ADVERB = _word_pattern(ADVERBS)
    WEASEL = _word_pattern(WEASEL_WORDS)
    CLICHE = _word_pattern(CLICHES)
    SO_START = re.compile(r'So\b,?')

    # Conjunction-started sentences shorter than this are left alone
    MIN_CONJUNCTION_SENTENCE_CHARS = 20

    def __init__(
        self,
        enabled: bool = True,
        use_proselint: bool = True,
        long_sentence_words: int = 25,
        very_long_sentence_words: int = 35,
        skip_checks: Optional[List[str]] = None
    ):
        super().__init__(enabled)
        self.use_proselint = use_proselint
        self.long_sentence_words = long_sentence_words
        self.very_long_sentence_words = very_long_sentence_words
        self.skip_checks = list(skip_checks or [])
        self._proselint = None

    @classmethod
    def from_config(cls, style_config=None) -> 'StyleAnalyzer':
        if style_config is None:
            from ...config import get_config
            style_config = get_config().style
        return cls(
            enabled=style_config.enabled,
            use_proselint=style_config.use_proselint,
            long_sentence_words=style_config.long_sentence_words,
            very_long_sentence_words=style_config.very_long_sentence_words,
            skip_checks=style_config.skip_checks,
        )

    def _initialize(self) -> bool:
        """Heuristics always run; proselint is attached when available."""
        if self.use_proselint:
            from . import get_wrapper
            wrapper = get_wrapper(self.skip_checks)
            if wrapper.is_available:
                self._proselint = wrapper
            else:
                logger.info(f"Proselint unavailable, heuristics only: {wrapper.error}")
        return True

    def _run_impl(
        self,
        text: str,
        metadata: DocumentMetadata,
        result: AnalysisResult
    ) -> List[Finding]:
        findings: List[Finding] = []
        counts: Dict[str, int] = {}

        def add(finding: Finding):
            findings.append(finding)
            counts[finding.sub_category] = counts.get(finding.sub_category, 0) + 1

        for match in self.PASSIVE.finditer(text):
            add(self.create_finding(
                'passive-voice',
                f'"{match.group(0)}" may be passive voice. '
                'Consider using active voice for more engaging writing.',
                match.start(), match.end(), title="Passive Voice"))

        for match in self.LEXICAL_ILLUSION.finditer(text):
            add(self.create_finding(
                'lexical-illusion',
                f'"{match.group(1)}" is repeated',
                match.start(), match.end(), title="Lexical Illusion",
                candidate_fixes=[match.group(1)]))

        for match in self.ADVERB.finditer(text):
            add(self.create_finding(
                'adverb',
                f'"{match.group(0)}" can weaken meaning. Use a stronger verb instead.',
                match.start(), match.end(), title="Adverb", candidate_fixes=[""]))

        for match in self.WEASEL.finditer(text):
            add(self.create_finding(
                'weasel-word',
                f'"{match.group(0)}" is a weasel word. Be more specific.',
                match.start(), match.end(), title="Weasel Word"))

        for match in self.CLICHE.finditer(text):
            add(self.create_finding(
                'cliche',
                f'"{match.group(0)}" is a cliché. Use original phrasing.',
                match.start(), match.end(), title="Cliché"))

        for start, end, sentence in iter_sentences(text):
            for finding in self._check_sentence(start, end, sentence):
                add(finding)

        if self._proselint is not None:
            for finding in self._check_proselint(text):
                add(finding)

        result.metrics.update({
            'passive_voice_count': counts.get('passive-voice', 0),
            'adverb_count': counts.get('adverb', 0),
            'cliche_count': counts.get('cliche', 0),
            'weasel_word_count': counts.get('weasel-word', 0),
            'proselint': self._proselint is not None,
        })
        return findings

    def _check_sentence(self, start: int, end: int, sentence: str) -> List[Finding]:
        findings = []

        so_match = self.SO_START.match(sentence)
        if so_match:
            findings.append(self.create_finding(
                'so-start',
                '"So" adds no meaning at the start of a sentence',
                start, start + 2, title='"So" at Sentence Start',
                candidate_fixes=[""]))

        first_word = sentence.split(None, 1)[0].lower() if sentence.split() else ''
        if (first_word in CONJUNCTIONS
                and len(sentence) > self.MIN_CONJUNCTION_SENTENCE_CHARS):
            findings.append(self.create_finding(
                'conjunction-start',
                'Consider rephrasing to avoid starting with a conjunction.',
                start, start + len(first_word), title="Conjunction Start"))

        words = len(sentence.split())
        if words > self.long_sentence_words:
            findings.append(self.create_finding(
                'long-sentence',
                f'This sentence has {words} words. Consider breaking it into '
                'shorter ones for better readability.',
                start, end, title="Long Sentence",
                severity='warning' if words > self.very_long_sentence_words else 'suggestion'))

        return findings

    def _check_proselint(self, text: str) -> List[Finding]:
        findings = []
        for issue in self._proselint.check(text):
            sub_category = self._proselint.get_sub_category(issue.check_name)
            findings.append(self.create_finding(
                sub_category,
                issue.message,
                issue.start, issue.end,
                title="Style Suggestion",
                candidate_fixes=[issue.replacement] if issue.replacement else None,
            ))
        return findings
