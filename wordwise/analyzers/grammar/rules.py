"""
Rule-Based Grammar Analyzer
===========================
Fast-tier regex checks for mechanical grammar problems.

Rules:
- Capitalization (sentence start, first letter, standalone "i")
- Punctuation (duplicates, space before punctuation)
- Spacing (multiple spaces, missing space after punctuation)
- Contractions missing their apostrophe
- Common confusions (its/it's, your/you're, their/there, then/than)
- Article usage (a/an)
- Subject-verb agreement for pronoun subjects
- Common misspellings
- Repeated words

Every rule reports every match. Fixes keep the case of the matched text.
"""

import re
from functools import partial
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ...base import AnalysisResult, AnalyzerBase, Finding
from ...models import DocumentMetadata
from ..textutils import match_case

# Title shown for each sub-category
ISSUE_TYPES: Dict[str, str] = {
    'capitalization': 'Capitalization',
    'punctuation': 'Punctuation',
    'contraction': 'Punctuation',
    'spacing': 'Spacing',
    'common-confusion': 'Grammar',
    'article-usage': 'Grammar',
    'subject-verb-agreement': 'Grammar',
    'common-misspelling': 'Spelling',
}

CONTRACTIONS: Dict[str, str] = {
    'dont': "don't", 'wont': "won't", 'cant': "can't",
    'couldnt': "couldn't", 'shouldnt': "shouldn't", 'wouldnt': "wouldn't",
    'didnt': "didn't", 'doesnt': "doesn't", 'isnt': "isn't",
    'arent': "aren't", 'wasnt': "wasn't", 'werent': "weren't",
    'hasnt': "hasn't", 'havent': "haven't", 'hadnt': "hadn't",
    'thats': "that's", 'whats': "what's", 'wheres': "where's",
    'theres': "there's", 'heres': "here's",
    'im': "I'm", 'ive': "I've",
    'youre': "you're", 'youve': "you've", 'youll': "you'll", 'youd': "you'd",
    'shes': "she's",
    'theyre': "they're", 'theyve': "they've", 'theyll': "they'll", 'theyd': "they'd",
    'weve': "we've",
}

# Contractions whose fix is always capitalized
_PRONOUN_I_FIXES = {"I'm", "I've"}


def _straddles(start: int, end: int, boundaries: Sequence[int]) -> bool:
    """True when a block boundary falls strictly inside [start, end)."""
    return any(start < b < end for b in boundaries)


COMMON_MISSPELLINGS: Dict[str, str] = {
    'alot': 'a lot',
    'everytime': 'every time',
    'noone': 'no one',
    'definately': 'definitely',
    'recieve': 'receive',
    'beleive': 'believe',
    'acheive': 'achieve',
    'seperate': 'separate',
    'occured': 'occurred',
    'untill': 'until',
    'therefor': 'therefore',
    'accomodate': 'accommodate',
    'occassion': 'occasion',
}

# (pattern, fix, message); the confused word is group 1
CONFUSIONS: List[Tuple[str, str, str]] = [
    (r"\b(its)\s+(?:a|an|the|was|is|been|being|going|coming)\b",
     "it's", '"Its" should be "it\'s" (it is) in this context'),
    (r"\b(your)\s+(?:going|coming|being|doing|making|taking|welcome|right|wrong|here|there)\b",
     "you're", '"Your" should be "you\'re" (you are) in this context'),
    (r"\b(their)\s+(?:is|are|was|were|will|would|should|could)\b",
     "there", '"Their" should be "there" in this context'),
    (r"\b(?:more|less|better|worse|rather|other)\s+(then)\b",
     "than", '"Then" should be "than" for comparisons'),
]

# (subject pattern, verb, fix, message)
AGREEMENT_RULES: List[Tuple[str, str, str, str]] = [
    (r'he|she|it', 'are', 'is', "Use 'is' with singular subjects"),
    (r'they|we', 'is', 'are', "Use 'are' with plural subjects"),
    (r'he|she|it', 'were', 'was', "Use 'was' with singular subjects"),
    (r'they|we', 'was', 'were', "Use 'were' with plural subjects"),
    (r'he|she|it', 'have', 'has', "Use 'has' with singular subjects"),
    (r'they|we', 'has', 'have', "Use 'have' with plural subjects"),
    (r'he|she|it', 'do', 'does', "Use 'does' with singular subjects"),
    (r'they|we', 'does', 'do', "Use 'do' with plural subjects"),
]

# Words whose article depends on sound, not spelling
VOWEL_SOUND_H_WORDS = ('hour', 'honest', 'honor', 'honour', 'heir')
CONSONANT_SOUND_PREFIXES = ('uni', 'use', 'usu', 'eu', 'one', 'once', 'ufo')


class GrammarAnalyzer(AnalyzerBase):
    """Regex grammar rules over the plain-text snapshot."""

    ANALYZER_NAME = "Grammar"
    ANALYZER_VERSION = "1.0.0"
    CATEGORY = "grammar"

    SENTENCE_START = re.compile(r'([.!?])\s+([a-z])')
    PRONOUN_I = re.compile(r'\bi\b(?!\.\w)')
    DOUBLE_PUNCTUATION = re.compile(r'([.!?,;:])\1+')
    SPACE_BEFORE_PUNCTUATION = re.compile(r'[ \t]+([.!?,;:])')
    MULTIPLE_SPACES = re.compile(r'  +')
    MISSING_SPACE = re.compile(r'([.!?,;:])([A-Za-z])')
    ARTICLE = re.compile(r'\b(a|an)\s+([A-Za-z]+)', re.IGNORECASE)
    REPEATED_WORD = re.compile(r'\b([A-Za-z]+)\s+\1\b', re.IGNORECASE)

    def __init__(self, enabled: bool = True, disabled_rules: Optional[List[str]] = None):
        super().__init__(enabled)
        self.disabled_rules = set(disabled_rules or [])
        self._contraction_re = re.compile(
            r'\b(' + '|'.join(CONTRACTIONS) + r')\b', re.IGNORECASE)
        self._misspelling_re = re.compile(
            r'\b(' + '|'.join(COMMON_MISSPELLINGS) + r')\b', re.IGNORECASE)
        self._confusions = [(re.compile(p, re.IGNORECASE), fix, msg) for p, fix, msg in CONFUSIONS]
        self._agreement = [
            (re.compile(rf'\b({subject})\s+({verb})\b', re.IGNORECASE), fix, msg)
            for subject, verb, fix, msg in AGREEMENT_RULES
        ]

    @classmethod
    def from_config(cls, grammar_config=None) -> 'GrammarAnalyzer':
        if grammar_config is None:
            from ...config import get_config
            grammar_config = get_config().grammar
        return cls(enabled=grammar_config.enabled,
                   disabled_rules=grammar_config.disabled_rules)

    def _initialize(self) -> bool:
        return True

    def _run_impl(
        self,
        text: str,
        metadata: DocumentMetadata,
        result: AnalysisResult
    ) -> List[Finding]:
        boundaries = metadata.block_starts
        checks: List[Callable[[str], List[Finding]]] = [
            partial(self._check_capitalization, boundaries=boundaries),
            self._check_punctuation,
            partial(self._check_spacing, boundaries=boundaries),
            self._check_contractions,
            self._check_confusions,
            self._check_articles,
            self._check_subject_verb,
            self._check_misspellings,
            self._check_repeated_words,
        ]

        findings = []
        for check in checks:
            findings.extend(check(text))

        if self.disabled_rules:
            findings = [f for f in findings if f.rule_id not in self.disabled_rules]
        return findings

    def _issue(self, sub_category: str, start: int, end: int,
               message: str, fix: str) -> Finding:
        return self.create_finding(
            sub_category=sub_category,
            title=f"{ISSUE_TYPES[sub_category]} Issue",
            message=message,
            span_start=start,
            span_end=end,
            candidate_fixes=[fix],
            severity='warning',
        )

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _check_capitalization(self, text: str, boundaries: Sequence[int] = ()) -> List[Finding]:
        findings = []

        for match in self.SENTENCE_START.finditer(text):
            if _straddles(match.start(), match.end(), boundaries):
                continue
            letter = match.group(2)
            findings.append(self._issue(
                'capitalization', match.start(2), match.end(2),
                "Sentence should start with a capital letter", letter.upper()))

        if re.match(r'[a-z]', text):
            findings.append(self._issue(
                'capitalization', 0, 1,
                "First letter should be capitalized", text[0].upper()))

        for match in self.PRONOUN_I.finditer(text):
            # Already reported as a sentence or text start
            if match.start() == 0 or re.search(r'[.!?]\s+$', text[:match.start()]):
                continue
            findings.append(self._issue(
                'capitalization', match.start(), match.end(),
                '"I" should be capitalized when used as a pronoun', 'I'))

        return findings

    def _check_punctuation(self, text: str) -> List[Finding]:
        findings = []

        for match in self.DOUBLE_PUNCTUATION.finditer(text):
            if match.group(0) == '...':
                continue
            findings.append(self._issue(
                'punctuation', match.start(), match.end(),
                "Remove duplicate punctuation", match.group(1)))

        for match in self.SPACE_BEFORE_PUNCTUATION.finditer(text):
            if match.start() == 0 or text[match.start() - 1] == '\n':
                continue
            # Leading dot of an ellipsis
            if text.startswith('...', match.start(1)):
                continue
            findings.append(self._issue(
                'punctuation', match.start(), match.end(),
                "Remove space before punctuation", match.group(1)))

        return findings

    def _check_spacing(self, text: str, boundaries: Sequence[int] = ()) -> List[Finding]:
        findings = []

        for match in self.MULTIPLE_SPACES.finditer(text):
            findings.append(self._issue(
                'spacing', match.start(), match.end(), "Remove extra spaces", ' '))

        for match in self.MISSING_SPACE.finditer(text):
            # Punctuation ending one block and a letter opening the next
            if _straddles(match.start(), match.end(), boundaries):
                continue
            punct, letter = match.group(1), match.group(2)
            previous = text[match.start() - 1] if match.start() > 0 else ''
            if punct == '.' and (previous.isdigit() or previous == '.'):
                continue
            # Abbreviations such as e.g. and i.e.
            if punct == '.' and re.search(r'(?:^|[\s(])[A-Za-z]$', text[:match.start()]):
                continue
            findings.append(self._issue(
                'spacing', match.start(), match.end(),
                "Add space after punctuation", f"{punct} {letter}"))

        return findings

    def _check_contractions(self, text: str) -> List[Finding]:
        findings = []
        for match in self._contraction_re.finditer(text):
            word = match.group(1)
            fix = CONTRACTIONS[word.lower()]
            if fix not in _PRONOUN_I_FIXES:
                fix = match_case(word, fix)
            findings.append(self._issue(
                'contraction', match.start(), match.end(),
                "Missing apostrophe in contraction", fix))
        return findings

    def _check_confusions(self, text: str) -> List[Finding]:
        findings = []
        for pattern, fix, message in self._confusions:
            for match in pattern.finditer(text):
                word = match.group(1)
                findings.append(self._issue(
                    'common-confusion', match.start(1), match.end(1),
                    message, match_case(word, fix)))
        return findings

    def _check_articles(self, text: str) -> List[Finding]:
        findings = []
        for match in self.ARTICLE.finditer(text):
            article, word = match.group(1), match.group(2).lower()
            wants_an = self._takes_an(word)
            if article.lower() == 'a' and wants_an:
                findings.append(self._issue(
                    'article-usage', match.start(1), match.end(1),
                    'Use "an" before vowel sounds', match_case(article, 'an')))
            elif article.lower() == 'an' and not wants_an:
                findings.append(self._issue(
                    'article-usage', match.start(1), match.end(1),
                    'Use "a" before consonant sounds', match_case(article, 'a')))
        return findings

    @staticmethod
    def _takes_an(word: str) -> bool:
        if word.startswith(VOWEL_SOUND_H_WORDS):
            return True
        if word.startswith(CONSONANT_SOUND_PREFIXES):
            return False
        return word[0] in 'aeiou'

    def _check_subject_verb(self, text: str) -> List[Finding]:
        findings = []
        for pattern, fix, message in self._agreement:
            for match in pattern.finditer(text):
                verb = match.group(2)
                findings.append(self._issue(
                    'subject-verb-agreement', match.start(2), match.end(2),
                    message, match_case(verb, fix)))
        return findings

    def _check_misspellings(self, text: str) -> List[Finding]:
        findings = []
        for match in self._misspelling_re.finditer(text):
            word = match.group(1)
            findings.append(self._issue(
                'common-misspelling', match.start(), match.end(),
                "Common misspelling", match_case(word, COMMON_MISSPELLINGS[word.lower()])))
        return findings

    def _check_repeated_words(self, text: str) -> List[Finding]:
        findings = []
        for match in self.REPEATED_WORD.finditer(text):
            word = match.group(1)
            findings.append(self.create_finding(
                sub_category='repeated-word',
                title="Repeated Word",
                message=f'The word "{word}" is repeated.',
                span_start=match.start(),
                span_end=match.end(),
                candidate_fixes=[word],
                severity='warning',
            ))
        return findings
