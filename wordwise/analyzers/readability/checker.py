"""
Readability Analyzer
====================
Deep-tier, document-wide readability feedback built on ReadabilityReport.
"""

from typing import List, Optional, Tuple

from ...base import AnalysisResult, AnalyzerBase, Finding
from ...models import DocumentMetadata
from .calculator import ReadabilityCalculator, ReadabilityReport

# (sub_category, message, severity)
Feedback = Tuple[str, str, str]


def readability_feedback(
    report: ReadabilityReport,
    target_grade_level: int = 8,
    grade_tolerance: int = 2,
    max_avg_sentence_length: float = 20,
    complex_word_ratio: float = 0.15
) -> List[Feedback]:
    """Turn a report into feedback items. Pure; used by the analyzer and tests."""
    if report.lexicon_count == 0:
        return []

    feedback: List[Feedback] = []
    grade = round(report.flesch_kincaid_grade)

    if report.flesch_kincaid_grade > target_grade_level + grade_tolerance:
        feedback.append((
            'grade-too-high',
            f"Reading level too high (Grade {grade}). Use shorter sentences and simpler words.",
            'warning'))
    elif report.flesch_kincaid_grade < target_grade_level - grade_tolerance:
        feedback.append((
            'grade-too-low',
            f"Reading level too low (Grade {grade}). Consider adding more detail and variety.",
            'suggestion'))

    if report.avg_sentence_length > max_avg_sentence_length:
        feedback.append((
            'long-sentences',
            "Sentences are too long on average. Break long sentences into shorter ones.",
            'suggestion'))

    ease = report.flesch_reading_ease
    if ease < 30:
        feedback.append(('very-difficult', "Very difficult to read", 'warning'))
    elif ease < 50:
        feedback.append(('fairly-difficult', "Fairly difficult to read", 'suggestion'))
    elif ease < 60:
        feedback.append(('plain-english', "Plain English - OK for most readers", 'suggestion'))

    if report.complex_word_ratio > complex_word_ratio:
        feedback.append((
            'complex-words',
            "Too many complex words. Replace complex words with simpler alternatives.",
            'suggestion'))

    return feedback


class ReadabilityAnalyzer(AnalyzerBase):
    """Grade level, sentence length, reading ease and word complexity checks."""

    ANALYZER_NAME = "Readability"
    ANALYZER_VERSION = "1.0.0"
    CATEGORY = "readability"

    def __init__(
        self,
        enabled: bool = True,
        target_grade_level: int = 8,
        grade_tolerance: int = 2,
        max_avg_sentence_length: float = 20,
        complex_word_ratio: float = 0.15,
        calculator: Optional[ReadabilityCalculator] = None
    ):
        super().__init__(enabled)
        self.target_grade_level = target_grade_level
        self.grade_tolerance = grade_tolerance
        self.max_avg_sentence_length = max_avg_sentence_length
        self.complex_word_ratio = complex_word_ratio
        self._calculator = calculator

    @classmethod
    def from_config(cls, readability_config=None) -> 'ReadabilityAnalyzer':
        if readability_config is None:
            from ...config import get_config
            readability_config = get_config().readability
        return cls(
            enabled=readability_config.enabled,
            target_grade_level=readability_config.target_grade_level,
            grade_tolerance=readability_config.grade_tolerance,
            max_avg_sentence_length=readability_config.max_avg_sentence_length,
            complex_word_ratio=readability_config.complex_word_ratio,
        )

    def _initialize(self) -> bool:
        if self._calculator is None:
            from . import get_calculator
            self._calculator = get_calculator()
        if not self._calculator.is_available:
            self._init_error = self._calculator.error
            return False
        return True

    def _run_impl(
        self,
        text: str,
        metadata: DocumentMetadata,
        result: AnalysisResult
    ) -> List[Finding]:
        report = self._calculator.analyze(text)
        result.metrics.update(report.to_dict())

        feedback = readability_feedback(
            report,
            target_grade_level=self.target_grade_level,
            grade_tolerance=self.grade_tolerance,
            max_avg_sentence_length=self.max_avg_sentence_length,
            complex_word_ratio=self.complex_word_ratio,
        )
        return [
            self.create_finding(sub_category, message, title="Readability", severity=severity)
            for sub_category, message, severity in feedback
        ]
