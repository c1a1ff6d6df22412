"""
Document Metrics
================
Quantitative figures for the editor status bar: word count, reading
level and reading time. Produces metrics only, never Findings.
"""

import math
from typing import Any, Dict, List

from ..base import AnalysisResult, AnalyzerBase, Finding
from ..models import DocumentMetadata
from .textutils import word_count


def reading_time_label(words: int, words_per_minute: int = 200) -> str:
    """'N min read', rounded up."""
    if words <= 0:
        return "0 min read"
    return f"{math.ceil(words / float(words_per_minute))} min read"


class MetricsAnalyzer(AnalyzerBase):
    """Word count, Flesch-Kincaid grade label and reading time."""

    ANALYZER_NAME = "Metrics"
    ANALYZER_VERSION = "1.0.0"
    CATEGORY = "readability"

    def __init__(self, enabled: bool = True, words_per_minute: int = 200):
        super().__init__(enabled)
        self.words_per_minute = words_per_minute
        self._textstat = None

    @classmethod
    def from_config(cls, metrics_config=None) -> 'MetricsAnalyzer':
        if metrics_config is None:
            from ..config import get_config
            metrics_config = get_config().metrics
        return cls(enabled=metrics_config.enabled,
                   words_per_minute=metrics_config.words_per_minute)

    def _initialize(self) -> bool:
        """textstat is optional here; without it the reading level is N/A."""
        try:
            import textstat
            self._textstat = textstat
        except ImportError:
            self._textstat = None
        return True

    def compute(self, text: str) -> Dict[str, Any]:
        words = word_count(text)
        if words == 0:
            reading_level = 'N/A'
        elif self._textstat is not None:
            reading_level = f"Grade {round(self._textstat.flesch_kincaid_grade(text))}"
        else:
            reading_level = 'N/A'

        return {
            'word_count': words,
            'reading_level': reading_level,
            'reading_time': reading_time_label(words, self.words_per_minute),
        }

    def _run_impl(
        self,
        text: str,
        metadata: DocumentMetadata,
        result: AnalysisResult
    ) -> List[Finding]:
        result.metrics.update(self.compute(text))
        return []
