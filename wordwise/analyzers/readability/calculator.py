"""
Readability Calculator for WordWise
===================================
Readability metrics using textstat.

Features:
- Flesch Reading Ease, Flesch-Kincaid grade, Gunning Fog
- Coleman-Liau and Automated Readability Index
- Consensus grade and grade level interpretation
- Complex (3+ syllable) word counting
- Reading time estimation

Requires: pip install textstat
"""

from dataclasses import dataclass
from typing import Any, Dict

from ...base import IntegrationBase


@dataclass
class ReadabilityReport:
    """Readability analysis result."""

    flesch_reading_ease: float = 0.0
    flesch_kincaid_grade: float = 0.0
    gunning_fog: float = 0.0
    coleman_liau: float = 0.0
    automated_readability: float = 0.0

    consensus_grade: float = 0.0
    reading_time_minutes: float = 0.0

    lexicon_count: int = 0
    sentence_count: int = 0
    complex_word_count: int = 0

    grade_level: str = ""
    difficulty_rating: str = ""

    @property
    def avg_sentence_length(self) -> float:
        if self.sentence_count == 0:
            return 0.0
        return self.lexicon_count / self.sentence_count

    @property
    def complex_word_ratio(self) -> float:
        if self.lexicon_count == 0:
            return 0.0
        return self.complex_word_count / self.lexicon_count

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            'flesch_reading_ease': self.flesch_reading_ease,
            'flesch_kincaid_grade': self.flesch_kincaid_grade,
            'gunning_fog': self.gunning_fog,
            'coleman_liau': self.coleman_liau,
            'automated_readability': self.automated_readability,
            'consensus_grade': self.consensus_grade,
            'reading_time_minutes': self.reading_time_minutes,
            'lexicon_count': self.lexicon_count,
            'sentence_count': self.sentence_count,
            'complex_word_count': self.complex_word_count,
            'avg_sentence_length': round(self.avg_sentence_length, 1),
            'grade_level': self.grade_level,
            'difficulty_rating': self.difficulty_rating,
        }


class ReadabilityCalculator(IntegrationBase):
    """Readability analysis using textstat."""

    INTEGRATION_NAME = "Textstat"
    INTEGRATION_VERSION = "1.0.0"

    # Grade level descriptions
    GRADE_LEVELS = {
        (0, 6): "Elementary (Grade 1-5)",
        (6, 8): "Middle School (Grade 6-8)",
        (8, 12): "High School (Grade 9-12)",
        (12, 14): "College",
        (14, 17): "College Graduate",
        (17, 100): "Professional/Academic"
    }

    # Flesch Reading Ease interpretations
    DIFFICULTY_RATINGS = {
        (90, 1000): "Very Easy",
        (80, 90): "Easy",
        (70, 80): "Fairly Easy",
        (60, 70): "Standard",
        (50, 60): "Fairly Difficult",
        (30, 50): "Difficult",
        (-1000, 30): "Very Difficult"
    }

    def __init__(self, words_per_minute: int = 200):
        """Initialize the readability calculator."""
        super().__init__()
        self.words_per_minute = words_per_minute
        self._textstat = None
        self._initialize()

    def _initialize(self):
        """Initialize textstat library."""
        try:
            import textstat
            self._textstat = textstat
            self._available = True
        except ImportError as e:
            self._error = f"textstat not installed: {e}"
            self._available = False

    def get_status(self) -> Dict[str, Any]:
        """Get detailed status of the textstat integration."""
        status = {
            'available': self.is_available,
            'error': self._error,
        }

        if self.is_available:
            status['metrics_available'] = [
                'flesch_reading_ease',
                'flesch_kincaid_grade',
                'gunning_fog',
                'coleman_liau',
                'automated_readability',
            ]

        return status

    def analyze(self, text: str) -> ReadabilityReport:
        """
        Compute readability metrics.

        Args:
            text: Text to analyze

        Returns:
            ReadabilityReport (all zeros for empty text or without textstat)
        """
        if not self.is_available or not text or not text.strip():
            return ReadabilityReport()

        ts = self._textstat

        flesch_ease = ts.flesch_reading_ease(text)
        flesch_grade = ts.flesch_kincaid_grade(text)
        gunning = ts.gunning_fog(text)
        coleman = ts.coleman_liau_index(text)
        ari = ts.automated_readability_index(text)

        word_count = ts.lexicon_count(text, removepunct=True)
        sentence_count = ts.sentence_count(text)
        complex_words = ts.polysyllabcount(text)

        # Consensus grade (average of grade-level metrics)
        grades = [g for g in [flesch_grade, gunning, coleman, ari] if g > 0]
        consensus = sum(grades) / len(grades) if grades else 0

        return ReadabilityReport(
            flesch_reading_ease=round(flesch_ease, 1),
            flesch_kincaid_grade=round(flesch_grade, 1),
            gunning_fog=round(gunning, 1),
            coleman_liau=round(coleman, 1),
            automated_readability=round(ari, 1),
            consensus_grade=round(consensus, 1),
            reading_time_minutes=round(word_count / float(self.words_per_minute), 1),
            lexicon_count=word_count,
            sentence_count=sentence_count,
            complex_word_count=complex_words,
            grade_level=self._get_grade_level(consensus),
            difficulty_rating=self._get_difficulty(flesch_ease),
        )

    def _get_grade_level(self, consensus: float) -> str:
        """Convert numeric grade to description."""
        for (low, high), level in self.GRADE_LEVELS.items():
            if low <= consensus < high:
                return level
        return "Unknown"

    def _get_difficulty(self, flesch_score: float) -> str:
        """Convert Flesch score to difficulty rating."""
        for (low, high), rating in self.DIFFICULTY_RATINGS.items():
            if low <= flesch_score < high:
                return rating
        return "Unknown"
