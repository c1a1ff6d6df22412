"""
Readability Analysis for WordWise
=================================
Document-wide readability metrics and feedback.

Features:
- Flesch Reading Ease, Flesch-Kincaid, Gunning Fog, Coleman-Liau, ARI
- Grade level interpretation against a target grade
- Complex word ratio and average sentence length
- Reading time estimation

Requires: pip install textstat
"""

__version__ = "1.0.0"

# Lazy imports
_calculator = None


def get_calculator():
    """Get the shared ReadabilityCalculator instance (lazy loaded)."""
    global _calculator
    if _calculator is None:
        from ...config import get_config
        from .calculator import ReadabilityCalculator
        _calculator = ReadabilityCalculator(get_config().metrics.words_per_minute)
    return _calculator


def is_available() -> bool:
    """Check if readability analysis is available."""
    try:
        return get_calculator().is_available
    except Exception:
        return False


def get_status() -> dict:
    """Get readability integration status."""
    try:
        return get_calculator().get_status()
    except Exception as e:
        return {
            'available': False,
            'error': str(e),
            'metrics_available': []
        }


def analyze(text: str):
    """
    Analyze text readability.

    Args:
        text: Text to analyze

    Returns:
        ReadabilityReport
    """
    return get_calculator().analyze(text)


def get_checker():
    """Get the ReadabilityAnalyzer class."""
    from .checker import ReadabilityAnalyzer
    return ReadabilityAnalyzer
