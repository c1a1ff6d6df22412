"""
Style Checking for WordWise
===========================
Fast-tier style heuristics plus professional editorial rules from Proselint.

Features:
- Passive voice, adverb, weasel word and cliché heuristics
- Long-sentence and conjunction-start checks
- Proselint editorial rules (Strunk & White, Garner, ...)

Requires: pip install proselint
"""

__version__ = "1.0.0"

# Lazy imports
_wrapper = None


def get_wrapper(skip_checks=None):
    """Get the shared ProselintWrapper instance (lazy loaded)."""
    global _wrapper
    if _wrapper is None:
        from .proselint import ProselintWrapper
        _wrapper = ProselintWrapper(skip_checks)
    return _wrapper


def is_available() -> bool:
    """Check if proselint checking is available."""
    try:
        return get_wrapper().is_available
    except Exception:
        return False


def get_status() -> dict:
    """Get style checking integration status."""
    try:
        return get_wrapper().get_status()
    except Exception as e:
        return {
            'available': False,
            'error': str(e),
            'skip_checks': [],
        }


def check(text: str):
    """
    Check text with proselint only.

    Args:
        text: Text to check

    Returns:
        List of StyleIssue
    """
    return get_wrapper().check(text)


def get_checker():
    """Get the StyleAnalyzer class."""
    from .checker import StyleAnalyzer
    return StyleAnalyzer
