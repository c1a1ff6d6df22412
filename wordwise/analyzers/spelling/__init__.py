"""
Spelling Analysis for WordWise
==============================
Instant-tier spell checking.

Features:
- SymSpell: 82K-word frequency dictionary, edit-distance lookup
- Built-in common-misspelling table (works without the dictionary)
- Case-preserving replacements

Requires: pip install symspellpy
"""

import threading

__version__ = "1.0.0"

# Lazy imports
_dictionary = None
_dictionary_lock = threading.Lock()


def get_dictionary():
    """Get the shared SymSpellDictionary instance (lazy loaded)."""
    global _dictionary
    with _dictionary_lock:
        if _dictionary is None:
            from ...config import get_config
            from .symspell import SymSpellDictionary
            spelling = get_config().spelling
            _dictionary = SymSpellDictionary(
                max_edit_distance=spelling.max_edit_distance,
                prefix_length=spelling.prefix_length,
                custom_dictionary=spelling.custom_dictionary,
            )
    return _dictionary


def is_available() -> bool:
    """Check if dictionary spell checking is available."""
    try:
        return get_dictionary().is_available
    except Exception:
        return False


def get_status() -> dict:
    """Get spelling integration status."""
    status = {
        'available': False,
        'symspell': {'available': False},
    }

    try:
        dictionary = get_dictionary()
        status['symspell'] = dictionary.get_status()
        status['available'] = dictionary.is_available
    except Exception as e:
        status['symspell']['error'] = str(e)

    return status


def get_checker():
    """Get the SpellingAnalyzer class."""
    from .checker import SpellingAnalyzer
    return SpellingAnalyzer
