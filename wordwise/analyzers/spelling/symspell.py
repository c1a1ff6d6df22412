"""
SymSpell Dictionary Integration
===============================
Fast edit-distance spelling lookup backed by symspellpy's bundled
82K-word English frequency dictionary.

Requires: pip install symspellpy
"""

from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from config_logging import get_logger

from ...base import IntegrationBase

logger = get_logger('wordwise.spelling')


@dataclass
class SpellingCandidate:
    """A replacement candidate with edit distance and corpus frequency."""
    term: str
    distance: int
    frequency: int


class SymSpellDictionary(IntegrationBase):
    """
    SymSpell-based word lookup.

    Loading the dictionary takes about a second, so one instance is
    shared per process (see spelling.get_dictionary).
    """

    INTEGRATION_NAME = "SymSpell"
    INTEGRATION_VERSION = "1.0.0"

    FREQUENCY_DICT = "frequency_dictionary_en_82_765.txt"

    def __init__(
        self,
        max_edit_distance: int = 2,
        prefix_length: int = 7,
        custom_dictionary: Optional[Path] = None
    ):
        """
        Initialize SymSpell.

        Args:
            max_edit_distance: Maximum edit distance for corrections (1-3)
            prefix_length: Length of prefix to use for lookup
            custom_dictionary: Path to a file of extra words, one per line
        """
        super().__init__()
        self.max_edit_distance = max_edit_distance
        self.prefix_length = prefix_length
        self.custom_dictionary = custom_dictionary

        self._sym_spell = None
        self._custom_words: Set[str] = set()
        self._load_dictionaries()

    def _load_dictionaries(self):
        """Load the bundled frequency dictionary."""
        try:
            from symspellpy import SymSpell, Verbosity
            self._Verbosity = Verbosity

            self._sym_spell = SymSpell(
                max_dictionary_edit_distance=self.max_edit_distance,
                prefix_length=self.prefix_length
            )

            dict_resource = resources.files("symspellpy") / self.FREQUENCY_DICT
            with resources.as_file(dict_resource) as dict_path:
                loaded = self._sym_spell.load_dictionary(
                    str(dict_path),
                    term_index=0,
                    count_index=1
                )
            if not loaded:
                self._error = f"Dictionary {self.FREQUENCY_DICT} could not be loaded"
                self._available = False
                return

            if self.custom_dictionary and Path(self.custom_dictionary).exists():
                self._load_custom_dictionary()

            self._available = True

        except ImportError as e:
            self._error = f"symspellpy not installed: {e}"
            self._available = False

        except Exception as e:
            logger.error(f"Failed to load SymSpell dictionaries: {e}", exc_info=True)
            self._error = f"Failed to load dictionaries: {e}"
            self._available = False

    def _load_custom_dictionary(self):
        """Load extra words with a high frequency."""
        with open(self.custom_dictionary, 'r', encoding='utf-8') as f:
            for line in f:
                word = line.strip().lower()
                if word and not word.startswith('#'):
                    self.add_word(word)

    def add_word(self, word: str, frequency: int = 1000000):
        """
        Add a word to the dictionary.

        Args:
            word: Word to add
            frequency: Word frequency (higher = more likely suggestion)
        """
        self._custom_words.add(word.lower())
        if self._sym_spell:
            self._sym_spell.create_dictionary_entry(word.lower(), frequency)

    def get_status(self) -> Dict[str, Any]:
        """Get detailed status of the SymSpell integration."""
        status = {
            'available': self.is_available,
            'error': self._error,
            'max_edit_distance': self.max_edit_distance,
            'custom_words_count': len(self._custom_words),
        }

        if self.is_available and self._sym_spell:
            status['dictionary_size'] = len(self._sym_spell.words)

        return status

    def lookup(self, word: str, limit: int = 5) -> List[SpellingCandidate]:
        """
        Look up a single word.

        Returns an empty list when the word is known (or cannot be checked),
        otherwise the closest candidates ordered by distance then frequency.
        """
        if not self.is_available or not word:
            return []

        lowered = word.lower()
        if lowered in self._custom_words:
            return []

        suggestions = self._sym_spell.lookup(
            lowered,
            self._Verbosity.CLOSEST,
            max_edit_distance=self.max_edit_distance,
            include_unknown=False
        )

        candidates = []
        for suggestion in suggestions:
            if suggestion.distance == 0:
                return []
            candidates.append(SpellingCandidate(
                term=suggestion.term,
                distance=suggestion.distance,
                frequency=suggestion.count
            ))

        return candidates[:limit]

    def is_word_known(self, word: str) -> bool:
        """True if the word is in the dictionary (or the dictionary is unavailable)."""
        if not self.is_available:
            return True
        lowered = word.lower()
        if lowered in self._custom_words:
            return True
        return lowered in self._sym_spell.words
