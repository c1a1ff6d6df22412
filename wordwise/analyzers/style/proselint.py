"""
Proselint Wrapper for WordWise
==============================
Editorial style rules from Strunk & White, Garner, Orwell and others.

Features:
- Cliché detection
- Redundancy and jargon patterns
- Weasel word and hedging detection
- Works with both the current LintFile API and the older tools.lint API

Requires: pip install proselint
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set

from config_logging import get_logger

from ...base import IntegrationBase

logger = get_logger('wordwise.proselint')


@dataclass
class StyleIssue:
    """A style issue found by Proselint."""
    check_name: str
    message: str
    start: int
    end: int
    severity: str
    replacement: str = ""


# Module-level flag to prevent duplicate registration
_checks_registered = False


class ProselintWrapper(IntegrationBase):
    """
    Proselint integration for professional writing style.
    """

    INTEGRATION_NAME = "Proselint"
    INTEGRATION_VERSION = "1.0.0"

    # Always skipped; the heuristic style checks cover these
    SKIP_CHECKS: Set[str] = {
        'misc.passive',
        'typography.symbols.ellipsis',
        'typography.symbols.multiplication_symbol',
    }

    # Proselint check family -> style sub-category
    SUB_CATEGORY_MAP = {
        'cliches': 'cliche',
        'weasel_words': 'weasel-word',
        'hedging': 'weasel-word',
        'lexical_illusions': 'lexical-illusion',
        'redundancy': 'redundancy',
        'jargon': 'jargon',
        'corporate_speak': 'jargon',
        'skunked_terms': 'usage',
        'mixed_metaphors': 'mixed-metaphor',
        'oxymorons': 'oxymoron',
        'sexism': 'bias',
        'uncomparables': 'uncomparable',
        'archaism': 'archaism',
    }

    def __init__(self, skip_checks: Optional[Iterable[str]] = None):
        """
        Initialize Proselint wrapper.

        Args:
            skip_checks: Extra check names (or name fragments) to skip
        """
        super().__init__()
        self.skip_checks: Set[str] = set(self.SKIP_CHECKS) | set(skip_checks or ())
        self._proselint = None
        self._default_config = None
        self._initialize()

    def _initialize(self):
        """Initialize proselint library."""
        global _checks_registered
        try:
            import proselint
            self._proselint = proselint
            self._available = True
        except ImportError as e:
            self._error = f"proselint not installed: {e}"
            self._available = False
            return

        # Check registration is required for the LintFile API (v0.16+)
        try:
            from proselint.checks import __register__
            from proselint.registry import CheckRegistry
            from proselint.config import DEFAULT

            if not _checks_registered:
                CheckRegistry().register_many(__register__)
                _checks_registered = True
            self._default_config = DEFAULT
        except ImportError:
            self._default_config = None

    def get_status(self) -> Dict[str, Any]:
        """Get detailed status of the Proselint integration."""
        return {
            'available': self.is_available,
            'error': self._error,
            'api': 'lintfile' if self._default_config is not None else 'legacy',
            'skip_checks': sorted(self.skip_checks),
        }

    def _lint(self, text: str) -> list:
        if self._default_config is not None:
            from proselint.tools import LintFile
            return LintFile(source='-', content=text).lint(self._default_config)
        return self._proselint.tools.lint(text)

    def check(self, text: str) -> List[StyleIssue]:
        """
        Check text for style issues.

        Errors from proselint propagate; the analyzer reports them as an
        unsuccessful result.
        """
        if not self.is_available or not text.strip():
            return []

        issues = []
        for sug in self._lint(text):
            issue = self._to_issue(sug)
            if issue is None or self._should_skip(issue.check_name):
                continue
            if issue.end <= issue.start:
                continue
            issues.append(issue)

        return issues

    @staticmethod
    def _to_issue(sug) -> Optional[StyleIssue]:
        """Normalize the result shapes of the different proselint versions."""
        if hasattr(sug, 'check_result'):
            check_result = sug.check_result
        elif isinstance(sug, tuple) and len(sug) == 2 and hasattr(sug[0], 'check_path'):
            check_result = sug[0]
        else:
            check_result = None

        if check_result is not None:
            span = check_result.span or (0, 0)
            return StyleIssue(
                check_name=check_result.check_path,
                message=check_result.message,
                start=span[0],
                end=span[1],
                severity='suggestion',
                replacement=check_result.replacements or '',
            )

        # Legacy tuple: (check, message, line, column, start, end, extent, severity, replacements)
        try:
            return StyleIssue(
                check_name=sug[0],
                message=sug[1],
                start=sug[4],
                end=sug[5],
                severity=sug[7] if len(sug) > 7 else 'suggestion',
                replacement=(sug[8] if len(sug) > 8 else '') or '',
            )
        except (IndexError, TypeError):
            logger.debug("Unrecognized proselint result skipped")
            return None

    def _should_skip(self, check_name: str) -> bool:
        """Check if a rule should be skipped."""
        if check_name in self.skip_checks:
            return True
        return any(skip in check_name for skip in self.skip_checks)

    def get_sub_category(self, check_name: str) -> str:
        """Style sub-category for a check name ('cliches.hell' -> 'cliche')."""
        base = check_name.split('.')[0]
        return self.SUB_CATEGORY_MAP.get(base, f"proselint-{base.replace('_', '-')}")
