"""
LanguageTool Integration
========================
Wraps language_tool_python for the optional fast-tier grammar check.

Features:
- Singleton client (one local Java server per process)
- Rule filtering to avoid overlap with the regex rules and SymSpell
- LanguageTool categories mapped onto grammar/style Findings

Requires: pip install language-tool-python
Note: First run downloads the LanguageTool JAR (~200MB)
"""

import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from config_logging import AnalyzerError, get_logger

from ...base import AnalysisResult, AnalyzerBase, Finding, IntegrationBase
from ...models import DocumentMetadata

logger = get_logger('wordwise.languagetool')


@dataclass
class GrammarMatch:
    """Represents a grammar issue found by LanguageTool."""
    message: str
    offset: int
    length: int
    replacements: List[str]
    rule_id: str
    category: str
    severity: str


class LanguageToolClient(IntegrationBase):
    """
    LanguageTool integration.

    Runs a local Java server. Uses a singleton so only one server starts.
    """

    INTEGRATION_NAME = "LanguageTool"
    INTEGRATION_VERSION = "1.0.0"

    SEVERITY_MAP = {
        'GRAMMAR': 'warning',
        'TYPOS': 'error',
        'PUNCTUATION': 'warning',
        'CASING': 'warning',
        'STYLE': 'suggestion',
        'TYPOGRAPHY': 'suggestion',
        'COLLOCATIONS': 'suggestion',
        'REDUNDANCY': 'suggestion',
        'SEMANTICS': 'warning',
        'MISC': 'suggestion',
    }

    # LanguageTool categories reported as style rather than grammar
    STYLE_CATEGORIES: Set[str] = {'STYLE', 'TYPOGRAPHY', 'REDUNDANCY', 'COLLOCATIONS'}

    # Singleton implementation
    _instance = None
    _lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        """Singleton pattern - only one LanguageTool server."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self, language: str = 'en-US', disabled_rules: Optional[List[str]] = None):
        """
        Initialize LanguageTool client.

        Args:
            language: Language code (default: 'en-US')
            disabled_rules: LanguageTool rule ids to skip
        """
        if self._initialized:
            return

        super().__init__()
        self.language = language
        self.skip_rules: Set[str] = set(disabled_rules or [])
        self._tool = None
        self._init_tool()
        self._initialized = True

    def _init_tool(self):
        """Initialize LanguageTool (starts local Java server)."""
        try:
            import language_tool_python

            self._tool = language_tool_python.LanguageTool(
                self.language,
                config={'cacheSize': 1000, 'pipelineCaching': True}
            )
            self._available = True

        except ImportError as e:
            self._error = f"language-tool-python not installed: {e}"
            self._available = False

        except Exception as e:
            logger.warning(f"LanguageTool initialization failed: {e}")
            self._error = f"LanguageTool initialization failed: {e}"
            self._available = False

    @property
    def is_available(self) -> bool:
        return self._available and self._tool is not None

    def get_status(self) -> Dict[str, Any]:
        """Get detailed status of the LanguageTool integration."""
        return {
            'available': self.is_available,
            'language': self.language if self.is_available else None,
            'error': self._error,
            'disabled_rules': sorted(self.skip_rules),
        }

    def check(self, text: str) -> List[GrammarMatch]:
        """
        Check text for grammar issues.

        Raises whatever the server raises; the analyzer turns that into an
        unsuccessful result.
        """
        if not self.is_available:
            return []

        issues = []
        for match in self._tool.check(text):
            if match.ruleId in self.skip_rules:
                continue

            category = getattr(match, 'category', 'MISC') or 'MISC'
            replacements = list(match.replacements) if match.replacements else []

            issues.append(GrammarMatch(
                message=match.message,
                offset=match.offset,
                length=match.errorLength,
                replacements=replacements[:5],
                rule_id=match.ruleId,
                category=category,
                severity=self.SEVERITY_MAP.get(category, 'suggestion'),
            ))

        return issues

    def close(self):
        """Shut down the LanguageTool server."""
        if self._tool is not None:
            self._tool.close()
            self._tool = None
            self._available = False


class LanguageToolAnalyzer(AnalyzerBase):
    """Maps LanguageTool matches onto grammar and style Findings."""

    ANALYZER_NAME = "LanguageTool"
    ANALYZER_VERSION = "1.0.0"
    CATEGORY = "grammar"

    def __init__(
        self,
        enabled: bool = True,
        language: str = 'en-US',
        disabled_rules: Optional[List[str]] = None,
        client: Optional[LanguageToolClient] = None
    ):
        super().__init__(enabled)
        self.language = language
        self.disabled_rules = list(disabled_rules or [])
        self._client = client

    @classmethod
    def from_config(cls, lt_config=None) -> 'LanguageToolAnalyzer':
        if lt_config is None:
            from ...config import get_config
            lt_config = get_config().languagetool
        return cls(enabled=lt_config.enabled, language=lt_config.language,
                   disabled_rules=lt_config.disabled_rules)

    def _initialize(self) -> bool:
        if self._client is None:
            from . import get_languagetool_client
            self._client = get_languagetool_client(self.language, self.disabled_rules)
        if not self._client.is_available:
            self._init_error = self._client.error
            return False
        return True

    def _run_impl(
        self,
        text: str,
        metadata: DocumentMetadata,
        result: AnalysisResult
    ) -> List[Finding]:
        try:
            matches = self._client.check(text)
        except (OSError, RuntimeError) as e:
            raise AnalyzerError(f"LanguageTool check failed: {e}",
                                analyzer=self.ANALYZER_NAME, chars=len(text)) from e

        findings = []
        for match in matches:
            if match.length <= 0:
                continue
            category = 'style' if match.category in LanguageToolClient.STYLE_CATEGORIES else 'grammar'
            sub_category = f"lt-{match.rule_id.lower().replace('_', '-')}"
            findings.append(Finding(
                rule_id=f"{category}/{sub_category}",
                category=category,
                sub_category=sub_category,
                message=match.message,
                span_start=match.offset,
                span_end=match.offset + match.length,
                title=f"{category.title()} Issue",
                candidate_fixes=match.replacements,
                severity=match.severity,
            ))
        return findings
