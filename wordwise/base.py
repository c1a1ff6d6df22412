"""
Analyzer Base Classes
=====================
Base classes for pluggable analyzers and third-party integrations.

Every analyzer takes plain text (plus optional DocumentMetadata) and
returns Findings. `AnalyzerBase.run` never raises: initialization and
check failures come back as an unsuccessful AnalysisResult.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import time

from config_logging import AnalyzerError, get_logger

from .models import DocumentMetadata, normalize_severity

__version__ = "1.0.0"

logger = get_logger('wordwise.analyzers')


@dataclass
class Finding:
    """
    Raw output of one analyzer before normalization.

    Document-wide findings leave span_start/span_end as None.
    """
    rule_id: str
    category: str
    sub_category: str
    message: str
    span_start: Optional[int] = None
    span_end: Optional[int] = None
    title: str = ""
    candidate_fixes: List[str] = field(default_factory=list)
    severity: str = "suggestion"

    def __post_init__(self):
        self.severity = normalize_severity(self.severity)
        if (self.span_start is None) != (self.span_end is None):
            raise ValueError("span_start and span_end must both be set or both be None")

    @property
    def is_document_wide(self) -> bool:
        return self.span_start is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format for API responses."""
        return {
            'ruleId': self.rule_id,
            'category': self.category,
            'subCategory': self.sub_category,
            'message': self.message,
            'spanStart': self.span_start,
            'spanEnd': self.span_end,
            'title': self.title,
            'candidateFixes': list(self.candidate_fixes),
            'severity': self.severity,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Finding':
        return cls(
            rule_id=data['ruleId'],
            category=data['category'],
            sub_category=data.get('subCategory', ''),
            message=data.get('message', ''),
            span_start=data.get('spanStart'),
            span_end=data.get('spanEnd'),
            title=data.get('title', ''),
            candidate_fixes=list(data.get('candidateFixes') or []),
            severity=data.get('severity', 'suggestion'),
        )


@dataclass
class AnalysisResult:
    """Result of one analyzer run."""
    findings: List[Finding] = field(default_factory=list)
    metrics: Dict[str, Any] = field(default_factory=dict)
    processing_time_ms: float = 0.0
    analyzer_name: str = ""
    success: bool = True
    error: Optional[str] = None
    error_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            'findings': [f.to_dict() for f in self.findings],
            'metrics': self.metrics,
            'processing_time_ms': self.processing_time_ms,
            'analyzer_name': self.analyzer_name,
            'success': self.success,
            'error': self.error,
            'error_code': self.error_code,
        }


class AnalyzerBase(ABC):
    """
    Abstract base class for analyzers.

    Subclasses set ANALYZER_NAME and CATEGORY and implement
    `_initialize` and `_run_impl`.
    """

    ANALYZER_NAME: str = "Analyzer"
    ANALYZER_VERSION: str = "1.0.0"
    CATEGORY: str = ""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._initialized = False
        self._init_error: Optional[str] = None

    @abstractmethod
    def _initialize(self) -> bool:
        """
        Initialize the analyzer (load dictionaries, connect to services).

        Returns True if initialization succeeded.
        Called lazily on first run.
        """

    @abstractmethod
    def _run_impl(
        self,
        text: str,
        metadata: DocumentMetadata,
        result: AnalysisResult
    ) -> List[Finding]:
        """
        Implementation of the analysis.

        Args:
            text: Plain-text snapshot
            metadata: Document metadata (never None here)
            result: Result being built; analyzers may add metrics to it

        Returns:
            List of Finding objects
        """

    def run(
        self,
        text: str,
        metadata: Optional[DocumentMetadata] = None
    ) -> AnalysisResult:
        """
        Run the analyzer on a plain-text snapshot.

        Handles initialization, timing, and error handling.
        """
        start_time = time.time()

        result = AnalysisResult(analyzer_name=self.ANALYZER_NAME)

        if not self.enabled:
            result.metrics['skipped'] = 'disabled'
            return result

        if not self._initialized:
            try:
                self._initialized = self._initialize()
            except Exception as e:
                self._init_error = str(e)
                logger.error(f"{self.ANALYZER_NAME} initialization failed: {e}", exc_info=True,
                             analyzer=self.ANALYZER_NAME)
                result.success = False
                result.error = f"Initialization failed: {e}"
                return result

        if not self._initialized:
            result.success = False
            result.error = self._init_error or "Initialization failed"
            return result

        try:
            findings = self._run_impl(text, metadata or DocumentMetadata(), result)
            result.findings = findings
            result.metrics['finding_count'] = len(findings)
        except AnalyzerError as e:
            logger.warning(f"{self.ANALYZER_NAME} failed: {e.message}", code=e.code, **e.details)
            self._fail(result, e)
        except Exception as e:
            logger.error(f"{self.ANALYZER_NAME} failed: {e}", exc_info=True,
                         analyzer=self.ANALYZER_NAME)
            self._fail(result, AnalyzerError(f"Analysis failed: {e}", analyzer=self.ANALYZER_NAME))

        result.processing_time_ms = (time.time() - start_time) * 1000
        return result

    @staticmethod
    def _fail(result: AnalysisResult, error: AnalyzerError):
        result.findings = []
        result.success = False
        result.error = error.message
        result.error_code = error.code

    def create_finding(
        self,
        sub_category: str,
        message: str,
        span_start: Optional[int] = None,
        span_end: Optional[int] = None,
        title: str = "",
        candidate_fixes: Optional[List[str]] = None,
        severity: str = "suggestion",
        rule_id: str = ""
    ) -> Finding:
        """Helper to create a Finding in this analyzer's category."""
        return Finding(
            rule_id=rule_id or f"{self.CATEGORY}/{sub_category}",
            category=self.CATEGORY,
            sub_category=sub_category,
            message=message,
            span_start=span_start,
            span_end=span_end,
            title=title,
            candidate_fixes=list(candidate_fixes or []),
            severity=severity,
        )


class IntegrationBase(ABC):
    """
    Abstract base class for third-party tool integrations.

    Wraps external libraries (SymSpell, Proselint, LanguageTool, textstat).
    """

    INTEGRATION_NAME: str = "Integration"
    INTEGRATION_VERSION: str = "1.0.0"

    def __init__(self):
        self._available = False
        self._error: Optional[str] = None

    @property
    def is_available(self) -> bool:
        """Check if the integration is available and working."""
        return self._available

    @property
    def error(self) -> Optional[str]:
        """Get initialization error if any."""
        return self._error

    @abstractmethod
    def get_status(self) -> Dict[str, Any]:
        """Get detailed status of the integration."""
