"""
Remote Analysis Client
======================
Client side of the /api/analysis endpoints, used when the deep tier (or
AI enhancement) runs in another process.

Any non-2xx status or schema mismatch is a total failure for the call:
RemoteServiceError, RateLimitError (429) or MalformedResponseError.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import requests

from config_logging import MalformedResponseError, RateLimitError, RemoteServiceError, get_logger

from .ai.enhancement import EnhancementResult, parse_enhancement_response
from .models import DocumentMetadata, Suggestion

logger = get_logger('wordwise.remote')

SERVICE_NAME = 'remote-analysis'


@dataclass
class RemoteAnalysis:
    """Suggestions and metrics returned by an analysis endpoint."""
    suggestions: List[Suggestion] = field(default_factory=list)
    metrics: Dict[str, Any] = field(default_factory=dict)


class RemoteAnalysisClient:
    """requests-based client for a WordWise analysis server."""

    def __init__(self, base_url: str, timeout: float = 15.0,
                 session: Optional[requests.Session] = None):
        if not base_url:
            raise ValueError("base_url is required")
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, remote_config=None) -> Optional['RemoteAnalysisClient']:
        """Client for the configured base_url, or None when none is set."""
        if remote_config is None:
            from .config import get_config
            remote_config = get_config().remote
        if not remote_config.base_url:
            return None
        return cls(remote_config.base_url, timeout=remote_config.timeout)

    def _post(self, path: str, payload: Dict[str, Any]) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self._session.post(url, json=payload, timeout=self.timeout)
        except requests.Timeout:
            logger.warning("Remote analysis timed out", url=url)
            raise RemoteServiceError(f"Request to {path} timed out", service=SERVICE_NAME)
        except requests.RequestException as e:
            logger.warning(f"Remote analysis connection error: {e}", url=url)
            raise RemoteServiceError(f"Request to {path} failed: {e}", service=SERVICE_NAME)

        if resp.status_code == 429:
            raise RateLimitError(retry_after=self._retry_after(resp),
                                 message=self._error_message(resp) or "Rate limit exceeded")

        if not 200 <= resp.status_code < 300:
            message = self._error_message(resp) or f"HTTP {resp.status_code}"
            logger.warning("Remote analysis failed", url=url, http_status=resp.status_code)
            raise RemoteServiceError(f"{path} returned {message}", service=SERVICE_NAME,
                                     http_status=resp.status_code)

        try:
            return resp.json()
        except ValueError as e:
            raise MalformedResponseError(f"{path} did not return JSON: {e}", service=SERVICE_NAME)

    @staticmethod
    def _error_body(resp: requests.Response) -> Dict[str, Any]:
        try:
            body = resp.json()
        except ValueError:
            return {}
        error = body.get('error') if isinstance(body, dict) else None
        return error if isinstance(error, dict) else {}

    def _error_message(self, resp: requests.Response) -> Optional[str]:
        return self._error_body(resp).get('message')

    def _retry_after(self, resp: requests.Response) -> int:
        details = self._error_body(resp).get('details') or {}
        value = details.get('retry_after', resp.headers.get('Retry-After', 60))
        try:
            return int(value)
        except (TypeError, ValueError):
            return 60

    @staticmethod
    def _parse_analysis(data: Any, path: str) -> RemoteAnalysis:
        if not isinstance(data, dict) or not isinstance(data.get('suggestions'), list):
            raise MalformedResponseError(f"{path} response has no 'suggestions' list",
                                         service=SERVICE_NAME)
        metrics = data.get('metrics') or {}
        if not isinstance(metrics, dict):
            raise MalformedResponseError(f"{path} 'metrics' must be an object", service=SERVICE_NAME)
        try:
            suggestions = [Suggestion.from_dict(s) for s in data['suggestions']]
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponseError(f"{path} returned an invalid suggestion: {e}",
                                         service=SERVICE_NAME)
        return RemoteAnalysis(suggestions=suggestions, metrics=metrics)

    def analyze(self, tier_path: str, text: str,
                metadata: Optional[DocumentMetadata] = None) -> RemoteAnalysis:
        """POST {text, metadata} to /fast, /deep or /spell."""
        payload = {'text': text, 'metadata': (metadata or DocumentMetadata()).to_dict()}
        return self._parse_analysis(self._post(tier_path, payload), tier_path)

    def analyze_deep(self, text: str, metadata: Optional[DocumentMetadata] = None) -> RemoteAnalysis:
        return self.analyze('/deep', text, metadata)

    def enhance(
        self,
        document_snapshot: str,
        target_suggestion_ids: Optional[Sequence[str]] = None,
        metadata: Optional[DocumentMetadata] = None
    ) -> List[EnhancementResult]:
        """POST to /ai-enhance and validate the EnhancementResult list."""
        payload: Dict[str, Any] = {
            'documentSnapshot': document_snapshot,
            'metadata': (metadata or DocumentMetadata()).to_dict(),
        }
        if target_suggestion_ids is not None:
            payload['targetSuggestionIds'] = list(target_suggestion_ids)
        return parse_enhancement_response(self._post('/ai-enhance', payload))

    def cache_stats(self) -> Dict[str, Any]:
        url = f"{self.base_url}/cache-stats"
        try:
            resp = self._session.get(url, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            raise RemoteServiceError(f"cache-stats failed: {e}", service=SERVICE_NAME)
