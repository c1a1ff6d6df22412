"""
LLM Client
==========
Minimal OpenAI-compatible chat completion client over `requests`.

- provider 'azure': deployment chat-completions path and 'api-key' header
- provider 'openai' (or others): the configured endpoint with a Bearer token
"""

import json
import re
import time
from typing import Any, Dict, List, Optional, Sequence

import requests

from config_logging import MalformedResponseError, RateLimitError, RemoteServiceError, get_logger

from ..models import DocumentMetadata, Suggestion
from .context import DocumentContext
from .detection import MAX_DETECTED_ISSUES, DetectedIssue, parse_detection_response
from .enhancement import EnhancementResult, parse_enhancement_response
from .prompts import build_detection_messages, build_messages

logger = get_logger('wordwise.ai.llm')

SERVICE_NAME = 'llm'

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def _retry_after(resp: requests.Response, default: int = 60) -> int:
    try:
        return int(resp.headers.get('Retry-After', default))
    except (TypeError, ValueError):
        return default


class LLMClient:
    """Chat completions for the AI enhancement tier."""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        provider: str = "openai",
        deployment: Optional[str] = None,
        api_version: str = "2024-12-01-preview",
        temperature: float = 0.3,
        max_tokens: int = 2000,
        timeout: float = 60.0,
        session: Optional[requests.Session] = None
    ):
        self.endpoint = endpoint or ""
        self.api_key = api_key
        self.model = model
        self.provider = (provider or "").lower().strip()
        self.deployment = deployment or model
        self.api_version = api_version
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, llm_config=None) -> 'LLMClient':
        if llm_config is None:
            from ..config import get_config
            llm_config = get_config().llm
        return cls(
            endpoint=llm_config.endpoint,
            api_key=llm_config.api_key,
            model=llm_config.model,
            provider=llm_config.provider,
            deployment=llm_config.deployment,
            api_version=llm_config.api_version,
            temperature=llm_config.temperature,
            max_tokens=llm_config.max_tokens,
            timeout=llm_config.timeout,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.endpoint and self.api_key)

    def _url(self) -> str:
        if self.provider == "azure":
            base = self.endpoint.rstrip("/")
            return f"{base}/openai/deployments/{self.deployment}/chat/completions?api-version={self.api_version}"
        return self.endpoint

    def _headers(self) -> Dict[str, str]:
        if self.provider == "azure":
            return {"api-key": self.api_key, "Content-Type": "application/json"}
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    def chat(self, messages: List[Dict[str, str]], json_mode: bool = False) -> str:
        """
        Send a chat completion request and return the message content.

        Raises:
            RemoteServiceError: not configured, transport failure or non-2xx
            RateLimitError: HTTP 429
            MalformedResponseError: no choices[0].message.content
        """
        if not self.is_configured:
            raise RemoteServiceError("LLM endpoint or API key not configured", service=SERVICE_NAME)

        url = self._url()
        payload = {
            "model": self.deployment if self.provider == "azure" else self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        t0 = time.time()
        try:
            resp = self._session.post(url, json=payload, headers=self._headers(), timeout=self.timeout)
        except requests.Timeout:
            logger.error("LLM request timed out", url=url)
            raise RemoteServiceError("LLM request timed out", service=SERVICE_NAME)
        except requests.RequestException as e:
            logger.error(f"LLM connection error: {e}", url=url)
            raise RemoteServiceError(f"LLM connection error: {e}", service=SERVICE_NAME)
        latency_ms = int((time.time() - t0) * 1000)

        if resp.status_code == 429:
            retry_after = _retry_after(resp)
            logger.warning("LLM rate limited", retry_after=retry_after)
            raise RateLimitError(retry_after=retry_after, message="AI provider rate limit exceeded")

        if not 200 <= resp.status_code < 300:
            body_snip = resp.text[:300].replace("\n", " ")
            logger.error(f"LLM HTTP {resp.status_code}", url=url, body=body_snip)
            raise RemoteServiceError(f"LLM returned HTTP {resp.status_code}",
                                     service=SERVICE_NAME, http_status=resp.status_code)

        try:
            data = resp.json()
            content = (data.get("choices") or [{}])[0].get("message", {}).get("content")
        except (ValueError, AttributeError, IndexError) as e:
            raise MalformedResponseError(f"LLM response is not a chat completion: {e}",
                                         service=SERVICE_NAME)
        if content is None:
            logger.error("LLM 200 OK but missing choices[0].message.content")
            raise MalformedResponseError("LLM response has no message content", service=SERVICE_NAME)

        logger.info("LLM OK", provider=self.provider, model=self.model, latency_ms=latency_ms)
        return content

    def chat_json(self, messages: List[Dict[str, str]]) -> Any:
        """Chat in JSON mode and decode the reply, tolerating a Markdown code fence."""
        content = self.chat(messages, json_mode=True).strip()
        fenced = _FENCE_RE.match(content)
        if fenced:
            content = fenced.group(1)
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise MalformedResponseError(f"LLM reply is not valid JSON: {e}", service=SERVICE_NAME)

    def enhance(self, suggestions: Sequence[Suggestion], context: DocumentContext) -> List[EnhancementResult]:
        """Ask for enhancements of these Suggestions and validate the reply."""
        results = parse_enhancement_response(self.chat_json(build_messages(suggestions, context)))
        wanted = {s.id for s in suggestions}
        unknown = [r.id for r in results if r.id not in wanted]
        if unknown:
            logger.debug("Ignoring enhancements for unknown ids", ids=unknown)
        return [r for r in results if r.id in wanted]

    def detect(self, text: str, metadata: DocumentMetadata, existing_count: int = 0) -> List[DetectedIssue]:
        """Ask for issues the local analyzers missed. At most MAX_DETECTED_ISSUES come back."""
        messages = build_detection_messages(text, metadata, existing_count, MAX_DETECTED_ISSUES)
        issues = parse_detection_response(self.chat_json(messages))
        if len(issues) > MAX_DETECTED_ISSUES:
            logger.debug("Truncating detected issues", returned=len(issues))
        return issues[:MAX_DETECTED_ISSUES]
