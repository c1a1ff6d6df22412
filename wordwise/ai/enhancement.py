"""
AI Enhancement Service
======================
Selective, cached rewriting of Suggestions through an LLM.

Only Suggestions that pass `should_enhance` are sent. Results are merged
back by id as AIEnrichment records; a failed batch marks its
Suggestions with AIFailure and keeps their original fixes.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from config_logging import MalformedResponseError, RateLimitError, WordWiseError, get_logger

from ..cache import AnalysisCache
from ..models import AIEnrichment, AIFailure, DocumentMetadata, Suggestion
from .context import DocumentContext
from .detection import MIN_DETECT_CHARS, DetectedIssue
from .usage import UsageLimiter

logger = get_logger('wordwise.ai.enhancement')

# Spelling matches that are often real words used in the wrong place
CONTEXTUAL_WORDS = frozenset({
    'their', 'there', 'theyre', 'its', 'your', 'youre', 'to', 'too', 'two',
})

# Grammar sub-categories whose fixes need a rewrite, not a substitution
REWRITE_GRAMMAR = frozenset({'passive-voice', 'complex-sentence'})

# Fixes within this many characters of the original are simple substitutions
SIMPLE_FIX_LENGTH_DELTA = 2

CACHE_PREFIX = 'ai-enhance'
DETECT_CACHE_PREFIX = 'ai-detect'
DEFAULT_CACHE_TTL = 3600


@dataclass
class EnhancementResult:
    """One entry of an enhancement response."""
    id: str
    confidence: float
    reasoning: str
    should_replace: bool
    enhanced_fix: Optional[str] = None
    alternative_fixes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'confidence': self.confidence,
            'reasoning': self.reasoning,
            'shouldReplace': self.should_replace,
            'alternativeFixes': list(self.alternative_fixes),
        }
        if self.enhanced_fix is not None:
            data['enhancedFix'] = self.enhanced_fix
        return data

    @classmethod
    def from_dict(cls, data: Any) -> 'EnhancementResult':
        """Validate one response entry. Raises MalformedResponseError."""
        if not isinstance(data, dict):
            raise MalformedResponseError("Enhancement entry is not an object")

        suggestion_id = data.get('id')
        if not isinstance(suggestion_id, str) or not suggestion_id:
            raise MalformedResponseError("Enhancement entry has no id")

        confidence = data.get('confidence')
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            raise MalformedResponseError("confidence must be a number", suggestion_id=suggestion_id)
        if not 0.0 <= confidence <= 1.0:
            raise MalformedResponseError("confidence must be within [0, 1]",
                                         suggestion_id=suggestion_id)

        reasoning = data.get('reasoning')
        if not isinstance(reasoning, str):
            raise MalformedResponseError("reasoning must be a string", suggestion_id=suggestion_id)

        should_replace = data.get('shouldReplace')
        if not isinstance(should_replace, bool):
            raise MalformedResponseError("shouldReplace must be a boolean",
                                         suggestion_id=suggestion_id)

        enhanced_fix = data.get('enhancedFix')
        if enhanced_fix is not None and not isinstance(enhanced_fix, str):
            raise MalformedResponseError("enhancedFix must be a string", suggestion_id=suggestion_id)

        alternatives = data.get('alternativeFixes') or []
        if not isinstance(alternatives, list) or not all(isinstance(a, str) for a in alternatives):
            raise MalformedResponseError("alternativeFixes must be a list of strings",
                                         suggestion_id=suggestion_id)

        return cls(
            id=suggestion_id,
            confidence=float(confidence),
            reasoning=reasoning,
            should_replace=should_replace,
            enhanced_fix=enhanced_fix,
            alternative_fixes=list(alternatives),
        )


def parse_enhancement_response(data: Any) -> List[EnhancementResult]:
    """Parse `{suggestions: [...]}`. Any schema mismatch fails the whole response."""
    if not isinstance(data, dict) or not isinstance(data.get('suggestions'), list):
        raise MalformedResponseError("Response must be an object with a 'suggestions' list")
    return [EnhancementResult.from_dict(entry) for entry in data['suggestions']]


def is_contextual_word(text: str) -> bool:
    words = re.findall(r"[a-z']+", (text or '').lower())
    return any(w.replace("'", '') in CONTEXTUAL_WORDS for w in words)


def is_good_fix(fix: str, suggestion: Suggestion) -> bool:
    """Spelling substitutions and near-equal-length fixes need no rewrite."""
    if suggestion.category == 'spelling':
        return True
    original = suggestion.match_text or ''
    return abs(len(fix) - len(original)) <= SIMPLE_FIX_LENGTH_DELTA


def should_enhance(suggestion: Suggestion) -> bool:
    """Whether a Suggestion is worth an LLM call."""
    if suggestion.ai_enhanced:
        return False

    # SEO feedback is document-wide but has metadata to work from
    if suggestion.is_document_wide and suggestion.category != 'seo':
        return False

    if suggestion.category in ('style', 'seo'):
        return True

    fixes = [a for a in suggestion.fix_actions if a.value]
    if not fixes:
        return True

    if suggestion.category == 'spelling' and is_contextual_word(suggestion.match_text):
        return True

    if is_good_fix(fixes[0].value, suggestion):
        return False

    return suggestion.category == 'grammar' and suggestion.sub_category in REWRITE_GRAMMAR


def merge_enhancements(
    suggestions: Sequence[Suggestion],
    results: Iterable[EnhancementResult]
) -> List[Suggestion]:
    """Attach results by id. Suggestions without a result come back unchanged."""
    by_id = {r.id: r for r in results}
    merged = []
    for suggestion in suggestions:
        result = by_id.get(suggestion.id)
        if result is None:
            merged.append(suggestion)
            continue
        original_fix = next((a.value for a in suggestion.actions if a.kind == 'fix'), None)
        merged.append(suggestion.with_enrichment(AIEnrichment(
            ai_fix=result.enhanced_fix or original_fix or '',
            confidence=result.confidence,
            reasoning=result.reasoning,
            should_replace=result.should_replace,
            alternative_fixes=tuple(result.alternative_fixes),
            original_fix=original_fix,
        )))
    return merged


def mark_failed(suggestions: Sequence[Suggestion], reason: str) -> List[Suggestion]:
    return [s.with_enrichment(AIFailure(reason=reason)) for s in suggestions]


class EnhancementService:
    """
    Filters, caches and sends Suggestions to an enhancer.

    `enhancer` is anything with `enhance(suggestions, context)` returning
    EnhancementResults, normally an LLMClient. Issue detection also needs
    `detect(text, metadata, existing_count)`.
    """

    def __init__(
        self,
        enhancer,
        cache: Optional[AnalysisCache] = None,
        usage_limiter: Optional[UsageLimiter] = None,
        cache_ttl: float = DEFAULT_CACHE_TTL
    ):
        self.enhancer = enhancer
        self.cache = cache
        self.usage_limiter = usage_limiter
        self.cache_ttl = cache_ttl

    @staticmethod
    def cache_key(suggestions: Sequence[Suggestion], context: DocumentContext) -> str:
        ids = ','.join(sorted(s.id for s in suggestions))
        return AnalysisCache.make_key(CACHE_PREFIX, ids, context.context_hash())

    def enhance_results(
        self,
        suggestions: Sequence[Suggestion],
        context: DocumentContext
    ) -> List[EnhancementResult]:
        """
        Fetch EnhancementResults for exactly these Suggestions.

        Served from the cache when the same ids were enhanced under the same
        context. Raises RateLimitError when the usage quota is spent, and
        RemoteServiceError / MalformedResponseError from the enhancer.
        """
        if not suggestions:
            return []

        key = self.cache_key(suggestions, context)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("AI enhancement cache hit", count=len(suggestions))
                return [EnhancementResult.from_dict(entry) for entry in cached]

        if self.usage_limiter is not None:
            self.usage_limiter.check(count=len(suggestions))

        results = self.enhancer.enhance(list(suggestions), context)

        if self.usage_limiter is not None:
            self.usage_limiter.record(len(suggestions))
        if self.cache is not None:
            self.cache.set(key, [r.to_dict() for r in results], ttl=self.cache_ttl)
        return results

    def enhance_batch(
        self,
        suggestions: Sequence[Suggestion],
        context: DocumentContext
    ) -> List[Suggestion]:
        """
        Enhance the eligible Suggestions of a batch and return the whole batch.

        RateLimitError propagates so the caller can stop sending; any other
        enhancer failure marks the eligible Suggestions with AIFailure.
        """
        to_enhance = [s for s in suggestions if should_enhance(s)]
        logger.info("Selective AI enhancement", total=len(suggestions),
                    to_enhance=len(to_enhance), skipping=len(suggestions) - len(to_enhance))
        if not to_enhance:
            return list(suggestions)

        try:
            results = self.enhance_results(to_enhance, context)
        except RateLimitError:
            raise
        except WordWiseError as e:
            logger.warning(f"AI enhancement failed: {e.message}", code=e.code,
                           count=len(to_enhance))
            failed = {s.id: s for s in mark_failed(to_enhance, e.message)}
            return [failed.get(s.id, s) for s in suggestions]

        return merge_enhancements(suggestions, results)

    @property
    def can_detect(self) -> bool:
        return callable(getattr(self.enhancer, 'detect', None))

    def detect_issues(
        self,
        text: str,
        metadata: DocumentMetadata,
        existing_count: int = 0
    ) -> List[DetectedIssue]:
        """
        Ask the enhancer for issues the local analyzers missed.

        Texts shorter than MIN_DETECT_CHARS are skipped. Cached per text and
        metadata; raises like `enhance_results`.
        """
        if not self.can_detect or len(text.strip()) < MIN_DETECT_CHARS:
            return []

        key = AnalysisCache.make_key(DETECT_CACHE_PREFIX, text, metadata.cache_key())
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("AI detection cache hit", count=len(cached))
                return [DetectedIssue.from_dict(entry) for entry in cached]

        if self.usage_limiter is not None:
            self.usage_limiter.check()

        issues = self.enhancer.detect(text, metadata, existing_count)
        logger.info("AI detection found issues", count=len(issues),
                    categories=[i.category for i in issues])

        if self.usage_limiter is not None:
            self.usage_limiter.record(max(len(issues), 1))
        if self.cache is not None:
            self.cache.set(key, [i.to_dict() for i in issues], ttl=self.cache_ttl)
        return issues
