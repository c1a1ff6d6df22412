"""
AI Issue Detection
==================
A second AI pass that looks for problems the local analyzers missed.

The model reports each issue as the exact text to change plus a little
context on either side. Issues are located in the current plain text by
that context rather than by offset, so they follow edits elsewhere in the
document and disappear once their context is edited away.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional

from config_logging import MalformedResponseError, get_logger

from ..factory import count_earlier_occurrences, create_suggestion, fix_actions
from ..models import AIEnrichment, Span, Suggestion

logger = get_logger('wordwise.ai.detection')

DETECTABLE_CATEGORIES = ('spelling', 'grammar', 'style', 'seo', 'tone')

RULE_PREFIX = 'ai-detect'
REASONING = "Detected by AI deep analysis"

MAX_CONTEXT_CHARS = 40
MAX_DETECTED_ISSUES = 5
MIN_CONFIDENCE = 0.7

# Shorter documents are not worth a detection call
MIN_DETECT_CHARS = 50


@dataclass(frozen=True)
class DetectedIssue:
    """One issue reported by the detection pass."""
    category: str
    match_text: str
    message: str
    fix: str
    confidence: float
    context_before: str = ""
    context_after: str = ""

    @property
    def suggestion_category(self) -> str:
        return 'style' if self.category == 'tone' else self.category

    @property
    def sub_category(self) -> str:
        return 'ai-tone' if self.category == 'tone' else 'ai-detected'

    @property
    def rule_id(self) -> str:
        return f"{RULE_PREFIX}/{self.category}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category': self.category,
            'matchText': self.match_text,
            'message': self.message,
            'fix': self.fix,
            'confidence': self.confidence,
            'contextBefore': self.context_before,
            'contextAfter': self.context_after,
        }

    @classmethod
    def from_dict(cls, data: Any) -> 'DetectedIssue':
        """Validate one reported issue. Raises MalformedResponseError."""
        if not isinstance(data, dict):
            raise MalformedResponseError("Detected issue is not an object")

        category = data.get('category')
        if category not in DETECTABLE_CATEGORIES:
            raise MalformedResponseError(f"Unknown detected category: {category!r}")

        match_text = data.get('matchText')
        if not isinstance(match_text, str) or not match_text:
            raise MalformedResponseError("Detected issue has no matchText")

        for name in ('message', 'fix'):
            if not isinstance(data.get(name), str):
                raise MalformedResponseError(f"{name} must be a string", match_text=match_text)

        confidence = data.get('confidence')
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            raise MalformedResponseError("confidence must be a number", match_text=match_text)
        if not 0.0 <= confidence <= 1.0:
            raise MalformedResponseError("confidence must be within [0, 1]", match_text=match_text)

        before = data.get('contextBefore') or ''
        after = data.get('contextAfter') or ''
        if not isinstance(before, str) or not isinstance(after, str):
            raise MalformedResponseError("context must be a string", match_text=match_text)

        return cls(
            category=category,
            match_text=match_text,
            message=data['message'],
            fix=data['fix'],
            confidence=float(confidence),
            context_before=before[-MAX_CONTEXT_CHARS:],
            context_after=after[:MAX_CONTEXT_CHARS],
        )


def parse_detection_response(data: Any) -> List[DetectedIssue]:
    """Parse `{suggestions: [...]}`. Any schema mismatch fails the whole response."""
    if not isinstance(data, dict) or not isinstance(data.get('suggestions'), list):
        raise MalformedResponseError("Response must be an object with a 'suggestions' list")
    return [DetectedIssue.from_dict(entry) for entry in data['suggestions']]


def locate_issue(text: str, issue: DetectedIssue) -> Optional[Span]:
    """
    Find the span of an issue's matchText in `text`.

    Tries the full context first, then each side alone. Without any
    matching context the bare matchText is used only when it is unique.
    """
    before, match, after = issue.context_before, issue.match_text, issue.context_after
    for prefix, suffix in ((before, after), (before, ''), ('', after)):
        if not (prefix or suffix):
            continue
        found = text.find(prefix + match + suffix)
        if found != -1:
            start = found + len(prefix)
            return Span(start, start + len(match))

    if text.count(match) == 1:
        start = text.index(match)
        return Span(start, start + len(match))
    return None


def detection_to_suggestion(issue: DetectedIssue, text: str) -> Optional[Suggestion]:
    """
    Build an AI-enriched Suggestion for an issue, or None when it cannot be located.

    match_text is the issue's context window as it appears in the text so the
    tracker finds it again by context.
    """
    span = locate_issue(text, issue)
    if span is None:
        return None

    suggestion = create_suggestion(
        span, text, issue.suggestion_category, issue.sub_category, issue.rule_id,
        f"{issue.suggestion_category.title()} Issue", issue.message,
        fix_actions([issue.fix]), 'suggestion',
    )

    before, after = issue.context_before, issue.context_after
    window_start = span.start
    if before and text[span.start - len(before):span.start] == before and issue.match_text not in before:
        window_start = span.start - len(before)
    window_end = span.end
    if after and text[span.end:span.end + len(after)] == after:
        window_end = span.end + len(after)
    window = text[window_start:window_end]

    suggestion = replace(
        suggestion,
        match_text=window,
        occurrence=count_earlier_occurrences(text, window, window_start),
    )
    return suggestion.with_enrichment(AIEnrichment(
        ai_fix=issue.fix,
        confidence=issue.confidence,
        reasoning=REASONING,
        should_replace=True,
        original_fix=issue.fix,
    ))


def detections_to_suggestions(
    issues: Iterable[DetectedIssue],
    text: str,
    min_confidence: float = MIN_CONFIDENCE,
    exclude_ids: Iterable[str] = ()
) -> List[Suggestion]:
    """Suggestions for the confident, locatable issues, one per id."""
    excluded = set(exclude_ids)
    by_id: Dict[str, Suggestion] = {}
    for issue in issues:
        if issue.confidence < min_confidence:
            logger.debug("Dropping low-confidence detection", match_text=issue.match_text,
                         confidence=issue.confidence)
            continue
        suggestion = detection_to_suggestion(issue, text)
        if suggestion is None:
            logger.debug("Detected issue not found in text", match_text=issue.match_text)
            continue
        if suggestion.id in excluded or suggestion.id in by_id:
            continue
        by_id[suggestion.id] = suggestion
    return list(by_id.values())
