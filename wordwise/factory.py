"""
Suggestion Factory
==================
Normalizes analyzer Findings into canonical Suggestion records.

Ids are deterministic: ``category:subCategory:ruleId:positionKey`` where the
position key is the plain-text start offset, or ``global`` for
document-wide Suggestions. The same rule firing at the same offset in two
tiers therefore yields the same id, and a tier can replace its own results
without duplicating another tier's.
"""

from typing import Iterable, List, Optional, Sequence, Tuple, Union

from config_logging import get_logger

from .base import Finding
from .models import (
    CATEGORIES,
    GLOBAL_POSITION_KEY,
    Span,
    Suggestion,
    SuggestionAction,
    normalize_severity,
)

logger = get_logger('wordwise.factory')

# Matches this short are widened to a context window so they can be found again
SHORT_MATCH_LENGTH = 2
CONTEXT_CHARS = 10

SpanLike = Union[Span, Tuple[int, int], None]


def make_suggestion_id(category: str, sub_category: str, rule_id: str,
                       position_key: Union[int, str]) -> str:
    return f"{category}:{sub_category}:{rule_id}:{position_key}"


def parse_suggestion_id(suggestion_id: str) -> Tuple[str, str, str, str]:
    """
    Split an id into (category, sub_category, rule_id, position_key).

    Raises ValueError for ids that do not follow the scheme.
    """
    head, sep, position_key = suggestion_id.rpartition(':')
    parts = head.split(':', 2)
    if not sep or len(parts) != 3:
        raise ValueError(f"Malformed suggestion id: {suggestion_id!r}")
    category, sub_category, rule_id = parts
    return category, sub_category, rule_id, position_key


def position_key_of(suggestion_id: str) -> Optional[int]:
    """Numeric position key of an id, or None for global/malformed ids."""
    try:
        key = parse_suggestion_id(suggestion_id)[3]
    except ValueError:
        return None
    return int(key) if key.isdigit() else None


def fix_actions(fixes: Sequence[str]) -> List[SuggestionAction]:
    """Turn candidate replacement strings into ordered fix actions."""
    actions = []
    seen = set()
    for fix in fixes:
        if fix in seen:
            continue
        seen.add(fix)
        actions.append(SuggestionAction(
            label=f'Change to "{fix}"' if fix else 'Remove',
            value=fix,
            kind='fix',
            primary=not actions,
        ))
    return actions


def _coerce_span(span: SpanLike) -> Optional[Span]:
    if span is None or isinstance(span, Span):
        return span
    start, end = span
    return Span(int(start), int(end))


def count_earlier_occurrences(text: str, needle: str, before: int) -> int:
    """Count (overlapping) occurrences of needle starting before `before`."""
    count = 0
    index = text.find(needle)
    while index != -1 and index < before:
        count += 1
        index = text.find(needle, index + 1)
    return count


def context_window(text: str, span: Span) -> Tuple[str, int]:
    """Return (match_text, window_start) for a span."""
    if span.length > SHORT_MATCH_LENGTH:
        return text[span.start:span.end], span.start
    window_start = max(0, span.start - CONTEXT_CHARS)
    window_end = min(len(text), span.end + CONTEXT_CHARS)
    return text[window_start:window_end], window_start


def context_offset(suggestion: Suggestion) -> int:
    """Offset of original_text inside match_text (-1 if absent)."""
    if suggestion.match_text == suggestion.original_text:
        return 0
    if suggestion.position is not None:
        window_start = max(0, suggestion.position.start - CONTEXT_CHARS)
        offset = suggestion.position.start - window_start
        if suggestion.match_text[offset:offset + len(suggestion.original_text)] == suggestion.original_text:
            return offset
    return suggestion.match_text.find(suggestion.original_text)


def create_suggestion(
    span: SpanLike,
    text: str,
    category: str,
    sub_category: str,
    rule_id: str,
    title: str,
    message: str,
    actions: Optional[List[SuggestionAction]] = None,
    severity: str = 'suggestion',
) -> Suggestion:
    """
    Create a Suggestion with a deterministic id.

    Args:
        span: Plain-text span, or None for a document-wide Suggestion
        text: Plain-text snapshot the span refers to
        category: One of CATEGORIES
        sub_category: Finer-grained rule group (e.g. 'common-confusion')
        rule_id: Rule identity (e.g. 'grammar/common-confusion')
        title: Short title
        message: Detailed message
        actions: Ordered candidate fixes
        severity: error/warning/suggestion (info is folded to suggestion)
    """
    if category not in CATEGORIES:
        raise ValueError(f"Unknown category: {category}")

    span = _coerce_span(span)
    if span is None:
        return create_document_suggestion(category, sub_category, rule_id, title,
                                          message, actions, severity)

    if span.end > len(text):
        raise ValueError(f"Span [{span.start}, {span.end}) exceeds text length {len(text)}")

    original_text = text[span.start:span.end]
    match_text, window_start = context_window(text, span)
    occurrence = count_earlier_occurrences(text, match_text, window_start)

    return Suggestion(
        id=make_suggestion_id(category, sub_category, rule_id, span.start),
        category=category,
        sub_category=sub_category,
        rule_id=rule_id,
        severity=normalize_severity(severity),
        title=title,
        message=message,
        match_text=match_text,
        original_text=original_text,
        position=span,
        occurrence=occurrence,
        actions=list(actions or []),
    )


def create_document_suggestion(
    category: str,
    sub_category: str,
    rule_id: str,
    title: str,
    message: str,
    actions: Optional[List[SuggestionAction]] = None,
    severity: str = 'suggestion',
) -> Suggestion:
    """Create a document-wide Suggestion (no span, ``global`` position key)."""
    if category not in CATEGORIES:
        raise ValueError(f"Unknown category: {category}")

    return Suggestion(
        id=make_suggestion_id(category, sub_category, rule_id, GLOBAL_POSITION_KEY),
        category=category,
        sub_category=sub_category,
        rule_id=rule_id,
        severity=normalize_severity(severity),
        title=title,
        message=message,
        actions=list(actions or []),
    )


def suggestion_from_finding(finding: Finding, text: str) -> Suggestion:
    """Normalize one Finding against the text it was computed on."""
    title = finding.title or finding.sub_category.replace('-', ' ').title()
    actions = fix_actions(finding.candidate_fixes)
    span = None if finding.is_document_wide else Span(finding.span_start, finding.span_end)
    return create_suggestion(
        span, text, finding.category, finding.sub_category, finding.rule_id,
        title, finding.message, actions, finding.severity,
    )


def suggestions_from_findings(findings: Iterable[Finding], text: str) -> List[Suggestion]:
    """
    Normalize a batch of Findings.

    Invalid findings are logged and skipped. When two findings share an id
    the later one wins.
    """
    by_id = {}
    for finding in findings:
        try:
            suggestion = suggestion_from_finding(finding, text)
        except ValueError as e:
            logger.warning(f"Skipping invalid finding: {e}", rule_id=finding.rule_id)
            continue
        by_id[suggestion.id] = suggestion
    return list(by_id.values())
