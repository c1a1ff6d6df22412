"""
Suggestion Data Model
=====================
Canonical records shared by every stage of the pipeline.

A Suggestion carries plain-text-origin coordinates only. Live document
spans belong to the SuggestionManager (see tracker.py) and are exposed as
TrackedPosition records.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

CATEGORIES = ('spelling', 'grammar', 'style', 'seo', 'readability')

# Lower rank sorts first
SEVERITY_RANK = {
    'error': 0,
    'warning': 1,
    'suggestion': 2,
}

SEVERITY_ALIASES = {
    'info': 'suggestion',
    'high': 'error',
    'medium': 'warning',
    'low': 'suggestion',
}

ACTION_KINDS = ('fix', 'ai-fix', 'ignore', 'highlight', 'navigate')

GLOBAL_POSITION_KEY = 'global'


def normalize_severity(severity: Optional[str]) -> str:
    """Fold the severity vocabularies onto error/warning/suggestion."""
    if not severity:
        return 'suggestion'
    value = severity.lower()
    value = SEVERITY_ALIASES.get(value, value)
    return value if value in SEVERITY_RANK else 'suggestion'


@dataclass(frozen=True)
class Span:
    """Half-open [start, end) range in plain-text coordinates."""
    start: int
    end: int

    def __post_init__(self):
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid span [{self.start}, {self.end})")

    @property
    def length(self) -> int:
        return self.end - self.start

    def overlaps(self, other: 'Span') -> bool:
        return self.start < other.end and other.start < self.end

    def to_dict(self) -> Dict[str, int]:
        return {'start': self.start, 'end': self.end}


@dataclass
class SuggestionAction:
    """A candidate fix or UI action attached to a Suggestion."""
    label: str
    value: str = ""
    kind: str = "fix"
    primary: bool = False

    def __post_init__(self):
        if self.kind not in ACTION_KINDS:
            raise ValueError(f"Unknown action kind: {self.kind}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'label': self.label,
            'value': self.value,
            'type': self.kind,
            'primary': self.primary,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SuggestionAction':
        return cls(
            label=data.get('label', ''),
            value=data.get('value', ''),
            kind=data.get('type', data.get('kind', 'fix')),
            primary=bool(data.get('primary', False)),
        )


@dataclass(frozen=True)
class AIEnrichment:
    """Fields added by a successful AI enhancement pass."""
    ai_fix: str
    confidence: float
    reasoning: str = ""
    should_replace: bool = False
    alternative_fixes: tuple = ()
    original_fix: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'aiEnhanced': True,
            'aiFix': self.ai_fix,
            'aiConfidence': self.confidence,
            'aiReasoning': self.reasoning,
            'shouldReplace': self.should_replace,
            'alternativeFixes': list(self.alternative_fixes),
            'originalFix': self.original_fix,
        }


@dataclass(frozen=True)
class AIFailure:
    """Marker for a Suggestion whose AI batch failed."""
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {'aiEnhanced': False, 'aiError': True, 'aiErrorReason': self.reason}


Enrichment = Union[AIEnrichment, AIFailure, None]


@dataclass
class Suggestion:
    """
    Canonical, identifiable unit of feedback.

    `position` is None for document-wide Suggestions. `occurrence` is the
    ordinal of `match_text` among overlapping matches that start before the
    span, recorded when `match_text` is a contextual window.
    """
    id: str
    category: str
    sub_category: str
    rule_id: str
    severity: str
    title: str
    message: str
    match_text: str = ""
    original_text: str = ""
    position: Optional[Span] = None
    occurrence: Optional[int] = None
    actions: List[SuggestionAction] = field(default_factory=list)
    enrichment: Enrichment = None

    @property
    def is_document_wide(self) -> bool:
        return self.position is None

    @property
    def ai_enhanced(self) -> bool:
        return isinstance(self.enrichment, AIEnrichment)

    @property
    def ai_error(self) -> bool:
        return isinstance(self.enrichment, AIFailure)

    @property
    def primary_fix(self) -> Optional[str]:
        """Best available replacement value, AI fix first."""
        if self.ai_enhanced and self.enrichment.ai_fix:
            return self.enrichment.ai_fix
        for action in self.actions:
            if action.kind in ('fix', 'ai-fix') and action.value:
                return action.value
        return None

    @property
    def fix_actions(self) -> List[SuggestionAction]:
        return [a for a in self.actions if a.kind in ('fix', 'ai-fix')]

    def with_enrichment(self, enrichment: Enrichment) -> 'Suggestion':
        """Copy of this Suggestion carrying the given enrichment record."""
        return Suggestion(
            id=self.id,
            category=self.category,
            sub_category=self.sub_category,
            rule_id=self.rule_id,
            severity=self.severity,
            title=self.title,
            message=self.message,
            match_text=self.match_text,
            original_text=self.original_text,
            position=self.position,
            occurrence=self.occurrence,
            actions=list(self.actions),
            enrichment=enrichment,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase wire format."""
        data = {
            'id': self.id,
            'category': self.category,
            'subCategory': self.sub_category,
            'ruleId': self.rule_id,
            'severity': self.severity,
            'title': self.title,
            'message': self.message,
            'matchText': self.match_text,
            'originalText': self.original_text,
            'actions': [a.to_dict() for a in self.actions],
        }
        if self.position is not None:
            data['position'] = self.position.to_dict()
        if self.occurrence is not None:
            data['occurrence'] = self.occurrence
        if self.enrichment is not None:
            data.update(self.enrichment.to_dict())
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Suggestion':
        position = data.get('position')
        enrichment: Enrichment = None
        if data.get('aiEnhanced') and data.get('aiFix') is not None:
            enrichment = AIEnrichment(
                ai_fix=data['aiFix'],
                confidence=float(data.get('aiConfidence', 0.0)),
                reasoning=data.get('aiReasoning', ''),
                should_replace=bool(data.get('shouldReplace', False)),
                alternative_fixes=tuple(data.get('alternativeFixes') or ()),
                original_fix=data.get('originalFix'),
            )
        elif data.get('aiError'):
            enrichment = AIFailure(reason=data.get('aiErrorReason', ''))

        return cls(
            id=data['id'],
            category=data['category'],
            sub_category=data.get('subCategory', ''),
            rule_id=data.get('ruleId', ''),
            severity=normalize_severity(data.get('severity')),
            title=data.get('title', ''),
            message=data.get('message', ''),
            match_text=data.get('matchText', ''),
            original_text=data.get('originalText', ''),
            position=Span(position['start'], position['end']) if position else None,
            occurrence=data.get('occurrence'),
            actions=[SuggestionAction.from_dict(a) for a in data.get('actions', [])],
            enrichment=enrichment,
        )


@dataclass(frozen=True)
class TrackedPosition:
    """Live-document span for one Suggestion. Built only by the tracker."""
    suggestion_id: str
    from_pos: int
    to_pos: int

    def to_dict(self) -> Dict[str, Any]:
        return {'suggestionId': self.suggestion_id, 'from': self.from_pos, 'to': self.to_pos}


@dataclass(frozen=True)
class Heading:
    level: int
    text: str


@dataclass
class DocumentMetadata:
    """Read-only document metadata passed to deep analyzers and AI prompts."""
    title: str = ""
    target_keyword: str = ""
    meta_description: str = ""
    keywords: List[str] = field(default_factory=list)
    headings: List[Heading] = field(default_factory=list)
    paragraphs: List[str] = field(default_factory=list)
    # Plain offsets where each block after the first begins
    block_starts: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'targetKeyword': self.target_keyword,
            'metaDescription': self.meta_description,
            'keywords': list(self.keywords),
            'headings': [{'level': h.level, 'text': h.text} for h in self.headings],
            'paragraphs': list(self.paragraphs),
            'blockStarts': list(self.block_starts),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'DocumentMetadata':
        data = data or {}
        return cls(
            title=data.get('title') or '',
            target_keyword=data.get('targetKeyword') or '',
            meta_description=data.get('metaDescription') or '',
            keywords=list(data.get('keywords') or []),
            headings=[
                Heading(int(h.get('level', 1)), h.get('text', ''))
                for h in data.get('headings') or []
            ],
            paragraphs=list(data.get('paragraphs') or []),
            block_starts=[int(b) for b in data.get('blockStarts') or []],
        )

    def cache_key(self) -> str:
        """Stable string used when hashing analysis inputs."""
        heading_part = '|'.join(f"{h.level}:{h.text}" for h in self.headings)
        return '\x1f'.join((
            self.title, self.target_keyword, self.meta_description,
            ','.join(self.keywords), heading_part, '\n'.join(self.paragraphs),
            ','.join(str(b) for b in self.block_starts),
        ))


@dataclass(frozen=True)
class Notice:
    """Non-fatal, user-visible message about a tier (failure, rate limit)."""
    tier: str
    kind: str  # 'error' or 'rate-limit'
    message: str
    retry_after: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {'tier': self.tier, 'kind': self.kind, 'message': self.message}
        if self.retry_after is not None:
            data['retryAfter'] = self.retry_after
        return data
