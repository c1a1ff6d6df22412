"""
Suggestion Deduplicator
=======================
Merges Suggestions from the client tiers (instant/fast), the server tier
(deep) and the AI tier into one list.

Priority: AI > server > client. A Suggestion carrying a successful AI
enrichment counts as AI priority whichever list it arrived in.

Rules, applied per incoming Suggestion:
- Exact overlap, same (start, end, match_text): the higher priority one
  is kept; on a tie the one already accepted stays.
- Partial overlap, same category: the accepted one is replaced.
- Partial overlap, conflicting categories: the higher priority one wins
  and the loser is dropped entirely; on a tie the accepted one stays.
- Other category pairs coexist.

Each decision is made before anything is removed, so a rejected
Suggestion never evicts entries it overlapped.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from config_logging import get_logger

from .models import SEVERITY_RANK, Suggestion

logger = get_logger('wordwise.dedup')

CLIENT = 'client'
SERVER = 'server'
AI = 'ai'


@dataclass(frozen=True)
class ConflictPolicy:
    """Which categories may not share a span, and source priorities."""
    conflicting_pairs: FrozenSet[FrozenSet[str]] = field(default_factory=lambda: frozenset({
        frozenset(('spelling', 'grammar')),
        frozenset(('style', 'grammar')),
    }))
    priorities: Tuple[Tuple[str, int], ...] = ((CLIENT, 1), (SERVER, 2), (AI, 3))

    @classmethod
    def from_config(cls, dedup_config=None) -> 'ConflictPolicy':
        if dedup_config is None:
            from .config import get_config
            dedup_config = get_config().dedup
        pairs = frozenset(
            frozenset(pair) for pair in dedup_config.conflicting_categories
            if len(pair) == 2 and pair[0] != pair[1]
        )
        priorities = (
            (CLIENT, dedup_config.client_priority),
            (SERVER, dedup_config.server_priority),
            (AI, dedup_config.ai_priority),
        )
        return cls(conflicting_pairs=pairs, priorities=priorities)

    def conflicts(self, first: str, second: str) -> bool:
        return frozenset((first, second)) in self.conflicting_pairs

    def priority_of(self, source: str) -> int:
        return dict(self.priorities)[source]


def sort_suggestions(suggestions: Iterable[Suggestion]) -> List[Suggestion]:
    """Positioned Suggestions by span, then document-wide ones in input order."""
    positioned = [s for s in suggestions if s.position is not None]
    document_wide = [s for s in suggestions if s.position is None]
    positioned.sort(key=lambda s: (s.position.start, s.position.end,
                                   SEVERITY_RANK.get(s.severity, 2)))
    return positioned + document_wide


class SuggestionDeduplicator:
    """Merges tier outputs with overlap and priority handling."""

    def __init__(self, policy: Optional[ConflictPolicy] = None):
        self.policy = policy or ConflictPolicy.from_config()

    def _priority(self, suggestion: Suggestion, source: str) -> int:
        priority = self.policy.priority_of(source)
        if suggestion.ai_enhanced:
            priority = max(priority, self.policy.priority_of(AI))
        return priority

    def merge(
        self,
        client: Sequence[Suggestion],
        server: Sequence[Suggestion] = (),
        ai: Sequence[Suggestion] = (),
    ) -> List[Suggestion]:
        """Deduplicate the three source lists into one sorted list."""
        accepted: Dict[str, Tuple[Suggestion, int]] = {}
        index: Dict[int, Set[str]] = {}
        document_wide: Dict[Tuple[str, str, str], Tuple[Suggestion, int]] = {}

        def unregister(suggestion_id: str):
            existing, _ = accepted.pop(suggestion_id)
            for pos in range(existing.position.start, existing.position.end):
                cell = index.get(pos)
                if cell is not None:
                    cell.discard(suggestion_id)
                    if not cell:
                        del index[pos]

        def register(suggestion: Suggestion, priority: int):
            accepted[suggestion.id] = (suggestion, priority)
            for pos in range(suggestion.position.start, suggestion.position.end):
                index.setdefault(pos, set()).add(suggestion.id)

        for source, batch in ((CLIENT, client), (SERVER, server), (AI, ai)):
            for suggestion in batch:
                priority = self._priority(suggestion, source)
                if suggestion.position is None:
                    self._merge_document_wide(document_wide, suggestion, priority)
                    continue

                drop = self._decide(suggestion, priority, accepted, index)
                if drop is None:
                    continue
                for suggestion_id in drop:
                    unregister(suggestion_id)
                if suggestion.id in accepted:
                    # Same id at the same start: last write wins
                    unregister(suggestion.id)
                register(suggestion, priority)

        merged = [s for s, _ in accepted.values()] + [s for s, _ in document_wide.values()]
        return sort_suggestions(merged)

    def _decide(
        self,
        suggestion: Suggestion,
        priority: int,
        accepted: Dict[str, Tuple[Suggestion, int]],
        index: Dict[int, Set[str]],
    ) -> Optional[Set[str]]:
        """Return the ids to drop if the Suggestion is accepted, None if rejected."""
        start, end = suggestion.position.start, suggestion.position.end

        for existing_id, (existing, existing_priority) in accepted.items():
            if (existing.position.start == start and existing.position.end == end
                    and existing.match_text == suggestion.match_text):
                if priority > existing_priority:
                    return {existing_id}
                logger.debug("Dropping exact duplicate", suggestion_id=suggestion.id,
                             kept=existing_id)
                return None

        overlapping: Set[str] = set()
        for pos in range(start, end):
            overlapping.update(index.get(pos, ()))

        drop: Set[str] = set()
        for existing_id in sorted(overlapping):
            existing, existing_priority = accepted[existing_id]
            if existing.category == suggestion.category:
                drop.add(existing_id)
            elif self.policy.conflicts(existing.category, suggestion.category):
                if priority > existing_priority:
                    drop.add(existing_id)
                else:
                    logger.debug("Rejecting conflicting suggestion", suggestion_id=suggestion.id,
                                 kept=existing_id)
                    return None
        return drop

    @staticmethod
    def _merge_document_wide(
        document_wide: Dict[Tuple[str, str, str], Tuple[Suggestion, int]],
        suggestion: Suggestion,
        priority: int,
    ):
        key = (suggestion.category, suggestion.sub_category, suggestion.rule_id)
        existing = document_wide.get(key)
        if existing is None or priority > existing[1]:
            document_wide[key] = (suggestion, priority)
