"""
Decoration Renderer
===================
Adapter interface that projects tracked Suggestions onto a live editor
as highlights with click and hover targets.

The engine only talks to DecorationRenderer; concrete editors implement
it. InMemoryDecorationRenderer keeps the decorations in a list and is
used by the HTTP layer and the tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from config_logging import get_logger

from .models import Suggestion, TrackedPosition

logger = get_logger('wordwise.renderer')

SuggestionHandler = Callable[[Suggestion, TrackedPosition], None]
SuggestionLookup = Callable[[str], Optional[Suggestion]]


@dataclass(frozen=True)
class Decoration:
    """Inline highlight for one Suggestion."""
    from_pos: int
    to_pos: int
    attrs: Dict[str, str] = field(default_factory=dict)

    @property
    def suggestion_id(self) -> str:
        return self.attrs.get('data-suggestion-id', '')


def decoration_for(suggestion: Suggestion, tracked: TrackedPosition) -> Decoration:
    return Decoration(
        from_pos=tracked.from_pos,
        to_pos=tracked.to_pos,
        attrs={
            'class': f"suggestion-{suggestion.category} suggestion-{suggestion.severity}",
            'data-suggestion-id': suggestion.id,
            'data-category': suggestion.category,
            'data-severity': suggestion.severity,
            'title': suggestion.message,
        },
    )


def build_decorations(positions: Iterable[TrackedPosition],
                      lookup: SuggestionLookup) -> List[Decoration]:
    """One decoration per tracked position whose Suggestion is known, in document order."""
    decorations = []
    for tracked in sorted(positions, key=lambda p: (p.from_pos, p.to_pos)):
        suggestion = lookup(tracked.suggestion_id)
        if suggestion is not None:
            decorations.append(decoration_for(suggestion, tracked))
    return decorations


class DecorationRenderer(ABC):
    """Narrow interface between the engine and an editor's overlay mechanism."""

    @abstractmethod
    def render(self, positions: Iterable[TrackedPosition], lookup: SuggestionLookup) -> None:
        """Redraw highlights for the current tracked positions."""

    @abstractmethod
    def on_suggestion_click(self, handler: SuggestionHandler) -> None:
        """Register a handler called when a highlight is clicked."""

    @abstractmethod
    def on_suggestion_hover(self, handler: SuggestionHandler) -> None:
        """Register a handler called when a highlight is hovered."""


class InMemoryDecorationRenderer(DecorationRenderer):
    """Renderer that stores decorations and simulates pointer events."""

    def __init__(self):
        self.decorations: List[Decoration] = []
        self.render_count = 0
        self._positions: Dict[str, TrackedPosition] = {}
        self._lookup: Optional[SuggestionLookup] = None
        self._click_handlers: List[SuggestionHandler] = []
        self._hover_handlers: List[SuggestionHandler] = []

    def render(self, positions: Iterable[TrackedPosition], lookup: SuggestionLookup) -> None:
        positions = list(positions)
        self._positions = {p.suggestion_id: p for p in positions}
        self._lookup = lookup
        self.decorations = build_decorations(positions, lookup)
        self.render_count += 1

    def on_suggestion_click(self, handler: SuggestionHandler) -> None:
        self._click_handlers.append(handler)

    def on_suggestion_hover(self, handler: SuggestionHandler) -> None:
        self._hover_handlers.append(handler)

    def decoration_at(self, pos: int) -> Optional[Decoration]:
        for decoration in self.decorations:
            if decoration.from_pos <= pos < decoration.to_pos:
                return decoration
        return None

    def _dispatch(self, pos: int, handlers: List[SuggestionHandler]) -> Optional[str]:
        decoration = self.decoration_at(pos)
        if decoration is None or self._lookup is None:
            return None
        suggestion_id = decoration.suggestion_id
        suggestion = self._lookup(suggestion_id)
        tracked = self._positions.get(suggestion_id)
        if suggestion is None or tracked is None:
            return None
        for handler in handlers:
            try:
                handler(suggestion, tracked)
            except Exception as e:
                logger.error(f"Suggestion handler failed: {e}", exc_info=True,
                             suggestion_id=suggestion_id)
        return suggestion_id

    def click_at(self, pos: int) -> Optional[str]:
        """Simulate a click; returns the id of the clicked Suggestion."""
        return self._dispatch(pos, self._click_handlers)

    def hover_at(self, pos: int) -> Optional[str]:
        """Simulate a hover; returns the id of the hovered Suggestion."""
        return self._dispatch(pos, self._hover_handlers)
