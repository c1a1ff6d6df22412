"""
Editor Session
==============
Wires a live Document to the analysis pipeline:

    Document -> extractor -> TieredScheduler -> SuggestionManager -> renderer

Edits go through `dispatch`, which remaps tracked positions synchronously
before any analysis is rescheduled. Must be used from the event loop that
runs the scheduler.
"""

from dataclasses import replace
from typing import List, Optional

from config_logging import get_logger

from .document import Document, Transaction
from .extractor import extract_headings, extract_paragraphs, extract_text_with_mapping
from .models import DocumentMetadata, Suggestion
from .renderer import DecorationRenderer, InMemoryDecorationRenderer
from .scheduler import TieredScheduler
from .tracker import SuggestionManager

logger = get_logger('wordwise.session')


class EditorSession:
    """One open document and its suggestions."""

    def __init__(
        self,
        doc: Document,
        scheduler: Optional[TieredScheduler] = None,
        renderer: Optional[DecorationRenderer] = None,
        metadata: Optional[DocumentMetadata] = None,
        block_separator: Optional[str] = None
    ):
        self.doc = doc
        self.scheduler = scheduler or TieredScheduler.from_config()
        self.renderer = renderer or InMemoryDecorationRenderer()
        self.manager = SuggestionManager(block_separator)
        self._metadata = metadata or DocumentMetadata()
        self._unsubscribe = self.scheduler.subscribe(self._on_suggestions)

    @property
    def metadata(self) -> DocumentMetadata:
        """User metadata with structure taken from the document."""
        extraction = extract_text_with_mapping(self.doc, self.manager.block_separator)
        return replace(
            self._metadata,
            headings=extract_headings(self.doc),
            paragraphs=extract_paragraphs(self.doc),
            block_starts=extraction.block_starts,
        )

    @property
    def text(self) -> str:
        return extract_text_with_mapping(self.doc, self.manager.block_separator).text

    @property
    def suggestions(self) -> List[Suggestion]:
        return self.manager.get_all_suggestions()

    def start(self):
        """Schedule the first analysis of the document."""
        self.scheduler.on_document_changed(self.text, self.metadata)

    def _on_suggestions(self, suggestions: List[Suggestion]):
        self.manager.add_suggestions(suggestions, self.doc)
        self.renderer.render(self.manager.get_positions(), self.manager.get_suggestion)

    def dispatch(self, tr: Transaction):
        """Apply an edit: remap positions now, reanalyze later."""
        if not tr.doc_changed:
            return
        self.doc = tr.doc
        self.manager.update_positions(tr)
        self.renderer.render(self.manager.get_positions(), self.manager.get_suggestion)
        self.scheduler.on_document_changed(self.text, self.metadata)

    def apply_suggestion(self, suggestion_id: str, value: Optional[str] = None) -> bool:
        """
        Replace the tracked range with a fix and drop the Suggestion.

        Uses `value` when given, else the best available fix. Returns False
        when the Suggestion is unknown, has no live position or has no fix.
        """
        suggestion = self.manager.get_suggestion(suggestion_id)
        tracked = self.manager.get_position(suggestion_id)
        if suggestion is None or tracked is None:
            logger.debug("Cannot apply untracked suggestion", suggestion_id=suggestion_id)
            return False

        if value is None:
            value = suggestion.primary_fix
        if value is None:
            fixes = suggestion.fix_actions
            if not fixes:
                return False
            value = fixes[0].value

        tr = Transaction(self.doc).replace_text(tracked.from_pos, tracked.to_pos, value)
        self.manager.remove_suggestion(suggestion_id)
        self.scheduler.remove_suggestion(suggestion_id)
        self.dispatch(tr)
        logger.info("Applied suggestion", suggestion_id=suggestion_id)
        return True

    def ignore_suggestion(self, suggestion_id: str):
        self.scheduler.ignore_suggestion(suggestion_id)

    def set_metadata(self, metadata: DocumentMetadata):
        self._metadata = metadata
        self.scheduler.set_metadata(self.metadata)

    async def close(self):
        self._unsubscribe()
        await self.scheduler.close()
