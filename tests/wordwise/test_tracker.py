"""
Tests for the Suggestion Manager
================================
Locating suggestions in the live document and keeping them attached
through edits.
"""

import pytest

from wordwise.document import Document, Transaction
from wordwise.factory import create_suggestion, fix_actions
from wordwise.models import Suggestion
from wordwise.tracker import SuggestionManager, find_occurrences


def spelling(suggestion_id: str, word: str, occurrence=None) -> Suggestion:
    """Span-less spelling suggestion as received from a remote tier."""
    return Suggestion(
        id=suggestion_id,
        category='spelling',
        sub_category='misspelling',
        rule_id='spelling/misspelling',
        severity='error',
        title='Spelling Error',
        message=f'"{word}" may be misspelled.',
        match_text=word,
        original_text=word,
        occurrence=occurrence,
        actions=fix_actions(['receive']),
    )


@pytest.fixture
def manager() -> SuggestionManager:
    return SuggestionManager(block_separator='')


@pytest.fixture
def confusion_doc():
    """Second paragraph starts at live 15; 'Their' is plain [12, 17)."""
    doc = Document.from_paragraphs(["Hello there.", "Their is a problem"])
    text = "Hello there.Their is a problem"
    suggestion = create_suggestion(
        (12, 17), text, 'grammar', 'common-confusion', 'grammar/common-confusion',
        'Grammar Issue', 'Use "there"', fix_actions(['There']), 'warning')
    return doc, suggestion


def test_find_occurrences_overlapping():
    """Test overlapping matches are all reported."""
    assert find_occurrences("aaaa", "aa") == [0, 1, 2]
    assert find_occurrences("abc", "") == []


class TestAddSuggestions:
    """Tests for the full-replace path."""

    def test_span_maps_into_second_block(self, manager, confusion_doc):
        """Test a plain span is translated across block boundaries."""
        doc, suggestion = confusion_doc
        manager.add_suggestions([suggestion], doc)

        tracked = manager.get_position(suggestion.id)
        assert (tracked.from_pos, tracked.to_pos) == (15, 20)
        assert doc.text_between(tracked.from_pos, tracked.to_pos) == "Their"

    def test_stale_span_falls_back_to_scan(self, manager):
        """Test text computed before an edit is found by occurrence."""
        suggestion = create_suggestion(
            (0, 5), "Their is a problem", 'grammar', 'common-confusion',
            'grammar/common-confusion', 'Grammar Issue', 'msg', fix_actions(['There']))
        doc = Document.from_paragraphs(["Oh Their is a problem"])
        manager.add_suggestions([suggestion], doc)

        tracked = manager.get_position(suggestion.id)
        assert (tracked.from_pos, tracked.to_pos) == (4, 9)

    def test_position_keys_pick_occurrences(self, manager):
        """Test ordinal keys attach to distinct occurrences."""
        doc = Document.from_paragraphs(["I recieve mail and we recieve more."])
        first = spelling('spelling:misspelling:spelling/misspelling:0', 'recieve')
        second = spelling('spelling:misspelling:spelling/misspelling:1', 'recieve')
        manager.add_suggestions([first, second], doc)

        assert manager.get_position(first.id).from_pos == 3
        assert manager.get_position(second.id).from_pos == 23

    def test_offset_keys_pick_occurrences(self, manager):
        """Test keys equal to an occurrence offset select that occurrence."""
        doc = Document.from_paragraphs(["I recieve mail and we recieve more."])
        late = spelling('spelling:misspelling:spelling/misspelling:22', 'recieve')
        manager.add_suggestions([late], doc)
        assert manager.get_position(late.id).from_pos == 23

    def test_same_rule_never_shares_a_range(self, manager):
        """Test a second claim on an occurrence moves to the next one."""
        doc = Document.from_paragraphs(["I recieve mail and we recieve more."])
        first = spelling('spelling:misspelling:spelling/misspelling:a', 'recieve', occurrence=0)
        second = spelling('spelling:misspelling:spelling/misspelling:b', 'recieve', occurrence=0)
        manager.add_suggestions([first, second], doc)

        positions = {manager.get_position(first.id).from_pos,
                     manager.get_position(second.id).from_pos}
        assert positions == {3, 23}

    def test_short_match_uses_context(self, manager):
        """Test a one-letter match is narrowed from its context window."""
        text = "I saw a cat"
        suggestion = create_suggestion(
            (6, 7), text, 'grammar', 'article-usage', 'grammar/article-usage',
            'Grammar Issue', 'msg', fix_actions(['an']))
        doc = Document.from_paragraphs(["Today I saw a cat"])
        manager.add_suggestions([suggestion], doc)

        tracked = manager.get_position(suggestion.id)
        assert doc.text_between(tracked.from_pos, tracked.to_pos) == "a"
        assert tracked.from_pos == 13

    def test_unlocatable_stays_listed(self, manager):
        """Test suggestions whose text is gone keep no position."""
        doc = Document.from_paragraphs(["Nothing to see"])
        missing = spelling('spelling:misspelling:spelling/misspelling:0', 'recieve')
        manager.add_suggestions([missing], doc)

        assert missing.id in manager
        assert manager.get_position(missing.id) is None
        assert manager.get_positions() == []

    def test_replace_is_wholesale(self, manager, confusion_doc):
        """Test a new set replaces the previous one."""
        doc, suggestion = confusion_doc
        manager.add_suggestions([suggestion], doc)
        manager.add_suggestions([], doc)
        assert len(manager) == 0
        assert manager.get_position(suggestion.id) is None


class TestUpdatePositions:
    """Tests for remapping through transactions."""

    def test_typing_before_shifts(self, manager, confusion_doc):
        """Test text inserted earlier moves the highlight."""
        doc, suggestion = confusion_doc
        manager.add_suggestions([suggestion], doc)

        tr = Transaction(doc).insert_text(1, "Oh ")
        manager.update_positions(tr)

        tracked = manager.get_position(suggestion.id)
        assert (tracked.from_pos, tracked.to_pos) == (18, 23)
        assert manager.doc is tr.doc

    def test_typing_at_edges_does_not_grow(self, manager, confusion_doc):
        """Test insertions at either edge stay outside the range."""
        doc, suggestion = confusion_doc
        manager.add_suggestions([suggestion], doc)

        tr = Transaction(doc).insert_text(20, "!")
        manager.update_positions(tr)
        assert manager.get_position(suggestion.id).to_pos == 20

        tr = Transaction(tr.doc).insert_text(15, "A ")
        manager.update_positions(tr)
        tracked = manager.get_position(suggestion.id)
        assert (tracked.from_pos, tracked.to_pos) == (17, 22)

    def test_edit_inside_drops(self, manager, confusion_doc):
        """Test changing the flagged text removes the highlight."""
        doc, suggestion = confusion_doc
        manager.add_suggestions([suggestion], doc)

        manager.update_positions(Transaction(doc).replace_text(16, 17, "X"))
        assert manager.get_position(suggestion.id) is None
        assert manager.get_suggestion(suggestion.id) is not None

    def test_delete_collapses(self, manager, confusion_doc):
        """Test deleting the range drops it instead of clamping."""
        doc, suggestion = confusion_doc
        manager.add_suggestions([suggestion], doc)

        manager.update_positions(Transaction(doc).delete(15, 23))
        assert manager.get_position(suggestion.id) is None

    def test_block_split_before(self, manager, confusion_doc):
        """Test splitting an earlier block shifts by two slots."""
        doc, suggestion = confusion_doc
        manager.add_suggestions([suggestion], doc)

        manager.update_positions(Transaction(doc).split_block(6))
        tracked = manager.get_position(suggestion.id)
        assert (tracked.from_pos, tracked.to_pos) == (17, 22)


class TestAccessors:
    """Tests for lookups and removal."""

    def test_find_at_and_remove(self, manager, confusion_doc):
        """Test hit testing and removal."""
        doc, suggestion = confusion_doc
        manager.add_suggestions([suggestion], doc)

        assert manager.find_at(15) == [suggestion.id]
        assert manager.find_at(20) == []
        assert manager.remove_suggestion(suggestion.id)
        assert not manager.remove_suggestion(suggestion.id)
        assert manager.find_at(15) == []

    def test_clear(self, manager, confusion_doc):
        """Test clear drops everything."""
        doc, suggestion = confusion_doc
        manager.add_suggestions([suggestion], doc)
        manager.clear()
        assert manager.get_all_suggestions() == []
