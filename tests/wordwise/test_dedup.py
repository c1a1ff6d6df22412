"""
Tests for the Suggestion Deduplicator
=====================================
Overlap resolution and source priorities when merging tier outputs.
"""

from typing import Optional

import pytest

from wordwise.config import DedupConfig
from wordwise.dedup import ConflictPolicy, SuggestionDeduplicator, sort_suggestions
from wordwise.models import AIEnrichment, Span, Suggestion


def make(category: str, start: Optional[int], end: Optional[int], match: str = "",
         rule: str = "rule", severity: str = 'warning', enriched: bool = False) -> Suggestion:
    position = Span(start, end) if start is not None else None
    key = start if start is not None else 'global'
    suggestion = Suggestion(
        id=f"{category}:{rule}:{category}/{rule}:{key}",
        category=category,
        sub_category=rule,
        rule_id=f"{category}/{rule}",
        severity=severity,
        title=rule,
        message=rule,
        match_text=match,
        original_text=match,
        position=position,
    )
    if enriched:
        suggestion = suggestion.with_enrichment(AIEnrichment(ai_fix="fix", confidence=0.9))
    return suggestion


@pytest.fixture
def dedup() -> SuggestionDeduplicator:
    return SuggestionDeduplicator(ConflictPolicy())


class TestExactOverlap:
    """Tests for identical spans."""

    def test_server_beats_client(self, dedup):
        """Test the higher priority source keeps an exact duplicate."""
        client = make('spelling', 0, 7, 'recieve', rule='client-rule')
        server = make('spelling', 0, 7, 'recieve', rule='server-rule')
        merged = dedup.merge([client], [server])
        assert [s.id for s in merged] == [server.id]

    def test_tie_keeps_existing(self, dedup):
        """Test equal priority keeps the one accepted first."""
        first = make('spelling', 0, 7, 'recieve', rule='first')
        second = make('spelling', 0, 7, 'recieve', rule='second')
        merged = dedup.merge([first, second])
        assert [s.id for s in merged] == [first.id]

    def test_ai_enriched_counts_as_ai(self, dedup):
        """Test an enriched suggestion outranks the server wherever it arrived."""
        enriched = make('grammar', 0, 5, 'Their', rule='a', enriched=True)
        server = make('grammar', 0, 5, 'Their', rule='b')
        merged = dedup.merge([enriched], [server])
        assert [s.id for s in merged] == [enriched.id]


class TestPartialOverlap:
    """Tests for overlapping, non-identical spans."""

    def test_same_category_replaced(self, dedup):
        """Test a later same-category overlap replaces the accepted one."""
        first = make('style', 0, 10, 'at the end', rule='cliche')
        second = make('style', 5, 15, 'e end of th', rule='weasel')
        merged = dedup.merge([first, second])
        assert [s.id for s in merged] == [second.id]

    def test_conflicting_higher_priority_wins(self, dedup):
        """Test grammar from the server drops overlapping client spelling."""
        spelling = make('spelling', 0, 7, 'recieve')
        grammar = make('grammar', 0, 12, 'recieve mail')
        merged = dedup.merge([spelling], [grammar])
        assert [s.id for s in merged] == [grammar.id]

    def test_conflicting_tie_keeps_existing(self, dedup):
        """Test a conflicting suggestion of equal priority is rejected."""
        grammar = make('grammar', 0, 12, 'recieve mail')
        spelling = make('spelling', 0, 7, 'recieve')
        merged = dedup.merge([grammar, spelling])
        assert [s.id for s in merged] == [grammar.id]

    def test_grammar_style_server_wins(self, dedup):
        """Test grammar and style conflict whichever side the server reports."""
        grammar = make('grammar', 0, 12, 'very very good', rule='repeated-word')
        style = make('style', 0, 9, 'very very', rule='weasel-word')
        assert [s.id for s in dedup.merge([grammar], [style])] == [style.id]
        assert [s.id for s in dedup.merge([style], [grammar])] == [grammar.id]

    def test_grammar_style_same_source(self, dedup):
        """Test within one source the first of grammar and style is kept."""
        grammar = make('grammar', 0, 12, 'very very good', rule='repeated-word')
        style = make('style', 0, 9, 'very very', rule='weasel-word')
        assert [s.id for s in dedup.merge([grammar, style])] == [grammar.id]
        assert [s.id for s in dedup.merge([style, grammar])] == [style.id]

    def test_unrelated_categories_coexist(self, dedup):
        """Test spelling and style may share a span."""
        spelling = make('spelling', 0, 7, 'recieve')
        style = make('style', 0, 12, 'recieve mail')
        merged = dedup.merge([spelling, style])
        assert {s.id for s in merged} == {spelling.id, style.id}

    def test_rejected_never_evicts(self, dedup):
        """Test a rejected suggestion leaves the entries it overlapped."""
        strong = make('spelling', 5, 9, 'mail', enriched=True)
        small = make('grammar', 0, 4, 'Thei', rule='small')
        wide = make('grammar', 0, 9, 'Their mail', rule='wide')
        merged = dedup.merge([strong, small, wide])
        assert {s.id for s in merged} == {strong.id, small.id}


class TestDocumentWide:
    """Tests for suggestions without a span."""

    def test_keyed_by_rule(self, dedup):
        """Test one document-wide suggestion per rule, highest priority first."""
        client = make('seo', None, None, rule='meta-missing')
        server = make('seo', None, None, rule='meta-missing')
        server.message = 'from server'
        merged = dedup.merge([client], [server])
        assert len(merged) == 1
        assert merged[0].message == 'from server'

    def test_document_wide_sorted_last(self, dedup):
        """Test positioned suggestions come before document-wide ones."""
        seo = make('seo', None, None, rule='no-h1')
        late = make('spelling', 20, 27, 'recieve')
        early = make('grammar', 0, 5, 'Their')
        merged = dedup.merge([late, early], [seo])
        assert [s.id for s in merged] == [early.id, late.id, seo.id]


class TestPolicy:
    """Tests for the conflict table."""

    def test_from_config(self):
        """Test pairs and priorities come from configuration data."""
        policy = ConflictPolicy.from_config(DedupConfig(
            conflicting_categories=[['spelling', 'style'], ['grammar', 'grammar']],
            server_priority=5,
        ))
        assert policy.conflicts('style', 'spelling')
        assert not policy.conflicts('spelling', 'grammar')
        assert not policy.conflicts('grammar', 'grammar')
        assert policy.priority_of('server') == 5

    def test_sort_by_severity(self):
        """Test equal spans order errors first."""
        warning = make('grammar', 0, 5, 'Their', severity='warning')
        error = make('spelling', 0, 5, 'Their', severity='error')
        assert sort_suggestions([warning, error]) == [error, warning]
