"""
Tests for AI Enhancement
========================
Document context, usage quota, eligibility, response validation,
merging and the caching EnhancementService.
"""

from datetime import date

import pytest

from config_logging import MalformedResponseError, RateLimitError, RemoteServiceError
from wordwise.ai.context import DocumentContext, DocumentContextExtractor
from wordwise.ai.enhancement import (
    EnhancementResult,
    EnhancementService,
    merge_enhancements,
    parse_enhancement_response,
    should_enhance,
)
from wordwise.ai.prompts import SYSTEM_PROMPT, build_messages
from wordwise.ai.usage import UsageLimiter
from wordwise.cache import AnalysisCache
from wordwise.factory import create_document_suggestion, create_suggestion, fix_actions
from wordwise.models import AIEnrichment, DocumentMetadata, Heading


def positioned(text, start, end, category, sub_category, fixes=(), severity='warning'):
    return create_suggestion(
        (start, end), text, category, sub_category, f"{category}/{sub_category}",
        sub_category.title(), f"{sub_category} issue", fix_actions(list(fixes)), severity)


def document_wide(category, sub_category):
    return create_document_suggestion(
        category, sub_category, f"{category}/{sub_category}", 'SEO Suggestion', 'msg')


def entry(suggestion_id, **overrides):
    data = {
        'id': suggestion_id,
        'enhancedFix': 'The team wrote it',
        'confidence': 0.9,
        'reasoning': 'Active voice is clearer',
        'shouldReplace': True,
        'alternativeFixes': ['They wrote it'],
    }
    data.update(overrides)
    return data


class TestDocumentContext:
    """Tests for DocumentContextExtractor."""

    def test_extract(self):
        """Test title, first paragraph and topic."""
        text = "Gardening basics\n\nWater the tomatoes daily. Tomatoes love sun."
        metadata = DocumentMetadata(title='Fallback', target_keyword='tomatoes',
                                    headings=[Heading(2, 'Sub'), Heading(1, 'Garden Guide')])
        context = DocumentContextExtractor().extract(text, metadata)

        assert context.title == 'Garden Guide'
        assert context.first_paragraph == 'Gardening basics'
        assert context.detected_topic == 'tomatoes'
        assert context.target_keyword == 'tomatoes'

    def test_title_falls_back_to_metadata(self):
        """Test the metadata title is used without an H1."""
        assert DocumentContextExtractor.extract_title(DocumentMetadata(title='Post')) == 'Post'

    @pytest.mark.parametrize("text,tone", [
        ("Therefore, we proceed. However, results vary.", 'formal'),
        ("hey i'm gonna go", 'casual'),
        ("The cat sat on the mat with a hat and a bat.", 'neutral'),
        ("", 'neutral'),
    ])
    def test_tone(self, text, tone):
        """Test tone detection by indicator density."""
        assert DocumentContextExtractor.detect_tone(text) == tone

    def test_topic_default(self):
        """Test short common words give the general topic."""
        assert DocumentContextExtractor.detect_topic("it is a cat") == 'general'

    def test_surrounding_paragraphs(self):
        """Test each positioned suggestion maps to its paragraph."""
        text = "First para here.\n\nSecond para with recieve."
        start = text.index('recieve')
        spelling = positioned(text, start, start + 7, 'spelling', 'misspelling', ['receive'])
        seo = document_wide('seo', 'meta-missing')

        context = DocumentContextExtractor().extract(text, suggestions=[spelling, seo])
        assert context.surrounding_paragraphs == {spelling.id: 'Second para with recieve.'}

    def test_context_hash(self):
        """Test the hash covers first paragraph, title and keyword only."""
        base = DocumentContext(title='T', first_paragraph='P', target_keyword='k')
        assert base.context_hash() == DocumentContext(
            title='T', first_paragraph='P', target_keyword='k', detected_tone='formal').context_hash()
        assert base.context_hash() != DocumentContext(
            title='T', first_paragraph='P', target_keyword='x').context_hash()

    def test_wire_format(self):
        """Test the camelCase form is accepted back."""
        context = DocumentContext(title='T', detected_tone='casual', surrounding_paragraphs={'a': 'b'})
        assert DocumentContext.from_dict(context.to_dict()) == context
        assert DocumentContext.from_dict(None).detected_topic == 'general'


class TestUsageLimiter:
    """Tests for the daily quota."""

    def test_quota(self):
        """Test the limit is enforced until the next day."""
        today = [date(2026, 1, 1)]
        limiter = UsageLimiter(daily_limit=2, today=lambda: today[0])

        limiter.check(count=2)
        limiter.record(2, tokens_used=150)
        assert not limiter.can_use()
        with pytest.raises(RateLimitError) as info:
            limiter.check()
        assert info.value.retry_after >= 1

        usage = limiter.get_usage()
        assert usage['used'] == 2
        assert usage['remaining'] == 0
        assert usage['tokens_used'] == 150
        assert usage['reset_at'] == '2026-01-02T00:00:00+00:00'

        today[0] = date(2026, 1, 2)
        assert limiter.can_use(count=2)

    def test_per_user(self):
        """Test users are counted separately and can be reset."""
        limiter = UsageLimiter(daily_limit=1)
        limiter.record(1, user='alice')
        assert not limiter.can_use('alice')
        assert limiter.can_use('bob')
        limiter.reset('alice')
        assert limiter.can_use('alice')

    def test_from_config(self):
        """Test the limit comes from the AI config."""
        from wordwise import config
        config.set('ai.daily_limit', 7)
        assert UsageLimiter.from_config().daily_limit == 7


class TestShouldEnhance:
    """Tests for selective enhancement."""

    def test_style_and_seo(self):
        """Test style and SEO suggestions are always sent."""
        text = "The report was written by Tom."
        assert should_enhance(positioned(text, 11, 22, 'style', 'passive-voice'))
        assert should_enhance(document_wide('seo', 'meta-missing'))

    def test_other_document_wide(self):
        """Test document-wide readability feedback is not sent."""
        assert not should_enhance(document_wide('readability', 'grade-too-high'))

    def test_without_fixes(self):
        """Test fix-less suggestions are sent."""
        text = "This sentence is odd."
        assert should_enhance(positioned(text, 0, 4, 'grammar', 'subject-verb-agreement'))

    def test_spelling(self):
        """Test plain misspellings stay local and contextual words are sent."""
        text = "I recieve their mail"
        assert not should_enhance(positioned(text, 2, 9, 'spelling', 'misspelling', ['receive']))
        assert should_enhance(positioned(text, 10, 15, 'spelling', 'misspelling', ['there']))

    def test_grammar(self):
        """Test simple substitutions stay local; rewrites are sent."""
        text = "Their is a problem that was created by us"
        assert not should_enhance(positioned(text, 0, 5, 'grammar', 'common-confusion', ['There']))
        assert should_enhance(positioned(
            text, 24, 41, 'grammar', 'passive-voice', ['we created']))
        assert not should_enhance(positioned(
            text, 24, 41, 'grammar', 'common-confusion', ['we made it']))

    def test_already_enhanced(self):
        """Test enriched suggestions are not sent again."""
        suggestion = document_wide('seo', 'meta-missing').with_enrichment(
            AIEnrichment(ai_fix='x', confidence=0.5))
        assert not should_enhance(suggestion)


class TestResponseParsing:
    """Tests for response validation."""

    def test_valid(self):
        """Test a well-formed response."""
        results = parse_enhancement_response({'suggestions': [
            entry('a'), entry('b', enhancedFix=None, alternativeFixes=None)]})
        assert [r.id for r in results] == ['a', 'b']
        assert results[0].enhanced_fix == 'The team wrote it'
        assert results[1].enhanced_fix is None
        assert results[1].alternative_fixes == []

    @pytest.mark.parametrize("data", [
        [],
        {'suggestions': 'nope'},
        {'suggestions': ['text']},
        {'suggestions': [entry('')]},
        {'suggestions': [entry('a', confidence=1.5)]},
        {'suggestions': [entry('a', confidence=True)]},
        {'suggestions': [entry('a', confidence='high')]},
        {'suggestions': [entry('a', reasoning=None)]},
        {'suggestions': [entry('a', shouldReplace='yes')]},
        {'suggestions': [entry('a', enhancedFix=3)]},
        {'suggestions': [entry('a', alternativeFixes=['ok', 2])]},
    ])
    def test_invalid(self, data):
        """Test any schema mismatch rejects the response."""
        with pytest.raises(MalformedResponseError):
            parse_enhancement_response(data)

    def test_one_bad_entry_fails_all(self):
        """Test a single bad entry rejects the whole response."""
        with pytest.raises(MalformedResponseError):
            parse_enhancement_response({'suggestions': [entry('a'), entry('b', confidence=-1)]})


class TestMerge:
    """Tests for merge_enhancements."""

    def test_merge_by_id(self):
        """Test results attach by id and keep the original fix."""
        text = "The report was written by Tom."
        passive = positioned(text, 11, 22, 'style', 'passive-voice', ['wrote'])
        other = positioned(text, 0, 3, 'style', 'weasel-word')
        results = [EnhancementResult.from_dict(entry(passive.id))]

        merged = merge_enhancements([passive, other], results)
        assert merged[0].ai_enhanced
        assert merged[0].enrichment.ai_fix == 'The team wrote it'
        assert merged[0].enrichment.original_fix == 'wrote'
        assert merged[0].primary_fix == 'The team wrote it'
        assert merged[1] is other

    def test_missing_enhanced_fix_uses_original(self):
        """Test the original fix stands in for a missing enhanced fix."""
        text = "Their is a problem"
        suggestion = positioned(text, 0, 5, 'grammar', 'common-confusion', ['There'])
        result = EnhancementResult.from_dict(entry(suggestion.id, enhancedFix=None))
        merged = merge_enhancements([suggestion], [result])[0]
        assert merged.enrichment.ai_fix == 'There'


class FakeEnhancer:
    """Stands in for LLMClient."""

    is_configured = True

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def enhance(self, suggestions, context):
        self.calls.append([s.id for s in suggestions])
        if self.error is not None:
            raise self.error
        return [EnhancementResult.from_dict(entry(s.id)) for s in suggestions]


@pytest.fixture
def batch():
    text = "The report was written by Tom. I recieve mail."
    return [
        positioned(text, 11, 22, 'style', 'passive-voice', ['wrote']),
        positioned(text, 33, 40, 'spelling', 'misspelling', ['receive']),
        document_wide('seo', 'meta-missing'),
    ]


class TestEnhancementService:
    """Tests for EnhancementService."""

    def test_only_eligible_sent(self, batch):
        """Test ineligible suggestions come back untouched."""
        enhancer = FakeEnhancer()
        service = EnhancementService(enhancer)
        result = service.enhance_batch(batch, DocumentContext())

        assert enhancer.calls == [[batch[0].id, batch[2].id]]
        assert [s.ai_enhanced for s in result] == [True, False, True]
        assert result[1] is batch[1]

    def test_cached(self, batch):
        """Test the same ids under the same context hit the cache."""
        enhancer = FakeEnhancer()
        cache = AnalysisCache()
        service = EnhancementService(enhancer, cache=cache)
        context = DocumentContext(title='Post')

        first = service.enhance_results(batch[:1], context)
        second = service.enhance_results(batch[:1], context)
        assert len(enhancer.calls) == 1
        assert second[0].to_dict() == first[0].to_dict()

        service.enhance_results(batch[:1], DocumentContext(title='Other'))
        assert len(enhancer.calls) == 2

    def test_usage_recorded(self, batch):
        """Test successful calls count against the quota."""
        limiter = UsageLimiter(daily_limit=10)
        service = EnhancementService(FakeEnhancer(), usage_limiter=limiter)
        service.enhance_batch(batch, DocumentContext())
        assert limiter.get_usage()['used'] == 2

    def test_quota_exhausted(self, batch):
        """Test a spent quota raises before calling the enhancer."""
        enhancer = FakeEnhancer()
        service = EnhancementService(enhancer, usage_limiter=UsageLimiter(daily_limit=1))
        with pytest.raises(RateLimitError):
            service.enhance_batch(batch, DocumentContext())
        assert enhancer.calls == []

    def test_failure_marks_batch(self, batch):
        """Test an enhancer failure marks eligible suggestions and keeps fixes."""
        enhancer = FakeEnhancer(error=RemoteServiceError("LLM down", service='llm'))
        result = EnhancementService(enhancer).enhance_batch(batch, DocumentContext())

        assert [s.ai_error for s in result] == [True, False, True]
        assert result[0].enrichment.reason == 'LLM down'
        assert result[0].primary_fix == 'wrote'

    def test_empty(self):
        """Test nothing to enhance makes no call."""
        enhancer = FakeEnhancer()
        assert EnhancementService(enhancer).enhance_results([], DocumentContext()) == []
        assert enhancer.calls == []


class TestPrompts:
    """Tests for prompt construction."""

    def test_messages(self, batch):
        """Test the prompt lists context and every suggestion."""
        text = "The report was written by Tom. I recieve mail."
        context = DocumentContextExtractor().extract(
            text, DocumentMetadata(title='Reports', target_keyword='report'), batch)
        messages = build_messages(batch, context)

        assert messages[0] == {'role': 'system', 'content': SYSTEM_PROMPT}
        prompt = messages[1]['content']
        assert '- Title: Reports' in prompt
        assert '- Target Keyword: report' in prompt
        for suggestion in batch:
            assert f"ID: {suggestion.id}" in prompt
        assert '[was written]' in prompt
        assert 'Current fixes: "receive"' in prompt
        assert 'Current fixes: none' in prompt
        assert 'SEO Type: Meta Description' in prompt
