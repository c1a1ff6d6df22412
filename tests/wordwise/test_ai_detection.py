"""
Tests for AI Issue Detection
============================
Validating reported issues, locating them by context, turning them into
tracked Suggestions and the caching detect path of EnhancementService.
"""

from datetime import date

import pytest

from config_logging import MalformedResponseError, RateLimitError
from wordwise.ai.detection import (
    DetectedIssue,
    detection_to_suggestion,
    detections_to_suggestions,
    locate_issue,
    parse_detection_response,
)
from wordwise.ai.enhancement import EnhancementService
from wordwise.ai.usage import UsageLimiter
from wordwise.cache import AnalysisCache
from wordwise.document import Document, Transaction
from wordwise.models import DocumentMetadata, Span
from wordwise.tracker import SuggestionManager

TEXT = "We shipped teh update on Monday. The team loves it and we will ship again soon."


def issue(match_text='teh', before='shipped ', after=' update', category='spelling',
          fix='the', confidence=0.9):
    return DetectedIssue(
        category=category,
        match_text=match_text,
        message=f'"{match_text}" looks wrong.',
        fix=fix,
        confidence=confidence,
        context_before=before,
        context_after=after,
    )


def reported(**overrides):
    data = {
        'category': 'grammar',
        'matchText': 'loves it',
        'message': 'Informal phrasing.',
        'fix': 'enjoys it',
        'confidence': 0.8,
        'contextBefore': 'The team ',
        'contextAfter': ' and we',
    }
    data.update(overrides)
    return data


class TestDetectedIssue:
    """Tests for validating reported issues."""

    def test_from_dict(self):
        """Test a well-formed entry is accepted."""
        parsed = DetectedIssue.from_dict(reported())
        assert parsed.category == 'grammar'
        assert parsed.match_text == 'loves it'
        assert parsed.confidence == 0.8
        assert parsed.rule_id == 'ai-detect/grammar'
        assert DetectedIssue.from_dict(parsed.to_dict()) == parsed

    def test_context_trimmed(self):
        """Test context is cut to the characters nearest the match."""
        parsed = DetectedIssue.from_dict(reported(contextBefore='a' * 50 + 'b',
                                                  contextAfter='c' + 'd' * 50))
        assert len(parsed.context_before) == 40
        assert parsed.context_before.endswith('ab')
        assert len(parsed.context_after) == 40
        assert parsed.context_after.startswith('cd')

    def test_missing_context(self):
        """Test absent context becomes empty strings."""
        parsed = DetectedIssue.from_dict(reported(contextBefore=None, contextAfter=None))
        assert (parsed.context_before, parsed.context_after) == ('', '')

    @pytest.mark.parametrize('overrides', [
        {'category': 'punctuation'},
        {'matchText': ''},
        {'fix': None},
        {'confidence': True},
        {'confidence': 1.5},
        {'contextBefore': 3},
    ])
    def test_invalid(self, overrides):
        """Test schema mismatches are rejected."""
        with pytest.raises(MalformedResponseError):
            DetectedIssue.from_dict(reported(**overrides))

    def test_parse_response(self):
        """Test the response must carry a suggestions list."""
        assert len(parse_detection_response({'suggestions': [reported()]})) == 1
        assert parse_detection_response({'suggestions': []}) == []
        with pytest.raises(MalformedResponseError):
            parse_detection_response({'issues': []})
        with pytest.raises(MalformedResponseError):
            parse_detection_response({'suggestions': [reported(), 'oops']})

    def test_tone_maps_to_style(self):
        """Test tone issues are reported as style Suggestions."""
        tone = issue(category='tone')
        assert tone.suggestion_category == 'style'
        assert tone.sub_category == 'ai-tone'
        assert issue().sub_category == 'ai-detected'


class TestLocateIssue:
    """Tests for finding an issue in the current text."""

    def test_full_context(self):
        assert locate_issue(TEXT, issue()) == Span(11, 14)

    def test_one_side_matches(self):
        """Test each side of the context is tried alone."""
        assert locate_issue(TEXT, issue(before='sent ')) == Span(11, 14)
        assert locate_issue(TEXT, issue(after=' upgrade')) == Span(11, 14)

    def test_context_picks_occurrence(self):
        """Test context chooses between repeated words."""
        assert locate_issue(TEXT, issue('ship', before='will ', after=' again')) == Span(63, 67)

    def test_bare_match_must_be_unique(self):
        """Test without matching context only a unique match is used."""
        assert locate_issue(TEXT, issue(before='x ', after=' y')) == Span(11, 14)
        assert locate_issue(TEXT, issue('ship', before='x ', after=' y')) is None
        assert locate_issue(TEXT, issue('recieve', before='', after='')) is None


class TestDetectionToSuggestion:
    """Tests for building Suggestions from detected issues."""

    def test_suggestion(self):
        """Test the id, window and enrichment of a detected Suggestion."""
        suggestion = detection_to_suggestion(issue(), TEXT)

        assert suggestion.id == 'spelling:ai-detected:ai-detect/spelling:11'
        assert suggestion.title == 'Spelling Issue'
        assert suggestion.severity == 'suggestion'
        assert suggestion.original_text == 'teh'
        assert suggestion.match_text == 'shipped teh update'
        assert suggestion.occurrence == 0
        assert suggestion.position == Span(11, 14)
        assert suggestion.ai_enhanced
        assert suggestion.enrichment.reasoning == 'Detected by AI deep analysis'
        assert suggestion.primary_fix == 'the'

    def test_tone(self):
        """Test tone issues land in the style category."""
        suggestion = detection_to_suggestion(
            issue('loves it', before='The team ', after=' and we', category='tone',
                  fix='enjoys it'), TEXT)
        assert suggestion.id == 'style:ai-tone:ai-detect/tone:42'
        assert suggestion.match_text == 'The team loves it and we'

    def test_context_containing_match_dropped(self):
        """Test a before-context repeating the match is left out of the window."""
        suggestion = detection_to_suggestion(
            issue('ship', before='we will ship and ', after=''), "we will ship and ship now")
        assert suggestion.position == Span(17, 21)
        assert suggestion.match_text == 'ship'
        assert suggestion.occurrence == 1

    def test_not_found(self):
        assert detection_to_suggestion(issue('recieve', before='', after=''), TEXT) is None

    def test_filtering(self):
        """Test low confidence, excluded and duplicate issues are dropped."""
        confident = issue()
        doubtful = issue('loves it', before='The team ', after=' and', confidence=0.5)
        suggestions = detections_to_suggestions([confident, doubtful, confident], TEXT)
        assert [s.id for s in suggestions] == ['spelling:ai-detected:ai-detect/spelling:11']

        assert detections_to_suggestions(
            [confident], TEXT, exclude_ids=['spelling:ai-detected:ai-detect/spelling:11']) == []
        assert len(detections_to_suggestions([doubtful], TEXT, min_confidence=0.5)) == 1


class TestTrackingDetections:
    """Tests for tracking detected Suggestions in the live document."""

    def test_follows_edits(self):
        """Test a detected Suggestion stays attached as text is inserted before it."""
        suggestion = detection_to_suggestion(issue(), TEXT)
        doc = Document.from_paragraphs([TEXT])
        manager = SuggestionManager(block_separator='')
        manager.add_suggestions([suggestion], doc)

        tracked = manager.get_position(suggestion.id)
        assert (tracked.from_pos, tracked.to_pos) == (12, 15)

        tr = Transaction(doc).insert_text(1, "Today ")
        manager.update_positions(tr)
        tracked = manager.get_position(suggestion.id)
        assert tr.doc.text_between(tracked.from_pos, tracked.to_pos) == 'teh'

    def test_found_again_by_context(self):
        """Test a stale detected span is found again through its context."""
        suggestion = detection_to_suggestion(issue(), TEXT)
        doc = Document.from_paragraphs(["Today " + TEXT])
        manager = SuggestionManager(block_separator='')
        manager.add_suggestions([suggestion], doc)

        tracked = manager.get_position(suggestion.id)
        assert (tracked.from_pos, tracked.to_pos) == (18, 21)

    def test_fixed_issue_disappears(self):
        """Test an issue whose text was corrected is no longer reported."""
        fixed = TEXT.replace('teh', 'the')
        assert detections_to_suggestions([issue()], fixed) == []


class FakeDetector:
    """Stands in for LLMClient's detect call."""

    is_configured = True

    def __init__(self, issues=()):
        self.issues = list(issues)
        self.calls = []

    def enhance(self, suggestions, context):
        return []

    def detect(self, text, metadata, existing_count=0):
        self.calls.append((text, metadata.title, existing_count))
        return list(self.issues)


class EnhanceOnly:
    """Enhancer without a detect call."""

    is_configured = True

    def enhance(self, suggestions, context):
        return []


class TestDetectIssues:
    """Tests for EnhancementService.detect_issues."""

    def test_detect(self):
        detector = FakeDetector([issue()])
        service = EnhancementService(detector)
        assert service.can_detect
        assert service.detect_issues(TEXT, DocumentMetadata(title='Post'), 3) == [issue()]
        assert detector.calls == [(TEXT, 'Post', 3)]

    def test_short_text_skipped(self):
        """Test short documents make no call."""
        detector = FakeDetector([issue()])
        assert EnhancementService(detector).detect_issues("Too short.", DocumentMetadata()) == []
        assert detector.calls == []

    def test_cannot_detect(self):
        """Test an enhancer without detect yields nothing."""
        service = EnhancementService(EnhanceOnly())
        assert not service.can_detect
        assert service.detect_issues(TEXT, DocumentMetadata()) == []

    def test_cached(self):
        """Test the same text and metadata hit the cache."""
        detector = FakeDetector([issue()])
        service = EnhancementService(detector, cache=AnalysisCache())

        first = service.detect_issues(TEXT, DocumentMetadata(title='Post'))
        second = service.detect_issues(TEXT, DocumentMetadata(title='Post'))
        assert len(detector.calls) == 1
        assert second == first

        service.detect_issues(TEXT, DocumentMetadata(title='Other'))
        assert len(detector.calls) == 2

    def test_usage_recorded(self):
        """Test each call counts at least once against the quota."""
        limiter = UsageLimiter(daily_limit=10)
        EnhancementService(FakeDetector([issue(), issue('ship')]),
                           usage_limiter=limiter).detect_issues(TEXT, DocumentMetadata())
        assert limiter.get_usage()['used'] == 2

        EnhancementService(FakeDetector(), usage_limiter=limiter).detect_issues(
            TEXT, DocumentMetadata())
        assert limiter.get_usage()['used'] == 3

    def test_quota_exhausted(self):
        """Test a spent quota raises before calling the enhancer."""
        limiter = UsageLimiter(daily_limit=1, today=lambda: date(2026, 1, 1))
        limiter.record(1)
        detector = FakeDetector([issue()])
        with pytest.raises(RateLimitError):
            EnhancementService(detector, usage_limiter=limiter).detect_issues(
                TEXT, DocumentMetadata())
        assert detector.calls == []
