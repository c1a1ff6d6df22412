"""
Tests for the Tiered Scheduler
==============================
Debounced tier runs, namespace filtering, last-applied-wins versioning,
failure notices, caching and the chained AI tier.
"""

import asyncio
import time
from types import SimpleNamespace

import pytest

from config_logging import RateLimitError, RemoteServiceError
from wordwise.ai.detection import DetectedIssue
from wordwise.analyzers import AI_ENHANCE, DEEP, FAST, INSTANT
from wordwise.cache import AnalysisCache
from wordwise.config import AIConfig, SchedulerConfig
from wordwise.factory import create_document_suggestion
from wordwise.models import AIEnrichment, DocumentMetadata
from wordwise.scheduler import TieredScheduler

from .conftest import StaticAnalyzer, word_finding


def make_scheduler(analyzers, ai_enabled=False, **kwargs):
    scheduler_config = SchedulerConfig(
        instant_delay=0, fast_delay=0, deep_delay=0, ai_delay=0,
        use_remote_deep=kwargs.pop('use_remote_deep', False),
    )
    ai_config = AIConfig(enabled=ai_enabled, batch_delay=0.0,
                         detect_enabled=kwargs.pop('detect_enabled', False))
    return TieredScheduler(analyzers, scheduler_config=scheduler_config,
                           ai_config=ai_config, **kwargs)


def spelling():
    return StaticAnalyzer(word_finding('spelling', 'misspelling', 'recieve', 'receive'),
                          name='Spelling')


def style():
    return StaticAnalyzer(word_finding('style', 'weasel-word', 'very', 'extremely',
                                       severity='suggestion'), name='Style')


class FakeRemote:
    """Remote client replaying deep results or errors in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def analyze_deep(self, text, metadata):
        self.calls.append((text, metadata))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def meta_missing():
    return SimpleNamespace(
        suggestions=[create_document_suggestion('seo', 'meta-missing', 'seo/meta-missing',
                                                'SEO Suggestion', 'Meta description is missing.')],
        metrics={'seo_score': 70},
    )


class FakeEnhancer:
    """Enhancement service enriching every suggestion."""

    def __init__(self):
        self.batches = []

    def enhance_batch(self, suggestions, context):
        self.batches.append([s.id for s in suggestions])
        return [s.with_enrichment(AIEnrichment(ai_fix='greatly', confidence=0.9,
                                               should_replace=True))
                for s in suggestions]


@pytest.fixture
def published():
    return []


@pytest.fixture
def notices():
    return []


class TestTierRuns:
    """Tests for running tiers and publishing."""

    @pytest.mark.asyncio
    async def test_publish_merges_tiers(self, published):
        """Test every tier's bucket reaches subscribers in one list."""
        scheduler = make_scheduler({INSTANT: [spelling()], FAST: [style()]})
        scheduler.subscribe(published.append)

        scheduler.on_document_changed("I recieve very good mail.")
        await scheduler.wait_idle()

        categories = sorted(s.category for s in scheduler.suggestions)
        assert categories == ['spelling', 'style']
        assert published[-1] == scheduler.suggestions
        assert scheduler.get_metrics()['runs'][INSTANT] == 1
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_empty_rerun_replaces_only_its_tier(self):
        """Test a tier returning nothing clears its own suggestions and no others."""
        state = {'on': True}
        produce = word_finding('style', 'weasel-word', 'very', 'extremely')
        switchable = StaticAnalyzer(
            lambda text: produce(text) if state['on'] else [], name='Style')
        scheduler = make_scheduler({INSTANT: [spelling()], FAST: [switchable]})

        scheduler.on_document_changed("I recieve very good mail.")
        await scheduler.wait_idle()
        assert sorted(s.category for s in scheduler.suggestions) == ['spelling', 'style']

        state['on'] = False
        await scheduler.run_tier(FAST)

        assert [s.category for s in scheduler.suggestions] == ['spelling']
        assert scheduler.suggestions[0].id == 'spelling:misspelling:spelling/misspelling:2'
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_debounce_coalesces_edits(self):
        """Test rapid edits run each tier once on the latest text."""
        analyzer = spelling()
        scheduler = make_scheduler({INSTANT: [analyzer]})
        scheduler.delays[INSTANT] = 0.05

        scheduler.on_document_changed("I rec")
        scheduler.on_document_changed("I recie")
        scheduler.on_document_changed("I recieve")
        await scheduler.wait_idle()

        assert analyzer.calls == ["I recieve"]
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_outside_namespace_dropped(self):
        """Test a tier cannot publish another tier's categories."""
        stray = StaticAnalyzer(word_finding('spelling', 'misspelling', 'recieve', 'receive'))
        scheduler = make_scheduler({FAST: [stray, style()]})

        scheduler.on_document_changed("I recieve very good mail.")
        await scheduler.wait_idle()

        assert [s.category for s in scheduler.suggestions] == ['style']
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_unknown_tier(self):
        """Test run_tier rejects unknown names."""
        scheduler = make_scheduler({})
        with pytest.raises(ValueError):
            await scheduler.run_tier('slow')
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_closed_scheduler(self):
        """Test edits after close are refused."""
        scheduler = make_scheduler({})
        await scheduler.close()
        with pytest.raises(RuntimeError):
            scheduler.on_document_changed("text")


class TestVersioning:
    """Tests for last-applied-wins."""

    @pytest.mark.asyncio
    async def test_stale_result_discarded(self):
        """Test a slow run finishing after a newer one is thrown away."""
        flag_cat = word_finding('grammar', 'common-confusion', 'cat', 'cot')
        flag_dog = word_finding('grammar', 'common-confusion', 'dog', 'dig')

        def produce(text):
            if text.startswith('old'):
                time.sleep(0.2)
            yield from flag_cat(text)
            yield from flag_dog(text)

        scheduler = make_scheduler({FAST: [StaticAnalyzer(produce, name='Grammar')]})
        for tier in scheduler.delays:
            scheduler.delays[tier] = 10

        scheduler.on_document_changed("old cat here")
        slow = asyncio.get_running_loop().create_task(scheduler.run_tier(FAST))
        await asyncio.sleep(0.05)
        scheduler.on_document_changed("new dog here")
        await scheduler.run_tier(FAST)
        await slow

        assert [s.match_text for s in scheduler.suggestions] == ['dog']
        assert scheduler.get_metrics()['stale_discarded'] == 1
        await scheduler.close()


class TestFailures:
    """Tests for failed tier runs."""

    @pytest.mark.asyncio
    async def test_remote_failure_keeps_bucket(self, notices):
        """Test a failed deep run emits a notice and keeps the last results."""
        remote = FakeRemote(meta_missing(), RemoteServiceError("Service down", service='analysis'))
        scheduler = make_scheduler({}, remote_client=remote, use_remote_deep=True)
        scheduler.subscribe_notices(notices.append)

        scheduler.on_document_changed("Some text.")
        await scheduler.wait_idle()
        assert [s.rule_id for s in scheduler.suggestions] == ['seo/meta-missing']

        scheduler.on_document_changed("Some more text.")
        await scheduler.wait_idle()

        assert [s.rule_id for s in scheduler.suggestions] == ['seo/meta-missing']
        assert notices[0].tier == DEEP
        assert notices[0].kind == 'error'
        assert notices[0].message == 'Service down'
        metrics = scheduler.get_metrics()
        assert metrics['failures'][DEEP] == 1
        assert metrics['document']['seo_score'] == 70
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_rate_limit_notice(self, notices):
        """Test a rate limit carries its retry delay."""
        remote = FakeRemote(RateLimitError(retry_after=30, message="Slow down"))
        scheduler = make_scheduler({}, remote_client=remote, use_remote_deep=True)
        scheduler.subscribe_notices(notices.append)

        scheduler.on_document_changed("Some text.")
        await scheduler.wait_idle()

        assert notices[0].kind == 'rate-limit'
        assert notices[0].retry_after == 30
        assert scheduler.suggestions == []
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_analyzer_exception_contained(self, notices):
        """Test a crashing analyzer does not stop the others."""
        broken = StaticAnalyzer(lambda text: [], name='Broken', fail=True)
        scheduler = make_scheduler({FAST: [broken, style()]})
        scheduler.subscribe_notices(notices.append)

        scheduler.on_document_changed("It was very good.")
        await scheduler.wait_idle()

        assert [s.category for s in scheduler.suggestions] == ['style']
        assert notices == []
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_listener_exception_contained(self, published):
        """Test one failing listener does not block the next."""
        def broken(suggestions):
            raise RuntimeError("listener exploded")

        scheduler = make_scheduler({INSTANT: [spelling()]})
        scheduler.subscribe(broken)
        scheduler.subscribe(published.append)

        scheduler.on_document_changed("I recieve mail.")
        await scheduler.wait_idle()

        assert len(published[-1]) == 1
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_unsubscribe(self, published):
        """Test unsubscribed listeners are not called."""
        scheduler = make_scheduler({INSTANT: [spelling()]})
        unsubscribe = scheduler.subscribe(published.append)
        unsubscribe()

        scheduler.on_document_changed("I recieve mail.")
        await scheduler.wait_idle()

        assert published == []
        await scheduler.close()


class TestCaching:
    """Tests for result caching."""

    @pytest.mark.asyncio
    async def test_cache_hit(self):
        """Test the same text and analyzers are analyzed once."""
        analyzer = spelling()
        cache = AnalysisCache()
        scheduler = make_scheduler({INSTANT: [analyzer]}, cache=cache)

        text = "I recieve mail."
        scheduler.on_document_changed(text)
        await scheduler.wait_idle()
        await scheduler.run_tier(INSTANT)

        assert len(analyzer.calls) == 1
        assert len(scheduler.suggestions) == 1
        assert cache.stats['hits'] == 1
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_failed_run_not_cached(self):
        """Test results with a failed analyzer are recomputed."""
        analyzer = style()
        cache = AnalysisCache()
        broken = StaticAnalyzer(lambda text: [], name='Broken', fail=True)
        scheduler = make_scheduler({FAST: [analyzer, broken]}, cache=cache)

        scheduler.on_document_changed("It was very good.")
        await scheduler.wait_idle()
        await scheduler.run_tier(FAST)

        assert len(analyzer.calls) == 2
        assert cache.stats['hits'] == 0
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_metadata_in_key(self):
        """Test new metadata misses the cache."""
        analyzer = StaticAnalyzer(lambda text: [], name='SEO')
        scheduler = make_scheduler({DEEP: [analyzer]}, cache=AnalysisCache())

        scheduler.on_document_changed("Text.", DocumentMetadata(title='One'))
        await scheduler.wait_idle()
        scheduler.set_metadata(DocumentMetadata(title='Two'))
        await scheduler.wait_idle()

        assert len(analyzer.calls) == 2
        assert scheduler.metadata.title == 'Two'
        await scheduler.close()


class TestSuggestionManagement:
    """Tests for ignore and remove."""

    @pytest.mark.asyncio
    async def test_ignore_survives_reruns(self):
        """Test ignored ids stay hidden after the tier runs again."""
        scheduler = make_scheduler({INSTANT: [spelling()]})
        scheduler.on_document_changed("I recieve mail.")
        await scheduler.wait_idle()

        suggestion_id = scheduler.suggestions[0].id
        scheduler.ignore_suggestion(suggestion_id)
        assert scheduler.suggestions == []

        await scheduler.run_tier(INSTANT)
        assert scheduler.suggestions == []
        assert scheduler.get_metrics()['ignored'] == 1
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_remove_until_rerun(self):
        """Test removed suggestions return when their tier runs again."""
        scheduler = make_scheduler({INSTANT: [spelling()]})
        scheduler.on_document_changed("I recieve mail.")
        await scheduler.wait_idle()

        suggestion_id = scheduler.suggestions[0].id
        assert scheduler.remove_suggestion(suggestion_id)
        assert scheduler.suggestions == []
        assert not scheduler.remove_suggestion(suggestion_id)

        await scheduler.run_tier(INSTANT)
        assert [s.id for s in scheduler.suggestions] == [suggestion_id]
        await scheduler.close()


class TestAIEnhancement:
    """Tests for the chained AI tier."""

    @pytest.mark.asyncio
    async def test_enhancements_published(self):
        """Test eligible suggestions come back enriched."""
        enhancer = FakeEnhancer()
        scheduler = make_scheduler({FAST: [style()]}, ai_enabled=True,
                                   enhancement_service=enhancer)

        scheduler.on_document_changed("It was very good.")
        await scheduler.wait_idle()

        assert len(enhancer.batches) == 1
        suggestion = scheduler.suggestions[0]
        assert suggestion.ai_enhanced
        assert suggestion.enrichment.ai_fix == 'greatly'
        assert scheduler.get_metrics()['runs'][AI_ENHANCE] == 1
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_no_queue_without_service(self):
        """Test the AI tier is inert without a service or remote client."""
        scheduler = make_scheduler({FAST: [style()]}, ai_enabled=True)
        assert scheduler.ai_queue is None

        scheduler.on_document_changed("It was very good.")
        await scheduler.wait_idle()
        await scheduler.run_tier(AI_ENHANCE)

        assert not scheduler.suggestions[0].ai_enhanced
        assert scheduler.get_metrics()['ai_queue'] is None
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_enrichment_dropped_with_base(self):
        """Test an enrichment disappears once its suggestion is fixed."""
        scheduler = make_scheduler({FAST: [style()]}, ai_enabled=True,
                                   enhancement_service=FakeEnhancer())
        scheduler.on_document_changed("It was very good.")
        await scheduler.wait_idle()

        scheduler.on_document_changed("It was good.")
        await scheduler.wait_idle()

        assert scheduler.suggestions == []
        await scheduler.close()


DETECT_TEXT = "We shipped teh update on Monday and it was very good for everyone."
DETECTED_ID = 'spelling:ai-detected:ai-detect/spelling:11'


class FakeDetectingService:
    """Enhancement service that also reports issues the analyzers missed."""

    can_detect = True

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def enhance_batch(self, suggestions, context):
        return list(suggestions)

    def detect_issues(self, text, metadata, existing_count=0):
        self.calls.append((text, metadata, existing_count))
        if self.error is not None:
            raise self.error
        return [DetectedIssue(category='spelling', match_text='teh', message='Typo.',
                              fix='the', confidence=0.9, context_before='shipped ',
                              context_after=' update')]


class TestAIDetection:
    """Tests for the AI detection pass."""

    @pytest.mark.asyncio
    async def test_detection_published(self):
        """Test detected issues are published next to analyzer suggestions."""
        service = FakeDetectingService()
        scheduler = make_scheduler({FAST: [style()]}, ai_enabled=True, detect_enabled=True,
                                   enhancement_service=service)

        scheduler.on_document_changed(DETECT_TEXT)
        await scheduler.wait_idle()

        ids = [s.id for s in scheduler.suggestions]
        assert ids == [DETECTED_ID, 'style:weasel-word:style/weasel-word:43']
        detected = scheduler.suggestions[0]
        assert detected.ai_enhanced
        assert detected.match_text == 'shipped teh update'
        assert len(service.calls) == 1
        assert service.calls[0][0] == DETECT_TEXT
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_disabled_by_default(self):
        """Test no detection call is made unless enabled."""
        service = FakeDetectingService()
        scheduler = make_scheduler({FAST: [style()]}, ai_enabled=True,
                                   enhancement_service=service)
        assert not scheduler.detect_enabled

        scheduler.on_document_changed(DETECT_TEXT)
        await scheduler.wait_idle()

        assert service.calls == []
        assert [s.category for s in scheduler.suggestions] == ['style']
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_runs_without_analyzer_findings(self):
        """Test detection runs even when the analyzers found nothing."""
        service = FakeDetectingService()
        scheduler = make_scheduler({FAST: [style()]}, ai_enabled=True, detect_enabled=True,
                                   enhancement_service=service)

        scheduler.on_document_changed(DETECT_TEXT.replace('very ', ''))
        await scheduler.wait_idle()

        assert [s.id for s in scheduler.suggestions] == [DETECTED_ID]
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_detection(self, notices):
        """Test a failed detection emits a notice and earlier issues follow the edit."""
        service = FakeDetectingService()
        scheduler = make_scheduler({FAST: [style()]}, ai_enabled=True, detect_enabled=True,
                                   enhancement_service=service)
        scheduler.subscribe_notices(notices.append)
        scheduler.on_document_changed(DETECT_TEXT)
        await scheduler.wait_idle()

        service.error = RemoteServiceError("LLM down", service='llm')
        scheduler.on_document_changed("Today we shipped teh update on Monday and it was good.")
        await scheduler.wait_idle()

        assert len(service.calls) == 2
        assert [s.id for s in scheduler.suggestions] == [
            'spelling:ai-detected:ai-detect/spelling:17']
        assert notices[0].tier == AI_ENHANCE
        assert notices[0].kind == 'error'
        assert notices[0].message == 'LLM down'
        assert scheduler.get_metrics()['failures'][AI_ENHANCE] == 1
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_rate_limit_notice(self, notices):
        """Test a spent quota becomes a rate-limit notice."""
        service = FakeDetectingService(error=RateLimitError(retry_after=60, message="Quota spent"))
        scheduler = make_scheduler({}, ai_enabled=True, detect_enabled=True,
                                   enhancement_service=service)
        scheduler.subscribe_notices(notices.append)
        scheduler.on_document_changed(DETECT_TEXT)
        await scheduler.wait_idle()

        assert await scheduler.detect_additional() == []
        assert notices[-1].kind == 'rate-limit'
        assert notices[-1].retry_after == 60
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_corrected_issue_disappears(self):
        """Test an issue is dropped once its text is fixed."""
        service = FakeDetectingService()
        scheduler = make_scheduler({FAST: [style()]}, ai_enabled=True, detect_enabled=True,
                                   enhancement_service=service)
        scheduler.on_document_changed(DETECT_TEXT)
        await scheduler.wait_idle()

        scheduler.on_document_changed(DETECT_TEXT.replace('teh', 'the'))
        await scheduler.wait_idle()

        assert [s.category for s in scheduler.suggestions] == ['style']
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_remove_detected(self):
        """Test a detected Suggestion can be removed."""
        scheduler = make_scheduler({FAST: [style()]}, ai_enabled=True, detect_enabled=True,
                                   enhancement_service=FakeDetectingService())
        scheduler.on_document_changed(DETECT_TEXT)
        await scheduler.wait_idle()

        assert scheduler.remove_suggestion(DETECTED_ID)
        assert [s.category for s in scheduler.suggestions] == ['style']
        assert not scheduler.remove_suggestion(DETECTED_ID)
        await scheduler.close()
