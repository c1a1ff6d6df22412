"""
Tiered Scheduler
================
Runs the analyzer tiers on independent debounce timers and publishes one
merged Suggestion list.

Tiers:
    instant      spelling, no debounce
    fast         grammar and style
    deep         SEO, readability, metrics (optionally on a remote server)
    ai-enhance   selective rewrites, chained after a tier publishes, plus an
                 optional pass detecting issues the analyzers missed

Each tier owns a bucket of Suggestions that is replaced wholesale when a
run of that tier is applied. Runs carry a per-tier version; a result is
applied only if no newer run of the same tier was applied first. A failed
run leaves the bucket untouched and emits a Notice.

Everything here runs on one asyncio event loop. Analyzers execute in
worker threads via asyncio.to_thread so a slow checker never blocks it.
"""

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from config_logging import RateLimitError, WordWiseError, get_logger

from .ai.context import DocumentContext, DocumentContextExtractor
from .ai.detection import DetectedIssue, detection_to_suggestion, detections_to_suggestions
from .ai.enhancement import merge_enhancements
from .ai.queue import AIQueueManager
from .analyzers import AI_ENHANCE, ANALYSIS_TIERS, DEEP, FAST, INSTANT, TIER_NAMESPACES, build_analyzers
from .base import AnalysisResult, AnalyzerBase, Finding
from .cache import AnalysisCache
from .dedup import SuggestionDeduplicator
from .factory import suggestions_from_findings
from .models import DocumentMetadata, Notice, Suggestion

logger = get_logger('wordwise.scheduler')

SuggestionsListener = Callable[[List[Suggestion]], None]
NoticeListener = Callable[[Notice], None]


class TieredScheduler:
    """Debounced, versioned execution of the analysis tiers."""

    def __init__(
        self,
        analyzers: Optional[Dict[str, Sequence[AnalyzerBase]]] = None,
        cache: Optional[AnalysisCache] = None,
        deduplicator: Optional[SuggestionDeduplicator] = None,
        remote_client=None,
        enhancement_service=None,
        scheduler_config=None,
        ai_config=None
    ):
        if scheduler_config is None or ai_config is None:
            from .config import get_config
            config = get_config()
            scheduler_config = scheduler_config or config.scheduler
            ai_config = ai_config or config.ai

        if analyzers is None:
            analyzers = {tier: build_analyzers(tier) for tier in ANALYSIS_TIERS}
        self.analyzers: Dict[str, List[AnalyzerBase]] = {
            tier: list(analyzers.get(tier, ())) for tier in ANALYSIS_TIERS
        }

        self.cache = cache
        self.deduplicator = deduplicator or SuggestionDeduplicator()
        self.remote_client = remote_client
        self.enhancement_service = enhancement_service
        self.use_remote_deep = bool(scheduler_config.use_remote_deep and remote_client is not None)
        self.analyzer_timeout = scheduler_config.analyzer_timeout
        self.delays = {
            INSTANT: scheduler_config.instant_delay,
            FAST: scheduler_config.fast_delay,
            DEEP: scheduler_config.deep_delay,
            AI_ENHANCE: scheduler_config.ai_delay,
        }

        self.ai_queue: Optional[AIQueueManager] = None
        if ai_config.enabled and (enhancement_service is not None or remote_client is not None):
            self.ai_queue = AIQueueManager(
                self._process_ai_batch,
                batch_delay=ai_config.batch_delay,
                max_batch_size=ai_config.max_batch_size,
                on_update=self._on_ai_update,
                on_notice=self._emit_notice,
            )
        self.detect_enabled = bool(
            ai_config.enabled and ai_config.detect_enabled
            and getattr(enhancement_service, 'can_detect', False)
        )
        self.context_extractor = DocumentContextExtractor()

        self._text = ""
        self._metadata = DocumentMetadata()
        self._buckets: Dict[str, List[Suggestion]] = {tier: [] for tier in ANALYSIS_TIERS}
        self._ai: Dict[str, Suggestion] = {}
        self._detected: List[DetectedIssue] = []
        self._detected_for: Optional[str] = None
        self._ignored: Set[str] = set()
        self._published: List[Suggestion] = []
        self._tier_metrics: Dict[str, Dict[str, Any]] = {tier: {} for tier in ANALYSIS_TIERS}

        self._versions = {tier: 0 for tier in ANALYSIS_TIERS}
        self._applied = {tier: 0 for tier in ANALYSIS_TIERS}
        self._timers: Dict[str, Optional[asyncio.TimerHandle]] = {}
        self._tasks: Set[asyncio.Task] = set()

        self._listeners: List[SuggestionsListener] = []
        self._notice_listeners: List[NoticeListener] = []

        self._runs = {tier: 0 for tier in ANALYSIS_TIERS + (AI_ENHANCE,)}
        self._failures = {tier: 0 for tier in ANALYSIS_TIERS + (AI_ENHANCE,)}
        self._last_duration_ms: Dict[str, float] = {}
        self._stale_discarded = 0
        self._closed = False

    @classmethod
    def from_config(cls, cache: Optional[AnalysisCache] = None) -> 'TieredScheduler':
        """Scheduler wired from wordwise.config: analyzers, remote client and AI."""
        from .config import get_config
        from .remote import RemoteAnalysisClient
        config = get_config()

        remote_client = RemoteAnalysisClient.from_config(config.remote)
        enhancement_service = None
        if config.ai.enabled:
            from . import ai
            if ai.get_llm_client().is_configured:
                enhancement_service = ai.get_service(cache=cache)

        return cls(cache=cache, remote_client=remote_client,
                   enhancement_service=enhancement_service,
                   scheduler_config=config.scheduler, ai_config=config.ai)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    @property
    def text(self) -> str:
        return self._text

    @property
    def metadata(self) -> DocumentMetadata:
        return self._metadata

    @property
    def suggestions(self) -> List[Suggestion]:
        """The last published list."""
        return list(self._published)

    def on_document_changed(self, text: str, metadata: Optional[DocumentMetadata] = None):
        """
        Record the latest plain text and restart every tier's debounce.

        Must be called from the event loop thread.
        """
        if self._closed:
            raise RuntimeError("Scheduler is closed")
        self._text = text
        if metadata is not None:
            self._metadata = metadata
        for tier in ANALYSIS_TIERS:
            self._debounce(tier)

    def set_metadata(self, metadata: DocumentMetadata):
        """Replace metadata; only the deep tier depends on it."""
        self._metadata = metadata
        if not self._closed:
            self._debounce(DEEP)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, callback: SuggestionsListener) -> Callable[[], None]:
        """Call `callback(suggestions)` on every publish. Returns an unsubscribe callable."""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)
        return unsubscribe

    def subscribe_notices(self, callback: NoticeListener) -> Callable[[], None]:
        self._notice_listeners.append(callback)

        def unsubscribe():
            if callback in self._notice_listeners:
                self._notice_listeners.remove(callback)
        return unsubscribe

    def _emit_notice(self, notice: Notice):
        for listener in list(self._notice_listeners):
            try:
                listener(notice)
            except Exception as e:
                logger.exception(f"Notice listener failed: {e}")

    def _publish(self):
        ai = [s for s in self._ai.values() if s.id not in self._ignored]
        ai += detections_to_suggestions(self._detected, self._text, exclude_ids=self._ignored)
        merged = self.deduplicator.merge(
            self._buckets[INSTANT] + self._buckets[FAST],
            self._buckets[DEEP],
            ai,
        )
        self._published = [s for s in merged if s.id not in self._ignored]
        for listener in list(self._listeners):
            try:
                listener(list(self._published))
            except Exception as e:
                logger.exception(f"Suggestion listener failed: {e}")

    # ------------------------------------------------------------------
    # Debounce and runs
    # ------------------------------------------------------------------

    def _debounce(self, tier: str):
        handle = self._timers.get(tier)
        if handle is not None:
            handle.cancel()
        loop = asyncio.get_running_loop()
        self._timers[tier] = loop.call_later(self.delays[tier], self._fire, tier)

    def _fire(self, tier: str):
        self._timers[tier] = None
        if tier == AI_ENHANCE:
            coro = self._run_ai()
        else:
            coro = self._run_tier(tier)
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def run_tier(self, tier: str):
        """Run a tier now, cancelling its pending debounce. Awaits the result."""
        if tier not in self.delays:
            raise ValueError(f"Unknown analysis tier: {tier}")
        handle = self._timers.get(tier)
        if handle is not None:
            handle.cancel()
            self._timers[tier] = None
        if tier == AI_ENHANCE:
            await self._run_ai()
            if self.ai_queue is not None:
                await self.ai_queue.process_batch()
        else:
            await self._run_tier(tier)

    async def _run_tier(self, tier: str):
        self._versions[tier] += 1
        version = self._versions[tier]
        text, metadata = self._text, self._metadata
        self._runs[tier] += 1
        start = time.time()

        try:
            if tier == DEEP and self.use_remote_deep:
                suggestions, metrics = await self._run_remote(text, metadata)
            else:
                suggestions, metrics = await self._run_local(tier, text, metadata)
        except RateLimitError as e:
            self._failures[tier] += 1
            logger.warning(f"{tier} tier rate limited", tier=tier, retry_after=e.retry_after)
            self._emit_notice(Notice(tier=tier, kind='rate-limit', message=e.message,
                                     retry_after=e.retry_after))
            return
        except WordWiseError as e:
            self._failures[tier] += 1
            logger.warning(f"{tier} tier failed: {e.message}", tier=tier, code=e.code)
            self._emit_notice(Notice(tier=tier, kind='error', message=e.message))
            return
        except Exception as e:
            self._failures[tier] += 1
            logger.exception(f"{tier} tier failed unexpectedly: {e}", tier=tier)
            self._emit_notice(Notice(tier=tier, kind='error', message=f"{tier} analysis failed"))
            return
        finally:
            self._last_duration_ms[tier] = round((time.time() - start) * 1000, 2)

        self._apply(tier, version, suggestions, metrics)

    def _apply(self, tier: str, version: int, suggestions: List[Suggestion],
               metrics: Dict[str, Any]) -> bool:
        if version <= self._applied[tier]:
            self._stale_discarded += 1
            logger.debug("Discarding stale tier result", tier=tier, version=version,
                         applied=self._applied[tier])
            return False

        self._applied[tier] = version
        self._buckets[tier] = self._in_namespace(tier, suggestions)
        self._tier_metrics[tier] = metrics
        self._prune_ai()
        self._publish()

        wants_ai = self._buckets[tier] or self.detect_enabled
        if wants_ai and self.ai_queue is not None and not self._closed:
            self._debounce(AI_ENHANCE)
        return True

    @staticmethod
    def _in_namespace(tier: str, suggestions: List[Suggestion]) -> List[Suggestion]:
        allowed = TIER_NAMESPACES[tier]
        kept = [s for s in suggestions if s.category in allowed]
        if len(kept) != len(suggestions):
            stray = sorted({s.category for s in suggestions if s.category not in allowed})
            logger.warning("Dropping suggestions outside tier namespace", tier=tier,
                           categories=stray, dropped=len(suggestions) - len(kept))
        return kept

    async def _run_analyzer(self, analyzer: AnalyzerBase, text: str,
                            metadata: DocumentMetadata) -> AnalysisResult:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(analyzer.run, text, metadata),
                timeout=self.analyzer_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"{analyzer.ANALYZER_NAME} timed out",
                           analyzer=analyzer.ANALYZER_NAME, timeout=self.analyzer_timeout)
            return AnalysisResult(analyzer_name=analyzer.ANALYZER_NAME, success=False,
                                  error=f"Timed out after {self.analyzer_timeout}s")

    async def _run_local(self, tier: str, text: str, metadata: DocumentMetadata):
        analyzers = [a for a in self.analyzers[tier] if a.enabled]
        names = ','.join(a.ANALYZER_NAME for a in analyzers)
        key = AnalysisCache.make_key(tier, names, text, metadata.cache_key())

        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return ([Suggestion.from_dict(s) for s in cached['suggestions']],
                        dict(cached['metrics']))

        results = await asyncio.gather(*(self._run_analyzer(a, text, metadata) for a in analyzers))

        findings: List[Finding] = []
        metrics: Dict[str, Any] = {}
        for result in results:
            if not result.success:
                logger.warning(f"{result.analyzer_name} produced no findings: {result.error}",
                               tier=tier, analyzer=result.analyzer_name)
            findings.extend(result.findings)
            metrics.update(result.metrics)
        metrics.pop('finding_count', None)

        suggestions = suggestions_from_findings(findings, text)

        # Failed analyzers would make the cached result incomplete
        if self.cache is not None and all(r.success for r in results):
            self.cache.set(key, {'suggestions': [s.to_dict() for s in suggestions],
                                 'metrics': metrics})
        return suggestions, metrics

    async def _run_remote(self, text: str, metadata: DocumentMetadata):
        analysis = await asyncio.to_thread(self.remote_client.analyze_deep, text, metadata)
        return analysis.suggestions, analysis.metrics

    # ------------------------------------------------------------------
    # AI enhancement
    # ------------------------------------------------------------------

    def _base_suggestions(self) -> List[Suggestion]:
        return self._buckets[INSTANT] + self._buckets[FAST] + self._buckets[DEEP]

    def _prune_ai(self):
        """Forget enrichments whose base Suggestion is gone or whose text changed."""
        base = {s.id: s for s in self._base_suggestions()}
        for suggestion_id in list(self._ai):
            current = base.get(suggestion_id)
            if current is None or current.original_text != self._ai[suggestion_id].original_text:
                del self._ai[suggestion_id]

    def build_context(self, suggestions: Sequence[Suggestion] = ()) -> DocumentContext:
        return self.context_extractor.extract(self._text, self._metadata, suggestions)

    async def _run_ai(self):
        if self.detect_enabled and self._detected_for != self._text:
            await self.detect_additional()
        if self.ai_queue is None:
            return
        candidates = [
            s for s in self._base_suggestions()
            if s.id not in self._ai and s.id not in self._ignored
        ]
        if not candidates:
            return
        self._runs[AI_ENHANCE] += 1
        self.ai_queue.enqueue(candidates, self.build_context(candidates))

    async def detect_additional(self) -> List[Suggestion]:
        """
        Ask the AI for issues the analyzers missed and publish them.

        Detected issues replace the previous detection and are located in the
        current text on every publish. Failures emit a Notice and keep the
        previous detection. Returns the published detected Suggestions.
        """
        if self.enhancement_service is None:
            return []
        text, metadata = self._text, self._metadata
        self._detected_for = text
        existing = len(self._published)
        self._runs[AI_ENHANCE] += 1
        try:
            issues = await asyncio.to_thread(
                self.enhancement_service.detect_issues, text, metadata, existing)
        except RateLimitError as e:
            self._failures[AI_ENHANCE] += 1
            self._emit_notice(Notice(tier=AI_ENHANCE, kind='rate-limit', message=e.message,
                                     retry_after=e.retry_after))
            return []
        except WordWiseError as e:
            self._failures[AI_ENHANCE] += 1
            logger.warning(f"AI detection failed: {e.message}", code=e.code)
            self._emit_notice(Notice(tier=AI_ENHANCE, kind='error', message=e.message))
            return []

        if self._closed or text != self._text:
            self._stale_discarded += 1
            self._detected_for = None
            return []
        self._detected = list(issues)
        self._publish()
        detected_ids = {s.id for s in detections_to_suggestions(self._detected, text)}
        return [s for s in self._published if s.id in detected_ids]

    async def _process_ai_batch(self, suggestions: List[Suggestion],
                                context: DocumentContext) -> List[Suggestion]:
        if self.enhancement_service is not None:
            return await asyncio.to_thread(self.enhancement_service.enhance_batch,
                                           suggestions, context)
        results = await asyncio.to_thread(
            self.remote_client.enhance, self._text, [s.id for s in suggestions], self._metadata)
        return merge_enhancements(suggestions, results)

    def _on_ai_update(self, enhanced: List[Suggestion]):
        base = {s.id: s for s in self._base_suggestions()}
        changed = False
        for suggestion in enhanced:
            if suggestion.ai_error:
                self._failures[AI_ENHANCE] += 1
            if suggestion.enrichment is None:
                continue
            current = base.get(suggestion.id)
            if current is None or current.original_text != suggestion.original_text:
                continue
            self._ai[suggestion.id] = suggestion
            changed = True
        if changed and not self._closed:
            self._publish()

    # ------------------------------------------------------------------
    # Suggestion management
    # ------------------------------------------------------------------

    def ignore_suggestion(self, suggestion_id: str):
        """Hide a Suggestion from every future publish."""
        self._ignored.add(suggestion_id)
        self._publish()

    def remove_suggestion(self, suggestion_id: str) -> bool:
        """Drop a Suggestion from its bucket until its tier runs again."""
        removed = False
        for tier in ANALYSIS_TIERS:
            bucket = self._buckets[tier]
            kept = [s for s in bucket if s.id != suggestion_id]
            if len(kept) != len(bucket):
                self._buckets[tier] = kept
                removed = True
        if self._ai.pop(suggestion_id, None) is not None:
            removed = True
        for issue in list(self._detected):
            located = detection_to_suggestion(issue, self._text)
            if located is not None and located.id == suggestion_id:
                self._detected.remove(issue)
                removed = True
        if removed:
            self._publish()
        return removed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _has_pending_timer(self) -> bool:
        return any(handle is not None for handle in self._timers.values())

    async def wait_idle(self, poll_interval: float = 0.01):
        """Wait until no timer is pending, no run is in flight and the AI queue is empty."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if pending:
                await asyncio.gather(*pending)
            elif self._has_pending_timer():
                await asyncio.sleep(poll_interval)
            elif self.ai_queue is not None and (len(self.ai_queue) or self.ai_queue.processing):
                await self.ai_queue.drain()
            else:
                return

    async def close(self):
        """Cancel timers and in-flight runs."""
        self._closed = True
        for tier, handle in self._timers.items():
            if handle is not None:
                handle.cancel()
                self._timers[tier] = None
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self.ai_queue is not None:
            self.ai_queue.clear()
        self._listeners.clear()
        self._notice_listeners.clear()

    def get_metrics(self) -> Dict[str, Any]:
        document: Dict[str, Any] = {}
        for tier in ANALYSIS_TIERS:
            document.update(self._tier_metrics[tier])
        return {
            'runs': dict(self._runs),
            'failures': dict(self._failures),
            'last_duration_ms': dict(self._last_duration_ms),
            'stale_discarded': self._stale_discarded,
            'suggestion_count': len(self._published),
            'ignored': len(self._ignored),
            'document': document,
            'cache': self.cache.stats if self.cache is not None else None,
            'ai_queue': self.ai_queue.get_stats() if self.ai_queue is not None else None,
        }
