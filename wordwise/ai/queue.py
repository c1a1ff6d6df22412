"""
AI Enhancement Queue
====================
Collects eligible Suggestions, waits for a quiet period, then dispatches
one batch per category.

- Each enqueue resets the batch timer, so bursts coalesce into one dispatch.
- Once a full batch is waiting it is dispatched without the quiet period.
- Processed and failed items both leave the queue; nothing is retried.
- A RateLimitError empties the queue and suspends dispatch until the
  quota window resets.
"""

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from config_logging import RateLimitError, WordWiseError, get_logger

from ..models import Notice, Suggestion
from .context import DocumentContext
from .enhancement import mark_failed, should_enhance

logger = get_logger('wordwise.ai.queue')

AI_TIER = 'ai-enhance'

BATCH_DELAY = 1.0
MAX_BATCH_SIZE = 10

Processor = Callable[[List[Suggestion], DocumentContext], Awaitable[List[Suggestion]]]


@dataclass
class QueueItem:
    suggestion: Suggestion
    timestamp: float
    category: str


class AIQueueManager:
    """Batching queue in front of the enhancement service. Runs on one event loop."""

    def __init__(
        self,
        processor: Processor,
        batch_delay: float = BATCH_DELAY,
        max_batch_size: int = MAX_BATCH_SIZE,
        on_update: Optional[Callable[[List[Suggestion]], None]] = None,
        on_notice: Optional[Callable[[Notice], None]] = None
    ):
        self.processor = processor
        self.batch_delay = batch_delay
        self.max_batch_size = max_batch_size
        self.on_update = on_update
        self.on_notice = on_notice

        self._queue: List[QueueItem] = []
        self._context = DocumentContext()
        self._processing = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._suspended_until = 0.0

    @property
    def processing(self) -> bool:
        return self._processing

    @property
    def is_suspended(self) -> bool:
        return time.monotonic() < self._suspended_until

    def __len__(self):
        return len(self._queue)

    def is_in_queue(self, suggestion_id: str) -> bool:
        return any(item.suggestion.id == suggestion_id for item in self._queue)

    def enqueue(self, suggestions: Sequence[Suggestion], context: Optional[DocumentContext] = None) -> int:
        """
        Queue the eligible Suggestions and restart the batch timer.

        Must be called from the event loop thread. Returns the number queued.
        """
        if context is not None:
            self._context = context

        if self.is_suspended:
            logger.debug("AI queue suspended, ignoring enqueue", count=len(suggestions))
            return 0

        needs_enhancement = [
            s for s in suggestions if should_enhance(s) and not self.is_in_queue(s.id)
        ]
        if not needs_enhancement:
            logger.debug("No suggestions need enhancement")
            return 0

        timestamp = time.time()
        for suggestion in needs_enhancement:
            self._queue.append(QueueItem(suggestion, timestamp, suggestion.category))
        logger.debug("AI queue updated", added=len(needs_enhancement), size=len(self._queue))

        self._schedule()
        return len(needs_enhancement)

    def _schedule(self):
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        delay = 0 if len(self._queue) >= self.max_batch_size else self.batch_delay
        self._timer = loop.call_later(delay, self._fire)

    def _fire(self):
        self._timer = None
        self._task = asyncio.get_running_loop().create_task(self.process_batch())

    def _remove(self, batch: Sequence[QueueItem]):
        ids = {item.suggestion.id for item in batch}
        self._queue = [item for item in self._queue if item.suggestion.id not in ids]

    def _suspend(self, error: RateLimitError):
        self._suspended_until = time.monotonic() + error.retry_after
        dropped = len(self._queue)
        self._queue = []
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        logger.warning("AI enhancement suspended by rate limit",
                       retry_after=error.retry_after, dropped=dropped)
        if self.on_notice:
            self.on_notice(Notice(tier=AI_TIER, kind='rate-limit', message=error.message,
                                  retry_after=error.retry_after))

    async def process_batch(self) -> List[Suggestion]:
        """Dispatch up to max_batch_size items per category. Returns what came back."""
        if self._processing or not self._queue or self.is_suspended:
            return []

        self._processing = True
        all_enhanced: List[Suggestion] = []
        try:
            groups: Dict[str, List[QueueItem]] = OrderedDict()
            for item in self._queue:
                groups.setdefault(item.category, []).append(item)

            for category, items in groups.items():
                batch = items[:self.max_batch_size]
                suggestions = [item.suggestion for item in batch]
                logger.debug("Enhancing batch", category=category, count=len(batch))
                try:
                    all_enhanced.extend(await self.processor(suggestions, self._context))
                except RateLimitError as e:
                    self._suspend(e)
                    break
                except WordWiseError as e:
                    logger.warning(f"Failed to enhance {category} batch: {e.message}", code=e.code)
                    all_enhanced.extend(mark_failed(suggestions, e.message))
                except Exception as e:
                    logger.exception(f"Failed to enhance {category} batch: {e}")
                    all_enhanced.extend(mark_failed(suggestions, str(e)))
                finally:
                    self._remove(batch)

            if all_enhanced and self.on_update:
                self.on_update(all_enhanced)

            if self._queue and not self.is_suspended:
                logger.debug("Remaining items in AI queue", size=len(self._queue))
                self._schedule()
        finally:
            self._processing = False

        return all_enhanced

    async def drain(self):
        """Wait until the queue is empty and no batch is in flight."""
        while True:
            if self._task is not None and not self._task.done():
                await self._task
            elif self._timer is not None and self._queue:
                await asyncio.sleep(self.batch_delay / 4 or 0.01)
            else:
                return

    def clear(self):
        """Empty the queue and cancel a pending dispatch."""
        self._queue = []
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def resume(self):
        """Lift a rate-limit suspension early."""
        self._suspended_until = 0.0

    def get_stats(self) -> Dict[str, Any]:
        by_category: Dict[str, int] = {}
        for item in self._queue:
            by_category[item.category] = by_category.get(item.category, 0) + 1
        return {
            'total_queued': len(self._queue),
            'processing': self._processing,
            'by_category': by_category,
            'oldest_timestamp': min((item.timestamp for item in self._queue), default=None),
            'suspended': self.is_suspended,
        }
