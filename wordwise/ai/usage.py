"""
AI Usage Limiter
================
Daily quota on AI enhancements, counted per user key and UTC date.
"""

import threading
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

from config_logging import RateLimitError, get_logger

logger = get_logger('wordwise.ai.usage')

DAILY_ENHANCEMENT_LIMIT = 1000
DEFAULT_USER = 'default'


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class UsageLimiter:
    """In-memory daily usage counter."""

    def __init__(self, daily_limit: int = DAILY_ENHANCEMENT_LIMIT,
                 today: Optional[Callable[[], date]] = None):
        self.daily_limit = daily_limit
        self._today = today or _utc_today
        self._usage: Dict[Tuple[str, date], Dict[str, int]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, ai_config=None) -> 'UsageLimiter':
        if ai_config is None:
            from ..config import get_config
            ai_config = get_config().ai
        return cls(daily_limit=ai_config.daily_limit)

    def _record_for(self, user: str) -> Dict[str, int]:
        return self._usage.get((user, self._today()), {'enhancements': 0, 'tokens': 0})

    def seconds_until_reset(self) -> int:
        tomorrow = datetime.combine(self._today() + timedelta(days=1), time.min, tzinfo=timezone.utc)
        return max(1, int((tomorrow - datetime.now(timezone.utc)).total_seconds()))

    def can_use(self, user: str = DEFAULT_USER, count: int = 1) -> bool:
        with self._lock:
            return self._record_for(user)['enhancements'] + count <= self.daily_limit

    def check(self, user: str = DEFAULT_USER, count: int = 1):
        """Raise RateLimitError when `count` more enhancements would exceed the quota."""
        if not self.can_use(user, count):
            retry_after = self.seconds_until_reset()
            logger.warning("Daily AI enhancement limit reached", user=user,
                           limit=self.daily_limit, retry_after=retry_after)
            raise RateLimitError(
                retry_after=retry_after,
                message=f"Daily AI enhancement limit of {self.daily_limit} reached",
            )

    def record(self, count: int, user: str = DEFAULT_USER, tokens_used: int = 0):
        with self._lock:
            key = (user, self._today())
            entry = self._usage.setdefault(key, {'enhancements': 0, 'tokens': 0})
            entry['enhancements'] += count
            entry['tokens'] += tokens_used

    def get_usage(self, user: str = DEFAULT_USER) -> Dict[str, object]:
        with self._lock:
            record = dict(self._record_for(user))
        tomorrow = self._today() + timedelta(days=1)
        return {
            'used': record['enhancements'],
            'limit': self.daily_limit,
            'remaining': max(0, self.daily_limit - record['enhancements']),
            'tokens_used': record['tokens'],
            'reset_at': datetime.combine(tomorrow, time.min, tzinfo=timezone.utc).isoformat(),
        }

    def reset(self, user: Optional[str] = None):
        """Drop today's usage for one user, or everything."""
        with self._lock:
            if user is None:
                self._usage.clear()
            else:
                self._usage.pop((user, self._today()), None)
