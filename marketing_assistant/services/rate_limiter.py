from __future__ import annotations

import math
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Callable, Optional

from marketing_assistant.config import settings
from marketing_assistant.errors import RateLimitError
from marketing_assistant.messages import get_message


Clock = Callable[[], float]


@dataclass
class _Window:
    stamps: deque[float] = field(default_factory=deque)
    last: Optional[float] = None

    def prune(self, now: float, span: float) -> None:
        while self.stamps and now - self.stamps[0] >= span:
            self.stamps.popleft()

    def record(self, now: float) -> None:
        self.stamps.append(now)
        self.last = now


class _KeyedLimiter:
    """Per-user minimum interval plus a rolling-window cap."""

    limit_type = "messages"
    interval_key = ""
    cap_key = ""

    def __init__(self, *, min_interval: float, max_per_window: int, window: float, clock: Clock | None = None):
        self.min_interval = min_interval
        self.max_per_window = max_per_window
        self.window = window
        self._clock = clock or time.monotonic
        self._state: dict[str, _Window] = defaultdict(_Window)
        self._lock = threading.Lock()

    def check(self, user_id: str, locale: Optional[str] = None) -> None:
        """Record one event for `user_id` or raise RateLimitError without recording it."""
        with self._lock:
            now = self._clock()
            state = self._state[user_id]
            state.prune(now, self.window)

            if state.last is not None and now - state.last < self.min_interval:
                retry_after = max(1, math.ceil(self.min_interval - (now - state.last)))
                raise RateLimitError(
                    get_message(self.interval_key, locale, seconds=math.ceil(self.min_interval)),
                    retry_after=retry_after,
                    limit_type=self.limit_type,
                )
            if len(state.stamps) >= self.max_per_window:
                retry_after = max(1, math.ceil(self.window - (now - state.stamps[0])))
                raise RateLimitError(
                    get_message(self.cap_key, locale),
                    retry_after=retry_after,
                    limit_type=self.limit_type,
                )
            state.record(now)

    def reset(self, user_id: Optional[str] = None) -> None:
        with self._lock:
            if user_id is None:
                self._state.clear()
            else:
                self._state.pop(user_id, None)


class RateLimiter(_KeyedLimiter):
    limit_type = "messages"
    interval_key = "rate_limit_interval"
    cap_key = "rate_limit_per_minute"

    def __init__(self, *, min_interval: float | None = None, max_per_minute: int | None = None, clock: Clock | None = None):
        super().__init__(
            min_interval=settings.RATE_LIMIT_MIN_INTERVAL_SECONDS if min_interval is None else min_interval,
            max_per_window=settings.RATE_LIMIT_MAX_PER_MINUTE if max_per_minute is None else max_per_minute,
            window=60.0,
            clock=clock,
        )


class NewChatLimiter(_KeyedLimiter):
    limit_type = "new_chat"
    interval_key = "new_chat_interval"
    cap_key = "new_chat_per_hour"

    def __init__(self, *, min_interval: float | None = None, max_per_hour: int | None = None, clock: Clock | None = None):
        super().__init__(
            min_interval=settings.NEW_CHAT_MIN_INTERVAL_SECONDS if min_interval is None else min_interval,
            max_per_window=settings.NEW_CHAT_MAX_PER_HOUR if max_per_hour is None else max_per_hour,
            window=3600.0,
            clock=clock,
        )


@dataclass
class TurnLimiters:
    messages: RateLimiter = field(default_factory=RateLimiter)
    new_chats: NewChatLimiter = field(default_factory=NewChatLimiter)

    def check_turn(self, user_id: str, *, is_welcome: bool, is_new_chat: bool, locale: Optional[str] = None) -> None:
        if is_welcome or is_new_chat:
            self.new_chats.check(user_id, locale)
        if not is_welcome:
            self.messages.check(user_id, locale)
