"""
Rate Limiter - header-aware throttling for the Discogs core API

Tracks the X-Discogs-Ratelimit* headers in the State Store so that every
process sharing the database throttles against the same budget:

1. Before sending: if the last observation is fresh and no requests remain,
   sleep until the 60s window has passed, then optimistically refill.
2. After receiving: persist the bucket size / remaining count and stamp the
   observation time.
3. On 429: sleep for Retry-After (plus jitter) before handing the response on.

Reads and writes are not locked across processes; concurrent writers may
overshoot the budget slightly.
"""
import random
import re
import time
from typing import Callable, Optional

from ...utils.logger import get_logger
from ..state_store import RATE_BUCKET, RATE_LAST_SEEN, RATE_REMAINING, StateStore
from .pipeline import Handler, HttpRequest, HttpResponse, Interceptor, parse_retry_after

logger = get_logger('rate_limiter')

_DIGITS = re.compile(r'^\d+$')


class RateLimiterInterceptor(Interceptor):
    """Throttles requests using persisted rate-limit state.

    Example:
        >>> limiter = RateLimiterInterceptor(get_state_store())
        >>> pipeline = RequestPipeline(transport.send, [limiter])
    """

    BUCKET_HEADER = 'X-Discogs-Ratelimit'
    REMAINING_HEADER = 'X-Discogs-Ratelimit-Remaining'

    # Observations older than this are ignored
    STALE_AFTER = 120
    # Discogs uses a moving 60 second window
    WINDOW_SECONDS = 60
    DEFAULT_BUCKET = 60
    # Wait used on 429 when Retry-After is missing or unusable
    DEFAULT_RETRY_AFTER = 5.0
    MAX_JITTER = 0.5

    def __init__(
        self,
        store: StateStore,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self._sleep = sleep
        self._clock = clock
        self._rng = rng or random.Random()

    def process(self, request: HttpRequest, next_handler: Handler) -> HttpResponse:
        self.throttle_before_request()

        response = next_handler(request)

        self.record_headers(response)
        if response.status_code == 429:
            self.sleep_for_retry_after(response)
        return response

    def throttle_before_request(self) -> float:
        """Sleep if the last known budget is exhausted.

        Returns:
            Seconds slept (0 when not throttled)
        """
        remaining = self.store.get_int(RATE_REMAINING, 1)
        last_seen = self.store.get_int(RATE_LAST_SEEN, 0)
        bucket = self.store.get_int(RATE_BUCKET, self.DEFAULT_BUCKET)

        now = int(self._clock())
        if last_seen == 0 or (now - last_seen) > self.STALE_AFTER:
            return 0

        if remaining > 0:
            return 0

        elapsed = now - last_seen
        wait = max(1, self.WINDOW_SECONDS - elapsed)
        logger.warning(
            f"[RateLimiter] Budget exhausted (bucket={bucket}), sleeping {wait}s"
        )
        self._sleep(wait)

        # Optimistic refill after the window
        self.store.set(RATE_REMAINING, max(0, bucket - 1))
        self.store.set(RATE_LAST_SEEN, int(self._clock()))
        return wait

    def record_headers(self, response: HttpResponse) -> None:
        bucket = self._header_int(response, self.BUCKET_HEADER)
        remaining = self._header_int(response, self.REMAINING_HEADER)

        if bucket is not None:
            self.store.set(RATE_BUCKET, bucket)
        if remaining is not None:
            self.store.set(RATE_REMAINING, remaining)
        self.store.set(RATE_LAST_SEEN, int(self._clock()))

    def sleep_for_retry_after(self, response: HttpResponse) -> float:
        seconds = parse_retry_after(response.header('Retry-After'), now=self._clock())
        if not seconds or seconds <= 0:
            seconds = self.DEFAULT_RETRY_AFTER
        wait = seconds + self._rng.uniform(0, self.MAX_JITTER)
        logger.warning(f"[RateLimiter] 429 received, sleeping {wait:.2f}s")
        self._sleep(wait)
        return wait

    @staticmethod
    def _header_int(response: HttpResponse, name: str) -> Optional[int]:
        value = response.header(name)
        if not value or not _DIGITS.match(value):
            return None
        return int(value)
