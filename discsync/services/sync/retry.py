"""
Retry - re-issues requests that failed with 429 or 5xx

Delay is taken from Retry-After when it parses, otherwise exponential
backoff with full jitter: random integer seconds in [1, min(60, 2**attempt)].
After the last attempt the final response is returned unchanged.
"""
import random
import time
from typing import Callable, Optional

from ...utils.logger import get_logger
from .pipeline import Handler, HttpRequest, HttpResponse, Interceptor, parse_retry_after

logger = get_logger('retry')


class RetryInterceptor(Interceptor):
    """Retries transient HTTP failures.

    Example:
        >>> retry = RetryInterceptor(max_retries=5)
        >>> pipeline = RequestPipeline(transport.send, [retry])
    """

    MAX_BACKOFF = 60
    # Extra sub-second jitter added to every delay
    MAX_JITTER = 0.25

    def __init__(
        self,
        max_retries: int = 5,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ):
        self.max_retries = max_retries
        self._sleep = sleep
        self._clock = clock
        self._rng = rng or random.Random()

    @staticmethod
    def should_retry(status: int) -> bool:
        return status == 429 or 500 <= status < 600

    def process(self, request: HttpRequest, next_handler: Handler) -> HttpResponse:
        retries = 0
        while True:
            response = next_handler(request)
            if not self.should_retry(response.status_code) or retries >= self.max_retries:
                if retries and self.should_retry(response.status_code):
                    logger.warning(
                        f"[Retry] Giving up on {request.method} {request.path} "
                        f"after {retries} retries (HTTP {response.status_code})"
                    )
                return response

            delay = self.compute_delay(response, retries)
            retries += 1
            logger.warning(
                f"[Retry] HTTP {response.status_code} on {request.method} {request.path}, "
                f"retry {retries}/{self.max_retries} in {delay:.2f}s"
            )
            self._sleep(delay)

    def compute_delay(self, response: HttpResponse, attempt: int) -> float:
        seconds = parse_retry_after(response.header('Retry-After'), now=self._clock())
        if seconds is None:
            base = min(self.MAX_BACKOFF, 2 ** max(0, attempt))
            seconds = self._rng.randint(1, max(1, int(base)))
        return seconds + self._rng.uniform(0, self.MAX_JITTER)
