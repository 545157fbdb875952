"""
Health Check - circuit breaker for authorization failures

A 401/403 means the token is no longer accepted. Instead of burning the rate
budget on requests that will all fail, the breaker sets a global flag and
every later request fails fast until an operator clears it.
"""
from datetime import datetime

from ...utils.logger import get_logger
from ..state_store import SYNC_DISABLED, SYNC_FAILURES, SYNC_LAST_FATAL, StateStore
from .errors import SyncDisabledError
from .pipeline import Handler, HttpRequest, HttpResponse, Interceptor

logger = get_logger('health_check')


class HealthCheckInterceptor(Interceptor):
    """Fails fast while sync is disabled; trips on 401/403."""

    def __init__(self, store: StateStore):
        self.store = store

    def process(self, request: HttpRequest, next_handler: Handler) -> HttpResponse:
        if is_sync_disabled(self.store):
            raise SyncDisabledError(self.store.get(SYNC_LAST_FATAL))

        response = next_handler(request)

        code = response.status_code
        if code in (401, 403):
            message = f"HTTP {code} on {datetime.utcnow().strftime('%Y-%m-%d %H:%M:%S')}"
            self.store.set(SYNC_DISABLED, '1')
            self.store.set(SYNC_LAST_FATAL, message)
            logger.error(
                f"[HealthCheck] {request.method} {request.path} rejected with HTTP {code}; "
                f"sync disabled until cleared"
            )
        elif 200 <= code < 300:
            self.store.set(SYNC_FAILURES, '0')
        else:
            failures = self.store.increment(SYNC_FAILURES)
            logger.debug(f"[HealthCheck] HTTP {code}, consecutive failures: {failures}")
        return response


def is_sync_disabled(store: StateStore) -> bool:
    return store.get(SYNC_DISABLED, '0') == '1'


def reset_sync(store: StateStore) -> bool:
    """Clear the circuit breaker.

    Returns:
        True if the breaker was open
    """
    was_disabled = is_sync_disabled(store)
    store.set(SYNC_DISABLED, '0')
    store.set(SYNC_FAILURES, '0')
    if was_disabled:
        logger.info(f"[HealthCheck] Sync re-enabled (last error: {store.get(SYNC_LAST_FATAL)})")
    return was_disabled
