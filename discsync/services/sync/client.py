"""
Pipeline factory

Builds the standard RateLimiter -> Retry -> HealthCheck chain from the
application config.
"""
import time
from typing import Callable, Optional

from flask import current_app

from ..state_store import StateStore, get_state_store
from .health_check import HealthCheckInterceptor
from .pipeline import Handler, RequestPipeline
from .rate_limiter import RateLimiterInterceptor
from .retry import RetryInterceptor
from .transport import DiscogsTransport


def build_transport() -> DiscogsTransport:
    """Create a transport configured from current_app.config."""
    cfg = current_app.config
    return DiscogsTransport(
        base_url=cfg['DISCOGS_API_BASE'],
        token=cfg.get('DISCOGS_TOKEN'),
        user_agent=cfg['USER_AGENT'],
        timeout=cfg['REQUEST_TIMEOUT'],
    )


def build_pipeline(
    transport: Optional[Handler] = None,
    store: Optional[StateStore] = None,
    sleep: Callable[[float], None] = time.sleep,
    max_retries: Optional[int] = None,
) -> RequestPipeline:
    """Create the request pipeline used by every sync component.

    Args:
        transport: Raw request function; defaults to DiscogsTransport.send
        store: State store holding throttle and breaker state
        sleep: Sleep function shared by the throttling interceptors
        max_retries: Override for RETRY_MAX_ATTEMPTS

    Returns:
        A RequestPipeline ready to issue requests
    """
    store = store or get_state_store()
    if transport is None:
        transport = build_transport().send
    if max_retries is None:
        max_retries = current_app.config.get('RETRY_MAX_ATTEMPTS', 5)

    return RequestPipeline(transport, [
        RateLimiterInterceptor(store, sleep=sleep),
        RetryInterceptor(max_retries=max_retries, sleep=sleep),
        HealthCheckInterceptor(store),
    ])
