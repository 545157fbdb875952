"""
Sync Module - request pipeline and transport-level helpers

This package contains:
- pipeline: interceptor chain around the raw transport call
- rate_limiter / retry / health_check: the standard interceptors
- transport / session_pool: HTTP access to Discogs
- image_cache: quota-capped image downloads
- log_collector: per-run sync logs
"""
from .errors import (
    MalformedResponseError,
    RemoteApiError,
    SyncDisabledError,
    SyncError,
    UserNotFoundError,
)
from .pipeline import HttpRequest, HttpResponse, Interceptor, RequestPipeline, parse_retry_after
from .rate_limiter import RateLimiterInterceptor
from .retry import RetryInterceptor
from .health_check import HealthCheckInterceptor, is_sync_disabled, reset_sync
from .session_pool import RequestSessionPool, get_request_session_pool
from .transport import DiscogsTransport
from .client import build_pipeline, build_transport
from .image_cache import BackfillResult, ImageBackfill, ImageCache, build_local_path
from .log_collector import SyncLogCollector, load_last_log

__all__ = [
    'MalformedResponseError',
    'RemoteApiError',
    'SyncDisabledError',
    'SyncError',
    'UserNotFoundError',
    'HttpRequest',
    'HttpResponse',
    'Interceptor',
    'RequestPipeline',
    'parse_retry_after',
    'RateLimiterInterceptor',
    'RetryInterceptor',
    'HealthCheckInterceptor',
    'is_sync_disabled',
    'reset_sync',
    'RequestSessionPool',
    'get_request_session_pool',
    'DiscogsTransport',
    'build_pipeline',
    'build_transport',
    'BackfillResult',
    'ImageBackfill',
    'ImageCache',
    'build_local_path',
    'SyncLogCollector',
    'load_last_log',
]
