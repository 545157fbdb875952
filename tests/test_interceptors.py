"""
Interceptor Tests

Tests for RateLimiterInterceptor, RetryInterceptor and HealthCheckInterceptor.
Sleeps and clocks are injected so nothing actually waits.
"""
import random

import pytest

from discsync.services.state_store import (
    RATE_BUCKET,
    RATE_LAST_SEEN,
    RATE_REMAINING,
    SYNC_DISABLED,
    SYNC_FAILURES,
    SYNC_LAST_FATAL,
)
from discsync.services.sync.client import build_pipeline
from discsync.services.sync.errors import SyncDisabledError
from discsync.services.sync.health_check import HealthCheckInterceptor, is_sync_disabled, reset_sync
from discsync.services.sync.pipeline import HttpResponse, RequestPipeline
from discsync.services.sync.rate_limiter import RateLimiterInterceptor
from discsync.services.sync.retry import RetryInterceptor

NOW = 1_700_000_000.0


class Script:
    """Transport returning the given statuses in order and logging events."""

    def __init__(self, *responses, events=None):
        self.responses = list(responses)
        self.events = events if events is not None else []
        self.count = 0

    def __call__(self, request):
        self.count += 1
        self.events.append('send')
        response = self.responses.pop(0)
        if isinstance(response, int):
            response = HttpResponse(response)
        return response


class TestRateLimiter:
    """Tests for RateLimiterInterceptor."""

    def make(self, store, events):
        return RateLimiterInterceptor(
            store,
            sleep=lambda s: events.append(('sleep', s)),
            clock=lambda: NOW,
            rng=random.Random(1),
        )

    def test_exhausted_budget_delays_before_send(self, store):
        events = []
        store.set(RATE_REMAINING, 0)
        store.set(RATE_LAST_SEEN, int(NOW))
        store.set(RATE_BUCKET, 60)

        pipeline = RequestPipeline(Script(200, events=events), [self.make(store, events)])
        pipeline.request('GET', 'releases/1')

        kind, seconds = events[0]
        assert kind == 'sleep'
        assert seconds >= 1
        assert events[1] == 'send'

    def test_sleep_accounts_for_elapsed_time(self, store):
        events = []
        store.set(RATE_REMAINING, 0)
        store.set(RATE_LAST_SEEN, int(NOW) - 45)

        limiter = self.make(store, events)
        assert limiter.throttle_before_request() == 15
        # Optimistic refill
        assert store.get_int(RATE_REMAINING) == 59
        assert store.get_int(RATE_LAST_SEEN) == int(NOW)

    def test_stale_observation_is_ignored(self, store):
        events = []
        store.set(RATE_REMAINING, 0)
        store.set(RATE_LAST_SEEN, int(NOW) - 121)

        assert self.make(store, events).throttle_before_request() == 0
        assert events == []

    def test_no_observation_does_not_throttle(self, store):
        events = []
        assert self.make(store, events).throttle_before_request() == 0
        assert events == []

    def test_records_numeric_headers(self, store):
        events = []
        response = HttpResponse(200, {
            'X-Discogs-Ratelimit': '60',
            'X-Discogs-Ratelimit-Remaining': '12',
        })
        RequestPipeline(Script(response), [self.make(store, events)]).request('GET', 'x')

        assert store.get_int(RATE_BUCKET) == 60
        assert store.get_int(RATE_REMAINING) == 12
        assert store.get_int(RATE_LAST_SEEN) == int(NOW)

    def test_ignores_non_numeric_headers(self, store):
        events = []
        store.set(RATE_REMAINING, 30)
        response = HttpResponse(200, {'X-Discogs-Ratelimit-Remaining': 'lots', 'X-Discogs-Ratelimit': ''})
        RequestPipeline(Script(response), [self.make(store, events)]).request('GET', 'x')

        assert store.get_int(RATE_REMAINING) == 30
        assert store.get(RATE_BUCKET) is None
        # Stamped even without usable headers
        assert store.get_int(RATE_LAST_SEEN) == int(NOW)

    def test_429_sleeps_retry_after_plus_jitter(self, store):
        events = []
        response = HttpResponse(429, {'Retry-After': '3'})
        RequestPipeline(Script(response, events=events), [self.make(store, events)]).request('GET', 'x')

        sleeps = [e[1] for e in events if isinstance(e, tuple)]
        assert len(sleeps) == 1
        assert 3 <= sleeps[0] <= 3.5

    def test_429_without_retry_after_defaults_to_five_seconds(self, store):
        events = []
        RequestPipeline(Script(429, events=events), [self.make(store, events)]).request('GET', 'x')

        sleeps = [e[1] for e in events if isinstance(e, tuple)]
        assert 5 <= sleeps[0] <= 5.5


class TestRetry:
    """Tests for RetryInterceptor."""

    def make(self, max_retries=5, sleeps=None):
        sleeps = sleeps if sleeps is not None else []
        return RetryInterceptor(
            max_retries=max_retries,
            sleep=sleeps.append,
            clock=lambda: NOW,
            rng=random.Random(7),
        )

    def test_retries_until_success(self):
        sleeps = []
        transport = Script(429, 429, 200)
        resp = RequestPipeline(transport, [self.make(sleeps=sleeps)]).request('GET', 'x')

        assert resp.status_code == 200
        assert transport.count == 3
        assert len(sleeps) == 2

    def test_exhaustion_returns_last_error_response(self):
        sleeps = []
        transport = Script(500, 500, 500, 200)
        resp = RequestPipeline(transport, [self.make(max_retries=2, sleeps=sleeps)]).request('GET', 'x')

        assert resp.status_code == 500
        assert transport.count == 3
        assert len(sleeps) == 2

    @pytest.mark.parametrize('status', [200, 201, 400, 401, 404])
    def test_non_retryable_status_returned_immediately(self, status):
        transport = Script(status)
        resp = RequestPipeline(transport, [self.make()]).request('GET', 'x')

        assert resp.status_code == status
        assert transport.count == 1

    def test_honours_retry_after(self):
        sleeps = []
        transport = Script(HttpResponse(503, {'Retry-After': '9'}), 200)
        RequestPipeline(transport, [self.make(sleeps=sleeps)]).request('GET', 'x')

        assert 9 <= sleeps[0] <= 9.25

    def test_backoff_bounds(self):
        retry = self.make()
        for attempt in range(10):
            delay = retry.compute_delay(HttpResponse(500), attempt)
            base = min(60, 2 ** attempt)
            assert 1 <= delay <= base + 0.25


class TestHealthCheck:
    """Tests for HealthCheckInterceptor."""

    @pytest.mark.parametrize('status', [401, 403])
    def test_auth_failure_opens_circuit(self, store, status):
        transport = Script(status, 200)
        pipeline = RequestPipeline(transport, [HealthCheckInterceptor(store)])

        resp = pipeline.request('GET', 'x')
        assert resp.status_code == status
        assert is_sync_disabled(store)
        assert store.get(SYNC_LAST_FATAL).startswith(f'HTTP {status} on ')

        with pytest.raises(SyncDisabledError):
            pipeline.request('GET', 'x')
        # The second request never reached the network
        assert transport.count == 1

    def test_failure_counter(self, store):
        pipeline = RequestPipeline(Script(500, 404, 200), [HealthCheckInterceptor(store)])

        pipeline.request('GET', 'x')
        pipeline.request('GET', 'x')
        assert store.get_int(SYNC_FAILURES) == 2
        assert not is_sync_disabled(store)

        pipeline.request('GET', 'x')
        assert store.get_int(SYNC_FAILURES) == 0

    def test_reset_clears_flag(self, store):
        store.set(SYNC_DISABLED, '1')
        assert reset_sync(store) is True
        assert not is_sync_disabled(store)
        assert reset_sync(store) is False


class TestStandardPipeline:
    """Tests for the pipeline built from app config."""

    def test_order_and_retry_on_server_error(self, app, store):
        sleeps = []
        transport = Script(502, HttpResponse(200, {'X-Discogs-Ratelimit-Remaining': '59'}))
        pipeline = build_pipeline(transport=transport, store=store, sleep=sleeps.append)

        names = [type(i).__name__ for i in pipeline.interceptors]
        assert names == ['RateLimiterInterceptor', 'RetryInterceptor', 'HealthCheckInterceptor']

        resp = pipeline.request('GET', 'releases/1')
        assert resp.status_code == 200
        assert transport.count == 2
        assert store.get_int(RATE_REMAINING) == 59
        assert store.get_int(SYNC_FAILURES) == 0

    def test_disabled_sync_fails_fast_through_retry(self, app, store):
        store.set(SYNC_DISABLED, '1')
        transport = Script(200)
        pipeline = build_pipeline(transport=transport, store=store, sleep=lambda s: None)

        with pytest.raises(SyncDisabledError):
            pipeline.request('GET', 'releases/1')
        assert transport.count == 0
