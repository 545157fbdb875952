"""
Request Pipeline Tests

Tests for interceptor composition, Retry-After parsing and response decoding.
"""
from email.utils import formatdate

import pytest

from discsync.services.sync.errors import MalformedResponseError
from discsync.services.sync.pipeline import (
    HttpRequest,
    HttpResponse,
    Interceptor,
    RequestPipeline,
    parse_retry_after,
)
from discsync.services.sync.transport import DiscogsTransport


class Recorder(Interceptor):
    def __init__(self, name, events):
        self.name = name
        self.events = events

    def process(self, request, next_handler):
        self.events.append(f'{self.name}:before')
        response = next_handler(request)
        self.events.append(f'{self.name}:after')
        return response


class TestRequestPipeline:
    """Tests for RequestPipeline."""

    def test_first_interceptor_is_outermost(self):
        events = []

        def transport(request):
            events.append('transport')
            return HttpResponse(200)

        pipeline = RequestPipeline(transport, [Recorder('a', events), Recorder('b', events)])
        pipeline.request('get', 'releases/1')

        assert events == ['a:before', 'b:before', 'transport', 'b:after', 'a:after']

    def test_request_builds_http_request(self):
        seen = []

        def transport(request):
            seen.append(request)
            return HttpResponse(204)

        resp = RequestPipeline(transport).request('post', 'users/x/wants/1', query={'a': 1}, json={'b': 2})

        assert resp.status_code == 204
        assert seen[0] == HttpRequest('POST', 'users/x/wants/1', {'a': 1}, {'b': 2}, None)


class TestParseRetryAfter:
    """Tests for Retry-After parsing."""

    def test_seconds(self):
        assert parse_retry_after('7') == 7.0

    def test_http_date(self):
        now = 1_700_000_000
        value = formatdate(now + 30, usegmt=True)
        assert parse_retry_after(value, now=now) == pytest.approx(30, abs=1)

    def test_past_date_is_zero(self):
        now = 1_700_000_000
        assert parse_retry_after(formatdate(now - 30, usegmt=True), now=now) == 0.0

    @pytest.mark.parametrize('value', ['', '   ', None, 'soon', '-5'])
    def test_unparseable(self, value):
        assert parse_retry_after(value) is None


class TestHttpResponse:
    """Tests for HttpResponse."""

    def test_headers_are_case_insensitive(self):
        resp = HttpResponse(200, {'x-discogs-ratelimit': ' 60 '})
        assert resp.header('X-Discogs-Ratelimit') == '60'
        assert resp.header('Missing') == ''

    def test_json_decode(self):
        assert HttpResponse(200, body=b'{"a": 1}').json() == {'a': 1}

    def test_malformed_json_raises(self):
        with pytest.raises(MalformedResponseError):
            HttpResponse(200, body=b'<html>oops</html>').json('releases/1')


class FakePool:
    def __init__(self):
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))

        class Resp:
            status_code = 503
            headers = {'Retry-After': '3'}
            content = b'busy'
        return Resp()


class TestDiscogsTransport:
    """Tests for DiscogsTransport."""

    def test_send_builds_url_and_headers(self):
        pool = FakePool()
        transport = DiscogsTransport(
            'https://api.discogs.com', token='secret', user_agent='Test/1.0', timeout=12, session_pool=pool
        )

        resp = transport.send(HttpRequest('GET', 'releases/5', query={'page': 2}))

        method, url, kwargs = pool.calls[0]
        assert method == 'GET'
        assert url == 'https://api.discogs.com/releases/5'
        assert kwargs['params'] == {'page': 2}
        assert kwargs['timeout'] == 12
        assert kwargs['headers']['Authorization'] == 'Discogs token=secret'
        assert kwargs['headers']['User-Agent'] == 'Test/1.0'
        # Non-2xx is returned, not raised
        assert resp.status_code == 503
        assert resp.header('retry-after') == '3'
        assert resp.text == 'busy'
