"""
Discogs Transport - the raw HTTP call at the bottom of the request pipeline

Never raises for a non-2xx status; the pipeline and callers inspect the code.
Transport failures surface as requests.RequestException.
"""
from typing import Optional
from urllib.parse import urljoin

from ...utils.logger import get_logger
from .pipeline import HttpRequest, HttpResponse
from .session_pool import RequestSessionPool, get_request_session_pool

logger = get_logger('transport')


class DiscogsTransport:
    """Sends pipeline requests to the Discogs API over the shared session pool.

    Example:
        >>> transport = DiscogsTransport('https://api.discogs.com/', token='abc')
        >>> resp = transport.send(HttpRequest('GET', 'releases/249504'))
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        user_agent: str = 'DiscSync/0.1',
        timeout: float = 30.0,
        session_pool: Optional[RequestSessionPool] = None,
    ):
        if not base_url.endswith('/'):
            base_url += '/'
        self.base_url = base_url
        self.token = token
        self.user_agent = user_agent
        self.timeout = timeout
        self._pool = session_pool or get_request_session_pool()

    def build_url(self, path: str) -> str:
        return urljoin(self.base_url, path.lstrip('/'))

    def build_headers(self) -> dict:
        headers = {
            'User-Agent': self.user_agent,
            'Accept': 'application/json',
        }
        if self.token:
            headers['Authorization'] = f'Discogs token={self.token}'
        return headers

    def send(self, request: HttpRequest) -> HttpResponse:
        url = self.build_url(request.path)
        resp = self._pool.request(
            request.method,
            url,
            params=request.query,
            json=request.json,
            headers=self.build_headers(),
            timeout=request.timeout or self.timeout,
        )
        logger.debug(f"[Transport] {request.method} {request.path} -> {resp.status_code}")
        return HttpResponse(
            status_code=resp.status_code,
            headers=resp.headers,
            body=resp.content or b'',
        )
