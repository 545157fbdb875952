"""
Request Pipeline - ordered interceptors around the raw transport call

Each interceptor implements ``process(request, next_handler) -> response``.
The pipeline folds the list around the transport so the first interceptor
is the outermost one:

    RateLimiter -> Retry -> HealthCheck -> transport
"""
import json
import time
from dataclasses import dataclass, field
from datetime import timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from requests.structures import CaseInsensitiveDict

from .errors import MalformedResponseError

Handler = Callable[['HttpRequest'], 'HttpResponse']


@dataclass
class HttpRequest:
    method: str
    path: str
    query: Optional[Dict[str, Any]] = None
    json: Any = None
    timeout: Optional[float] = None


@dataclass
class HttpResponse:
    status_code: int
    headers: Mapping[str, str] = field(default_factory=CaseInsensitiveDict)
    body: bytes = b''

    def __post_init__(self):
        if not isinstance(self.headers, CaseInsensitiveDict):
            self.headers = CaseInsensitiveDict(self.headers or {})
        if isinstance(self.body, str):
            self.body = self.body.encode('utf-8')

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.body.decode('utf-8', errors='replace')

    def header(self, name: str) -> str:
        """Header value stripped of whitespace; empty string when absent."""
        return (self.headers.get(name) or '').strip()

    def json(self, path: str = '') -> Any:
        """Decode the body as JSON.

        Raises:
            MalformedResponseError: If the body is not valid JSON
        """
        try:
            return json.loads(self.text)
        except ValueError as e:
            raise MalformedResponseError(path, str(e)) from e


class Interceptor:
    """Base class for pipeline stages."""

    def process(self, request: HttpRequest, next_handler: Handler) -> HttpResponse:
        raise NotImplementedError


def parse_retry_after(value: str, now: Optional[float] = None) -> Optional[float]:
    """Parse a Retry-After header given as delta-seconds or an HTTP date.

    Returns:
        Seconds to wait (never negative), or None when the value is empty or unparseable
    """
    value = (value or '').strip()
    if not value:
        return None
    if value.isdigit():
        return float(int(value))
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    if now is None:
        now = time.time()
    return max(0.0, when.timestamp() - now)


class RequestPipeline:
    """Composes interceptors around a transport.

    Example:
        >>> pipeline = RequestPipeline(transport.send, [RateLimiterInterceptor(store)])
        >>> resp = pipeline.request('GET', 'releases/249504')
    """

    def __init__(self, transport: Handler, interceptors: Optional[List[Interceptor]] = None):
        self._transport = transport
        self._interceptors = list(interceptors or [])
        self._handler = self._compose()

    @property
    def interceptors(self) -> List[Interceptor]:
        return list(self._interceptors)

    def _compose(self) -> Handler:
        handler = self._transport
        for interceptor in reversed(self._interceptors):
            handler = _bind(interceptor, handler)
        return handler

    def send(self, request: HttpRequest) -> HttpResponse:
        return self._handler(request)

    def request(
        self,
        method: str,
        path: str,
        query: Optional[Dict[str, Any]] = None,
        json: Any = None,
        timeout: Optional[float] = None,
    ) -> HttpResponse:
        return self.send(HttpRequest(method=method.upper(), path=path, query=query, json=json, timeout=timeout))


def _bind(interceptor: Interceptor, next_handler: Handler) -> Handler:
    def handler(request: HttpRequest) -> HttpResponse:
        return interceptor.process(request, next_handler)
    return handler
