"""
Request Session Pool - one keep-alive HTTP session shared by every sync component

The Discogs transport and the image cache both send through this pool. Only
connection setup is retried here; HTTP status handling (429/5xx backoff,
circuit breaker) belongs to the request pipeline.
"""
import threading
from collections import Counter
from typing import Dict
from urllib.parse import urlsplit

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ...utils.logger import get_logger

logger = get_logger('session_pool')


class RequestSessionPool:
    """Process-wide pooled requests.Session (singleton).

    Non-2xx responses are returned as-is; only transport failures raise.

    Example:
        >>> pool = get_request_session_pool()
        >>> resp = pool.request('GET', 'https://api.discogs.com/releases/1', timeout=10)
        >>> pool.get_stats()['by_host']['api.discogs.com']
    """

    _instance = None
    _lock = threading.Lock()

    POOL_CONNECTIONS = 4   # api.discogs.com and the image hosts
    POOL_MAXSIZE = 10
    CONNECT_RETRIES = 3

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        # Connect errors only: never re-send a request the server may have seen
        retries = Retry(
            total=self.CONNECT_RETRIES,
            connect=self.CONNECT_RETRIES,
            read=0,
            status=0,
            redirect=5,
            backoff_factor=0.5,
            raise_on_status=False,
        )
        adapter = HTTPAdapter(
            pool_connections=self.POOL_CONNECTIONS,
            pool_maxsize=self.POOL_MAXSIZE,
            max_retries=retries,
        )
        self._session = requests.Session()
        self._session.mount('https://', adapter)
        self._session.mount('http://', adapter)

        self._counts = Counter()
        self._hosts = Counter()
        self._counts_lock = threading.Lock()

        self._initialized = True
        logger.info(
            f"[RequestSessionPool] Ready (pool_maxsize={self.POOL_MAXSIZE}, "
            f"connect_retries={self.CONNECT_RETRIES})"
        )

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        """Send one request on the shared session.

        Raises:
            requests.RequestException: DNS, connect, TLS or timeout failure
        """
        host = urlsplit(url).hostname or ''
        with self._counts_lock:
            self._counts['requests'] += 1
            self._hosts[host] += 1

        try:
            return self._session.request(method, url, **kwargs)
        except requests.RequestException as e:
            with self._counts_lock:
                self._counts['errors'] += 1
            logger.debug(f"[RequestSessionPool] {method} {host} failed: {e.__class__.__name__}")
            raise

    def get(self, url: str, **kwargs) -> requests.Response:
        return self.request('GET', url, **kwargs)

    def get_stats(self) -> Dict:
        """Request and error totals plus a per-host request count."""
        with self._counts_lock:
            return {
                'requests': self._counts['requests'],
                'errors': self._counts['errors'],
                'by_host': dict(self._hosts),
            }

    def close(self) -> None:
        self._session.close()
        logger.info("[RequestSessionPool] Closed")


_request_session_pool: RequestSessionPool = None


def get_request_session_pool() -> RequestSessionPool:
    """Return the shared RequestSessionPool, creating it on first use."""
    global _request_session_pool
    if _request_session_pool is None:
        _request_session_pool = RequestSessionPool()
    return _request_session_pool
