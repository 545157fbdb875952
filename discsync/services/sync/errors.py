"""
Sync error types

Transport failures (DNS, connect, timeouts) are not wrapped: they surface as
requests.RequestException so callers can tell them apart from HTTP errors.
"""
from typing import Optional


class SyncError(RuntimeError):
    """Base class for sync failures."""


class RemoteApiError(SyncError):
    """Discogs answered with an unexpected HTTP status."""

    # Keep stored/logged bodies short
    MAX_BODY_LENGTH = 400

    def __init__(self, status: int, body: str = '', message: Optional[str] = None):
        self.status = status
        self.body = body or ''
        if message is None:
            message = f"Discogs API error: HTTP {status} body={self.short_body}"
        super().__init__(message)

    @property
    def short_body(self) -> str:
        body = self.body.strip()
        if len(body) > self.MAX_BODY_LENGTH:
            return body[:self.MAX_BODY_LENGTH] + '…'
        return body


class UserNotFoundError(RemoteApiError):
    """A user-scoped listing returned 404 for the configured username."""

    def __init__(self, username: str, body: str = ''):
        self.username = username
        super().__init__(
            404, body,
            message=(
                f"Discogs API error: User '{username}' does not exist or may have been deleted. "
                f"Please check DISCOGS_USERNAME in your .env file."
            ),
        )


class SyncDisabledError(SyncError):
    """The circuit breaker is open; no request was sent."""

    def __init__(self, reason: Optional[str] = None):
        message = 'Global sync is disabled due to previous fatal errors.'
        if reason:
            message += f' Last error: {reason}'
        super().__init__(message)


class MalformedResponseError(SyncError):
    """The response body could not be decoded as JSON."""

    def __init__(self, path: str, detail: str):
        self.path = path
        super().__init__(f"Malformed JSON from Discogs {path}: {detail}")
