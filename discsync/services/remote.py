"""
Helpers for reading JSON documents through the request pipeline.
"""
from typing import Any, Dict, Optional

from .sync.errors import RemoteApiError, UserNotFoundError
from .sync.pipeline import HttpResponse, RequestPipeline


def raise_for_listing(resp: HttpResponse, username: str) -> None:
    """Raise the matching error for a failed user-scoped listing."""
    if resp.status_code == 404 and 'User does not exist' in resp.text:
        raise UserNotFoundError(username, resp.text)
    raise RemoteApiError(resp.status_code, resp.text)


def get_json(
    pipeline: RequestPipeline,
    path: str,
    query: Optional[Dict[str, Any]] = None,
    username: Optional[str] = None,
) -> Any:
    """GET a document and decode it.

    Raises:
        UserNotFoundError: 404 for the given username on a user-scoped path
        RemoteApiError: Any other non-200 status
        MalformedResponseError: Body is not JSON
    """
    resp = pipeline.request('GET', path, query=query)
    if resp.status_code != 200:
        if username is not None:
            raise_for_listing(resp, username)
        raise RemoteApiError(resp.status_code, resp.text)
    return resp.json(path)


def page_count(document: Dict) -> Optional[int]:
    pagination = document.get('pagination')
    if isinstance(pagination, dict) and pagination.get('pages') is not None:
        try:
            return int(pagination['pages'])
        except (TypeError, ValueError):
            return None
    return None
