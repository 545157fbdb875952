"""
Discogs writers - remote mutations used by the push queue

Every call returns a WriteResult instead of raising for HTTP errors or
transport failures; the push queue turns failures into job attempts.
"""
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import quote

import requests

from ..utils.logger import get_logger
from .sync.pipeline import RequestPipeline

logger = get_logger('discogs_writer')


@dataclass
class WriteResult:
    ok: bool
    code: int
    body: str = ''

    @classmethod
    def from_response(cls, resp) -> 'WriteResult':
        return cls(ok=200 <= resp.status_code < 300, code=resp.status_code, body=resp.text)

    @classmethod
    def from_exception(cls, error: Exception) -> 'WriteResult':
        return cls(ok=False, code=0, body=str(error))


def _user(username: str) -> str:
    return quote(username, safe='')


class DiscogsWriter:
    """Collection and wantlist mutations.

    Example:
        >>> writer = DiscogsWriter(build_pipeline())
        >>> writer.update_instance('someone', 249504, 1234, 1, rating=4, fields={1: 'Mint (M)'})
        >>> writer.add_to_wantlist('someone', 249504)
    """

    DEFAULT_COLLECTION_FOLDER = 1

    def __init__(self, pipeline: RequestPipeline):
        self.pipeline = pipeline

    def _send(self, method: str, path: str, json=None) -> WriteResult:
        try:
            resp = self.pipeline.request(method, path, json=json)
        except requests.RequestException as e:
            logger.warning(f"[DiscogsWriter] {method} {path} transport error: {e}")
            return WriteResult.from_exception(e)
        result = WriteResult.from_response(resp)
        if not result.ok:
            logger.warning(f"[DiscogsWriter] {method} {path} -> HTTP {result.code}")
        return result

    def update_instance(
        self,
        username: str,
        release_id: int,
        instance_id: int,
        folder_id: int,
        rating: Optional[int] = None,
        fields: Optional[Dict[int, Optional[str]]] = None,
    ) -> WriteResult:
        """Set rating and custom field values on one collection instance.

        A rating, when given, is posted to the folder-scoped instance path; each field
        value goes to the folder 0 field path. Stops at the first failure.
        """
        base = f"users/{_user(username)}/collection/folders"
        instance_path = f"{base}/{int(folder_id)}/releases/{int(release_id)}/instances/{int(instance_id)}"

        result = WriteResult(ok=True, code=200, body='No changes to push')
        if rating is not None:
            result = self._send('POST', instance_path, json={'rating': max(0, min(5, int(rating)))})
            if not result.ok:
                return result

        for field_id, value in (fields or {}).items():
            if value is None:
                continue
            field_path = (
                f"{base}/0/releases/{int(release_id)}/instances/{int(instance_id)}"
                f"/fields/{int(field_id)}"
            )
            field_result = self._send('POST', field_path, json={'value': value})
            if not field_result.ok:
                field_result.body = f"Field ID {field_id} update failed: {field_result.body}"
                return field_result
            result = field_result
        return result

    def add_to_wantlist(self, username: str, release_id: int) -> WriteResult:
        return self._send('PUT', f"users/{_user(username)}/wants/{int(release_id)}")

    def remove_from_wantlist(self, username: str, release_id: int) -> WriteResult:
        return self._send('DELETE', f"users/{_user(username)}/wants/{int(release_id)}")

    def add_to_collection(
        self, username: str, release_id: int, folder_id: int = DEFAULT_COLLECTION_FOLDER
    ) -> WriteResult:
        return self._send(
            'POST',
            f"users/{_user(username)}/collection/folders/{int(folder_id)}/releases/{int(release_id)}",
        )
