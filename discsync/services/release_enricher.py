"""
Release Enricher - backfills rich metadata from the release detail endpoint

Summary fields (title, artist, year, formats, labels, country) are merged
with COALESCE; rich fields present in the payload replace the stored value.
A failing release is recorded and skipped so one bad id never aborts a batch.
"""
from datetime import datetime
from typing import Dict, List, Optional

import requests

from ..extensions import db
from ..models import Image, Release
from ..utils.logger import get_logger
from . import payloads
from .sync.errors import RemoteApiError, SyncDisabledError, SyncError
from .sync.pipeline import RequestPipeline
from .upserts import insert_ignore

logger = get_logger('enricher')

# Replaced by whatever the detail payload carries
OVERWRITE_FIELDS = payloads.RICH_FIELDS + ('master_id', 'data_quality', 'raw_json')


class ReleaseEnricher:
    """Fetches /releases/{id} and merges it into the local row.

    Example:
        >>> enricher = ReleaseEnricher(build_pipeline())
        >>> enricher.enrich_missing(limit=100)
        >>> enricher.get_errors()
    """

    def __init__(self, pipeline: RequestPipeline, img_dir: str = 'public/images'):
        self.pipeline = pipeline
        self.img_dir = img_dir
        self._errors: List[Dict] = []

    def get_errors(self) -> List[Dict]:
        """Errors from the last enrich_missing() run: [{'release_id', 'status', 'message'}]

        status is the HTTP status for RemoteApiError, None for transport errors.
        """
        return list(self._errors)

    def enrich_one(self, release_id: int) -> None:
        """Fetch and merge one release.

        Raises:
            RemoteApiError: Non-200 response
            MalformedResponseError: Body is not JSON
            requests.RequestException: Transport failure
        """
        path = f'releases/{int(release_id)}'
        resp = self.pipeline.request('GET', path)
        if resp.status_code != 200:
            raise RemoteApiError(
                resp.status_code, resp.text,
                message=f"Discogs /releases/{release_id} error: HTTP {resp.status_code}",
            )
        data = resp.json(path)
        if not isinstance(data, dict):
            data = {}

        row = payloads.release_row_from_detail(data)
        now = datetime.utcnow()

        try:
            release = db.session.get(Release, release_id)
            if release is None:
                # Enriching an id that was never imported creates the row
                release = Release(id=release_id)
                db.session.add(release)

            for name, value in row.items():
                if name in OVERWRITE_FIELDS:
                    setattr(release, name, value)
                elif value is not None:
                    setattr(release, name, value)
            release.updated_at = now
            release.enriched_at = now

            db.session.flush()
            for url in payloads.image_urls_from_detail(data):
                insert_ignore(
                    Image, payloads.image_row(release_id, url, self.img_dir),
                    index_elements=['release_id', 'source_url'],
                )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        logger.debug(f"[Enricher] Enriched release {release_id}")

    def enrich_missing(self, limit: int = 100) -> int:
        """Enrich up to `limit` releases that have never been enriched.

        Returns:
            Number of releases enriched successfully
        """
        self._errors = []
        ids = db.session.execute(
            db.select(Release.id)
            .where(Release.enriched_at.is_(None))
            .order_by(Release.imported_at.asc(), Release.id.asc())
            .limit(int(limit))
        ).scalars().all()

        count = 0
        for release_id in ids:
            try:
                self.enrich_one(release_id)
                count += 1
            except SyncDisabledError:
                raise
            except (SyncError, requests.RequestException) as e:
                logger.warning(f"[Enricher] Release {release_id} failed: {e}")
                self._errors.append({
                    'release_id': release_id,
                    'status': getattr(e, 'status', None),
                    'message': str(e),
                })

        logger.info(
            f"[Enricher] Enriched {count}/{len(ids)} releases, {len(self._errors)} errors"
        )
        return count
