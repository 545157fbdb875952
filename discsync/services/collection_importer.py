"""
Collection Importer - full paginated import of a user's collection

Used for first-time imports: collection items and releases are written with
replace semantics, image stubs with insert-ignore. Each page is one
transaction.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional
from urllib.parse import quote

from ..extensions import db
from ..models import CollectionItem, Image, Release
from ..utils.logger import get_logger
from . import payloads
from .remote import get_json, page_count
from .sync.pipeline import RequestPipeline
from .upserts import insert_ignore, upsert_coalesce, upsert_replace

logger = get_logger('collection_importer')


@dataclass(frozen=True)
class PageProgress:
    """Emitted after each stored page."""
    page: int
    count: int
    total_pages: Optional[int]


def collection_path(username: str) -> str:
    return f"users/{quote(username, safe='')}/collection/folders/0/releases"


def store_images(items: List[Dict], img_dir: str) -> None:
    for release in items:
        row = payloads.cover_image_row(release, img_dir)
        if row:
            insert_ignore(Image, row, index_elements=['release_id', 'source_url'])


class CollectionImporter:
    """Imports every page of a collection.

    Example:
        >>> importer = CollectionImporter(build_pipeline())
        >>> for progress in importer.iter_import('someone', per_page=100):
        ...     print(progress.page, progress.count, progress.total_pages)
    """

    def __init__(self, pipeline: RequestPipeline, img_dir: str = 'public/images'):
        self.pipeline = pipeline
        self.img_dir = img_dir

    def fetch_page(self, username: str, page: int, per_page: int, **extra_query) -> Dict:
        query = {'per_page': per_page, 'page': page}
        query.update(extra_query)
        document = get_json(self.pipeline, collection_path(username), query=query, username=username)
        return document if isinstance(document, dict) else {}

    def iter_import(self, username: str, per_page: int = 100) -> Iterator[PageProgress]:
        page = 1
        while True:
            document = self.fetch_page(username, page, per_page)
            items = document.get('releases') or []
            if not isinstance(items, list):
                items = []
            total_pages = page_count(document)

            self.store_page(username, items)
            logger.debug(f"[CollectionImporter] Page {page}/{total_pages or '?'}: {len(items)} items")
            yield PageProgress(page, len(items), total_pages)

            page += 1
            if total_pages is None or page > total_pages:
                break

    def import_all(
        self,
        username: str,
        per_page: int = 100,
        on_page: Optional[Callable[[int, int, Optional[int]], None]] = None,
    ) -> int:
        """Run a full import.

        Args:
            username: Discogs username
            per_page: Page size requested from Discogs
            on_page: Optional callback(page, count, total_pages)

        Returns:
            Number of items imported
        """
        total = 0
        for progress in self.iter_import(username, per_page):
            total += progress.count
            if on_page:
                on_page(progress.page, progress.count, progress.total_pages)
        logger.info(f"[CollectionImporter] Imported {total} items for {username}")
        return total

    def store_page(self, username: str, items: List[Dict]) -> None:
        releases = []
        try:
            for item in items:
                release = payloads.release_row_from_listing(item)
                if release['id'] is None:
                    logger.warning("[CollectionImporter] Skipping item without release id")
                    continue
                upsert_replace(Release, release)
                upsert_replace(CollectionItem, payloads.collection_row(item, username))
                releases.append(release)
            store_images(releases, self.img_dir)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise


def merge_release(release: Dict) -> None:
    """Merge-preserve upsert of a listing release summary."""
    row = dict(release, updated_at=datetime.utcnow())
    upsert_coalesce(Release, row, overwrite=('updated_at',))
