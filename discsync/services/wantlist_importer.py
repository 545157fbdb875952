"""
Wantlist Importer - full paginated scan of a user's wantlist

Wantlist rows are keyed by (username, release id) and overwritten; release
summaries are merged so enriched data is never lost.
"""
from typing import Callable, Dict, Iterator, List, Optional
from urllib.parse import quote

from ..extensions import db
from ..models import WantlistItem
from ..utils.logger import get_logger
from . import payloads
from .collection_importer import PageProgress, merge_release, store_images
from .remote import get_json, page_count
from .sync.pipeline import RequestPipeline
from .upserts import upsert_coalesce

logger = get_logger('wantlist_importer')

WANTLIST_OVERWRITE = ('added', 'notes', 'rating', 'raw_json')


def wantlist_path(username: str) -> str:
    return f"users/{quote(username, safe='')}/wants"


class WantlistImporter:
    """Imports every page of a wantlist.

    Example:
        >>> WantlistImporter(build_pipeline()).import_all('someone')
    """

    def __init__(self, pipeline: RequestPipeline, img_dir: str = 'public/images'):
        self.pipeline = pipeline
        self.img_dir = img_dir

    def iter_import(self, username: str, per_page: int = 100) -> Iterator[PageProgress]:
        page = 1
        while True:
            document = get_json(
                self.pipeline, wantlist_path(username),
                query={'per_page': per_page, 'page': page},
                username=username,
            )
            if not isinstance(document, dict):
                document = {}
            items = document.get('wants') or []
            if not isinstance(items, list):
                items = []
            total_pages = page_count(document)

            self.store_page(username, items)
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
        total = 0
        for progress in self.iter_import(username, per_page):
            total += progress.count
            if on_page:
                on_page(progress.page, progress.count, progress.total_pages)
        logger.info(f"[WantlistImporter] Imported {total} wants for {username}")
        return total

    def store_page(self, username: str, items: List[Dict]) -> None:
        releases = []
        try:
            for item in items:
                release = payloads.release_row_from_listing(item)
                if release['id'] is None:
                    continue
                merge_release(release)
                upsert_coalesce(
                    WantlistItem,
                    payloads.wantlist_row(item, username),
                    index_elements=['username', 'release_id'],
                    overwrite=WANTLIST_OVERWRITE,
                )
                releases.append(release)
            store_images(releases, self.img_dir)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
