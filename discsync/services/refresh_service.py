"""
Incremental Refresh - cursor-bounded scan of newly added collection items

Pages are requested newest-first (sort=added, sort_order=desc). Once a page
contains an item at or before the stored cursor that already exists locally,
the rest of that page is still stored and no further pages are requested.
Release rows are merged (COALESCE) since listing data is partial. The wantlist
is re-imported in full after every run.
"""
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ..extensions import db
from ..models import CollectionItem
from ..utils.logger import get_logger
from . import payloads
from .collection_importer import CollectionImporter, PageProgress, merge_release, store_images
from .remote import page_count
from .state_store import REFRESH_LAST_ADDED, REFRESH_LAST_RUN, StateStore, get_state_store
from .sync.errors import RemoteApiError
from .sync.pipeline import RequestPipeline
from .upserts import upsert_replace
from .wantlist_importer import WantlistImporter

logger = get_logger('refresh')


@dataclass
class RefreshResult:
    touched: int = 0
    cursor: Optional[str] = None
    pages: int = 0
    reached_cursor: bool = False
    wants: int = 0

    def to_dict(self):
        return asdict(self)


def _parse_added(value: str) -> Optional[datetime]:
    if not value:
        return None
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def added_on_or_before(added: Optional[str], cursor: str) -> bool:
    """Compare two Discogs 'date_added' timestamps."""
    if not added:
        return False
    left, right = _parse_added(added), _parse_added(cursor)
    if left is not None and right is not None:
        try:
            return left <= right
        except TypeError:
            # naive vs aware
            pass
    return added <= cursor


def is_end_of_list(error: RemoteApiError) -> bool:
    """Discogs answers 404 for a page past the last one."""
    return error.status == 404 and 'outside of valid range' in error.body


class RefreshService:
    """Runs one incremental refresh cycle.

    Example:
        >>> service = RefreshService(build_pipeline(), img_dir='public/images')
        >>> result = service.run('someone', max_pages=10)
        >>> result.touched, result.cursor
    """

    PAGE_SIZE = 100

    def __init__(
        self,
        pipeline: RequestPipeline,
        store: Optional[StateStore] = None,
        img_dir: str = 'public/images',
        page_size: int = PAGE_SIZE,
    ):
        self.pipeline = pipeline
        self.store = store or get_state_store()
        self.img_dir = img_dir
        self.page_size = page_size
        self._collection = CollectionImporter(pipeline, img_dir)
        self._wantlist = WantlistImporter(pipeline, img_dir)

    def run(
        self,
        username: str,
        max_pages: int = 10,
        since: Optional[str] = None,
        on_page: Optional[Callable[[PageProgress], None]] = None,
    ) -> RefreshResult:
        """Refresh the collection and wantlist.

        Args:
            username: Discogs username
            max_pages: Safety cap on pages scanned
            since: Cursor override (ISO-8601); defaults to the stored cursor
            on_page: Optional callback receiving a PageProgress per page

        Returns:
            RefreshResult with the touched item count and the new cursor
        """
        cursor = since or self.store.get(REFRESH_LAST_ADDED) or None
        if cursor:
            logger.info(f"[Refresh] Using since cursor: {cursor}")
        else:
            logger.info("[Refresh] No stored cursor; this scan will establish it")

        result = RefreshResult(cursor=cursor)
        new_cursor = cursor

        for page in range(1, max(1, max_pages) + 1):
            try:
                document = self._collection.fetch_page(
                    username, page, self.page_size, sort='added', sort_order='desc'
                )
            except RemoteApiError as e:
                if is_end_of_list(e):
                    logger.info(f"[Refresh] Page {page}: no more pages")
                    break
                raise

            items = document.get('releases') or []
            if not isinstance(items, list):
                items = []

            touched, reached = self.store_page(username, items, cursor)
            result.touched += touched
            result.pages = page

            if page == 1 and items and items[0].get('date_added'):
                new_cursor = items[0]['date_added']

            total_pages = page_count(document)
            logger.debug(
                f"[Refresh] Page {page}: {len(items)} items, {touched} touched"
                f"{' (reached cursor)' if reached else ''}"
            )
            if on_page:
                on_page(PageProgress(page, len(items), total_pages))

            if reached:
                result.reached_cursor = True
                break
            if not items or (total_pages is not None and page >= total_pages):
                break

        result.wants = self._wantlist.import_all(username, self.page_size)

        if new_cursor:
            self.store.set(REFRESH_LAST_ADDED, new_cursor)
        self.store.set(REFRESH_LAST_RUN, datetime.utcnow().isoformat() + 'Z')
        result.cursor = new_cursor

        logger.info(
            f"[Refresh] Complete: touched={result.touched}, pages={result.pages}, "
            f"since={new_cursor or '(none)'}"
        )
        return result

    def store_page(self, username: str, items: List[Dict], cursor: Optional[str]):
        """Upsert one page.

        Returns:
            (touched, reached_cursor) where touched counts new or changed items
        """
        touched = 0
        reached = False
        releases = []
        try:
            for item in items:
                row = payloads.collection_row(item, username)
                release = payloads.release_row_from_listing(item)
                if row['instance_id'] is None or release['id'] is None:
                    logger.warning("[Refresh] Skipping item without instance or release id")
                    continue

                existing = db.session.get(CollectionItem, row['instance_id'])
                if cursor and existing is not None and added_on_or_before(row['added'], cursor):
                    reached = True
                if existing is None or existing.raw_json != row['raw_json']:
                    touched += 1

                merge_release(release)
                upsert_replace(CollectionItem, row)
                releases.append(release)

            store_images(releases, self.img_dir)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return touched, reached
