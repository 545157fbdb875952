"""
Image Cache - quota-capped downloader for release artwork

Discogs limits image downloads per day independently of the API rate limit.
ImageCache.fetch enforces the daily cap (per UTC day) through the State Store;
ImageBackfill walks the images table and downloads missing local copies one at
a time, pacing requests by the last fetch timestamp.
"""
import hashlib
import os
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

import requests

from ...config import Config
from ...extensions import db
from ...models import Image
from ...utils.logger import get_logger
from ..state_store import IMAGES_DAILY_PREFIX, IMAGES_LAST_FETCH, StateStore, get_state_store
from .session_pool import RequestSessionPool, get_request_session_pool

logger = get_logger('image_cache')


def build_local_path(img_dir: str, release_id: int, source_url: str) -> str:
    """Deterministic local path: <img_dir>/<release_id>/<sha1(url)>.jpg"""
    digest = hashlib.sha1(source_url.encode('utf-8')).hexdigest()
    return f"{img_dir.rstrip('/')}/{release_id}/{digest}.jpg"


class ImageCache:
    """Downloads single images under a daily cap.

    Example:
        >>> cache = ImageCache(daily_cap=1000)
        >>> cache.fetch('https://i.discogs.com/abc.jpg', '/tmp/images/1/abc.jpg')
        True
    """

    DEFAULT_DAILY_CAP = 1000
    REQUEST_TIMEOUT = 30

    def __init__(
        self,
        store: Optional[StateStore] = None,
        session_pool: Optional[RequestSessionPool] = None,
        daily_cap: int = DEFAULT_DAILY_CAP,
        user_agent: str = 'DiscSync/0.1',
        clock: Callable[[], float] = time.time,
    ):
        self.store = store or get_state_store()
        self._pool = session_pool or get_request_session_pool()
        self.daily_cap = daily_cap
        self.user_agent = user_agent
        self._clock = clock

    def daily_key(self) -> str:
        day = datetime.fromtimestamp(self._clock(), tz=timezone.utc).strftime('%Y%m%d')
        return IMAGES_DAILY_PREFIX + day

    def used_today(self) -> int:
        return self.store.get_int(self.daily_key(), 0)

    def quota_reached(self) -> bool:
        return self.used_today() >= self.daily_cap

    def fetch(self, source_url: str, local_path: str) -> bool:
        """Download source_url to local_path.

        Returns:
            True if the file was written; False when the daily cap is reached,
            on a non-2xx status, on a transport error or when the file
            cannot be written
        """
        key = self.daily_key()
        if self.store.get_int(key, 0) >= self.daily_cap:
            logger.info(f"[ImageCache] Daily cap of {self.daily_cap} reached, skipping {source_url}")
            return False

        self.store.set(IMAGES_LAST_FETCH, int(self._clock()))

        try:
            resp = self._pool.get(
                source_url,
                headers={'User-Agent': self.user_agent},
                timeout=self.REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            logger.warning(f"[ImageCache] Transport error for {source_url}: {e}")
            return False

        if not 200 <= resp.status_code < 300:
            logger.warning(f"[ImageCache] HTTP {resp.status_code} for {source_url}")
            return False

        try:
            parent = os.path.dirname(local_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            with open(local_path, 'wb') as f:
                f.write(resp.content or b'')
        except OSError as e:
            logger.warning(f"[ImageCache] Could not write {local_path}: {e}")
            return False

        self.store.increment(key)
        logger.debug(f"[ImageCache] Saved {source_url} -> {local_path}")
        return True


@dataclass
class BackfillResult:
    downloaded: int = 0
    skipped: int = 0
    failed: int = 0
    quota_reached: bool = False

    def to_dict(self):
        return asdict(self)


class ImageBackfill:
    """Downloads images whose local file is missing.

    Example:
        >>> backfill = ImageBackfill(ImageCache(), min_interval=1.0)
        >>> result = backfill.run(limit=200)
    """

    def __init__(
        self,
        cache: ImageCache,
        min_interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.cache = cache
        self.store = cache.store
        self.min_interval = min_interval
        self._sleep = sleep
        self._clock = clock

    def _pace(self) -> None:
        last = self.store.get_int(IMAGES_LAST_FETCH, 0)
        if not last:
            return
        wait = self.min_interval - (self._clock() - last)
        if wait > 0:
            self._sleep(wait)

    def run(self, limit: int = 100) -> BackfillResult:
        result = BackfillResult()

        rows = db.session.execute(
            db.select(Image.id, Image.local_path).order_by(Image.id)
        ).all()

        pending = []
        for image_id, local_path in rows:
            if os.path.exists(Config.resolve_path(local_path)):
                result.skipped += 1
                continue
            pending.append(image_id)
            if len(pending) >= limit:
                break

        for image_id in pending:
            if self.cache.quota_reached():
                result.quota_reached = True
                logger.info("[ImageBackfill] Daily quota reached, stopping")
                break

            image = db.session.get(Image, image_id)
            path = Config.resolve_path(image.local_path)

            self._pace()
            if self.cache.fetch(image.source_url, path):
                image.bytes = os.path.getsize(path)
                image.fetched_at = datetime.utcnow()
                db.session.commit()
                result.downloaded += 1
            else:
                result.failed += 1

        logger.info(
            f"[ImageBackfill] downloaded={result.downloaded}, skipped={result.skipped}, "
            f"failed={result.failed}, quota_reached={result.quota_reached}"
        )
        return result
