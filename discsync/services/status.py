"""
Sync diagnostics snapshot shared by the status endpoint and the CLI.
"""
from typing import Dict, Optional

from flask import current_app

from ..models import PushJob
from .push_queue import PushQueue
from .state_store import (
    RATE_BUCKET,
    RATE_LAST_SEEN,
    RATE_REMAINING,
    REFRESH_LAST_ADDED,
    REFRESH_LAST_RUN,
    SYNC_FAILURES,
    SYNC_LAST_FATAL,
    StateStore,
    get_state_store,
)
from .sync.health_check import is_sync_disabled
from .sync.image_cache import ImageCache

# Failed jobs listed in the snapshot
FAILED_JOBS_LIMIT = 20


def get_sync_status(store: Optional[StateStore] = None) -> Dict:
    store = store or get_state_store()
    images = ImageCache(store=store, daily_cap=current_app.config.get('IMAGE_DAILY_CAP', 1000))

    failed_jobs = (
        PushJob.query
        .filter_by(status=PushJob.STATUS_FAILED)
        .order_by(PushJob.created_at.desc(), PushJob.id.desc())
        .limit(FAILED_JOBS_LIMIT)
        .all()
    )

    return {
        'sync': {
            'disabled': is_sync_disabled(store),
            'last_fatal_error': store.get(SYNC_LAST_FATAL),
            'consecutive_failures': store.get_int(SYNC_FAILURES, 0),
        },
        'rate_limit': {
            'bucket': store.get_int(RATE_BUCKET, 0) or None,
            'remaining': store.get_int(RATE_REMAINING, 0) if store.get(RATE_REMAINING) else None,
            'last_seen_at': store.get_int(RATE_LAST_SEEN, 0) or None,
        },
        'refresh': {
            'last_added': store.get(REFRESH_LAST_ADDED),
            'last_run_at': store.get(REFRESH_LAST_RUN),
        },
        'images': {
            'used_today': images.used_today(),
            'daily_cap': images.daily_cap,
        },
        'push_queue': PushQueue.counts(),
        'failed_jobs': [job.to_dict() for job in failed_jobs],
    }
