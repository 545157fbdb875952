"""
State Store - persistent string-keyed map backed by the kv_store table

Holds rate limiter counters, daily image quotas, sync cursors and the
circuit-breaker flag. Every write commits immediately so that other
processes sharing the database observe it.
"""
from typing import Optional

from sqlalchemy import Integer, String, cast

from ..extensions import db
from ..models import KvEntry
from ..utils.logger import get_logger
from .upserts import dialect_insert

logger = get_logger('state_store')

# Well-known keys
RATE_BUCKET = 'rate:core:bucket'
RATE_REMAINING = 'rate:core:remaining'
RATE_LAST_SEEN = 'rate:core:last_seen_at'
IMAGES_DAILY_PREFIX = 'rate:images:daily_count:'
IMAGES_LAST_FETCH = 'rate:images:last_fetch_epoch'
REFRESH_LAST_ADDED = 'refresh:last_added'
REFRESH_LAST_RUN = 'refresh:last_run_at'
SYNC_DISABLED = 'sync:global_disabled'
SYNC_LAST_FATAL = 'sync:last_fatal_error'
SYNC_FAILURES = 'sync:consecutive_failures'
SYNC_LAST_LOG_PREFIX = 'sync:last_log:'


class StateStore:
    """Key/value store with atomic increment.

    Example:
        >>> store = StateStore()
        >>> store.set('refresh:last_added', '2024-01-01T00:00:00-08:00')
        >>> store.get('refresh:last_added')
        >>> store.increment('sync:consecutive_failures')
    """

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = db.session.execute(
            db.select(KvEntry.v).where(KvEntry.k == key)
        ).scalar_one_or_none()
        if value is None:
            return default
        return str(value)

    def get_int(self, key: str, default: int = 0) -> int:
        """Read an integer value; unset or non-numeric values yield the default."""
        value = self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            return default

    def set(self, key: str, value) -> None:
        insert = dialect_insert()
        stmt = insert(KvEntry).values(k=key, v=str(value))
        stmt = stmt.on_conflict_do_update(index_elements=[KvEntry.k], set_={'v': stmt.excluded.v})
        try:
            db.session.execute(stmt)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    def increment(self, key: str, by: int = 1) -> int:
        """Add `by` to an integer entry in a single statement and return the new value."""
        insert = dialect_insert()
        stmt = insert(KvEntry).values(k=key, v=str(by))
        stmt = stmt.on_conflict_do_update(
            index_elements=[KvEntry.k],
            set_={'v': cast(cast(KvEntry.v, Integer) + by, String)},
        )
        try:
            db.session.execute(stmt)
            value = db.session.execute(
                db.select(KvEntry.v).where(KvEntry.k == key)
            ).scalar_one()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return int(value)

    def delete(self, key: str) -> None:
        try:
            db.session.execute(db.delete(KvEntry).where(KvEntry.k == key))
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise


# Global singleton instance
_state_store: StateStore = None


def get_state_store() -> StateStore:
    """Get the global StateStore instance (singleton pattern).

    Returns:
        The global StateStore instance
    """
    global _state_store
    if _state_store is None:
        _state_store = StateStore()
    return _state_store
