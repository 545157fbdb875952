"""
Sync Log Collector - Collect and store sync run logs

Tracks per-run counts and issues (rate limits, failed fetches, failed pushes,
authorization errors) and stores the finalized log in the State Store under
``sync:last_log:<mode>``.
"""
import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from ...utils.logger import get_logger
from ..state_store import SYNC_LAST_LOG_PREFIX, StateStore, get_state_store

logger = get_logger('log_collector')


class SyncLogCollector:
    """Sync log collector for one importer/refresh/enrich/push/backfill run.

    Example:
        >>> collector = SyncLogCollector('refresh')
        >>> collector.record_success(count=25)
        >>> collector.add_issue(SyncLogCollector.TYPE_FETCH_FAILED, release_id=1, message='HTTP 500')
        >>> collector.save()
    """

    TYPE_RATE_LIMITED = 'rate_limited'
    TYPE_FETCH_FAILED = 'fetch_failed'
    TYPE_PUSH_FAILED = 'push_failed'
    TYPE_MEDIA_FAILED = 'media_failed'
    TYPE_AUTH_ERROR = 'auth_error'

    ISSUE_TYPES = (
        TYPE_RATE_LIMITED,
        TYPE_FETCH_FAILED,
        TYPE_PUSH_FAILED,
        TYPE_MEDIA_FAILED,
        TYPE_AUTH_ERROR,
    )

    # Maximum issues to store
    MAX_ISSUES = 500
    MAX_MESSAGE_LENGTH = 500

    def __init__(self, sync_mode: str, store: Optional[StateStore] = None):
        self.sync_mode = sync_mode
        self.store = store or get_state_store()
        self.start_time = datetime.utcnow().isoformat() + 'Z'
        self.end_time: Optional[str] = None
        self.issues: List[Dict] = []
        self.summary = {'total': 0, 'success': 0, 'skipped': 0}
        for issue_type in self.ISSUE_TYPES:
            self.summary[issue_type] = 0

    @classmethod
    def fetch_issue_type(cls, status: Optional[int]) -> str:
        """Issue type for a failed fetch; a 429 that survived retries is rate_limited."""
        if status == 429:
            return cls.TYPE_RATE_LIMITED
        return cls.TYPE_FETCH_FAILED

    def add_issue(
        self,
        issue_type: str,
        release_id: Optional[int] = None,
        message: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Add an issue record.

        Args:
            issue_type: Type of issue (use TYPE_* constants)
            release_id: Related release ID
            message: Error message (truncated to MAX_MESSAGE_LENGTH)
            extra: Additional context data
        """
        issue = {
            'type': issue_type,
            'time': datetime.utcnow().isoformat() + 'Z',
        }
        if release_id is not None:
            issue['release_id'] = release_id
        if message:
            issue['message'] = message[:self.MAX_MESSAGE_LENGTH]
        if extra:
            issue['extra'] = extra

        if len(self.issues) < self.MAX_ISSUES:
            self.issues.append(issue)

        if issue_type in self.summary:
            self.summary[issue_type] += 1

    def record_success(self, count: int = 1) -> None:
        self.summary['success'] += count

    def record_skipped(self, count: int = 1) -> None:
        self.summary['skipped'] += count

    def set_total(self, total: int) -> None:
        self.summary['total'] = total

    def finalize(self) -> Dict:
        """Finalize log collection.

        Returns:
            Dictionary containing sync_mode, times, summary, and issues
        """
        self.end_time = datetime.utcnow().isoformat() + 'Z'
        return {
            'sync_mode': self.sync_mode,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'summary': self.summary.copy(),
            'issues': list(self.issues),
        }

    def save(self) -> Dict:
        """Finalize and persist the log; returns the stored data."""
        data = self.finalize()
        self.store.set(SYNC_LAST_LOG_PREFIX + self.sync_mode, json.dumps(data, ensure_ascii=False))
        logger.info(
            f"[SyncLog] {self.sync_mode}: success={self.summary['success']}, "
            f"issues={len(self.issues)}"
        )
        return data

    def has_problems(self) -> bool:
        return any(self.summary[t] > 0 for t in self.ISSUE_TYPES)


def load_last_log(sync_mode: str, store: Optional[StateStore] = None) -> Optional[Dict]:
    """Read the last stored log for a mode; None if missing or unreadable."""
    store = store or get_state_store()
    raw = store.get(SYNC_LAST_LOG_PREFIX + sync_mode)
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning(f"[SyncLog] Stored log for {sync_mode} is not valid JSON")
        return None
