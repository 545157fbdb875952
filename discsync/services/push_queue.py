"""
Push Queue - durable outbound mutations reconciled with Discogs

PushQueue is what local editors call: a save coalesces into the pending job
for the same instance and action instead of adding a duplicate. The
PushQueueProcessor drains pending jobs in creation order through the
DiscogsWriter; failures count as attempts and a job is marked failed once it
reaches the attempt limit.
"""
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Dict, List, Optional
from urllib.parse import quote

import requests
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import CollectionItem, PushJob, WantlistItem
from ..utils.logger import get_logger
from .discogs_writer import DiscogsWriter, WriteResult
from .remote import get_json
from .sync.errors import RemoteApiError, SyncDisabledError, SyncError
from .sync.pipeline import RequestPipeline
from .upserts import insert_ignore

logger = get_logger('push_queue')

# Discogs built-in collection fields
FIELD_MEDIA_CONDITION = 1
FIELD_SLEEVE_CONDITION = 2
FIELD_NOTES = 3

WANT_ACTIONS = (
    PushJob.ACTION_ADD_WANT,
    PushJob.ACTION_REMOVE_WANT,
    PushJob.ACTION_ADD_COLLECTION,
    PushJob.ACTION_WANT_TO_COLLECTION,
)


class PushQueue:
    """Enqueue API for local edits.

    Example:
        >>> queue = PushQueue()
        >>> queue.enqueue_collection_update(1234, 249504, 'someone', rating=4)
        >>> queue.enqueue_wantlist_action(249504, 'someone', PushJob.ACTION_ADD_WANT)
    """

    def find_pending(
        self,
        action: str,
        instance_id: Optional[int] = None,
        username: Optional[str] = None,
        release_id: Optional[int] = None,
    ) -> Optional[PushJob]:
        query = PushJob.query.filter_by(status=PushJob.STATUS_PENDING, action=action)
        if instance_id is not None:
            query = query.filter_by(instance_id=instance_id)
        else:
            query = query.filter(PushJob.instance_id.is_(None)).filter_by(
                username=username, release_id=release_id
            )
        return query.order_by(PushJob.id.asc()).first()

    def enqueue_collection_update(
        self,
        instance_id: int,
        release_id: int,
        username: str,
        rating: Optional[int] = None,
        notes: Optional[str] = None,
        media_condition: Optional[str] = None,
        sleeve_condition: Optional[str] = None,
    ) -> PushJob:
        """Queue an instance update, replacing the values of a pending one."""
        values = {
            'release_id': release_id,
            'username': username,
            'rating': rating,
            'notes': notes,
            'media_condition': media_condition,
            'sleeve_condition': sleeve_condition,
        }
        try:
            job = self._upsert_pending(PushJob.ACTION_UPDATE_COLLECTION, values, instance_id=instance_id)
            db.session.commit()
        except IntegrityError:
            # Another writer inserted the pending job first
            db.session.rollback()
            job = self._upsert_pending(PushJob.ACTION_UPDATE_COLLECTION, values, instance_id=instance_id)
            db.session.commit()
        logger.debug(f"[PushQueue] Queued update for instance {instance_id} (job {job.id})")
        return job

    def enqueue_wantlist_action(self, release_id: int, username: str, action: str) -> PushJob:
        """Queue a wantlist/collection-add action and mirror it locally.

        add_want inserts the local wantlist row; remove_want and
        want_to_collection delete it. Both happen in the same transaction as
        the queue write.
        """
        if action not in WANT_ACTIONS:
            raise ValueError(f"Unsupported wantlist action: {action}")

        values = {'release_id': release_id, 'username': username}
        try:
            job = self._upsert_pending(action, values, username=username, release_id=release_id)

            if action == PushJob.ACTION_ADD_WANT:
                insert_ignore(
                    WantlistItem,
                    {
                        'username': username,
                        'release_id': release_id,
                        'added': datetime.utcnow().isoformat() + 'Z',
                    },
                    index_elements=['username', 'release_id'],
                )
            elif action in (PushJob.ACTION_REMOVE_WANT, PushJob.ACTION_WANT_TO_COLLECTION):
                WantlistItem.query.filter_by(username=username, release_id=release_id).delete()

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        logger.debug(f"[PushQueue] Queued {action} for release {release_id} (job {job.id})")
        return job

    def _upsert_pending(self, action: str, values: Dict, instance_id: Optional[int] = None,
                        username: Optional[str] = None, release_id: Optional[int] = None) -> PushJob:
        job = self.find_pending(action, instance_id=instance_id, username=username, release_id=release_id)
        if job is None:
            job = PushJob(instance_id=instance_id, action=action, status=PushJob.STATUS_PENDING)
            db.session.add(job)
        for name, value in values.items():
            setattr(job, name, value)
        job.attempts = 0
        job.last_error = None
        job.created_at = datetime.utcnow()
        db.session.flush()
        return job

    def retry_job(self, job_id: int) -> Optional[PushJob]:
        """Put a failed job back in the queue; None if it is missing or not failed."""
        job = db.session.get(PushJob, job_id)
        if job is None or job.status != PushJob.STATUS_FAILED:
            return None
        job.status = PushJob.STATUS_PENDING
        job.attempts = 0
        job.last_error = None
        try:
            db.session.commit()
        except IntegrityError:
            # A newer pending job already exists for this instance and action
            db.session.rollback()
            return None
        logger.info(f"[PushQueue] Job {job_id} re-queued")
        return job

    @staticmethod
    def counts() -> Dict[str, int]:
        rows = db.session.execute(
            db.select(PushJob.status, db.func.count(PushJob.id)).group_by(PushJob.status)
        ).all()
        result = {PushJob.STATUS_PENDING: 0, PushJob.STATUS_DONE: 0, PushJob.STATUS_FAILED: 0}
        result.update({status: count for status, count in rows})
        return result


@dataclass
class PushBatchResult:
    processed: int = 0
    failed: int = 0

    def to_dict(self):
        return asdict(self)


def format_error(result: WriteResult) -> str:
    body = (result.body or '').strip()
    if len(body) > RemoteApiError.MAX_BODY_LENGTH:
        body = body[:RemoteApiError.MAX_BODY_LENGTH] + '…'
    return f"HTTP {result.code} {body}"


class PushQueueProcessor:
    """Drains pending push jobs.

    Example:
        >>> processor = PushQueueProcessor(build_pipeline(), push_notes=False)
        >>> result = processor.run_batch()
        >>> result.processed, result.failed
    """

    BATCH_SIZE = 50
    MAX_ATTEMPTS = 5

    def __init__(
        self,
        pipeline: RequestPipeline,
        writer: Optional[DiscogsWriter] = None,
        batch_size: int = BATCH_SIZE,
        max_attempts: int = MAX_ATTEMPTS,
        push_notes: bool = False,
    ):
        self.pipeline = pipeline
        self.writer = writer or DiscogsWriter(pipeline)
        self.batch_size = batch_size
        self.max_attempts = max_attempts
        self.push_notes = push_notes
        self._notes_fields: Dict[str, int] = {}

    def pending_jobs(self) -> List[PushJob]:
        return (
            PushJob.query
            .filter_by(status=PushJob.STATUS_PENDING)
            .order_by(PushJob.created_at.asc(), PushJob.id.asc())
            .limit(self.batch_size)
            .all()
        )

    def run_batch(self) -> PushBatchResult:
        """Process one batch of pending jobs.

        Raises:
            SyncDisabledError: The circuit breaker is open; remaining jobs are left untouched
        """
        result = PushBatchResult()
        jobs = self.pending_jobs()
        if not jobs:
            logger.info("[PushQueue] No pending jobs")
            return result

        for job in jobs:
            try:
                outcome = self.dispatch(job)
            except SyncDisabledError:
                logger.error(f"[PushQueue] Sync disabled, stopping batch at job {job.id}")
                raise
            except SyncError as e:
                outcome = WriteResult(ok=False, code=getattr(e, 'status', 0), body=str(e))

            if outcome.ok:
                self.mark_done(job)
                result.processed += 1
                logger.debug(f"[PushQueue] OK job {job.id} {job.action} release={job.release_id}")
            else:
                self.mark_failed(job, format_error(outcome))
                result.failed += 1
                logger.warning(
                    f"[PushQueue] FAIL job {job.id} {job.action} release={job.release_id} "
                    f"code={outcome.code} attempts={job.attempts}"
                )

        logger.info(f"[PushQueue] Done. processed={result.processed} failed={result.failed}")
        return result

    def dispatch(self, job: PushJob) -> WriteResult:
        if job.action == PushJob.ACTION_UPDATE_COLLECTION:
            return self.writer.update_instance(
                job.username, job.release_id, job.instance_id,
                self.folder_for(job.instance_id),
                job.rating,
                self.field_map(job),
            )
        if job.action == PushJob.ACTION_ADD_WANT:
            return self.writer.add_to_wantlist(job.username, job.release_id)
        if job.action == PushJob.ACTION_REMOVE_WANT:
            return self.writer.remove_from_wantlist(job.username, job.release_id)
        if job.action == PushJob.ACTION_ADD_COLLECTION:
            return self.writer.add_to_collection(job.username, job.release_id)
        if job.action == PushJob.ACTION_WANT_TO_COLLECTION:
            # Not atomic: a failed removal leaves the release in both places
            added = self.writer.add_to_collection(job.username, job.release_id)
            if not added.ok:
                return added
            return self.writer.remove_from_wantlist(job.username, job.release_id)
        return WriteResult(ok=False, code=0, body=f"Unknown action: {job.action}")

    @staticmethod
    def folder_for(instance_id: Optional[int]) -> int:
        folder_id = None
        if instance_id is not None:
            folder_id = db.session.execute(
                db.select(CollectionItem.folder_id).where(CollectionItem.instance_id == instance_id)
            ).scalar_one_or_none()
        if not folder_id or folder_id <= 0:
            return DiscogsWriter.DEFAULT_COLLECTION_FOLDER
        return folder_id

    def field_map(self, job: PushJob) -> Dict[int, Optional[str]]:
        fields = {
            FIELD_MEDIA_CONDITION: job.media_condition,
            FIELD_SLEEVE_CONDITION: job.sleeve_condition,
        }
        if self.push_notes and job.notes is not None:
            fields[self.notes_field_id(job.username)] = job.notes
        return fields

    def notes_field_id(self, username: str) -> int:
        """Id of the collection field named 'Notes', looked up once per user."""
        if username in self._notes_fields:
            return self._notes_fields[username]

        field_id = FIELD_NOTES
        path = f"users/{quote(username, safe='')}/collection/fields"
        try:
            document = get_json(self.pipeline, path)
        except SyncDisabledError:
            raise
        except (SyncError, requests.RequestException) as e:
            logger.warning(f"[PushQueue] Could not read collection fields, using {FIELD_NOTES}: {e}")
            document = None

        fields = document.get('fields') if isinstance(document, dict) else document
        for field in fields or []:
            if isinstance(field, dict) and str(field.get('name', '')).lower() == 'notes' and field.get('id'):
                field_id = int(field['id'])
                break

        self._notes_fields[username] = field_id
        return field_id

    def mark_done(self, job: PushJob) -> None:
        job.status = PushJob.STATUS_DONE
        job.attempts = (job.attempts or 0) + 1
        job.last_error = None
        db.session.commit()

    def mark_failed(self, job: PushJob, error: str) -> None:
        job.attempts = (job.attempts or 0) + 1
        job.last_error = error
        if job.attempts >= self.max_attempts:
            job.status = PushJob.STATUS_FAILED
        db.session.commit()
