"""
Push queue model
"""
from datetime import datetime
from ..extensions import db


class PushJob(db.Model):
    """An outbound mutation waiting to be applied on Discogs."""
    __tablename__ = 'push_queue'

    STATUS_PENDING = 'pending'
    STATUS_DONE = 'done'
    STATUS_FAILED = 'failed'

    ACTION_UPDATE_COLLECTION = 'update_collection'
    ACTION_ADD_WANT = 'add_want'
    ACTION_REMOVE_WANT = 'remove_want'
    ACTION_ADD_COLLECTION = 'add_collection'
    ACTION_WANT_TO_COLLECTION = 'want_to_collection'

    ACTIONS = (
        ACTION_UPDATE_COLLECTION,
        ACTION_ADD_WANT,
        ACTION_REMOVE_WANT,
        ACTION_ADD_COLLECTION,
        ACTION_WANT_TO_COLLECTION,
    )

    __table_args__ = (
        db.Index('ix_push_queue_status_created', 'status', 'created_at'),
        # At most one pending job per instance and action
        db.Index(
            'uq_push_queue_pending_instance_action', 'instance_id', 'action',
            unique=True,
            sqlite_where=db.text("status = 'pending'"),
            postgresql_where=db.text("status = 'pending'"),
        ),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    # NULL for wantlist/collection-add actions that have no instance yet
    instance_id = db.Column(db.Integer)
    release_id = db.Column(db.Integer, nullable=False)
    username = db.Column(db.String(128), nullable=False)
    action = db.Column(db.String(32), nullable=False, default=ACTION_UPDATE_COLLECTION)

    rating = db.Column(db.Integer)
    notes = db.Column(db.Text)
    media_condition = db.Column(db.String(64))
    sleeve_condition = db.Column(db.String(64))

    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING)
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'instance_id': self.instance_id,
            'release_id': self.release_id,
            'username': self.username,
            'action': self.action,
            'rating': self.rating,
            'notes': self.notes,
            'media_condition': self.media_condition,
            'sleeve_condition': self.sleeve_condition,
            'status': self.status,
            'attempts': self.attempts,
            'last_error': self.last_error,
            'created_at': self.created_at.isoformat() + 'Z' if self.created_at else None,
        }

    def __repr__(self):
        return f'<PushJob {self.id} {self.action} {self.status}>'
