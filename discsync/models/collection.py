"""
Collection and wantlist models
"""
from ..extensions import db


class CollectionItem(db.Model):
    """One physical copy the user owns (a Discogs collection instance)."""
    __tablename__ = 'collection_items'

    __table_args__ = (
        db.Index('ix_collection_items_user_added', 'username', 'added'),
    )

    instance_id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    username = db.Column(db.String(128), nullable=False)
    folder_id = db.Column(db.Integer, nullable=False, default=0)
    release_id = db.Column(db.Integer, db.ForeignKey('releases.id'), nullable=False, index=True)
    # Remote "date_added" exactly as Discogs reports it (ISO-8601 text)
    added = db.Column(db.String(64))
    notes = db.Column(db.Text)
    rating = db.Column(db.Integer)
    raw_json = db.Column(db.Text)

    release = db.relationship('Release', lazy='joined')

    def to_dict(self):
        return {
            'instance_id': self.instance_id,
            'username': self.username,
            'folder_id': self.folder_id,
            'release_id': self.release_id,
            'added': self.added,
            'notes': self.notes,
            'rating': self.rating,
        }

    def __repr__(self):
        return f'<CollectionItem {self.instance_id} release={self.release_id}>'


class WantlistItem(db.Model):
    """A release on the user's wantlist."""
    __tablename__ = 'wantlist_items'

    __table_args__ = (
        db.UniqueConstraint('username', 'release_id', name='uq_wantlist_user_release'),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    username = db.Column(db.String(128), nullable=False)
    release_id = db.Column(db.Integer, db.ForeignKey('releases.id'), nullable=False, index=True)
    added = db.Column(db.String(64))
    notes = db.Column(db.Text)
    rating = db.Column(db.Integer)
    raw_json = db.Column(db.Text)

    def to_dict(self):
        return {
            'username': self.username,
            'release_id': self.release_id,
            'added': self.added,
            'notes': self.notes,
            'rating': self.rating,
        }

    def __repr__(self):
        return f'<WantlistItem {self.username} release={self.release_id}>'
