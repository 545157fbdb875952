"""
Image model
"""
from ..extensions import db


class Image(db.Model):
    """A remote image and where its local copy lives."""
    __tablename__ = 'images'

    __table_args__ = (
        db.UniqueConstraint('release_id', 'source_url', name='uq_images_release_source'),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    release_id = db.Column(db.Integer, nullable=False, index=True)
    source_url = db.Column(db.String(1024), nullable=False)
    # Deterministic: <img_dir>/<release_id>/<sha1(source_url)>.jpg
    local_path = db.Column(db.String(1024), nullable=False)
    etag = db.Column(db.String(256))
    last_modified = db.Column(db.String(64))
    bytes = db.Column(db.Integer)
    fetched_at = db.Column(db.DateTime)

    def to_dict(self):
        return {
            'id': self.id,
            'release_id': self.release_id,
            'source_url': self.source_url,
            'local_path': self.local_path,
            'bytes': self.bytes,
            'fetched_at': self.fetched_at.isoformat() + 'Z' if self.fetched_at else None,
        }

    def __repr__(self):
        return f'<Image {self.release_id} {self.source_url}>'
