"""
Release model
"""
import json
from datetime import datetime
from ..extensions import db
from . import metadata


class Release(db.Model):
    """Catalog release (shared by collection and wantlist items)."""
    __tablename__ = 'releases'

    __table_args__ = (
        db.Index('ix_releases_enriched_imported', 'enriched_at', 'imported_at'),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=False)

    # Summary fields (from collection/wantlist listings)
    title = db.Column(db.String(512))
    artist = db.Column(db.String(512), index=True)
    year = db.Column(db.Integer)
    country = db.Column(db.String(128))
    formats = db.Column(db.Text)  # JSON
    labels = db.Column(db.Text)  # JSON
    thumb_url = db.Column(db.String(1024))
    cover_url = db.Column(db.String(1024))

    # Rich metadata (from the release detail endpoint), each JSON or NULL
    genres = db.Column(db.Text)
    styles = db.Column(db.Text)
    tracklist = db.Column(db.Text)
    videos = db.Column(db.Text)
    extraartists = db.Column(db.Text)
    companies = db.Column(db.Text)
    identifiers = db.Column(db.Text)
    notes = db.Column(db.Text)
    master_id = db.Column(db.Integer)
    data_quality = db.Column(db.String(64))

    imported_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)
    # NULL until the detail endpoint has been merged in
    enriched_at = db.Column(db.DateTime)
    raw_json = db.Column(db.Text)

    @property
    def is_enriched(self) -> bool:
        return self.enriched_at is not None

    def get_genres(self):
        return [str(g) for g in metadata.load_json_list(self.genres) if g]

    def get_styles(self):
        return [str(s) for s in metadata.load_json_list(self.styles) if s]

    def get_labels(self):
        return metadata.decode_entries(self.labels, metadata.build_label)

    def get_formats(self):
        return metadata.decode_entries(self.formats, metadata.build_format)

    def get_tracklist(self):
        return metadata.decode_entries(self.tracklist, metadata.build_track)

    def get_videos(self):
        return metadata.decode_entries(self.videos, metadata.build_video)

    def get_credits(self):
        return metadata.decode_entries(self.extraartists, metadata.build_credit)

    def get_companies(self):
        return metadata.decode_entries(self.companies, metadata.build_company)

    def get_identifiers(self):
        return metadata.decode_entries(self.identifiers, metadata.build_identifier)

    def get_raw(self) -> dict:
        if not self.raw_json:
            return {}
        try:
            raw = json.loads(self.raw_json)
        except (json.JSONDecodeError, TypeError):
            return {}
        return raw if isinstance(raw, dict) else {}

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'artist': self.artist,
            'year': self.year,
            'country': self.country,
            'thumb_url': self.thumb_url,
            'cover_url': self.cover_url,
            'genres': self.get_genres(),
            'styles': self.get_styles(),
            'track_count': len(self.get_tracklist()),
            'master_id': self.master_id,
            'imported_at': self.imported_at.isoformat() + 'Z' if self.imported_at else None,
            'enriched_at': self.enriched_at.isoformat() + 'Z' if self.enriched_at else None,
        }

    def __repr__(self):
        return f'<Release {self.id} {self.title}>'
