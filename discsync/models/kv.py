"""
Key/value state table
"""
from ..extensions import db


class KvEntry(db.Model):
    """One State Store entry (rate limiter counters, quotas, cursors, flags)."""
    __tablename__ = 'kv_store'

    k = db.Column(db.String(191), primary_key=True)
    v = db.Column(db.Text)

    def __repr__(self):
        return f'<KvEntry {self.k}={self.v}>'
