"""
API blueprints
"""
from .sync_status import sync_status_bp

__all__ = ['sync_status_bp']
