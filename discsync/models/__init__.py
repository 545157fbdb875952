"""
Database models
"""
from .kv import KvEntry
from .release import Release
from .collection import CollectionItem, WantlistItem
from .image import Image
from .push_job import PushJob

__all__ = ['KvEntry', 'Release', 'CollectionItem', 'WantlistItem', 'Image', 'PushJob']
