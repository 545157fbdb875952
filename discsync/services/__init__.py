"""
Service Layer

This module exports the state store, importers and sync services.
"""
from .state_store import StateStore, get_state_store
from .sync import (
    ImageBackfill,
    ImageCache,
    SyncLogCollector,
    build_pipeline,
)
from .collection_importer import CollectionImporter, PageProgress
from .wantlist_importer import WantlistImporter
from .refresh_service import RefreshResult, RefreshService
from .release_enricher import ReleaseEnricher
from .discogs_writer import DiscogsWriter, WriteResult
from .push_queue import PushBatchResult, PushQueue, PushQueueProcessor
from .status import get_sync_status

__all__ = [
    'StateStore',
    'get_state_store',
    'ImageBackfill',
    'ImageCache',
    'SyncLogCollector',
    'build_pipeline',
    'CollectionImporter',
    'PageProgress',
    'WantlistImporter',
    'RefreshResult',
    'RefreshService',
    'ReleaseEnricher',
    'DiscogsWriter',
    'WriteResult',
    'PushBatchResult',
    'PushQueue',
    'PushQueueProcessor',
    'get_sync_status',
]
