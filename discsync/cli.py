"""
Flask CLI commands

Usage:
    flask --app manage.py sync-initial
    flask --app manage.py sync-refresh --pages 10 --since 2024-01-01T00:00:00Z
    flask --app manage.py sync-enrich --limit 100
    flask --app manage.py sync-push
    flask --app manage.py images-backfill --limit 200
    flask --app manage.py sync-status
    flask --app manage.py sync-reset
"""
import json

import click
import requests
from flask import current_app

from .extensions import db
from .services.collection_importer import CollectionImporter, PageProgress
from .services.push_queue import PushQueueProcessor
from .services.refresh_service import RefreshService
from .services.release_enricher import ReleaseEnricher
from .services.state_store import get_state_store
from .services.status import get_sync_status
from .services.sync.client import build_pipeline
from .services.sync.errors import SyncDisabledError, SyncError
from .services.sync.health_check import reset_sync
from .services.sync.image_cache import ImageBackfill, ImageCache
from .services.sync.log_collector import SyncLogCollector
from .services.wantlist_importer import WantlistImporter


def _require_credentials() -> str:
    username = current_app.config.get('DISCOGS_USERNAME')
    token = current_app.config.get('DISCOGS_TOKEN')
    if not username or not token:
        raise click.UsageError(
            'Discogs credentials (DISCOGS_USERNAME and DISCOGS_TOKEN) not found in the environment or .env'
        )
    return username


def _echo_page(progress: PageProgress) -> None:
    label = f"{progress.page}/{progress.total_pages}" if progress.total_pages else str(progress.page)
    click.echo(f"  - Page {label}: {progress.count} items")


def _fail(collector: SyncLogCollector, error: Exception) -> None:
    if isinstance(error, SyncDisabledError):
        issue = SyncLogCollector.TYPE_AUTH_ERROR
    else:
        issue = SyncLogCollector.fetch_issue_type(getattr(error, 'status', None))
    collector.add_issue(issue, message=str(error))
    collector.save()
    raise click.ClickException(str(error))


def register_commands(app):
    """Attach the sync commands to app.cli."""

    @app.cli.command('init-db')
    def init_db():
        """Create database tables."""
        db.create_all()
        click.echo(click.style('✓ Database tables created', fg='green'))

    @app.cli.command('sync-initial')
    @click.option('--per-page', default=None, type=int, help='Items per page (default IMPORT_PAGE_SIZE)')
    def sync_initial(per_page):
        """Full import of collection and wantlist."""
        username = _require_credentials()
        cfg = current_app.config
        per_page = per_page or cfg['IMPORT_PAGE_SIZE']
        pipeline = build_pipeline()
        collector = SyncLogCollector('initial')

        try:
            click.echo('Importing collection …')
            total = 0
            for progress in CollectionImporter(pipeline, cfg['IMG_DIR']).iter_import(username, per_page):
                _echo_page(progress)
                total += progress.count

            click.echo('Importing wantlist …')
            wants = 0
            for progress in WantlistImporter(pipeline, cfg['IMG_DIR']).iter_import(username, per_page):
                _echo_page(progress)
                wants += progress.count
        except (SyncError, requests.RequestException) as e:
            _fail(collector, e)

        collector.set_total(total + wants)
        collector.record_success(total + wants)
        collector.save()
        click.echo(click.style(f'✓ Initial sync complete: {total} items, {wants} wants', fg='green'))

    @app.cli.command('sync-refresh')
    @click.option('--pages', default=None, type=int, help='Max pages to scan this run (safety cap)')
    @click.option('--since', default=None, help='Override since ISO-8601 date (e.g. 2024-01-01T00:00:00Z)')
    def sync_refresh(pages, since):
        """Incremental refresh of newly added items."""
        username = _require_credentials()
        cfg = current_app.config
        service = RefreshService(build_pipeline(), img_dir=cfg['IMG_DIR'], page_size=cfg['IMPORT_PAGE_SIZE'])
        collector = SyncLogCollector('refresh')

        try:
            result = service.run(
                username,
                max_pages=max(1, pages or cfg['REFRESH_MAX_PAGES']),
                since=since,
                on_page=_echo_page,
            )
        except (SyncError, requests.RequestException) as e:
            _fail(collector, e)

        collector.record_success(result.touched)
        collector.save()
        click.echo(click.style(
            f'✓ Refresh complete: touched={result.touched}; since={result.cursor or "(none)"}', fg='green'
        ))

    @app.cli.command('sync-enrich')
    @click.option('--limit', default=100, type=int, help='Max releases to enrich')
    def sync_enrich(limit):
        """Fetch release details for releases not yet enriched."""
        _require_credentials()
        enricher = ReleaseEnricher(build_pipeline(), img_dir=current_app.config['IMG_DIR'])
        collector = SyncLogCollector('enrich')

        try:
            count = enricher.enrich_missing(limit)
        except SyncDisabledError as e:
            _fail(collector, e)

        for error in enricher.get_errors():
            collector.add_issue(
                SyncLogCollector.fetch_issue_type(error.get('status')),
                release_id=error['release_id'],
                message=error['message'],
            )
            click.echo(click.style(f"  ✗ {error['release_id']}: {error['message']}", fg='red'))
        collector.record_success(count)
        collector.save()
        click.echo(click.style(f'✓ Enriched {count} releases', fg='green'))

    @app.cli.command('sync-push')
    def sync_push():
        """Push pending local edits to Discogs."""
        _require_credentials()
        cfg = current_app.config
        processor = PushQueueProcessor(
            build_pipeline(),
            batch_size=cfg['PUSH_BATCH_SIZE'],
            max_attempts=cfg['PUSH_MAX_ATTEMPTS'],
            push_notes=cfg['PUSH_NOTES'],
        )
        collector = SyncLogCollector('push')

        try:
            result = processor.run_batch()
        except SyncDisabledError as e:
            _fail(collector, e)

        collector.record_success(result.processed)
        if result.failed:
            collector.add_issue(SyncLogCollector.TYPE_PUSH_FAILED, message=f'{result.failed} jobs failed')
        collector.save()
        click.echo(f'Done. processed={result.processed} failed={result.failed}')

    @app.cli.command('images-backfill')
    @click.option('--limit', default=100, type=int, help='Max images to download')
    def images_backfill(limit):
        """Download missing local image copies within the daily quota."""
        cfg = current_app.config
        cache = ImageCache(daily_cap=cfg['IMAGE_DAILY_CAP'], user_agent=cfg['USER_AGENT'])
        result = ImageBackfill(cache, min_interval=cfg['IMAGE_MIN_INTERVAL']).run(limit)

        collector = SyncLogCollector('images')
        collector.record_success(result.downloaded)
        collector.record_skipped(result.skipped)
        if result.failed:
            collector.add_issue(SyncLogCollector.TYPE_MEDIA_FAILED, message=f'{result.failed} downloads failed')
        collector.save()

        click.echo(
            f'Done. downloaded={result.downloaded} skipped={result.skipped} failed={result.failed}'
        )
        if result.quota_reached:
            click.echo(click.style('Daily image quota reached; try again tomorrow', fg='yellow'))

    @app.cli.command('sync-status')
    def sync_status():
        """Show circuit breaker, cursor, quota and push queue state."""
        click.echo(json.dumps(get_sync_status(), indent=2, ensure_ascii=False))

    @app.cli.command('sync-reset')
    def sync_reset():
        """Re-enable sync after an authorization failure."""
        if reset_sync(get_state_store()):
            click.echo(click.style('✓ Sync re-enabled', fg='green'))
        else:
            click.echo('Sync was not disabled')
