#!/usr/bin/env python
"""
Management entry point

Usage:
    flask --app manage.py init-db
    flask --app manage.py sync-initial
    flask --app manage.py sync-refresh --pages 10
    flask --app manage.py sync-enrich --limit 100
    flask --app manage.py sync-push
    flask --app manage.py images-backfill --limit 200
    flask --app manage.py sync-status
    flask --app manage.py sync-reset
"""
from discsync import create_app

app = create_app()


if __name__ == '__main__':
    app.cli.main()
