"""
Pytest Configuration and Fixtures

This module provides shared fixtures for all tests.
"""
import json
from collections import defaultdict, deque

import pytest

from discsync import create_app
from discsync.config import TestingConfig
from discsync.extensions import db
from discsync.services.state_store import StateStore
from discsync.services.sync.pipeline import HttpResponse, RequestPipeline


def json_response(status=200, payload=None, headers=None):
    body = b'' if payload is None else json.dumps(payload).encode('utf-8')
    return HttpResponse(status_code=status, headers=headers or {}, body=body)


class FakeTransport:
    """Scripted transport: responses are queued per (method, path) and consumed in order.

    Every request is recorded in ``calls``. Queued exceptions are raised.
    """

    def __init__(self):
        self._routes = defaultdict(deque)
        self.calls = []

    def add(self, method, path, *responses):
        self._routes[(method.upper(), path)].extend(responses)
        return self

    def __call__(self, request):
        self.calls.append(request)
        queue = self._routes.get((request.method, request.path))
        if not queue:
            raise AssertionError(f'Unexpected request: {request.method} {request.path}')
        response = queue.popleft()
        if isinstance(response, Exception):
            raise response
        return response

    def calls_to(self, method, path):
        return [c for c in self.calls if c.method == method.upper() and c.path == path]


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application for testing with a fresh in-memory database."""

    class Config(TestingConfig):
        IMG_DIR = str(tmp_path / 'images')

    app = create_app(Config)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def store(app):
    return StateStore()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def pipeline(app, transport):
    """Pipeline without interceptors so services talk straight to the fake transport."""
    return RequestPipeline(transport, [])


@pytest.fixture
def img_dir(app):
    return app.config['IMG_DIR']


def make_item(instance_id, release_id, added, title=None, artists=None, cover=None, rating=0, folder_id=1):
    """One entry of a collection listing page."""
    return {
        'id': release_id,
        'instance_id': instance_id,
        'folder_id': folder_id,
        'rating': rating,
        'date_added': added,
        'basic_information': {
            'id': release_id,
            'title': title or f'Release {release_id}',
            'year': 1999,
            'artists': artists if artists is not None else [{'name': f'Artist {release_id}'}],
            'formats': [{'name': 'Vinyl', 'qty': '1', 'descriptions': ['LP']}],
            'labels': [{'name': 'Label', 'catno': f'CAT-{release_id}'}],
            'thumb': f'https://img.example.com/thumb/{release_id}.jpg',
            'cover_image': cover if cover is not None else f'https://img.example.com/cover/{release_id}.jpg',
        },
    }


def make_page(items, page=1, pages=1, key='releases'):
    return {
        'pagination': {'page': page, 'pages': pages, 'per_page': 100, 'items': len(items)},
        key: items,
    }


@pytest.fixture
def sample_release_detail():
    """Release detail document as returned by /releases/{id}."""
    return {
        'id': 101,
        'title': 'Detailed Title',
        'year': 2001,
        'country': 'UK',
        'artists': [{'name': 'A'}, {'name': 'B'}],
        'genres': ['Electronic'],
        'styles': ['Techno'],
        'tracklist': [{'position': 'A1', 'title': 'Intro', 'duration': '3:01', 'type_': 'track'}],
        'videos': [{'uri': 'https://video.example.com/1', 'title': 'Intro', 'duration': 181}],
        'extraartists': [{'name': 'Producer X', 'role': 'Producer'}],
        'companies': [{'name': 'Pressing Plant', 'entity_type_name': 'Pressed By'}],
        'identifiers': [{'type': 'Barcode', 'value': '0123456789'}],
        'notes': 'Limited edition.',
        'master_id': 555,
        'data_quality': 'Correct',
        'images': [
            {'uri': 'https://img.example.com/detail/101-1.jpg'},
            {'resource_url': 'https://img.example.com/detail/101-2.jpg'},
        ],
    }
