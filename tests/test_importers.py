"""
Importer Tests

Tests for CollectionImporter and WantlistImporter.
"""
import json

import pytest

from conftest import json_response, make_item, make_page
from discsync.extensions import db
from discsync.models import CollectionItem, Image, Release, WantlistItem
from discsync.services.collection_importer import CollectionImporter, PageProgress, collection_path
from discsync.services.payloads import format_artists
from discsync.services.sync.errors import MalformedResponseError, RemoteApiError, UserNotFoundError
from discsync.services.sync.image_cache import build_local_path
from discsync.services.sync.pipeline import HttpResponse
from discsync.services.wantlist_importer import WantlistImporter, wantlist_path

USER = 'tester'


class TestFormatArtists:
    """Tests for the artist summary."""

    def test_joins_names(self):
        assert format_artists([{'name': 'A'}, {'name': 'B'}]) == 'A, B'

    def test_empty_is_none(self):
        assert format_artists([]) is None
        assert format_artists(None) is None
        assert format_artists([{'role': 'x'}]) is None


class TestCollectionImporter:
    """Tests for CollectionImporter."""

    def test_imports_single_page(self, app, transport, pipeline, img_dir):
        items = [
            make_item(1001, 101, '2024-01-02T10:00:00-08:00', artists=[{'name': 'A'}, {'name': 'B'}]),
            make_item(1002, 102, '2024-01-01T10:00:00-08:00'),
        ]
        transport.add('GET', collection_path(USER), json_response(200, make_page(items)))

        pages = []
        total = CollectionImporter(pipeline, img_dir).import_all(
            USER, per_page=50, on_page=lambda *args: pages.append(args)
        )

        assert total == 2
        assert pages == [(1, 2, 1)]
        assert Release.query.count() == 2
        assert CollectionItem.query.count() == 2
        assert db_release(101).artist == 'A, B'

        item = db.session.get(CollectionItem, 1001)
        assert item.username == USER
        assert item.release_id == 101
        assert item.folder_id == 1
        assert item.added == '2024-01-02T10:00:00-08:00'
        assert json.loads(item.raw_json)['instance_id'] == 1001

        request = transport.calls[0]
        assert request.query == {'per_page': 50, 'page': 1}

    def test_same_page_twice_is_idempotent(self, app, transport, pipeline, img_dir):
        items = [make_item(1001, 101, '2024-01-02T00:00:00Z'), make_item(1002, 102, '2024-01-01T00:00:00Z')]
        page = make_page(items)
        transport.add('GET', collection_path(USER), json_response(200, page), json_response(200, page))

        importer = CollectionImporter(pipeline, img_dir)
        importer.import_all(USER)
        importer.import_all(USER)

        assert Release.query.count() == 2
        assert CollectionItem.query.count() == 2
        assert Image.query.count() == 2

    def test_image_stubs(self, app, transport, pipeline, img_dir):
        cover = 'https://img.example.com/cover/101.jpg'
        items = [make_item(1001, 101, '2024-01-02T00:00:00Z', cover=cover), make_item(1002, 102, 'x', cover='')]
        transport.add('GET', collection_path(USER), json_response(200, make_page(items)))

        CollectionImporter(pipeline, img_dir).import_all(USER)

        images = Image.query.all()
        assert len(images) == 1
        assert images[0].source_url == cover
        assert images[0].local_path == build_local_path(img_dir, 101, cover)
        assert images[0].fetched_at is None

    def test_paginates_until_total_pages(self, app, transport, pipeline, img_dir):
        path = collection_path(USER)
        transport.add(
            'GET', path,
            json_response(200, make_page([make_item(1, 11, 'a')], page=1, pages=2)),
            json_response(200, make_page([make_item(2, 12, 'b')], page=2, pages=2)),
        )

        progress = list(CollectionImporter(pipeline, img_dir).iter_import(USER, per_page=1))

        assert progress == [PageProgress(1, 1, 2), PageProgress(2, 1, 2)]
        assert [c.query['page'] for c in transport.calls] == [1, 2]

    def test_missing_pagination_means_single_page(self, app, transport, pipeline, img_dir):
        transport.add('GET', collection_path(USER), json_response(200, {'releases': [make_item(1, 11, 'a')]}))

        progress = list(CollectionImporter(pipeline, img_dir).iter_import(USER))

        assert progress == [PageProgress(1, 1, None)]

    def test_replace_overwrites_previous_values(self, app, transport, pipeline, img_dir):
        path = collection_path(USER)
        first = make_item(1001, 101, 'a', title='Old', rating=2)
        second = make_item(1001, 101, 'a', title='New', rating=5)
        transport.add('GET', path, json_response(200, make_page([first])), json_response(200, make_page([second])))

        importer = CollectionImporter(pipeline, img_dir)
        importer.import_all(USER)
        importer.import_all(USER)

        assert db_release(101).title == 'New'
        assert db.session.get(CollectionItem, 1001).rating == 5

    def test_unknown_user(self, app, transport, pipeline, img_dir):
        transport.add('GET', collection_path('ghost'), json_response(404, {'message': 'User does not exist or may have been deleted.'}))

        with pytest.raises(UserNotFoundError) as exc:
            CollectionImporter(pipeline, img_dir).import_all('ghost')
        assert 'DISCOGS_USERNAME' in str(exc.value)

    def test_generic_error(self, app, transport, pipeline, img_dir):
        transport.add('GET', collection_path(USER), json_response(500, {'message': 'boom'}))

        with pytest.raises(RemoteApiError) as exc:
            CollectionImporter(pipeline, img_dir).import_all(USER)
        assert exc.value.status == 500
        assert not isinstance(exc.value, UserNotFoundError)

    def test_malformed_json(self, app, transport, pipeline, img_dir):
        transport.add('GET', collection_path(USER), HttpResponse(200, body=b'not json'))

        with pytest.raises(MalformedResponseError):
            CollectionImporter(pipeline, img_dir).import_all(USER)
        assert Release.query.count() == 0

    def test_username_is_url_encoded(self):
        assert collection_path('a b/c') == 'users/a%20b%2Fc/collection/folders/0/releases'


class TestWantlistImporter:
    """Tests for WantlistImporter."""

    def test_imports_wants_and_preserves_release_fields(self, app, transport, pipeline, img_dir):
        # An enriched release must keep its country when the listing omits it
        existing = Release(id=201, title='Kept', country='DE', genres='["Jazz"]')
        db.session.add(existing)
        db.session.commit()

        want = make_item(None, 201, '2024-03-01T00:00:00Z', title='Listing Title')
        want.pop('instance_id')
        want['notes'] = 'wishlist note'
        transport.add('GET', wantlist_path(USER), json_response(200, make_page([want], key='wants')))

        assert WantlistImporter(pipeline, img_dir).import_all(USER) == 1

        release = db_release(201)
        assert release.title == 'Listing Title'
        assert release.country == 'DE'
        assert release.genres == '["Jazz"]'

        row = WantlistItem.query.filter_by(username=USER, release_id=201).one()
        assert row.notes == 'wishlist note'
        assert row.added == '2024-03-01T00:00:00Z'

    def test_reimport_updates_single_row(self, app, transport, pipeline, img_dir):
        first = make_item(None, 201, 'a')
        first['notes'] = 'one'
        second = make_item(None, 201, 'a')
        second['notes'] = 'two'
        transport.add(
            'GET', wantlist_path(USER),
            json_response(200, make_page([first], key='wants')),
            json_response(200, make_page([second], key='wants')),
        )

        importer = WantlistImporter(pipeline, img_dir)
        importer.import_all(USER)
        importer.import_all(USER)

        rows = WantlistItem.query.all()
        assert len(rows) == 1
        assert rows[0].notes == 'two'

    def test_unknown_user(self, app, transport, pipeline, img_dir):
        transport.add('GET', wantlist_path('ghost'), json_response(404, {'message': 'User does not exist or may have been deleted.'}))

        with pytest.raises(UserNotFoundError):
            WantlistImporter(pipeline, img_dir).import_all('ghost')


def db_release(release_id):
    return db.session.get(Release, release_id)
