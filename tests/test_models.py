"""
Model Tests

Tests for database models: Release metadata accessors, PushJob, WantlistItem
"""
import pytest

from discsync.extensions import db
from discsync.models import PushJob, Release, WantlistItem
from discsync.models.metadata import FormatEntry, LabelEntry, TrackEntry


class TestReleaseModel:
    """Tests for Release model."""

    def test_metadata_accessors(self, app):
        """Test JSON blobs decode into typed entries."""
        release = Release(
            id=1,
            labels='[{"name": "Warp", "catno": "WARP 1", "id": 23}]',
            formats='[{"name": "Vinyl", "qty": "2", "descriptions": ["LP", "Album"]}]',
            tracklist='[{"position": "A1", "title": "One", "type_": "track"}, {"position": "", "title": ""}]',
            genres='["Electronic", null, "Ambient"]',
        )

        assert release.get_labels() == [LabelEntry(name='Warp', catno='WARP 1', id=23)]
        assert release.get_formats() == [FormatEntry(name='Vinyl', qty='2', descriptions=['LP', 'Album'])]
        assert release.get_tracklist() == [TrackEntry(position='A1', title='One')]
        assert release.get_genres() == ['Electronic', 'Ambient']

    @pytest.mark.parametrize('raw', [None, '', 'not json', '{"a": 1}', '42'])
    def test_malformed_blobs_yield_empty(self, app, raw):
        """Test unreadable blobs never raise."""
        release = Release(id=1, genres=raw, labels=raw, videos=raw, identifiers=raw, raw_json=raw)

        assert release.get_genres() == []
        assert release.get_labels() == []
        assert release.get_videos() == []
        assert release.get_identifiers() == []
        if raw != '{"a": 1}':
            assert release.get_raw() == {}

    def test_release_to_dict(self, app):
        """Test release serialization."""
        release = Release(id=7, title='T', artist='A', styles='["Dub"]', tracklist='[{"title": "x"}]')
        db.session.add(release)
        db.session.commit()

        data = release.to_dict()

        assert data['id'] == 7
        assert data['styles'] == ['Dub']
        assert data['track_count'] == 1
        assert data['imported_at'].endswith('Z')
        assert data['enriched_at'] is None
        assert not release.is_enriched


class TestPushJobModel:
    """Tests for PushJob model."""

    def test_defaults(self, app):
        """Test a new job starts pending with no attempts."""
        job = PushJob(instance_id=1, release_id=2, username='tester')
        db.session.add(job)
        db.session.commit()

        assert job.status == PushJob.STATUS_PENDING
        assert job.attempts == 0
        assert job.action == PushJob.ACTION_UPDATE_COLLECTION
        assert job.to_dict()['created_at'].endswith('Z')

    def test_one_pending_job_per_instance_and_action(self, app):
        """Test the partial unique index."""
        db.session.add(PushJob(instance_id=1, release_id=2, username='tester'))
        db.session.commit()
        db.session.add(PushJob(instance_id=1, release_id=2, username='tester'))

        with pytest.raises(Exception):
            db.session.commit()
        db.session.rollback()

    def test_finished_jobs_do_not_conflict(self, app):
        """Test done and failed jobs sit beside a pending one."""
        db.session.add(PushJob(instance_id=1, release_id=2, username='tester', status=PushJob.STATUS_DONE))
        db.session.add(PushJob(instance_id=1, release_id=2, username='tester', status=PushJob.STATUS_FAILED))
        db.session.add(PushJob(instance_id=1, release_id=2, username='tester'))
        db.session.commit()

        assert PushJob.query.count() == 3


class TestWantlistItemModel:
    """Tests for WantlistItem model."""

    def test_unique_user_release(self, app):
        """Test a release is on a user's wantlist once."""
        db.session.add(WantlistItem(username='tester', release_id=5))
        db.session.commit()
        db.session.add(WantlistItem(username='tester', release_id=5))

        with pytest.raises(Exception):
            db.session.commit()
        db.session.rollback()
