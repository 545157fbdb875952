"""
Discogs payload mapping

Turns collection/wantlist listing items and release detail documents into
row dicts for the releases, collection_items, wantlist_items and images
tables. JSON blobs are kept as serialized text.
"""
import json
from typing import Any, Dict, List, Optional

from .sync.image_cache import build_local_path

# Rich metadata replaced wholesale by the detail endpoint
RICH_FIELDS = (
    'genres', 'styles', 'tracklist', 'videos',
    'extraartists', 'companies', 'identifiers', 'notes',
)


def dump_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False, separators=(',', ':'))


def format_artists(artists: Any) -> Optional[str]:
    """Join artist names with ', '; None if there are none."""
    if not isinstance(artists, list):
        return None
    names = [a.get('name') for a in artists if isinstance(a, dict) and a.get('name')]
    return ', '.join(names) if names else None


def _int_or_none(value) -> Optional[int]:
    if value is None or value == '':
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def release_id_of(item: Dict) -> Optional[int]:
    basic = item.get('basic_information') or {}
    return _int_or_none(item.get('id') or basic.get('id'))


def release_row_from_listing(item: Dict) -> Dict:
    """Release summary from a collection or wantlist listing item."""
    basic = item.get('basic_information') or {}
    return {
        'id': release_id_of(item),
        'title': basic.get('title'),
        'artist': format_artists(basic.get('artists')),
        'year': _int_or_none(basic.get('year')),
        'formats': dump_json(basic.get('formats')),
        'labels': dump_json(basic.get('labels')),
        'country': basic.get('country'),
        'thumb_url': basic.get('thumb') or item.get('thumb'),
        'cover_url': basic.get('cover_image') or item.get('cover_image'),
        'raw_json': dump_json(basic),
    }


def _notes_text(notes: Any) -> Optional[str]:
    # Collection notes arrive as a list of {field_id, value}
    if isinstance(notes, list):
        return dump_json(notes)
    if notes is None:
        return None
    return str(notes)


def collection_row(item: Dict, username: str) -> Dict:
    return {
        'instance_id': _int_or_none(item.get('instance_id')),
        'username': username,
        'folder_id': _int_or_none(item.get('folder_id')) or 0,
        'release_id': release_id_of(item),
        'added': item.get('date_added'),
        'notes': _notes_text(item.get('notes')),
        'rating': _int_or_none(item.get('rating')),
        'raw_json': dump_json(item),
    }


def wantlist_row(item: Dict, username: str) -> Dict:
    return {
        'username': username,
        'release_id': release_id_of(item),
        'added': item.get('date_added'),
        'notes': _notes_text(item.get('notes')),
        'rating': _int_or_none(item.get('rating')),
        'raw_json': dump_json(item),
    }


def cover_image_row(release: Dict, img_dir: str) -> Optional[Dict]:
    url = release.get('cover_url')
    if not url:
        return None
    return image_row(release['id'], url, img_dir)


def image_row(release_id: int, url: str, img_dir: str) -> Dict:
    return {
        'release_id': release_id,
        'source_url': url,
        'local_path': build_local_path(img_dir, release_id, url),
    }


def release_row_from_detail(data: Dict) -> Dict:
    """Columns to merge from a /releases/{id} document.

    Rich fields are only included when the payload carries the key, so an
    omitted field leaves the stored value alone while an empty list still
    overwrites it.
    """
    row = {
        'title': data.get('title'),
        'artist': format_artists(data.get('artists')),
        'year': _int_or_none(data.get('year')),
        'formats': dump_json(data.get('formats')),
        'labels': dump_json(data.get('labels')),
        'country': data.get('country'),
        'master_id': _int_or_none(data.get('master_id')),
        'data_quality': data.get('data_quality'),
        'raw_json': dump_json(data),
    }
    for name in RICH_FIELDS:
        if name not in data:
            continue
        value = data[name]
        if name == 'notes':
            row[name] = None if value is None else str(value)
        else:
            row[name] = dump_json(value)
    return row


def image_urls_from_detail(data: Dict) -> List[str]:
    urls = []
    for img in data.get('images') or []:
        if not isinstance(img, dict):
            continue
        url = img.get('uri') or img.get('resource_url')
        if url and url not in urls:
            urls.append(url)
    return urls
