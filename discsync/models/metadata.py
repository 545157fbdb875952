"""
Typed views over the JSON metadata blobs stored on releases.

Rows keep the Discogs payload as serialized text; these helpers decode it into
small dataclasses so callers never pass raw dicts around.
"""
import json
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, TypeVar

T = TypeVar('T')


@dataclass(frozen=True)
class LabelEntry:
    name: str
    catno: Optional[str] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class FormatEntry:
    name: str
    qty: Optional[str] = None
    descriptions: List[str] = field(default_factory=list)
    text: Optional[str] = None


@dataclass(frozen=True)
class TrackEntry:
    position: str
    title: str
    duration: Optional[str] = None
    type: str = 'track'


@dataclass(frozen=True)
class VideoEntry:
    uri: str
    title: Optional[str] = None
    duration: Optional[int] = None


@dataclass(frozen=True)
class CreditEntry:
    name: str
    role: Optional[str] = None
    tracks: Optional[str] = None


@dataclass(frozen=True)
class CompanyEntry:
    name: str
    entity_type_name: Optional[str] = None
    catno: Optional[str] = None


@dataclass(frozen=True)
class Identifier:
    type: str
    value: str
    description: Optional[str] = None


def _opt_str(value: Any) -> Optional[str]:
    if value is None or value == '':
        return None
    return str(value)


def _opt_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def load_json_list(raw: Optional[str]) -> List[Any]:
    """Decode a stored JSON array; anything else yields an empty list."""
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return []
    return value if isinstance(value, list) else []


def decode_entries(raw: Optional[str], build: Callable[[dict], Optional[T]]) -> List[T]:
    """Decode a stored JSON array of objects, skipping entries that don't fit."""
    entries = []
    for item in load_json_list(raw):
        if not isinstance(item, dict):
            continue
        entry = build(item)
        if entry is not None:
            entries.append(entry)
    return entries


def build_label(item: dict) -> Optional[LabelEntry]:
    if not item.get('name'):
        return None
    return LabelEntry(name=str(item['name']), catno=_opt_str(item.get('catno')), id=_opt_int(item.get('id')))


def build_format(item: dict) -> Optional[FormatEntry]:
    if not item.get('name'):
        return None
    descriptions = [str(d) for d in item.get('descriptions') or [] if d]
    return FormatEntry(
        name=str(item['name']),
        qty=_opt_str(item.get('qty')),
        descriptions=descriptions,
        text=_opt_str(item.get('text')),
    )


def build_track(item: dict) -> Optional[TrackEntry]:
    if not item.get('title'):
        return None
    return TrackEntry(
        position=str(item.get('position') or ''),
        title=str(item['title']),
        duration=_opt_str(item.get('duration')),
        type=str(item.get('type_') or item.get('type') or 'track'),
    )


def build_video(item: dict) -> Optional[VideoEntry]:
    if not item.get('uri'):
        return None
    return VideoEntry(uri=str(item['uri']), title=_opt_str(item.get('title')), duration=_opt_int(item.get('duration')))


def build_credit(item: dict) -> Optional[CreditEntry]:
    if not item.get('name'):
        return None
    return CreditEntry(name=str(item['name']), role=_opt_str(item.get('role')), tracks=_opt_str(item.get('tracks')))


def build_company(item: dict) -> Optional[CompanyEntry]:
    if not item.get('name'):
        return None
    return CompanyEntry(
        name=str(item['name']),
        entity_type_name=_opt_str(item.get('entity_type_name')),
        catno=_opt_str(item.get('catno')),
    )


def build_identifier(item: dict) -> Optional[Identifier]:
    if not item.get('type') or item.get('value') is None:
        return None
    return Identifier(type=str(item['type']), value=str(item['value']), description=_opt_str(item.get('description')))
