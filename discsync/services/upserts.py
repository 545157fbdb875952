"""
Upsert helpers

Three write modes used by the sync services, expressed with the dialect's
INSERT ... ON CONFLICT so they work on SQLite and PostgreSQL alike:

- replace:  the incoming row replaces every non-key column
- ignore:   keep the existing row untouched
- coalesce: a NULL incoming value never overwrites a stored value,
            except for the columns listed in ``overwrite``

Statements are executed on db.session; the caller owns the transaction.
"""
from typing import Dict, Iterable, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite

from ..extensions import db


def dialect_insert():
    if db.engine.dialect.name == 'postgresql':
        return postgresql.insert
    return sqlite.insert


def _key_columns(model, index_elements: Optional[Sequence[str]]):
    if index_elements:
        return list(index_elements)
    return [c.name for c in model.__table__.primary_key.columns]


def _updatable(model, keys: Iterable[str]):
    keys = set(keys)
    return [c for c in model.__table__.columns if c.name not in keys and not c.primary_key]


def upsert_replace(model, row: Dict, index_elements: Optional[Sequence[str]] = None) -> None:
    """INSERT OR REPLACE: columns missing from ``row`` fall back to their defaults."""
    keys = _key_columns(model, index_elements)
    stmt = dialect_insert()(model).values(**row)
    set_ = {c.name: stmt.excluded[c.name] for c in _updatable(model, keys)}
    db.session.execute(stmt.on_conflict_do_update(index_elements=keys, set_=set_))


def insert_ignore(model, row: Dict, index_elements: Optional[Sequence[str]] = None) -> bool:
    """INSERT OR IGNORE.

    Returns:
        True if a row was inserted
    """
    keys = _key_columns(model, index_elements)
    stmt = dialect_insert()(model).values(**row)
    result = db.session.execute(stmt.on_conflict_do_nothing(index_elements=keys))
    return bool(result.rowcount)


def upsert_coalesce(
    model,
    row: Dict,
    index_elements: Optional[Sequence[str]] = None,
    overwrite: Sequence[str] = (),
) -> None:
    """Merge-preserve upsert on the columns present in ``row``."""
    keys = _key_columns(model, index_elements)
    table = model.__table__
    stmt = dialect_insert()(model).values(**row)

    set_ = {}
    for name in row:
        if name in keys or table.columns[name].primary_key:
            continue
        if name in overwrite:
            set_[name] = stmt.excluded[name]
        else:
            set_[name] = func.coalesce(stmt.excluded[name], table.columns[name])

    if not set_:
        db.session.execute(stmt.on_conflict_do_nothing(index_elements=keys))
        return
    db.session.execute(stmt.on_conflict_do_update(index_elements=keys, set_=set_))
