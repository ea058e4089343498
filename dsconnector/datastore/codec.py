"""
Convert between framework records (plain dicts) and Datastore entities.

The record id is never stored as an entity property; it lives in the key
and is put back onto the record every time an entity is read.
"""

from typing import Iterable, List, Optional, Tuple

from google.cloud import datastore

from dsconnector.datastore.keys import identifier

ID_FIELD = "id"


def attach_id(record: dict, key: datastore.Key) -> dict:
    """Returns a copy of record whose id is the key's id."""
    result = dict(record)
    result[ID_FIELD] = identifier(key)
    return result


def to_native(record: dict, key: datastore.Key,
              exclude_from_indexes: Iterable[str] = ()) -> Tuple[datastore.Entity, dict]:
    """Build the entity to write for a record.

    Args:
      record: The framework record. It is not modified.
      key: The key the entity will be written under.
      exclude_from_indexes: Property names Datastore should not index.

    Returns:
      An (entity, record) pair.  The record is a copy carrying the key's
      id, which is None until Datastore completes an incomplete key.
    """
    entity = datastore.Entity(key=key,
                              exclude_from_indexes=tuple(exclude_from_indexes))
    for name, value in record.items():
        if name != ID_FIELD:
            entity[name] = value
    return entity, attach_id(record, key)


def from_native(entity: Optional[datastore.Entity]) -> Optional[dict]:
    if entity is None:
        return None
    return attach_id(entity, entity.key)


def from_native_list(entities: Iterable[Optional[datastore.Entity]]) -> List[dict]:
    """Convert query or lookup results, keeping the store's order.

    Missing lookups (None) are dropped.
    """
    return [from_native(e) for e in entities if e is not None]


def merge(existing: dict, changes: dict) -> dict:
    """Overlay changes on an existing record.  The id cannot be changed."""
    merged = dict(existing)
    for name, value in changes.items():
        if name != ID_FIELD:
            merged[name] = value
    return merged
