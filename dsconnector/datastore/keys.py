"""Map framework ids onto Datastore keys.

Records are addressed by (kind, numeric id). A record without an id gets an
incomplete key, and Datastore allocates the id when the entity is written.
"""

import re
from typing import Any, Optional

from google.cloud import datastore

from dsconnector.datastore.errors import InvalidIdentifier

_ID_RE = re.compile(r"^\s*\+?[0-9]+\s*$")


def coerce_id(value: Any) -> Optional[int]:
    """Turn a framework id into a numeric key component.

    Args:
      value: An int, a string of digits, or None/"" for "no id".

    Returns:
      A positive int, or None if no id was given.

    Raises:
      InvalidIdentifier: if value is present but is not a positive integer.
    """
    if value is None or value == "":
        return None
    # bool is an int subclass; True is not an id.
    if isinstance(value, bool):
        raise InvalidIdentifier("Bad id %r" % (value,))
    if isinstance(value, int):
        numeric = value
    elif isinstance(value, float) and value.is_integer():
        numeric = int(value)
    elif isinstance(value, str) and _ID_RE.match(value):
        numeric = int(value.strip())
    else:
        raise InvalidIdentifier("Bad id %r" % (value,))
    if numeric <= 0:
        raise InvalidIdentifier("Id must be positive, got %r" % (value,))
    return numeric


def identifier(key: Optional[datastore.Key]) -> Optional[Any]:
    """Returns the id of a key, or None if the key is missing or incomplete."""
    if key is None:
        return None
    return key.id_or_name


class KeyMapper:
    """Builds keys for one client (and optionally one namespace)."""

    def __init__(self, client: datastore.Client, namespace: Optional[str] = None):
        self._client = client
        self.namespace = namespace

    def _key(self, *path) -> datastore.Key:
        if self.namespace:
            return self._client.key(*path, namespace=self.namespace)
        return self._client.key(*path)

    def derive_key(self, model: str, id_value: Any = None) -> datastore.Key:
        """Returns a complete key if id_value is given, else an incomplete one."""
        numeric = coerce_id(id_value)
        if numeric is None:
            return self._key(model)
        return self._key(model, numeric)

    def require_key(self, model: str, id_value: Any) -> datastore.Key:
        """Like derive_key(), but an absent id is an error."""
        numeric = coerce_id(id_value)
        if numeric is None:
            raise InvalidIdentifier("An id is required for %s" % model)
        return self._key(model, numeric)

    def key_for_record(self, model: str, record: dict) -> datastore.Key:
        return self.derive_key(model, record.get("id"))
