"""
A data connector that stores framework models in Google Cloud Datastore.

Each model is a Datastore kind and each record an entity with a numeric id.
Every operation makes one call to Datastore (or one batch of calls for
multi-entity writes and deletes) and returns plain dicts.

Updates read the whole entity, merge the new fields over it and write it
back.  There is no concurrency control: two concurrent updates of the same
record race, and the last write wins.  A batch that fails part way is not
rolled back.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from google.cloud import datastore

from dsconnector.datastore import codec
from dsconnector.datastore import connection
from dsconnector.datastore.base import Connector, operation
from dsconnector.datastore.errors import DuplicateKey, NotFound, store_call
from dsconnector.datastore.filters import compile_query, compile_where
from dsconnector.datastore.keys import KeyMapper, identifier

# Datastore accepts at most this many mutations in one commit.
MAX_BATCH_SIZE = 500


def _chunks(items):
    size = MAX_BATCH_SIZE
    for start in range(0, len(items), size):
        yield items[start:start + size]


class DatastoreConnector(Connector):

    def __init__(self, client: datastore.Client, namespace: Optional[str] = None,
                 exclude_from_indexes: Optional[Dict[str, Iterable[str]]] = None):
        """
        Args:
          client: A datastore.Client.  It is shared by every operation and
            never modified.
          namespace: Optional Datastore namespace for all keys and queries.
          exclude_from_indexes: Optional map of model name to the property
            names Datastore should not index (e.g. long text fields).
        """
        self._client = client
        self.namespace = namespace
        self._keys = KeyMapper(client, namespace)
        self._exclude_from_indexes = dict(exclude_from_indexes or {})

    # Store calls.

    def _get(self, key):
        with store_call("get %s" % (key.flat_path,)):
            return self._client.get(key)

    def _lookup(self, model: str, ids: List[int]) -> List[datastore.Entity]:
        """Fetch entities by id, in the order the ids were given."""
        keys = [self._keys.require_key(model, i) for i in ids]
        if not keys:
            return []
        if len(keys) == 1:
            entity = self._get(keys[0])
            return [] if entity is None else [entity]
        with store_call("get_multi %s" % model):
            found = self._client.get_multi(keys)
        by_id = {identifier(e.key): e for e in found}
        return [by_id[i] for i in ids if i in by_id]

    def _run(self, compiled, keys_only=False) -> List[datastore.Entity]:
        query = compiled.build(self._client, self.namespace,
                               keys_only=keys_only)
        with store_call("query %s" % compiled.kind):
            return list(query.fetch(**compiled.fetch_kwargs()))

    def _put(self, entity):
        with store_call("put %s" % (entity.key.flat_path,)):
            self._client.put(entity)

    def _put_multi(self, entities):
        for chunk in _chunks(entities):
            with store_call("put_multi %d entities" % len(chunk)):
                self._client.put_multi(chunk)

    def _delete_multi(self, keys):
        for chunk in _chunks(keys):
            with store_call("delete_multi %d keys" % len(chunk)):
                self._client.delete_multi(chunk)

    # Helpers shared by several operations.

    def _to_native(self, model, record, key):
        return codec.to_native(record, key,
                               self._exclude_from_indexes.get(model, ()))

    def _insert(self, model, data, key):
        entity, record = self._to_native(model, data, key)
        self._put(entity)
        # put() fills in the id of an incomplete key.
        return codec.attach_id(record, entity.key)

    def _merge_and_put(self, model, key, data):
        existing = self._get(key)
        if existing is None:
            raise NotFound("%s %s not found" % (model, identifier(key)))
        merged = codec.merge(codec.from_native(existing), data)
        entity, record = self._to_native(model, merged, key)
        self._put(entity)
        return record

    def _matching(self, model, compiled, keys_only=False):
        """Returns the entities selected by a compiled where clause."""
        if not compiled.is_lookup:
            return self._run(compiled, keys_only=keys_only)
        entities = self._lookup(model, compiled.lookup_ids)
        if not compiled.predicates:
            return entities
        kept = set(r[codec.ID_FIELD] for r in
                   compiled.refine(codec.from_native_list(entities)))
        return [e for e in entities if identifier(e.key) in kept]

    def _is_single_lookup(self, compiled):
        return compiled.is_lookup and len(compiled.lookup_ids) == 1

    # Operations.

    @operation
    def create(self, model, data, options=None, callback=None):
        logging.debug("create %s", model)
        key = self._keys.key_for_record(model, data)
        if not key.is_partial and self._get(key) is not None:
            raise DuplicateKey("%s %s already exists" % (model, key.id))
        return self._insert(model, data, key)

    @operation
    def find_by_id(self, model, id_value, options=None, callback=None):
        logging.debug("find_by_id %s %s", model, id_value)
        entity = self._get(self._keys.require_key(model, id_value))
        return [] if entity is None else [codec.from_native(entity)]

    @operation
    def all(self, model, query_filter=None, options=None, callback=None):
        logging.debug("all %s %r", model, query_filter)
        compiled = compile_query(model, query_filter, self._keys)
        if compiled.is_lookup:
            entities = self._lookup(model, compiled.lookup_ids)
            return compiled.refine(codec.from_native_list(entities))
        return codec.from_native_list(self._run(compiled))

    find = all

    @operation
    def count(self, model, where=None, options=None, callback=None):
        logging.debug("count %s %r", model, where)
        compiled = compile_where(model, where, self._keys)
        return len(self._matching(model, compiled, keys_only=True))

    @operation
    def exists(self, model, id_value, options=None, callback=None):
        return self._get(self._keys.require_key(model, id_value)) is not None

    @operation
    def update_attributes(self, model, id_value, data, options=None,
                          callback=None):
        logging.debug("update_attributes %s %s", model, id_value)
        key = self._keys.require_key(model, id_value)
        return self._merge_and_put(model, key, data)

    @operation
    def update(self, model, where, data, options=None, callback=None):
        """Merge data into every record matching where.

        Returns:
          The list of updated records.

        Raises:
          NotFound: if where names a single id that does not exist.
        """
        logging.debug("update %s %r", model, where)
        compiled = compile_where(model, where, self._keys)
        matched = self._matching(model, compiled)
        if not matched and self._is_single_lookup(compiled):
            raise NotFound("%s %s not found" % (model, compiled.lookup_ids[0]))
        entities = []
        updated = []
        for existing in matched:
            merged = codec.merge(codec.from_native(existing), data)
            entity, record = self._to_native(model, merged, existing.key)
            entities.append(entity)
            updated.append(record)
        self._put_multi(entities)
        return updated

    update_all = update

    @operation
    def replace_by_id(self, model, id_value, data, options=None,
                      callback=None):
        logging.debug("replace_by_id %s %s", model, id_value)
        key = self._keys.require_key(model, id_value)
        return self._merge_and_put(model, key, data)

    def _put_or_create(self, model, data):
        key = self._keys.key_for_record(model, data)
        if not key.is_partial and self._get(key) is not None:
            return self._merge_and_put(model, key, data)
        return self._insert(model, data, key)

    @operation
    def replace_or_create(self, model, data, options=None, callback=None):
        logging.debug("replace_or_create %s", model)
        return self._put_or_create(model, data)

    @operation
    def update_or_create(self, model, data, options=None, callback=None):
        logging.debug("update_or_create %s", model)
        return self._put_or_create(model, data)

    upsert = update_or_create

    @operation
    def save(self, model, data, options=None, callback=None):
        logging.debug("save %s", model)
        return self._put_or_create(model, data)

    def _destroy_key(self, model, key):
        if self._get(key) is None:
            raise NotFound("%s %s not found" % (model, identifier(key)))
        with store_call("delete %s" % (key.flat_path,)):
            self._client.delete(key)
        return {"count": 1}

    @operation
    def destroy(self, model, id_value, options=None, callback=None):
        logging.debug("destroy %s %s", model, id_value)
        return self._destroy_key(model, self._keys.require_key(model, id_value))

    destroy_by_id = destroy

    @operation
    def destroy_all(self, model, where=None, options=None, callback=None):
        """Delete every record matching where (all records if where is empty).

        Returns:
          {"count": number of deleted records}
        """
        logging.debug("destroy_all %s %r", model, where)
        compiled = compile_where(model, where, self._keys)
        if self._is_single_lookup(compiled) and not compiled.predicates:
            key = self._keys.require_key(model, compiled.lookup_ids[0])
            return self._destroy_key(model, key)
        keys = [e.key for e in self._matching(model, compiled, keys_only=True)]
        self._delete_multi(keys)
        logging.info("Deleted %d %s entities", len(keys), model)
        return {"count": len(keys)}


@operation
def initialize(settings: Optional[Dict[str, Any]] = None, callback=None):
    """Build a connector from data source settings.

    Args:
      settings: Keyword arguments for connection.connect() (key_filename,
        project_id, namespace, impersonate_service_account), plus an
        optional exclude_from_indexes map.
      callback: Optional callback(error, connector).

    Returns:
      A DatastoreConnector.
    """
    settings = dict(settings or {})
    exclude_from_indexes = settings.pop("exclude_from_indexes", None)
    client = connection.connect(**settings)
    return DatastoreConnector(client, namespace=settings.get("namespace"),
                              exclude_from_indexes=exclude_from_indexes)
