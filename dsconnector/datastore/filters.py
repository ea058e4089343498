"""
Compile framework filters into Datastore queries.

A framework filter looks like:

  {"where": {"name": "Orion", "age": {"lt": 28}},
   "order": "age DESC",
   "limit": 10,
   "skip": 20,
   "fields": {"name": True, "age": True}}

Each where entry is parsed once into Equals(value) or Compare(operator,
value) conditions, and each condition becomes a Predicate on the query.
An id in the where clause turns the query into a key lookup instead of a
scan; the other predicates are then checked against the fetched records.
"""

import operator
from collections import namedtuple
from typing import Any, Iterable, List, Optional

from google.cloud import datastore
from google.cloud.datastore.query import PropertyFilter

from dsconnector.datastore.codec import ID_FIELD
from dsconnector.datastore.errors import InvalidIdentifier, UnsupportedOperator
from dsconnector.datastore.keys import KeyMapper, coerce_id, identifier

KEY_FIELD = "__key__"

# Framework operator token -> Datastore operator.
OPERATORS = {
    "lt": "<",
    "lte": "<=",
    "gt": ">",
    "gte": ">=",
    "ne": "!=",
    "neq": "!=",
    "in": "IN",
    "inq": "IN",
    "nin": "NOT_IN",
}

_LIST_OPERATORS = ("IN", "NOT_IN")

_COMPARATORS = {
    "=": operator.eq,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "!=": operator.ne,
    "IN": lambda actual, expected: actual in expected,
    "NOT_IN": lambda actual, expected: actual not in expected,
}

Equals = namedtuple("Equals", "value")
Compare = namedtuple("Compare", "operator value")


class Predicate(namedtuple("Predicate", "field operator value")):
    """One "field operator value" restriction."""

    __slots__ = ()

    def matches(self, record: dict) -> bool:
        """Check a record the way Datastore would.

        A missing property never matches, and a list property matches if
        any of its elements does.
        """
        if self.field == KEY_FIELD:
            actual = record.get(ID_FIELD)
            expected = _key_ids(self.value)
        elif self.field in record:
            actual = record[self.field]
            expected = self.value
        else:
            return False
        candidates = actual if isinstance(actual, list) else [actual]
        compare = _COMPARATORS[self.operator]
        for candidate in candidates:
            try:
                if compare(candidate, expected):
                    return True
            except TypeError:
                # Values of different types never compare equal in Datastore.
                continue
        return False


def _key_ids(value):
    if isinstance(value, datastore.Key):
        return identifier(value)
    return value


def parse_condition(value: Any) -> list:
    """Parse one where value into Equals / Compare conditions.

    Raises:
      UnsupportedOperator: for an unknown operator token, or a list operator
        that was not given a list.
    """
    if not isinstance(value, dict):
        return [Equals(value)]
    if not value:
        raise UnsupportedOperator("Empty condition")
    conditions = []
    for token, comparand in value.items():
        if token == "between":
            if not isinstance(comparand, (list, tuple)) or len(comparand) != 2:
                raise UnsupportedOperator(
                    "between needs a [low, high] pair, got %r" % (comparand,))
            conditions.append(Compare(">=", comparand[0]))
            conditions.append(Compare("<=", comparand[1]))
            continue
        if token not in OPERATORS:
            raise UnsupportedOperator("Unknown operator %r" % (token,))
        op = OPERATORS[token]
        if op in _LIST_OPERATORS:
            if not isinstance(comparand, (list, tuple, set)):
                raise UnsupportedOperator(
                    "%s needs a list, got %r" % (token, comparand))
            comparand = list(comparand)
        conditions.append(Compare(op, comparand))
    return conditions


def _where_items(where):
    """Yields (field, value) pairs, flattening "and" clauses."""
    if not where:
        return
    if not isinstance(where, dict):
        raise UnsupportedOperator("where must be a mapping, got %r" % (where,))
    for field, value in where.items():
        if field == "and":
            for clause in value:
                yield from _where_items(clause)
        elif field in ("or", "nor"):
            raise UnsupportedOperator("%r clauses are not supported" % field)
        else:
            yield field, value


def parse_order(order: Any) -> List[str]:
    """Turn "field [ASC|DESC]" clauses into Datastore order strings.

    order may be a single string (optionally comma separated) or a sequence
    of strings.  Descending fields get a "-" prefix.
    """
    if not order:
        return []
    if isinstance(order, str):
        order = order.split(",")
    orders = []
    for clause in order:
        parts = clause.split()
        if not parts:
            continue
        if len(parts) > 2:
            raise UnsupportedOperator("Bad order clause %r" % (clause,))
        field = KEY_FIELD if parts[0] == ID_FIELD else parts[0]
        if len(parts) == 2 and parts[1].upper() == "DESC":
            orders.append("-" + field)
        else:
            orders.append(field)
    return orders


def parse_fields(fields: Any) -> List[str]:
    """Returns the field names selected by a fields option."""
    if not fields:
        return []
    if isinstance(fields, str):
        return [fields]
    if isinstance(fields, dict):
        return [name for name, wanted in fields.items() if wanted]
    return list(fields)


class CompiledQuery:
    """Everything needed to run one find/count against Datastore."""

    def __init__(self, kind: str):
        self.kind = kind
        self.predicates = []
        self.orders = []
        self.limit = None
        self.offset = None
        self.projection = []
        self.ids_only = False
        # Set when the where clause names ids; None means "scan".
        self.lookup_ids = None

    @property
    def is_lookup(self) -> bool:
        return self.lookup_ids is not None

    def fetch_kwargs(self) -> dict:
        kwargs = {}
        if self.limit is not None:
            kwargs["limit"] = self.limit
        if self.offset:
            kwargs["offset"] = self.offset
        return kwargs

    def build(self, client: datastore.Client, namespace: Optional[str] = None,
              keys_only: bool = False):
        """Build the native query.  Not valid for lookups."""
        if namespace:
            query = client.query(kind=self.kind, namespace=namespace)
        else:
            query = client.query(kind=self.kind)
        for pred in self.predicates:
            query.add_filter(filter=PropertyFilter(pred.field, pred.operator,
                                                   pred.value))
        if self.orders:
            query.order = list(self.orders)
        if keys_only or self.ids_only:
            query.keys_only()
        elif self.projection:
            query.projection = list(self.projection)
        return query

    def refine(self, records: Iterable[dict]) -> List[dict]:
        """Apply predicates, ordering, paging and fields in memory.

        Used on the results of a key lookup, which Datastore cannot filter.
        Like a Datastore query, records without an ordered property are
        left out.
        """
        result = [r for r in records
                  if all(p.matches(r) for p in self.predicates)]
        ordered = [o.lstrip("-") for o in self.orders]
        result = [r for r in result
                  if all(f == KEY_FIELD or f in r for f in ordered)]
        for order in reversed(self.orders):
            descending = order.startswith("-")
            field = order.lstrip("-")
            if field == KEY_FIELD:
                field = ID_FIELD
            result.sort(key=lambda r: _sort_key(r.get(field)),
                        reverse=descending)
        start = self.offset or 0
        end = None if self.limit is None else start + self.limit
        result = result[start:end]
        if self.ids_only:
            result = [{ID_FIELD: r[ID_FIELD]} for r in result]
        elif self.projection:
            wanted = set(self.projection)
            wanted.add(ID_FIELD)
            result = [{k: v for k, v in r.items() if k in wanted}
                      for r in result]
        return result


def _sort_key(value):
    return (value is not None, value)


def _add_lookup(compiled, ids):
    # A commit may not touch the same entity twice.
    ids = list(dict.fromkeys(ids))
    if compiled.lookup_ids is None:
        compiled.lookup_ids = ids
    else:
        compiled.lookup_ids = [i for i in compiled.lookup_ids if i in ids]


def _compile_id(compiled, conditions, key_mapper):
    for cond in conditions:
        if isinstance(cond, Equals):
            numeric = coerce_id(cond.value)
            if numeric is None:
                raise InvalidIdentifier("Bad id %r" % (cond.value,))
            _add_lookup(compiled, [numeric])
        elif cond.operator == "IN":
            ids = [coerce_id(v) for v in cond.value]
            _add_lookup(compiled, [i for i in ids if i is not None])
        elif cond.operator == "NOT_IN":
            # Key filters only take a single key.
            raise UnsupportedOperator("nin is not supported on id")
        else:
            key = key_mapper.require_key(compiled.kind, cond.value)
            compiled.predicates.append(Predicate(KEY_FIELD, cond.operator, key))


def compile_query(model: str, query_filter: Optional[dict],
                  key_mapper: KeyMapper) -> CompiledQuery:
    """Compile a framework filter for one model.

    Args:
      model: The model name, used as the Datastore kind.
      query_filter: The framework filter dict, or None.
      key_mapper: Used to build keys for id comparisons.

    Returns:
      A CompiledQuery.

    Raises:
      UnsupportedOperator: if the filter uses something we cannot translate.
      InvalidIdentifier: if an id in the where clause is malformed.
    """
    query_filter = query_filter or {}
    compiled = CompiledQuery(model)
    for field, value in _where_items(query_filter.get("where")):
        if field == ID_FIELD:
            # {id: None} comes from callers passing an unset id; ignore it.
            if value is None:
                continue
            _compile_id(compiled, parse_condition(value), key_mapper)
            continue
        for cond in parse_condition(value):
            if isinstance(cond, Equals):
                compiled.predicates.append(Predicate(field, "=", cond.value))
            else:
                compiled.predicates.append(
                    Predicate(field, cond.operator, cond.value))

    compiled.orders = parse_order(query_filter.get("order"))

    limit = query_filter.get("limit")
    if limit is not None:
        compiled.limit = int(limit)
    offset = query_filter.get("offset", query_filter.get("skip"))
    if offset is not None:
        compiled.offset = int(offset)

    fields = parse_fields(query_filter.get("fields"))
    if fields:
        compiled.projection = [f for f in fields if f != ID_FIELD]
        compiled.ids_only = not compiled.projection
    return compiled


def compile_where(model: str, where: Optional[dict],
                  key_mapper: KeyMapper) -> CompiledQuery:
    """Compile a bare where clause, as passed to count / update / destroy."""
    return compile_query(model, {"where": where} if where else None,
                         key_mapper)
