#!/usr/bin/env python
"""
Dump, count or delete the entities of one Datastore kind.

Usage:

    Print every Customer as one JSON line:
    do_dump_kind Customer

    Print the two youngest customers named Orion:
    do_dump_kind Customer --where '{"name": "Orion"}' --order "age ASC" --limit 2

    Count them:
    do_dump_kind Customer --where '{"age": {"lt": 28}}' --count

    See what would be deleted, then actually delete:
    do_dump_kind Customer --where '{"type": "Animal"}' --delete
    do_dump_kind Customer --where '{"type": "Animal"}' --delete --confirm

Flags:
 --key-file / --project / --namespace = override the connection settings
 --confirm = actually do the delete. Nothing is deleted without this flag.

"""

import argparse
import json
import logging
import sys

from dsconnector.common import conf
from dsconnector.common.printing import cprint
from dsconnector.datastore import connector as connector_module
from dsconnector.datastore.errors import ConnectorError


def build_filter(args):
    query_filter = {}
    if args.where:
        query_filter['where'] = json.loads(args.where)
    if args.order:
        query_filter['order'] = args.order
    if args.limit is not None:
        query_filter['limit'] = args.limit
    if args.skip is not None:
        query_filter['skip'] = args.skip
    if args.fields:
        query_filter['fields'] = args.fields.split(',')
    return query_filter


def run(connector, args):
    query_filter = build_filter(args)
    where = query_filter.get('where')

    if args.count:
        cprint(connector.count(args.kind, where))
        return 0

    if args.delete:
        to_delete = connector.all(args.kind, {'where': where} if where else None)
        sys.stdout.write("\nENTITIES TO DELETE from %s\n\n" % args.kind)
        for record in to_delete:
            cprint(record)
        if not args.confirm:
            sys.stdout.write("\nNOTHING DELETED.  Pass in the --confirm flag.\n")
            return 0
        result = connector.destroy_all(args.kind, where)
        sys.stdout.write("\nDELETED %d\n" % result['count'])
        return 0

    for record in connector.all(args.kind, query_filter or None):
        cprint(record)
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Dump, count or delete the entities of a Datastore kind.')
    parser.add_argument('kind', help='Model name / Datastore kind')
    parser.add_argument(
        '--where', default=None,
        help='Where clause as JSON, e.g. \'{"age": {"lt": 28}}\'')
    parser.add_argument('--order', default=None,
                        help='Order clause, e.g. "age DESC"')
    parser.add_argument('--limit', type=int, default=None)
    parser.add_argument('--skip', type=int, default=None)
    parser.add_argument('--fields', default=None,
                        help='Comma separated list of fields to return')
    parser.add_argument('--count', action='store_true',
                        help='Print the number of matching entities')
    parser.add_argument('--delete', action='store_true',
                        help='Delete the matching entities (needs --confirm)')
    parser.add_argument('--confirm', action='store_true',
                        help='Confirm the delete')
    parser.add_argument('--key-file', dest='key_filename', default=None)
    parser.add_argument('--project', dest='project_id', default=None)
    parser.add_argument('--namespace', default=None)

    args = parser.parse_args(argv)

    level = conf.get('LOG_LEVEL', 'WARNING').upper()
    logging.basicConfig(level=getattr(logging, level, logging.WARNING))

    connector = connector_module.initialize({
        'key_filename': args.key_filename,
        'project_id': args.project_id,
        'namespace': args.namespace,
    })
    try:
        return run(connector, args)
    except ConnectorError as exc:
        sys.stderr.write("FAILED: %s\n" % exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
