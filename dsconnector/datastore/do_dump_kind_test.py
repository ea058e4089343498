#!/usr/bin/env python

import json
import unittest

from mock import patch

from dsconnector.common.printing import cprint
from dsconnector.datastore import connector
from dsconnector.datastore import connector_test
from dsconnector.datastore import do_dump_kind


class DumpKindTest(unittest.TestCase):

    def setUp(self):
        self.client = connector_test.FakeClient()
        self.conn = connector.DatastoreConnector(self.client)
        for age in (2, 27, 30):
            self.conn.create("customer", {"name": "Customer %d" % age,
                                          "age": age})
        self.printed = []

    def _write(self, message=None, **kwargs):
        self.printed.append(message)

    def run_main(self, *argv, **kwargs):
        with patch.object(do_dump_kind.connector_module, "initialize",
                          return_value=self.conn) as initialize, \
                cprint.use_write_function(self._write), \
                patch("sys.stdout"):
            result = do_dump_kind.main(list(argv))
        self.assertEqual(kwargs.get("expected", 0), result)
        return initialize

    def test_dump(self):
        initialize = self.run_main("customer", "--order", "age DESC",
                                   "--limit", "2", "--project", "p")
        initialize.assert_called_once_with(
            {"key_filename": None, "project_id": "p", "namespace": None})
        self.assertEqual([30, 27], [r["age"] for r in self.printed])

    def test_where_and_fields(self):
        self.run_main("customer", "--where", json.dumps({"age": {"lt": 28}}),
                      "--fields", "name")
        self.assertEqual(set(["Customer 2", "Customer 27"]),
                         set(r["name"] for r in self.printed))
        for record in self.printed:
            self.assertEqual(set(["id", "name"]), set(record))

    def test_count(self):
        self.run_main("customer", "--count")
        self.assertEqual([3], self.printed)

    def test_delete_needs_confirm(self):
        self.run_main("customer", "--where", '{"age": 2}', "--delete")
        self.assertEqual(1, len(self.printed))
        self.assertEqual(3, self.conn.count("customer"))

    def test_delete_missing_id(self):
        with patch("sys.stderr") as stderr:
            self.run_main("customer", "--where", '{"id": 99}', "--delete",
                          "--confirm", expected=1)
        written = "".join(c[0][0] for c in stderr.write.call_args_list)
        self.assertIn("FAILED: customer 99 not found", written)
        self.assertEqual(3, self.conn.count("customer"))

    def test_unsupported_where(self):
        with patch("sys.stderr"):
            self.run_main("customer", "--where", '{"or": [{"age": 2}]}',
                          expected=1)

    def test_delete(self):
        self.run_main("customer", "--where", '{"age": {"gt": 10}}',
                      "--delete", "--confirm")
        self.assertEqual([2], [r["age"] for r in self.conn.all("customer")])


class BuildFilterTest(unittest.TestCase):

    def test_build_filter(self):
        args = do_dump_kind.argparse.Namespace(
            where='{"age": 3}', order="age", limit=5, skip=None,
            fields="name,age")
        self.assertEqual({"where": {"age": 3}, "order": "age", "limit": 5,
                          "fields": ["name", "age"]},
                         do_dump_kind.build_filter(args))


if __name__ == "__main__":
    unittest.main()
