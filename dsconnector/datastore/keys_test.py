#!/usr/bin/env python

import unittest

import mock
from google.cloud import datastore

from dsconnector.datastore import keys
from dsconnector.datastore.errors import InvalidIdentifier


def make_client(project="test-project"):
    client = mock.Mock(spec=datastore.Client)
    client.key.side_effect = (
        lambda *path, **kwargs: datastore.Key(*path, project=project, **kwargs))
    return client


class CoerceIdTest(unittest.TestCase):

    def test_absent(self):
        self.assertIsNone(keys.coerce_id(None))
        self.assertIsNone(keys.coerce_id(""))

    def test_valid(self):
        test_cases = ((7, 7),
                      ("7", 7),
                      (" 42 ", 42),
                      ("+3", 3),
                      (5.0, 5),
                      (5629499534213120, 5629499534213120))
        for value, expected in test_cases:
            self.assertEqual(expected, keys.coerce_id(value))

    def test_invalid(self):
        # These should not be usable as ids.
        error_test_cases = (True, False, 0, -1, "0", "-4", "abc", "4a",
                            "1.5", 2.5, "++5", [1], {"id": 1})
        for value in error_test_cases:
            self.assertRaises(InvalidIdentifier, keys.coerce_id, value)

    def test_invalid_identifier_is_a_value_error(self):
        self.assertRaises(ValueError, keys.coerce_id, "abc")


class KeyMapperTest(unittest.TestCase):

    def setUp(self):
        self.client = make_client()
        self.mapper = keys.KeyMapper(self.client)

    def test_explicit_id(self):
        key = self.mapper.derive_key("customer", "12")
        self.assertFalse(key.is_partial)
        self.assertEqual(("customer", 12), key.flat_path)
        self.assertEqual(12, keys.identifier(key))

    def test_auto_id(self):
        key = self.mapper.derive_key("customer")
        self.assertTrue(key.is_partial)
        self.assertEqual("customer", key.kind)
        self.assertIsNone(keys.identifier(key))

    def test_bad_id_does_not_fall_back_to_auto(self):
        self.assertRaises(InvalidIdentifier,
                          self.mapper.derive_key, "customer", "abc")

    def test_require_key(self):
        self.assertEqual(("customer", 3),
                         self.mapper.require_key("customer", 3).flat_path)
        self.assertRaises(InvalidIdentifier,
                          self.mapper.require_key, "customer", None)

    def test_key_for_record(self):
        self.assertEqual(("customer", 9),
                         self.mapper.key_for_record(
                             "customer", {"id": 9, "name": "x"}).flat_path)
        self.assertTrue(
            self.mapper.key_for_record("customer", {"name": "x"}).is_partial)

    def test_namespace(self):
        mapper = keys.KeyMapper(self.client, namespace="tenant-a")
        key = mapper.derive_key("customer", 1)
        self.assertEqual("tenant-a", key.namespace)
        self.client.key.assert_called_with("customer", 1, namespace="tenant-a")

    def test_identifier_of_missing_key(self):
        self.assertIsNone(keys.identifier(None))


if __name__ == "__main__":
    unittest.main()
