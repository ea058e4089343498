#!/usr/bin/env python

import json
import os
import tempfile
import unittest

from mock import patch

from dsconnector.common import conf
from dsconnector.datastore import connection


class ConnectWithKeyFileTest(unittest.TestCase):

    def setUp(self):
        fd, self.key_filename = tempfile.mkstemp(suffix=".json")
        with os.fdopen(fd, "w") as fp:
            json.dump({"project_id": "from-key-file"}, fp)

    def tearDown(self):
        os.unlink(self.key_filename)

    def _connect(self, **kwargs):
        kwargs.setdefault("impersonate_service_account", "")
        kwargs.setdefault("project_id", "")
        with patch.object(connection.service_account.Credentials,
                          "from_service_account_file") as from_file, \
                patch.object(connection.datastore, "Client") as client_cls:
            client = connection.connect(key_filename=self.key_filename,
                                        **kwargs)
        return client, from_file, client_cls

    def test_project_from_key_file(self):
        client, from_file, client_cls = self._connect(namespace="")
        from_file.assert_called_once_with(
            self.key_filename, scopes=connection.DATASTORE_SCOPES)
        client_cls.assert_called_once_with(
            project="from-key-file", namespace=None,
            credentials=from_file.return_value)
        self.assertIs(client_cls.return_value, client)

    def test_explicit_project_and_namespace(self):
        _, from_file, client_cls = self._connect(project_id="explicit",
                                                 namespace="tenant-a")
        client_cls.assert_called_once_with(
            project="explicit", namespace="tenant-a",
            credentials=from_file.return_value)

    def test_missing_key_file(self):
        self.assertRaises(FileNotFoundError, connection.connect,
                          key_filename="/nonexistent/key.json",
                          impersonate_service_account="")

    def test_no_key_file_configured(self):
        with patch.object(conf, "GOOGLE_APPLICATION_CREDENTIALS",
                          None):
            self.assertRaises(ValueError, connection.connect,
                              impersonate_service_account="")

    def test_key_file_without_project(self):
        with open(self.key_filename, "w") as fp:
            json.dump({"type": "service_account"}, fp)
        self.assertRaises(ValueError, connection.connect,
                          key_filename=self.key_filename,
                          impersonate_service_account="",
                          project_id="")

    def test_project_from_key_file_helper(self):
        self.assertEqual("from-key-file",
                         connection.project_from_key_file(self.key_filename))


class ConnectWithImpersonationTest(unittest.TestCase):

    def _connect(self, default_project, **kwargs):
        with patch.object(connection.google.auth, "default",
                          return_value=("source-creds", default_project)), \
                patch.object(connection.impersonated_credentials,
                             "Credentials") as creds_cls, \
                patch.object(connection.datastore, "Client") as client_cls:
            connection.connect(**kwargs)
        return creds_cls, client_cls

    def test_default_project(self):
        creds_cls, client_cls = self._connect(
            "gcloud-project",
            impersonate_service_account="sa@other.iam.gserviceaccount.com",
            project_id="", namespace="")
        creds_cls.assert_called_once_with(
            source_credentials="source-creds",
            target_principal="sa@other.iam.gserviceaccount.com",
            target_scopes=connection.DATASTORE_SCOPES,
            lifetime=3600)
        client_cls.assert_called_once_with(
            project="gcloud-project", namespace=None,
            credentials=creds_cls.return_value)

    def test_project_from_email(self):
        _, client_cls = self._connect(
            None,
            impersonate_service_account="sa@my-project.iam.gserviceaccount.com",
            project_id="")
        self.assertEqual("my-project", client_cls.call_args[1]["project"])

    def test_no_project(self):
        self.assertRaises(ValueError, self._connect, None,
                          impersonate_service_account="someone@example.com",
                          project_id="")


if __name__ == "__main__":
    unittest.main()
