"""Create the Google Cloud Datastore client used by the connector.

Settings are taken from the arguments first and from dsconnector.common.conf
otherwise.  Importing this module does not load the settings.  The client
is built once and handed to DatastoreConnector.
"""

import json
import logging
import os
from typing import Optional

import google.auth
from google.auth import impersonated_credentials
from google.cloud import datastore
from google.oauth2 import service_account

DATASTORE_SCOPES = ['https://www.googleapis.com/auth/datastore']


def connect(key_filename: Optional[str] = None,
            project_id: Optional[str] = None,
            namespace: Optional[str] = None,
            impersonate_service_account: Optional[str] = None) -> datastore.Client:
    """Connect to Google Cloud Datastore.

    Args:
        key_filename: Path to a service account key file.  Defaults to
            conf.GOOGLE_APPLICATION_CREDENTIALS.
        project_id: The project to use.  Defaults to conf.DATASTORE_PROJECT_ID,
            then to the project_id recorded in the key file.
        namespace: Optional Datastore namespace.  Defaults to
            conf.DATASTORE_NAMESPACE.
        impersonate_service_account: Optional service account email to
            impersonate with your default gcloud credentials.  If given (or
            set in conf.IMPERSONATE_SERVICE_ACCOUNT) no key file is needed.

    Returns:
        Initialized Datastore client

    Raises:
        FileNotFoundError: If the key file does not exist
        ValueError: If the project cannot be determined
        google.auth.exceptions.DefaultCredentialsError: If default credentials
            are needed but not found
    """
    # settings.py is only read when a client is built.
    from dsconnector.common import conf

    if project_id is None:
        project_id = conf.get('DATASTORE_PROJECT_ID')
    if namespace is None:
        namespace = conf.get('DATASTORE_NAMESPACE')
    if impersonate_service_account is None:
        impersonate_service_account = conf.get('IMPERSONATE_SERVICE_ACCOUNT')

    if impersonate_service_account:
        credentials, project_id = _impersonated_credentials(
            impersonate_service_account, project_id)
    else:
        if key_filename is None:
            key_filename = conf.get('GOOGLE_APPLICATION_CREDENTIALS')
        credentials, project_id = _key_file_credentials(key_filename, project_id)

    logging.info("Connecting to Datastore project %s (namespace %s)",
                 project_id, namespace)
    return datastore.Client(project=project_id, namespace=namespace or None,
                            credentials=credentials)


def project_from_key_file(key_filename: str) -> Optional[str]:
    """Returns the project_id recorded in a service account key file."""
    with open(key_filename) as fp:
        return json.load(fp).get('project_id')


def _key_file_credentials(key_filename, project_id):
    if not key_filename:
        raise ValueError("No service account key file configured; set "
                         "GOOGLE_APPLICATION_CREDENTIALS or pass key_filename")
    key_filename = os.path.abspath(os.path.expanduser(key_filename))
    if not os.path.exists(key_filename):
        raise FileNotFoundError(
            "Service account key file not found: %s" % key_filename)
    if not project_id:
        project_id = project_from_key_file(key_filename)
    if not project_id:
        raise ValueError("Could not determine project ID from %s" % key_filename)
    credentials = service_account.Credentials.from_service_account_file(
        key_filename, scopes=DATASTORE_SCOPES)
    return credentials, project_id


def _impersonated_credentials(service_account_email, project_id):
    source_credentials, default_project = google.auth.default()
    project_id = project_id or default_project

    # Fall back to the project embedded in the service account email,
    # e.g. sa@PROJECT.iam.gserviceaccount.com
    if not project_id and service_account_email.endswith(
            '.iam.gserviceaccount.com'):
        project_id = service_account_email.split('@')[1].split('.')[0]

    if not project_id:
        raise ValueError(
            "Could not determine project ID. Please either:\n"
            "1. Set a default project: gcloud config set project PROJECT_ID\n"
            "2. Set DATASTORE_PROJECT_ID or pass project_id\n"
            "3. Use a service account email of the form "
            "sa@PROJECT.iam.gserviceaccount.com")

    credentials = impersonated_credentials.Credentials(
        source_credentials=source_credentials,
        target_principal=service_account_email,
        target_scopes=DATASTORE_SCOPES,
        lifetime=3600,  # 1 hour
    )
    return credentials, project_id
