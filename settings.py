import os
import os.path as op


# Google Cloud Datastore.
# You can create a new service account key on the API manager credentials page:
# https://console.cloud.google.com/apis/credentials
GOOGLE_APPLICATION_CREDENTIALS = os.environ.get(
    'GOOGLE_APPLICATION_CREDENTIALS',
    op.expanduser('~/.dsconnector_service_account_key.json'))

# When unset, the project_id recorded in the key file is used.
DATASTORE_PROJECT_ID = os.environ.get('DATASTORE_PROJECT_ID') or None

# Empty means the default namespace.
DATASTORE_NAMESPACE = os.environ.get('DATASTORE_NAMESPACE') or None

# Set this to a service account email to connect with your gcloud
# credentials instead of a key file.
IMPERSONATE_SERVICE_ACCOUNT = os.environ.get('IMPERSONATE_SERVICE_ACCOUNT') or None

# Used by the command-line tools.
LOG_LEVEL = os.environ.get('DSCONNECTOR_LOG_LEVEL', 'WARNING')
