"""Google Cloud Datastore connector for ORM frameworks."""

from .connection import connect
from .connector import DatastoreConnector, initialize
from .errors import (ConnectorError, DuplicateKey, InvalidIdentifier,
                     NotFound, TransportFailure, UnsupportedOperator)

__all__ = ['connect', 'initialize', 'DatastoreConnector', 'ConnectorError',
           'DuplicateKey', 'InvalidIdentifier', 'NotFound', 'TransportFailure',
           'UnsupportedOperator']
