"""
Errors raised by the Datastore connector.

Every failure an operation can report is a ConnectorError, so callers that
only care about "did it work" can catch the base class.
"""

import contextlib
import logging

from google.api_core import exceptions as api_exceptions


class ConnectorError(Exception):
    pass


class InvalidIdentifier(ConnectorError, ValueError):
    """An id that cannot be turned into a Datastore key."""


class NotFound(ConnectorError):
    """The operation needs an existing entity and there is none."""


class UnsupportedOperator(ConnectorError, ValueError):
    """A where clause uses an operator we do not translate."""


class DuplicateKey(ConnectorError):
    """An insert collided with an existing entity."""


class TransportFailure(ConnectorError):
    """The Datastore call itself failed.

    The client's original exception is available as __cause__.
    """


@contextlib.contextmanager
def store_call(description):
    """Translate client exceptions raised inside the block.

    Args:
      description: A short string naming the call, used in the error message.

    Raises:
      DuplicateKey: if Datastore reports a conflicting entity.
      TransportFailure: for any other API error.
    """
    try:
        yield
    except (api_exceptions.Conflict, api_exceptions.AlreadyExists) as exc:
        raise DuplicateKey("%s: %s" % (description, exc)) from exc
    except api_exceptions.GoogleAPIError as exc:
        logging.error("Datastore %s failed: %s", description, exc)
        raise TransportFailure("%s: %s" % (description, exc)) from exc
