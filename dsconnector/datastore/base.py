"""
The operation set an ORM framework expects from a data connector.

Every operation takes (model, ...args, options=None, callback=None).
Called without a callback it returns its result or raises.  Called with a
callback it returns None and calls callback(error, result) exactly once.
"""

import functools
import inspect
import logging


def operation(func):
    """Decorator adding the optional callback(error, result) convention."""
    signature = inspect.signature(func)

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        bound = signature.bind(*args, **kwargs)
        callback = bound.arguments.pop("callback", None)
        if callback is None:
            return func(*bound.args, **bound.kwargs)
        try:
            result = func(*bound.args, **bound.kwargs)
        except Exception as exc:
            logging.debug("%s failed: %r", func.__name__, exc)
            callback(exc, None)
            return None
        # Outside the try: an error raised by the callback is the caller's.
        callback(None, result)
        return None

    return wrapper


class Connector(object):
    """Interface implemented by data connectors.

    Nothing here has behavior; subclasses provide every method.
    """

    def create(self, model, data, options=None, callback=None):
        raise NotImplementedError()

    def find_by_id(self, model, id_value, options=None, callback=None):
        raise NotImplementedError()

    def all(self, model, query_filter=None, options=None, callback=None):
        raise NotImplementedError()

    def count(self, model, where=None, options=None, callback=None):
        raise NotImplementedError()

    def exists(self, model, id_value, options=None, callback=None):
        raise NotImplementedError()

    def update(self, model, where, data, options=None, callback=None):
        raise NotImplementedError()

    def update_attributes(self, model, id_value, data, options=None,
                          callback=None):
        raise NotImplementedError()

    def replace_by_id(self, model, id_value, data, options=None,
                      callback=None):
        raise NotImplementedError()

    def replace_or_create(self, model, data, options=None, callback=None):
        raise NotImplementedError()

    def update_or_create(self, model, data, options=None, callback=None):
        raise NotImplementedError()

    def save(self, model, data, options=None, callback=None):
        raise NotImplementedError()

    def destroy(self, model, id_value, options=None, callback=None):
        raise NotImplementedError()

    def destroy_all(self, model, where=None, options=None, callback=None):
        raise NotImplementedError()
