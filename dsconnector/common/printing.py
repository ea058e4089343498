import contextlib
import datetime
import json


def _json_default(value):
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode('utf-8', 'replace')
    return str(value)


class CustomPrint(object):
    """
    This class defines a callable object that works similarly to the print()
    function. However, it provides a context manager that allows you to specify
    a different write function that can be used to send messages to somewhere
    other than standard output (for example, a log or a test buffer).

    Dicts and lists are written as one line of JSON, so dumped records can be
    piped into other tools.
    """

    def __init__(self):
        self.write = self.default_write

    def __call__(self, message=None, **kwargs):
        self.write(message, **kwargs)

    def default_write(self, message=None, **kwargs):
        if message is None:
            print()
        else:
            print(format_message(message))

    @contextlib.contextmanager
    def use_write_function(self, func):
        self.write = func
        try:
            yield
        finally:
            self.write = self.default_write


def format_message(message):
    if isinstance(message, (dict, list, tuple)):
        return json.dumps(message, sort_keys=True, default=_json_default)
    if isinstance(message, bytes):
        return message.decode('utf-8', 'replace')
    return str(message)


cprint = CustomPrint()
