"""
Connector settings.

Values come from settings.py, optionally overridden by settings_local.py
next to it.  Both are looked up in $DSCONNECTOR_SETTINGS_DIR, or in the
working directory when that is unset.  Without a settings.py in the working
directory every setting is unset; a missing settings.py in an explicit
$DSCONNECTOR_SETTINGS_DIR is an error.
"""

import os
import sys

SETTINGS_DIR = os.path.abspath(
    os.environ.get('DSCONNECTOR_SETTINGS_DIR') or os.getcwd())

# to import settings / settings_local:
if SETTINGS_DIR not in sys.path:
    sys.path.append(SETTINGS_DIR)


try:
    from settings import *
    try:
        from settings_local import *
    except ImportError:
        # settings_local is optional
        pass
except ImportError as exc:
    if os.environ.get('DSCONNECTOR_SETTINGS_DIR') or exc.name != 'settings':
        sys.stderr.write(
                '** Trying to import settings.py or settings_local.py in %s\n'
                % SETTINGS_DIR)
        raise


def get(name, default=None):
    """Returns a setting, or default if it is unset or empty."""
    value = globals().get(name)
    if value is None or value == '':
        return default
    return value
