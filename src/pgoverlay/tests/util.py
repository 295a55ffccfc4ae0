import os
import unittest

from pgoverlay.interfaces import ConfigurationError
from pgoverlay.options import ConnectionOptions
from pgoverlay.options import OVERLAY_PREFIX
from pgoverlay.options import SOURCE_PREFIX

# We define GitHub actions to be similar to travis
RUNNING_ON_GITHUB_ACTIONS = os.environ.get('GITHUB_ACTIONS')
RUNNING_ON_TRAVIS = os.environ.get('TRAVIS') or RUNNING_ON_GITHUB_ACTIONS
RUNNING_ON_CI = RUNNING_ON_TRAVIS

def _do_not_skip(reason): # pylint:disable=unused-argument
    def dec(f):
        return f
    return dec

if RUNNING_ON_CI:
    skipOnCI = unittest.skip
else:
    skipOnCI = _do_not_skip

# psycopg2 will use the default Unix socket if no host is given,
# which may not be the server we want, so name a TCP address.
STANDARD_DATABASE_SERVER_HOST = '127.0.0.1'
DEFAULT_DATABASE_SERVER_HOST = os.environ.get('PGO_DB_HOST',
                                              STANDARD_DATABASE_SERVER_HOST)


def integration_options(environ=None):
    """
    Return ``(source_options, overlay_options)`` read from the
    environment, or None if either is incompletely configured.

    A missing host defaults to ``PGO_DB_HOST``.
    """
    environ = dict(os.environ if environ is None else environ)
    for prefix in SOURCE_PREFIX, OVERLAY_PREFIX:
        environ.setdefault(ConnectionOptions.environ_key(prefix, 'host'),
                           DEFAULT_DATABASE_SERVER_HOST)
    try:
        return (
            ConnectionOptions.from_environ(SOURCE_PREFIX, environ),
            ConnectionOptions.from_environ(OVERLAY_PREFIX, environ),
        )
    except ConfigurationError:
        return None


def skipUnlessDatabases(cls):
    """
    Skip the test class unless both the source and overlay databases
    are configured.
    """
    if integration_options() is None:
        return unittest.skip(
            "Set LOWER_USER, LOWER_DATABASE, LOWER_PASSWORD and the UPPER_ "
            "equivalents to run the integration tests"
        )(cls)
    return cls
