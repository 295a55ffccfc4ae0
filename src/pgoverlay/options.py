##############################################################################
#
# Copyright (c) 2024 Zope Foundation and Contributors.
# All Rights Reserved.
#
# This software is subject to the provisions of the Zope Public License,
# Version 2.1 (ZPL).  A copy of the ZPL should accompany this distribution.
# THIS SOFTWARE IS PROVIDED "AS IS" AND ANY AND ALL EXPRESS OR IMPLIED
# WARRANTIES ARE DISCLAIMED, INCLUDING, BUT NOT LIMITED TO, THE IMPLIED
# WARRANTIES OF TITLE, MERCHANTABILITY, AGAINST INFRINGEMENT, AND FITNESS
# FOR A PARTICULAR PURPOSE.
#
##############################################################################

from __future__ import absolute_import

import os

from pgoverlay._util import positive_integer
from pgoverlay.interfaces import ConfigurationError

logger = __import__('logging').getLogger(__name__)

#: The environment prefix for the source (lower) database.
SOURCE_PREFIX = 'LOWER'
#: The environment prefix for the overlay (upper) database.
OVERLAY_PREFIX = 'UPPER'


class ConnectionOptions(object):
    """Options for connecting to one PostgreSQL database.

    These are usually read from the environment with
    :meth:`from_environ`, but can be provided as keyword options::

        options = ConnectionOptions(user='app', host='db', database='app',
                                    password='secret')

    Instances are immutable once constructed; use :meth:`copy` to
    derive a variation.
    """

    #: The role to connect as. Required.
    user = None
    #: The server host name. Required.
    host = None
    #: The database name. Required.
    database = None
    #: The password of *user*. Required.
    password = None
    #: The server port.
    port = 5432
    #: The maximum number of connections to open at once.
    max = 10
    #: The name of the driver to use, or 'auto'.
    driver = 'auto'
    #: Reported to the server for each connection.
    application_name = 'pgoverlay'

    _required_options = ('user', 'host', 'database', 'password')
    _integer_options = ('port', 'max')

    def __init__(self, **kwoptions):
        for key, value in kwoptions.items():
            if not hasattr(self, key) or key.startswith('_'):
                raise TypeError("Unknown parameter: %s (Known: %s)" % (
                    key,
                    self.valid_option_names()
                ))
            object.__setattr__(self, key, value)

    def __setattr__(self, name, value):
        raise AttributeError("%s is immutable; use copy()" % (type(self).__name__,))

    @classmethod
    def from_environ(cls, prefix, environ=None):
        """
        Read the options from *environ* (by default, ``os.environ``).

        Each option is looked up as ``<PREFIX>_<OPTION>``, uppercased;
        for example, ``LOWER_HOST``. Empty values are treated as
        missing.

        :raises ConfigurationError: If a required option is missing,
            or an integer option cannot be parsed.
        """
        environ = os.environ if environ is None else environ
        found = {}
        missing = []
        for name in cls.valid_option_names():
            key = cls.environ_key(prefix, name)
            value = environ.get(key)
            if not value:
                if name in cls._required_options:
                    missing.append(key)
                continue

            if name in cls._integer_options:
                try:
                    value = positive_integer(value)
                except ValueError as ex:
                    raise ConfigurationError(
                        "Invalid value for %s: %r (expected a positive integer)" % (
                            key, value
                        )) from ex
            found[name] = value

        if missing:
            raise ConfigurationError(
                "Missing required configuration: %s" % (', '.join(missing),)
            )

        logger.debug("Read %s options from the environment: %s",
                     prefix, sorted(found))
        return cls(**found)

    @staticmethod
    def environ_key(prefix, name):
        return ('%s_%s' % (prefix, name)).upper()

    @classmethod
    def valid_option_names(cls):
        return sorted(
            x
            for x in vars(cls)
            if not callable(getattr(cls, x))
            and not x.startswith("_")
        )

    def __repr__(self):
        opts = []
        for k in self.valid_option_names():
            v = getattr(self, k)
            if k == 'password' and v is not None:
                v = '<hidden>'
            opts.append('%s=%r' % (k, v))
        opts = ', '.join(opts)
        return 'pgoverlay.options.ConnectionOptions(%s)' % (opts,)

    def __eq__(self, other):
        if not isinstance(other, ConnectionOptions):
            return NotImplemented
        return all(getattr(self, key) == getattr(other, key)
                   for key in self.valid_option_names())

    def __hash__(self):
        return hash(tuple(getattr(self, key) for key in self.valid_option_names()))

    def copy(self, **kw):
        """
        Produce a copy of these options, with keyword arguments overriding.
        """
        options = {k: getattr(self, k) for k in self.valid_option_names()}
        options.update(kw)
        return self.__class__(**options)
