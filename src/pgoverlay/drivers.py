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
"""
Choosing a DB-API driver.

Each database type keeps a `DriverOptions` listing its driver
classes. Creating a driver imports its module; a driver whose module
can't be imported is skipped when any driver will do.
"""

from __future__ import print_function

import importlib

from zope.interface import implementer

from ._compat import casefold

from .interfaces import IDBDriverOptions
from .interfaces import DriverNotAvailableError
from .interfaces import NoDriversAvailableError
from .interfaces import UnknownDriverError

logger = __import__('logging').getLogger(__name__)


class DriverNotImportableError(DriverNotAvailableError,
                               ImportError):
    "When the module can't be imported."


class AbstractModuleDriver(object):
    """
    Base implementation of a driver wrapping a DB-API module.

    Subclasses must provide ``MODULE_NAME``, ``driver_name``,
    ``make_dsn`` and ``set_autocommit``.
    """

    #: The name of the DB-API module to import.
    MODULE_NAME = None

    #: The name used in configuration.
    driver_name = None

    #: Lower is chosen first when any driver will do.
    priority = 100

    # Can this driver work with gevent?
    _GEVENT_CAPABLE = False

    def __init__(self):
        self.driver_module = mod = self._check_preconditions()

        self.disconnected_exceptions = (mod.OperationalError,
                                        mod.InterfaceError)
        self.close_exceptions = self.disconnected_exceptions + (mod.ProgrammingError,)
        self._connect = mod.connect

    def _check_preconditions(self):
        try:
            mod = self.get_driver_module()
        except ImportError as ex:
            logger.debug(
                "Attempting to load driver named %r from %r failed; if no driver was specified, "
                "or the driver was set to 'auto', there may be more drivers to attempt.",
                self.driver_name, self.MODULE_NAME,
                exc_info=True)
            raise DriverNotImportableError(self.driver_name, reason=str(ex)) from ex
        return mod

    def connect(self, *args, **kwargs):
        return self._connect(*args, **kwargs)

    def get_driver_module(self):
        """Import and return the driver module."""
        return importlib.import_module(self.MODULE_NAME)

    def gevent_cooperative(self):
        return self._GEVENT_CAPABLE

    def make_dsn(self, **kwargs):
        raise NotImplementedError

    def set_autocommit(self, conn, value):
        raise NotImplementedError

    def cursor(self, conn):
        return conn.cursor()

    def get_messages(self, conn): # pylint:disable=unused-argument
        return ()

    message_logger = logger

    def log_messages(self, conn):
        """
        Drain the messages the server sent on *conn* into the
        message logger.
        """
        for msg in self.get_messages(conn):
            self.message_logger.debug("Message from the RDBMS: %s", msg.strip())

    def __str__(self):
        return '<%s %r>' % (type(self).__name__, self.driver_name)


@implementer(IDBDriverOptions)
class DriverOptions(object):
    """
    The drivers for one *database_type*.

    Each of *driver_types* is a class implementing ``IDBDriver``;
    creating one either returns a usable driver or raises
    `DriverNotAvailableError`.
    """

    def __init__(self, database_type, *driver_types):
        self.database_type = database_type
        self._driver_types = sorted(driver_types, key=lambda driver_type: driver_type.priority)

    def __repr__(self):
        return '<%s %r %s>' % (
            type(self).__name__, self.database_type,
            [t.driver_name for t in self._driver_types]
        )

    def known_driver_types(self):
        return list(self._driver_types)

    def select_driver(self, driver_name=None):
        driver_name = casefold(driver_name or 'auto')
        accept_any_driver = driver_name == 'auto'
        ex_strs = {} # {driver_name: ex}
        for driver_type in self._driver_types:
            if not accept_any_driver and casefold(driver_type.driver_name) != driver_name:
                continue
            try:
                result = driver_type()
            except DriverNotAvailableError as e:
                if not accept_any_driver:
                    e.driver_options = self
                    raise
                ex_strs[driver_type.driver_name] = str(e)
            else:
                logger.debug("Using driver %s for requested name %r", result, driver_name)
                return result

        # Either we would take any driver and none were available, or we
        # needed an exact driver that wasn't registered.
        error = NoDriversAvailableError if accept_any_driver else UnknownDriverError
        raise error(driver_name, self, ex_strs or None)
