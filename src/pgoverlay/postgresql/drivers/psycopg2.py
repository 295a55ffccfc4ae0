# -*- coding: utf-8 -*-
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
psycopg2 IDBDriver implementations.
"""

from __future__ import absolute_import
from __future__ import print_function

from zope.interface import implementer

from ...interfaces import IDBDriver

from . import AbstractPostgreSQLDriver

logger = __import__('logging').getLogger(__name__)

__all__ = [
    'Psycopg2Driver',
    'GeventPsycopg2Driver',
]


class WaitCallbackStateError(ImportError):

    def __init__(self, driver_name, wait_callback_installed, need_wait_callback):
        ImportError.__init__(
            self,
            "The driver %r %s a wait callback but %s wait callback is installed" % (
                driver_name,
                "needs" if need_wait_callback else "cannot have",
                "a" if wait_callback_installed else "no"
            )
        )


@implementer(IDBDriver)
class Psycopg2Driver(AbstractPostgreSQLDriver):
    driver_name = MODULE_NAME = 'psycopg2'
    priority = 2

    def __init__(self):
        super(Psycopg2Driver, self).__init__()

        self._make_dsn = self._get_extension_module().make_dsn

    def _get_extension_module(self):
        from psycopg2 import extensions # pylint:disable=no-name-in-module,import-error
        return extensions

    _WANT_WAIT_CALLBACK = False

    def _check_wait_callback(self):
        extensions = self._get_extension_module()
        callback = extensions.get_wait_callback()
        # Passes only when the presence of a callback matches
        # whether we want one.
        callback_not_none = bool(callback is not None)
        need_callback = bool(self._WANT_WAIT_CALLBACK)
        if callback_not_none is not need_callback:
            raise WaitCallbackStateError(self.driver_name, callback_not_none, need_callback)

    def get_driver_module(self):
        self._check_wait_callback()
        return super(Psycopg2Driver, self).get_driver_module()

    def make_dsn(self, **kwargs):
        return self._make_dsn(**{k: v for k, v in kwargs.items() if v is not None})


@implementer(IDBDriver)
class GeventPsycopg2Driver(Psycopg2Driver):
    """
    psycopg2 with a wait callback that yields to the gevent hub
    while waiting on the server, so statements issued from many
    greenlets are in flight together.

    Creating this driver installs the callback process-wide if
    nothing else has.
    """
    driver_name = 'gevent ' + Psycopg2Driver.MODULE_NAME
    priority = 1

    _GEVENT_CAPABLE = True

    _WANT_WAIT_CALLBACK = True

    def get_driver_module(self):
        # Make sure we can use gevent; if we can't the ImportError
        # will prevent this driver from being used.
        __import__('gevent')
        install_wait_callback()
        return super(GeventPsycopg2Driver, self).get_driver_module()


class _GeventPsycopg2WaitCallback(object):

    def __init__(self):
        from gevent.socket import wait_read
        from gevent.socket import wait_write
        self.wait_read = wait_read
        self.wait_write = wait_write
        # pylint:disable=import-error,no-name-in-module
        from psycopg2.extensions import POLL_OK
        from psycopg2.extensions import POLL_WRITE
        from psycopg2.extensions import POLL_READ
        self.poll_ok = POLL_OK
        self.poll_write = POLL_WRITE
        self.poll_read = POLL_READ

    def __call__(self, conn):
        while 1:
            state = conn.poll()
            if state == self.poll_ok:
                return

            if state == self.poll_read:
                self.wait_read(conn.fileno())
            elif state == self.poll_write:
                self.wait_write(conn.fileno())
            else:
                raise conn.OperationalError("Bad result from poll: %r" % (state,))


def install_wait_callback():
    """
    Install the gevent wait callback unless a callback is already
    installed.

    Returns whether this call installed it.
    """
    # pylint:disable=import-error,no-name-in-module
    from psycopg2.extensions import get_wait_callback
    from psycopg2.extensions import set_wait_callback
    if get_wait_callback() is not None:
        return False
    logger.debug("Installing the gevent wait callback for psycopg2")
    set_wait_callback(_GeventPsycopg2WaitCallback())
    return True
