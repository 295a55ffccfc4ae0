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
from __future__ import print_function

from zope.interface import implementer

from ._util import metricmethod
from .interfaces import IConnectionManager

logger = __import__('logging').getLogger(__name__)


@implementer(IConnectionManager)
class AbstractConnectionManager(object):
    """
    Abstract base class for connection management.

    Responsible for opening and closing database connections.
    """

    # The list of exceptions to ignore on a rollback *or* close. We
    # take this as the union of the driver's close exceptions and disconnected
    # exceptions (drivers aren't required to organize them to overlap, but
    # in practice they should.)
    _ignored_exceptions = ()

    def __init__(self, options, driver):
        """
        :param options: A :class:`pgoverlay.options.ConnectionOptions`.
        :param driver: A :class:`pgoverlay.interfaces.IDBDriver`,
            which we use for its exceptions.
        """
        self.driver = driver
        self.options = options

        self._ignored_exceptions = tuple(set(
            driver.close_exceptions
            + driver.disconnected_exceptions
        ))

    def __repr__(self):
        return '<%s at 0x%x options=%r driver=%s>' % (
            type(self).__name__, id(self),
            self.options, self.driver,
        )

    def open(self):
        """Open a database connection and return (conn, cursor)."""
        raise NotImplementedError()

    def close(self, conn=None, cursor=None):
        """
        Close a connection and cursor, ignoring certain errors.

        Return a True value if the connection was closed cleanly;
        return a false value if an error was ignored.
        """
        clean = True
        for obj in (cursor, conn):
            if obj is not None:
                try:
                    obj.close()
                except self._ignored_exceptions: # pylint:disable=catching-non-exception
                    logger.debug("Ignoring exception closing %s", obj, exc_info=True)
                    clean = False
        return clean

    def rollback_quietly(self, conn, cursor): # pylint:disable=unused-argument
        """
        Rollback, ignoring the exceptions a broken connection raises.

        Returns whether the rollback succeeded.
        """
        if conn is None:
            return True
        try:
            conn.rollback()
        except self._ignored_exceptions: # pylint:disable=catching-non-exception
            logger.debug("Ignoring exception rolling back %s", conn, exc_info=True)
            return False
        return True

    def rollback_and_close(self, conn, cursor):
        clean_rollback = self.rollback_quietly(conn, cursor)
        clean_close = self.close(conn, cursor)
        return clean_rollback and clean_close

    @metricmethod
    def commit(self, conn, cursor=None): # pylint:disable=unused-argument
        conn.commit()
        self.driver.log_messages(conn)

    def open_and_call(self, callback):
        """
        Call ``callback(connection, cursor)`` with a newly open connection and cursor.

        If the function returns, commits the transaction and returns the
        result returned by the function.
        If the function raises an exception, aborts the transaction
        then propagates the exception.
        """
        conn, cursor = self.open()
        try:
            res = callback(conn, cursor)
        except Exception:
            self.rollback_and_close(conn, cursor)
            raise
        try:
            self.commit(conn, cursor)
        finally:
            self.close(conn, cursor)
        return res
