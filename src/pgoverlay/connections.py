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
A bounded pool of connections shared by greenlets.

"""
from __future__ import absolute_import
from __future__ import division
from __future__ import print_function

import contextlib

from gevent.lock import BoundedSemaphore
from zope.interface import implementer

from .interfaces import IConnectionPool
from .sql import loggable

logger = __import__('logging').getLogger(__name__)

__all__ = [
    'ConnectionPool',
]


@implementer(IConnectionPool)
class ConnectionPool(object):
    """
    At most *size* connections opened from *connmanager* are in use at
    once; greenlets asking for more wait their turn.

    Idle connections are kept for reuse until :meth:`close`.
    """

    def __init__(self, connmanager, size):
        self.connmanager = connmanager
        self.size = size
        self._semaphore = BoundedSemaphore(size)
        self._idle = []

    def __repr__(self):
        return '<%s size=%s idle=%s %r>' % (
            type(self).__name__, self.size, len(self._idle), self.connmanager
        )

    @contextlib.contextmanager
    def borrowing(self):
        with self._semaphore:
            if self._idle:
                conn, cursor = self._idle.pop()
            else:
                conn, cursor = self.connmanager.open()
            returned = False
            try:
                yield conn, cursor
                returned = True
            finally:
                if returned:
                    self._idle.append((conn, cursor))
                else:
                    self.connmanager.rollback_and_close(conn, cursor)

    def execute(self, stmt, params=None):
        __traceback_info__ = loggable(stmt), params
        with self.borrowing() as (conn, cursor):
            logger.debug("Executing %s; parameters: %r", loggable(stmt), params)
            try:
                cursor.execute(stmt, params)
                rows = cursor.fetchall() if cursor.description is not None else ()
            except Exception:
                logger.warning("statement failed: %s; parameters: %r", loggable(stmt), params)
                raise
            finally:
                self.connmanager.driver.log_messages(conn)
        return rows

    def close(self):
        idle, self._idle = self._idle, []
        for conn, cursor in idle:
            self.connmanager.close(conn, cursor)

    def __enter__(self):
        return self

    def __exit__(self, t, v, tb):
        self.close()
