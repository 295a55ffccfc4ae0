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
"""PostgreSQL connection management
"""
from __future__ import absolute_import
from __future__ import print_function

import logging

from .._util import metricmethod
from ..connmanager import AbstractConnectionManager

logger = logging.getLogger(__name__)


class Psycopg2ConnectionManager(AbstractConnectionManager):
    """
    Opens autocommit connections to the database named by a
    :class:`pgoverlay.options.ConnectionOptions`.

    Every statement is its own transaction; the overlay DDL is
    written to be idempotent one statement at a time.
    """

    def __init__(self, driver, options):
        self._dsn = driver.make_dsn(
            host=options.host,
            port=options.port,
            dbname=options.database,
            user=options.user,
            password=options.password,
            application_name=options.application_name,
        )
        super(Psycopg2ConnectionManager, self).__init__(options, driver)

    def describe_dsn(self):
        "The connection parameters, without the password."
        return 'host=%s port=%s dbname=%s user=%s' % (
            self.options.host, self.options.port,
            self.options.database, self.options.user,
        )

    @metricmethod
    def open(self, autocommit=True):
        """Open a database connection and return (conn, cursor)."""
        # pylint:disable=arguments-differ
        try:
            conn = self.driver.connect(self._dsn)
        except self.driver.disconnected_exceptions as e:
            logger.warning("Unable to connect to %s: %s", self.describe_dsn(), e)
            raise
        try:
            self.driver.set_autocommit(conn, autocommit)
            cursor = self.driver.cursor(conn)
        except Exception:
            self.close(conn)
            raise
        logger.debug("Opened connection to %s", self.describe_dsn())
        return conn, cursor
