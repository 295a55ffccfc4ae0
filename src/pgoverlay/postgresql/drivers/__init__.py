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

"""
The PostgreSQL drivers.

"""
from __future__ import absolute_import
from __future__ import division
from __future__ import print_function

from ...drivers import AbstractModuleDriver
from ...drivers import DriverOptions

logger = __import__('logging').getLogger(__name__)


class AbstractPostgreSQLDriver(AbstractModuleDriver):

    # PostgreSQL is the database most likely to generate
    # server-sent messages ("schema already exists, skipping").
    # Log those using a logger that includes that name.
    message_logger = logger

    def set_autocommit(self, conn, value):
        conn.autocommit = value

    def get_messages(self, conn):
        notices = conn.notices or ()
        if notices:
            notices = list(notices)
            del conn.notices[:]
        return notices


# The driver classes extend the one above.
from .psycopg2 import GeventPsycopg2Driver # pylint:disable=wrong-import-position
from .psycopg2 import Psycopg2Driver # pylint:disable=wrong-import-position

driver_options = DriverOptions('postgresql', Psycopg2Driver, GeventPsycopg2Driver)
select_driver = driver_options.select_driver
