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

from hamcrest import assert_that
from nti.testing.matchers import validly_provides

from pgoverlay.interfaces import IResetGenerator
from pgoverlay.model import ColumnDescriptor
from pgoverlay.model import TableDescriptor
from pgoverlay.tests import TestCase

from ..reset import ResetGenerator
from ..synthesizer import OverlaySynthesizer


ID = ColumnDescriptor('id', 'integer', False)


class TestResetGenerator(TestCase):

    def _makeOne(self):
        return ResetGenerator(OverlaySynthesizer())

    def test_provides(self):
        assert_that(self._makeOne(), validly_provides(IResetGenerator))

    def test_function_name(self):
        self.assertEqual(self._makeOne().function_name, 'overlay_reset')

    def test_mutable_tables(self):
        tables = [
            TableDescriptor('public', 'widgets', [ID], [ID]),
            TableDescriptor('public', 'log', [ID]),
            TableDescriptor('sales', 'orders', [ID], [ID]),
        ]
        self.assertEqual(
            self._makeOne().create_reset_function(tables),
            'CREATE OR REPLACE FUNCTION "overlay_reset"() RETURNS void AS $overlay$ BEGIN '
            'DELETE FROM "overlay_upper_deleted_public"."widgets"; '
            'DELETE FROM "overlay_upper_inserted_public"."widgets"; '
            'DELETE FROM "overlay_upper_deleted_sales"."orders"; '
            'DELETE FROM "overlay_upper_inserted_sales"."orders"; '
            'END $overlay$ LANGUAGE plpgsql')

    def test_no_mutable_tables(self):
        expected = ('CREATE OR REPLACE FUNCTION "overlay_reset"() RETURNS void AS '
                    '$overlay$ BEGIN NULL; END $overlay$ LANGUAGE plpgsql')
        generator = self._makeOne()
        self.assertEqual(generator.create_reset_function([]), expected)
        self.assertEqual(
            generator.create_reset_function([TableDescriptor('public', 'log', [ID])]),
            expected)
