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

import gevent
from hamcrest import assert_that
from hamcrest import contains_exactly
from hamcrest import has_item
from hamcrest import is_not
from nti.testing.matchers import validly_provides

from pgoverlay import builder
from pgoverlay.builder import OverlayBuilder
from pgoverlay.interfaces import IOverlayBuilder
from pgoverlay.model import ManifestEntry
from pgoverlay.model import TableDescriptor
from pgoverlay.postgresql.inspector import PostgreSQLInspector
from pgoverlay.postgresql.reset import ResetGenerator
from pgoverlay.postgresql.synthesizer import OverlaySynthesizer

from . import TestCase
from . import RecordingPool
from . import make_options
from . import mock


WIDGETS_COLUMNS = [
    ('id', 'integer', False, "nextval('widgets_id_seq'::regclass)"),
    ('name', 'text', True, None),
]

LOG_COLUMNS = [
    ('line', 'text', True, None),
]


def _columns(params):
    return {
        '"public"."widgets"': WIDGETS_COLUMNS,
        '"public"."log"': LOG_COLUMNS,
    }[params[0]]


def _primary_key(params):
    return {
        '"public"."widgets"': [('id', 'integer')],
        '"public"."log"': [],
    }[params[0]]


class TestOverlayBuilder(TestCase):

    def setUp(self):
        super(TestOverlayBuilder, self).setUp()
        self.source_options = make_options(host='source', database='prod', user='reader')
        self.overlay_options = make_options(host='overlay', database='scratch', user='dev')
        self.source_pool = RecordingPool({
            PostgreSQLInspector.TABLES_QUERY: [('public', 'widgets'), ('public', 'log')],
            PostgreSQLInspector.COLUMNS_QUERY: _columns,
            PostgreSQLInspector.PRIMARY_KEY_QUERY: _primary_key,
        })
        self.overlay_pool = RecordingPool()

    def _makeOne(self):
        return OverlayBuilder(self.source_pool, self.overlay_pool,
                              self.source_options, self.overlay_options)

    def test_provides(self):
        assert_that(self._makeOne(), validly_provides(IOverlayBuilder))

    def test_concurrency_defaults_to_pool_size(self):
        self.assertEqual(self._makeOne().concurrency, self.overlay_pool.size)

    def test_discover(self):
        tables = self._makeOne().discover()
        self.assertEqual([t.qualified_name for t in tables],
                         [('public', 'widgets'), ('public', 'log')])
        self.assertFalse(tables[0].read_only)
        self.assertTrue(tables[1].read_only)
        # Only catalog queries are run against the source.
        self.assertEqual(self.source_pool.statements[0], PostgreSQLInspector.TABLES_QUERY)
        self.assertEqual(self.source_pool.executed[0][1],
                         (['pg_catalog', 'information_schema'],))

    def test_build(self):
        manifest = self._makeOne().build()
        self.assertEqual(manifest, [
            ManifestEntry('public', 'widgets', False),
            ManifestEntry('public', 'log', True),
        ])

        synthesizer = OverlaySynthesizer()
        widgets = TableDescriptor.from_catalog(
            'public', 'widgets',
            PostgreSQLInspector(self.source_pool).list_columns('public', 'widgets'),
            PostgreSQLInspector(self.source_pool).list_primary_key('public', 'widgets'),
        )
        log = TableDescriptor('public', 'log',
                              PostgreSQLInspector(self.source_pool).list_columns('public', 'log'))

        expected = [
            synthesizer.create_extension(),
            synthesizer.create_server(self.source_options),
            synthesizer.create_user_mapping('dev', self.source_options),
            'CREATE SCHEMA IF NOT EXISTS "overlay_lower_public"',
            PostgreSQLInspector.RELATIONS_QUERY,
            synthesizer.import_mirror('public', ()),
            'CREATE SCHEMA IF NOT EXISTS "overlay_upper_deleted_public"',
            synthesizer.create_tombstone_table(widgets),
            'CREATE SCHEMA IF NOT EXISTS "overlay_upper_inserted_public"',
            synthesizer.create_shadow_table(widgets),
            'CREATE SCHEMA IF NOT EXISTS "public"',
            'CREATE SCHEMA IF NOT EXISTS "overlay_upper_default_function_public"',
        ]
        expected.extend(synthesizer.statements_for_table(widgets))
        expected.extend(synthesizer.statements_for_table(log))
        expected.append(ResetGenerator(synthesizer).create_reset_function([widgets, log]))

        self.assertEqual(self.overlay_pool.statements, expected)
        self.assertEqual(self.overlay_pool.executed[4][1], ('overlay_lower_public',))

    def test_build_logs_phases(self):
        with self.assertLogs(builder.__name__, 'INFO') as logs:
            self._makeOne().build()
        output = '\n'.join(logs.output)
        for phase in builder.PHASES:
            self.assertIn('Phase %s:' % (phase,), output)
        self.assertIn('Phase create-tombstone-tables: 1 unit(s)', output)
        self.assertIn('Phase create-overlay-objects: 2 unit(s)', output)

    def test_import_skips_existing_mirrors(self):
        self.overlay_pool.results[PostgreSQLInspector.RELATIONS_QUERY] = [('widgets',)]
        self._makeOne().build()
        assert_that(self.overlay_pool.statements, has_item(
            'IMPORT FOREIGN SCHEMA "public" EXCEPT ("widgets") '
            'FROM SERVER "overlay_lower_server" INTO "overlay_lower_public"'))

    def test_no_tables(self):
        self.source_pool.results[PostgreSQLInspector.TABLES_QUERY] = []
        manifest = self._makeOne().build()
        self.assertEqual(manifest, [])
        # The server is still registered and the reset function still exists.
        assert_that(self.overlay_pool.statements, contains_exactly(
            'CREATE EXTENSION IF NOT EXISTS "postgres_fdw"',
            OverlaySynthesizer().create_server(self.source_options),
            OverlaySynthesizer().create_user_mapping('dev', self.source_options),
            ResetGenerator(OverlaySynthesizer()).create_reset_function(()),
        ))

    def test_failure_stops_the_run(self):
        class Failure(Exception):
            pass

        execute = self.overlay_pool.execute

        def failing_execute(stmt, params=None):
            if stmt.startswith('CREATE TABLE'):
                raise Failure(stmt)
            return execute(stmt, params)

        self.overlay_pool.execute = failing_execute
        with self.assertRaises(Failure):
            self._makeOne().build()

        # Nothing after the failing phase ran.
        assert_that(self.overlay_pool.statements,
                    is_not(has_item('CREATE SCHEMA IF NOT EXISTS "overlay_upper_inserted_public"')))
        self.assertFalse(any(s.startswith('CREATE OR REPLACE VIEW')
                             for s in self.overlay_pool.statements))


class TestFanOut(TestCase):

    def _makeOne(self, concurrency=3):
        return OverlayBuilder(RecordingPool(), RecordingPool(), make_options(), make_options(),
                              concurrency=concurrency)

    def test_results_in_order(self):
        def work(item):
            gevent.sleep(0.001 * (5 - item))
            return item * 10
        results = self._makeOne()._fan_out('test', work, range(5))
        self.assertEqual(results, [0, 10, 20, 30, 40])

    def test_empty(self):
        self.assertEqual(self._makeOne()._fan_out('test', self.fail, []), [])

    def test_bounded(self):
        running = []
        high_water = []

        def work(_item):
            running.append(1)
            high_water.append(len(running))
            gevent.sleep(0.001)
            running.pop()

        self._makeOne(concurrency=2)._fan_out('test', work, range(6))
        self.assertEqual(max(high_water), 2)

    def test_first_failure_kills_the_rest(self):
        finished = []

        def work(item):
            if item == 0:
                raise ValueError(item)
            gevent.sleep(5)
            finished.append(item)

        with self.assertRaises(ValueError):
            self._makeOne()._fan_out('test', work, range(3))
        gevent.sleep(0)
        self.assertEqual(finished, [])


class TestBuildOverlay(TestCase):

    def test_opens_and_closes_pools(self):
        pools = []

        def open_pool(options, driver_name=None):
            pool = RecordingPool()
            pool.options = options
            pool.driver_name = driver_name
            pools.append(pool)
            return pool

        source_options = make_options(host='source')
        overlay_options = make_options(host='overlay')
        with mock.patch.object(builder, '_open_pool', open_pool):
            with mock.patch.object(builder.OverlayBuilder, 'build',
                                   return_value=['manifest']) as build:
                result = builder.build_overlay(source_options, overlay_options, 'psycopg2')

        self.assertEqual(result, ['manifest'])
        build.assert_called_once_with()
        self.assertEqual([p.options for p in pools], [source_options, overlay_options])
        self.assertEqual([p.driver_name for p in pools], ['psycopg2', 'psycopg2'])
        self.assertTrue(all(p.closed for p in pools))

    def test_pools_closed_on_failure(self):
        pools = []

        def open_pool(options, driver_name=None):
            pools.append(RecordingPool())
            return pools[-1]

        with mock.patch.object(builder, '_open_pool', open_pool):
            with mock.patch.object(builder.OverlayBuilder, 'build', side_effect=KeyError):
                with self.assertRaises(KeyError):
                    builder.build_overlay(make_options(), make_options())
        self.assertEqual(len(pools), 2)
        self.assertTrue(all(p.closed for p in pools))

    def test_reset_overlay(self):
        pool = RecordingPool()
        pool.connmanager = mock.Mock()
        with mock.patch.object(builder, '_open_pool', return_value=pool):
            builder.reset_overlay(make_options())

        callback = pool.connmanager.open_and_call.call_args[0][0]
        cursor = mock.Mock()
        callback(None, cursor)
        cursor.execute.assert_called_once_with('SELECT overlay_reset()')
        self.assertTrue(pool.closed)
