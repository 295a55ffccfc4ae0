# -*- coding: utf-8 -*-
"""
Tests for connections.py

"""
from __future__ import absolute_import
from __future__ import division
from __future__ import print_function

import gevent
from hamcrest import assert_that
from nti.testing.matchers import validly_provides

from pgoverlay.tests import TestCase
from pgoverlay.tests import MockConnectionManager

from ..interfaces import IConnectionPool
from ..connections import ConnectionPool
from ..sql.quoting import Statement


class TestConnectionPool(TestCase):

    def _makeOne(self, size=2):
        self.connmanager = MockConnectionManager()
        return self._closing(ConnectionPool(self.connmanager, size))

    def test_provides(self):
        assert_that(self._makeOne(), validly_provides(IConnectionPool))

    def test_borrowing_reuses_idle(self):
        pool = self._makeOne()
        with pool.borrowing() as (conn, cursor):
            first = conn
            self.assertIs(cursor.connection, conn)
        with pool.borrowing() as (conn, _):
            self.assertIs(conn, first)
        self.assertLength(self.connmanager.opened, 1)

    def test_borrowing_discards_on_error(self):
        pool = self._makeOne()
        with self.assertRaises(ValueError):
            with pool.borrowing() as (conn, _):
                broken = conn
                raise ValueError
        self.assertTrue(broken.rolled_back)
        self.assertTrue(broken.closed)
        with pool.borrowing() as (conn, _):
            self.assertIsNot(conn, broken)
        self.assertLength(self.connmanager.opened, 2)

    def test_execute_returns_rows(self):
        pool = self._makeOne()
        with pool.borrowing() as (_, cursor):
            cursor.description = (('name',),)
            cursor.results = [('t1',), ('t2',)]
        rows = pool.execute('SELECT name FROM t WHERE x = %s', (1,))
        self.assertEqual(rows, [('t1',), ('t2',)])
        self.assertEqual(cursor.executed, [('SELECT name FROM t WHERE x = %s', (1,))])

    def test_execute_without_result_set(self):
        pool = self._makeOne()
        self.assertEqual(pool.execute('CREATE SCHEMA IF NOT EXISTS "x"'), ())

    def test_execute_logs_failure_and_propagates(self):
        pool = self._makeOne()

        class BadStatement(Exception):
            pass

        with pool.borrowing() as (conn, cursor):
            def execute(stmt, params=None):
                raise BadStatement(stmt)
            cursor.execute = execute
            conn.notices.append('NOTICE: something')

        with self.assertLogs('pgoverlay.connections', 'WARNING') as logs:
            with self.assertRaises(BadStatement):
                pool.execute('DROP EVERYTHING')
        self.assertIn('statement failed: DROP EVERYTHING', logs.output[0])
        # Messages are drained even on failure, and the connection
        # is not reused.
        self.assertEqual(self.connmanager.driver.logged, ['NOTICE: something'])
        self.assertTrue(conn.closed)
        self.assertEqual(pool._idle, [])

    def test_execute_logs_redacted_statement(self):
        pool = self._makeOne()
        stmt = Statement("CREATE USER MAPPING FOR x OPTIONS (password 'hunter2')")
        stmt.redacted = 'CREATE USER MAPPING FOR x OPTIONS (password <hidden>)'
        with self.assertLogs('pgoverlay.connections', 'DEBUG') as logs:
            pool.execute(stmt)
        self.assertIn('password <hidden>', logs.output[0])
        self.assertNotIn('hunter2', '\n'.join(logs.output))
        # The real text is what runs.
        with pool.borrowing() as (_, cursor):
            self.assertEqual(cursor.executed, [(stmt, None)])
            self.assertIn('hunter2', cursor.executed[0][0])

    def test_failure_log_is_redacted(self):
        pool = self._makeOne()

        with pool.borrowing() as (_, cursor):
            def execute(stmt, params=None):
                raise ValueError
            cursor.execute = execute

        stmt = Statement("ALTER ROLE r PASSWORD 'hunter2'")
        stmt.redacted = 'ALTER ROLE r PASSWORD <hidden>'
        with self.assertLogs('pgoverlay.connections', 'WARNING') as logs:
            with self.assertRaises(ValueError):
                pool.execute(stmt)
        self.assertIn('statement failed: ALTER ROLE r PASSWORD <hidden>', logs.output[0])
        self.assertNotIn('hunter2', logs.output[0])

    def test_bounded(self):
        pool = self._makeOne(size=2)
        in_use = []
        high_water = []

        def use():
            with pool.borrowing():
                in_use.append(1)
                high_water.append(len(in_use))
                gevent.sleep(0.01)
                in_use.pop()

        gevent.joinall([gevent.spawn(use) for _ in range(5)], raise_error=True)
        self.assertEqual(max(high_water), 2)
        self.assertLength(self.connmanager.opened, 2)

    def test_close(self):
        pool = self._makeOne()
        with pool.borrowing() as (conn, _):
            pass
        pool.close()
        self.assertTrue(conn.closed)
        self.assertEqual(pool._idle, [])

    def test_context_manager(self):
        pool = ConnectionPool(MockConnectionManager(), 1)
        with pool as p:
            self.assertIs(p, pool)
            with pool.borrowing() as (conn, _):
                pass
        self.assertTrue(conn.closed)
