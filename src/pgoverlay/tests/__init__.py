"""pgoverlay.tests package"""

import contextlib
import unittest
from unittest import mock as _mock

from zope.interface import implementer

from pgoverlay.interfaces import IConnectionPool
from pgoverlay.options import ConnectionOptions

mock = _mock


class TestCase(unittest.TestCase):
    """
    General tests that don't need a database.

    This class supplies some supporting help for assertions and
    cleanups.
    """

    def _closing(self, o):
        """
        Close the object using its 'close' method *after* invoking
        all of the `tearDown` stack, and even running if `setUp`
        fails.

        Returns the given object.
        """
        __traceback_info__ = o
        self.addCleanup(lambda: o.close())
        return o

    def assertIsEmpty(self, container, msg=None):
        self.assertLength(container, 0, msg)

    assertEmpty = assertIsEmpty

    def assertLength(self, container, length, msg=None):
        self.assertEqual(len(container), length,
                         '%s -- %s' % (msg, container) if msg else container)


def make_options(**kw):
    """
    Complete `ConnectionOptions` with test values for anything not
    given.
    """
    values = dict(user='app', host='db.example.com', database='app', password='secret')
    values.update(kw)
    return ConnectionOptions(**values)


class MockConnection(object):
    rolled_back = False
    closed = False
    committed = False
    autocommit = False

    def __init__(self):
        self.notices = []

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True

    def cursor(self):
        return MockCursor(self)


class MockCursor(object):
    closed = False
    description = None

    def __init__(self, conn=None):
        self.executed = []
        self.results = []
        self.connection = conn

    def execute(self, stmt, params=None):
        self.executed.append((stmt, params))

    def fetchone(self):
        return self.results.pop(0)

    def fetchall(self):
        r = self.results
        self.results = None
        return r

    def close(self):
        self.closed = True

    def __iter__(self):
        for row in self.results:
            yield row


class DisconnectedException(Exception):
    pass


class CloseException(Exception):
    pass


class MockDriver(object):
    driver_name = 'mock'
    priority = 1
    disconnected_exceptions = (DisconnectedException,)
    close_exceptions = (CloseException,)
    driver_module = None

    def __init__(self):
        self.logged = []

    def connect(self, dsn):
        conn = MockConnection()
        conn.dsn = dsn
        return conn

    def make_dsn(self, **kwargs):
        return ' '.join('%s=%s' % (k, v) for k, v in sorted(kwargs.items()) if v is not None)

    def set_autocommit(self, conn, value):
        conn.autocommit = value

    def cursor(self, conn):
        return conn.cursor()

    def get_messages(self, conn):
        messages, conn.notices = conn.notices, []
        return messages

    def log_messages(self, conn):
        self.logged.extend(self.get_messages(conn))

    def gevent_cooperative(self):
        return False


class MockConnectionManager(object):

    _ignored_exceptions = MockDriver.disconnected_exceptions + MockDriver.close_exceptions

    def __init__(self, driver=None):
        self.driver = driver if driver is not None else MockDriver()
        self.opened = []
        self.closed = []
        self.rolled_back = []

    def open(self):
        conn = MockConnection()
        cursor = conn.cursor()
        self.opened.append((conn, cursor))
        return conn, cursor

    def close(self, conn=None, cursor=None):
        for obj in (cursor, conn):
            if obj is not None:
                obj.close()
        self.closed.append((conn, cursor))
        return True

    def rollback_and_close(self, conn, cursor):
        conn.rollback()
        self.rolled_back.append((conn, cursor))
        return self.close(conn, cursor)

    def open_and_call(self, callback):
        conn, cursor = self.open()
        try:
            return callback(conn, cursor)
        finally:
            self.close(conn, cursor)


@implementer(IConnectionPool)
class RecordingPool(object):
    """
    Stands in for a `pgoverlay.connections.ConnectionPool`.

    Every statement and its parameters are recorded in ``executed``.
    The rows returned come from *results*, a mapping from statement
    text to either a list of rows or a callable that is given the
    parameters and returns the rows. Unknown statements return no
    rows.
    """

    def __init__(self, results=None, size=4):
        self.results = results if results is not None else {}
        self.size = size
        self.executed = []
        self.closed = False

    @property
    def statements(self):
        return [stmt for stmt, _ in self.executed]

    def execute(self, stmt, params=None):
        self.executed.append((stmt, params))
        rows = self.results.get(stmt, ())
        if callable(rows):
            rows = rows(params)
        return rows

    @contextlib.contextmanager
    def borrowing(self):
        conn = MockConnection()
        yield conn, conn.cursor()

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, t, v, tb):
        self.close()
