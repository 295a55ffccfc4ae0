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
Interfaces and exceptions for building copy-on-write overlays.
"""
from __future__ import absolute_import

from zope.interface import Attribute
from zope.interface import Interface

# pylint:disable=inherit-non-class,no-method-argument,no-self-argument

###
# Exceptions
###

class ConfigurationError(ValueError):
    """
    Raised when connection options are missing or invalid.

    The run never starts.
    """


class SubstitutionError(ValueError):
    """
    Raised when a SQL template cannot be rendered with the
    values it was given.
    """

    #: The template text that failed.
    template = None

    #: The complete mapping of values given to the template.
    values = None

    def __init__(self, message, template=None, values=None):
        super(SubstitutionError, self).__init__(message)
        self.template = template
        self.values = values

    def __str__(self):
        msg = super(SubstitutionError, self).__str__()
        if self.template is not None:
            msg = '%s (template: %r; values: %r)' % (msg, self.template, self.values)
        return msg


class TemplateDefinitionError(SubstitutionError):
    """
    Raised when a template is constructed whose declared slots
    do not match the placeholders in its text.
    """


class DriverNotAvailableError(Exception):
    """
    Raised when a requested driver isn't available.
    """

    #: The name of the requested driver
    driver_name = None

    #: The `IDBDriverOptions` that was asked for the driver.
    driver_options = None

    #: The underlying reason string, for example, a version requirement
    #: not being met, or an object that should be false.
    reason = None

    def __init__(self, driver_name, driver_options=None, reason=None):
        super(DriverNotAvailableError, self).__init__(driver_name)
        self.driver_name = driver_name
        self.driver_options = driver_options
        self.reason = reason

    def _format_drivers(self):
        driver_types = getattr(self.driver_options,
                               'known_driver_types',
                               lambda: ())()
        return ', '.join(
            '%r (Module: %r)' % (
                driver_type.driver_name,
                getattr(driver_type, 'MODULE_NAME', '<unknown>'),
            )
            for driver_type in driver_types
        ) or 'none'

    def __str__(self):
        return '%s: Driver %r is not available. (Reason: %s) Options: %s.' % (
            type(self).__name__, self.driver_name, self.reason or 'Unknown',
            self._format_drivers()
        )

    __repr__ = __str__


class UnknownDriverError(DriverNotAvailableError):
    """
    Raised when a driver that isn't registered at all is requested.
    """


class NoDriversAvailableError(DriverNotAvailableError):
    """
    Raised when there are no drivers available.
    """

    def __init__(self, driver_name='auto', driver_options=None, reason=None):
        super(NoDriversAvailableError, self).__init__(driver_name, driver_options, reason)


###
# Drivers
###

class IDBDriver(Interface):
    """
    An abstraction over the information needed for a DB-API driver.
    """

    driver_name = Attribute("The name of this driver, as used in configuration.")

    priority = Attribute("An integer, lower is better.")

    disconnected_exceptions = Attribute("A tuple of exceptions this driver can raise on any operation "
                                        "if it is disconnected from the database.")

    close_exceptions = Attribute("A tuple of exceptions that we can ignore when we try to "
                                 "close the connection to DB.")

    driver_module = Attribute("The DB-API module this driver wraps.")

    def connect(dsn):
        """
        Create and return a new connection object for the *dsn*.
        """

    def make_dsn(**kwargs):
        """
        Return a connection string built from the keyword arguments,
        with every value correctly quoted.
        """

    def set_autocommit(conn, value):
        """
        Set the autocommit mode of *conn* to the boolean *value*.
        """

    def cursor(conn):
        """
        Create and return a new cursor sharing the state of the given
        connection.
        """

    def get_messages(conn):
        """
        Return and clear the list of messages the server sent on *conn*.
        """

    def gevent_cooperative():
        """
        Return whether the driver yields to the gevent hub while
        waiting for the database.
        """


class IDBDriverOptions(Interface):
    """
    The alternative drivers for one type of database.
    """

    database_type = Attribute("A string naming the type of database. Informational only.")

    def select_driver(driver_name=None):
        """
        Choose and return an `IDBDriver`.

        The *driver_name* of "auto" is equivalent to a *driver_name* of
        `None` and means to choose the highest priority available driver.
        """

    def known_driver_types():
        """
        Return the `IDBDriver` classes `select_driver` chooses from,
        highest priority first.

        Creating an instance of one raises `DriverNotAvailableError`
        if its module can't be used.
        """


###
# Connections
###

class IConnectionManager(Interface):
    """
    Open and close database connections.
    """

    driver = Attribute("The IDBDriver in use.")

    def open():
        """
        Open a database connection in autocommit mode and return
        ``(conn, cursor)``.
        """

    def close(conn=None, cursor=None):
        """
        Close the connection and/or cursor, ignoring the exceptions
        the driver reports as expected on close.

        Return a true value if there were no errors.
        """

    def rollback_and_close(conn, cursor):
        """
        Rollback the connection, ignoring errors, then close it.
        """

    def open_and_call(callback):
        """
        Call ``callback(connection, cursor)`` with a newly open
        connection and cursor.

        If the function returns, commits the transaction and returns
        the result returned by the function. If the function raises an
        exception, aborts the transaction then propagates the
        exception.
        """


class IConnectionPool(Interface):
    """
    A bounded set of connections to one database shared by
    concurrent greenlets.
    """

    size = Attribute("The maximum number of connections open at once.")

    def execute(stmt, params=None):
        """
        Execute *stmt* on a pooled connection.

        Returns the sequence of result rows, or an empty tuple if
        the statement produces no result set. Database errors
        propagate unchanged.
        """

    def borrowing():
        """
        Context manager producing ``(conn, cursor)`` for exclusive use.

        A connection whose use raised an exception is discarded
        instead of being returned to the pool.
        """

    def close():
        """
        Close every idle connection.
        """


###
# Overlay construction
###

class IMetadataInspector(Interface):
    """
    Read-only catalog queries.
    """

    def list_tables(excluded_schemas=None):
        """
        Return a sequence of ``(schema_name, table_name)`` tuples for the
        tables owned by the connecting role, skipping tables in any of the
        *excluded_schemas*.
        """

    def list_columns(schema_name, table_name):
        """
        Return the ordered sequence of
        :class:`pgoverlay.model.ColumnDescriptor` for the table.
        """

    def list_primary_key(schema_name, table_name):
        """
        Return the ordered sequence of
        :class:`pgoverlay.model.PrimaryKeyColumn` for the table's
        primary key. An empty sequence means there is no primary key.
        """

    def list_relations(schema_name):
        """
        Return the sorted names of every table, view and foreign table
        in *schema_name*, whoever owns them.
        """

    def describe_table(schema_name, table_name):
        """
        Return a :class:`pgoverlay.model.TableDescriptor` built from
        :meth:`list_columns` and :meth:`list_primary_key`.
        """


class IOverlaySynthesizer(Interface):
    """
    Produces the SQL text of the objects that make up an overlay.

    Nothing here executes anything.
    """

    def create_extension():
        """The statement enabling the foreign-data wrapper."""

    def create_server(source_options):
        """
        The statement registering the source database as a foreign
        server, given its :class:`pgoverlay.options.ConnectionOptions`.
        """

    def create_user_mapping(overlay_user, source_options):
        """
        The statement giving the *overlay_user* role credentials on the
        foreign server.
        """

    def create_schema(schema_name):
        """The idempotent statement creating a namespace."""

    def import_mirror(source_schema, existing_tables):
        """
        The statement importing *source_schema* into its mirror namespace,
        skipping the *existing_tables* already present there.
        """

    def create_tombstone_table(table):
        """The tombstone storage table for a mutable *table*."""

    def create_shadow_table(table):
        """The shadow storage table for a mutable *table*."""

    def statements_for_table(table):
        """
        The ordered statements for the overlay object of *table*: the
        view and its default emulation, the trigger making a tombstone
        remove its shadow row, then the rules on the view.
        """


class IResetGenerator(Interface):
    """
    Produces the procedure that discards every local edit.
    """

    function_name = Attribute("The name of the generated zero-argument function.")

    def create_reset_function(tables):
        """
        Return the statement (re)defining the reset function for the
        given table descriptors. Read-only tables are ignored.
        """


class IOverlayBuilder(Interface):
    """
    Drives the construction of an overlay, phase by phase.
    """

    def build():
        """
        Construct (or converge) the overlay.

        Returns the ordered list of
        :class:`pgoverlay.model.ManifestEntry` objects, one for each
        discovered table. Any error aborts the run and propagates.
        """
