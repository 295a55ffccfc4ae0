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
Building an overlay, phase by phase.

Phases run strictly one after another. The units of work inside a
phase touch disjoint objects and run concurrently in greenlets; the
first failure kills the rest of the phase and propagates, ending the
run. Every statement is idempotent, so running again after a failure
converges on the complete overlay.
"""
from __future__ import absolute_import

import gevent
from gevent.pool import Pool
from zope.interface import implementer

from ._util import log_timed
from ._util import metricmethod
from ._util import timer
from .connections import ConnectionPool
from .interfaces import IOverlayBuilder
from .postgresql import drivers
from .postgresql.connmanager import Psycopg2ConnectionManager
from .postgresql.inspector import DEFAULT_EXCLUDED_SCHEMAS
from .postgresql.inspector import PostgreSQLInspector
from .postgresql.reset import ResetGenerator
from .postgresql.synthesizer import OverlaySynthesizer
from .sql import loggable

logger = __import__('logging').getLogger(__name__)

__all__ = [
    'OverlayBuilder',
    'build_overlay',
    'reset_overlay',
    'PHASES',
]

#: The phases of :meth:`OverlayBuilder.build`, in order.
PHASES = (
    'discover',
    'enable-engine-extension',
    'register-remote-source',
    'register-credentials',
    'create-mirror-namespaces',
    'import-mirrors',
    'create-tombstone-namespaces',
    'create-tombstone-tables',
    'create-shadow-namespaces',
    'create-shadow-tables',
    'create-overlay-namespaces',
    'create-default-fn-namespaces',
    'create-overlay-objects',
    'build-reset-procedure',
)


def _unique(items):
    return list(dict.fromkeys(items))


@implementer(IOverlayBuilder)
class OverlayBuilder(object):
    """
    Builds the overlay in the database behind *overlay_pool* on top of
    the database behind *source_pool*.

    :param source_options: The
        :class:`~pgoverlay.options.ConnectionOptions` of the source;
        the foreign server and user mapping are made from them.
    :param overlay_options: The options of the overlay; its ``user``
        is given the user mapping.
    """

    excluded_schemas = DEFAULT_EXCLUDED_SCHEMAS

    def __init__(self, source_pool, overlay_pool, source_options, overlay_options,
                 synthesizer=None, reset_generator=None, concurrency=None):
        self.source_pool = source_pool
        self.overlay_pool = overlay_pool
        self.source_options = source_options
        self.overlay_options = overlay_options
        self.source_inspector = PostgreSQLInspector(source_pool)
        self.overlay_inspector = PostgreSQLInspector(overlay_pool)
        self.synthesizer = synthesizer if synthesizer is not None else OverlaySynthesizer()
        self.reset_generator = (
            reset_generator
            if reset_generator is not None
            else ResetGenerator(self.synthesizer)
        )
        self.concurrency = concurrency or overlay_pool.size

    def _fan_out(self, phase, func, items):
        """
        Call *func* for each of *items* concurrently, returning the
        results in the order of *items*.
        """
        items = list(items)
        logger.info("Phase %s: %d unit(s) of work", phase, len(items))
        if not items:
            return []
        pool = Pool(self.concurrency)
        with timer() as t:
            greenlets = [pool.spawn(func, item) for item in items]
            try:
                gevent.joinall(greenlets, raise_error=True)
            finally:
                # Abandon whatever is still running if one failed.
                pool.kill()
        logger.debug("Phase %s finished in %.3fs", phase, t.duration)
        return [g.value for g in greenlets]

    def _execute(self, stmt):
        __traceback_info__ = loggable(stmt)
        self.overlay_pool.execute(stmt)

    def _execute_all(self, phase, statements):
        self._fan_out(phase, self._execute, statements)

    ###
    # Phases
    ###

    def discover(self):
        names = self.source_inspector.list_tables(self.excluded_schemas)
        return self._fan_out(
            'discover',
            lambda name: self.source_inspector.describe_table(*name),
            names
        )

    def import_mirror(self, source_schema):
        mirror_schema = self.synthesizer.namespaces(source_schema).mirror_schema
        existing = self.overlay_inspector.list_relations(mirror_schema)
        if existing:
            logger.debug("Mirror schema %r already has %s", mirror_schema, existing)
        self._execute(self.synthesizer.import_mirror(source_schema, existing))

    def create_overlay_objects(self, table):
        # These depend on one another, so they go in order.
        for stmt in self.synthesizer.statements_for_table(table):
            self._execute(stmt)
        return table

    @log_timed
    @metricmethod
    def build(self):
        synthesizer = self.synthesizer
        tables = self.discover()
        for table in tables:
            if table.read_only:
                logger.debug("%s.%s has no primary key", table.schema_name, table.table_name)

        schemas = _unique(t.schema_name for t in tables)
        mutable_tables = [t for t in tables if not t.read_only]
        mutable_schemas = _unique(t.schema_name for t in mutable_tables)

        def namespaces(field, source_schemas):
            return [getattr(synthesizer.namespaces(s), field) for s in source_schemas]

        self._execute_all('enable-engine-extension', [synthesizer.create_extension()])
        self._execute_all('register-remote-source',
                          [synthesizer.create_server(self.source_options)])
        self._execute_all('register-credentials', [
            synthesizer.create_user_mapping(self.overlay_options.user, self.source_options)
        ])

        self._execute_all('create-mirror-namespaces', [
            synthesizer.create_schema(name)
            for name in namespaces('mirror_schema', schemas)
        ])
        self._fan_out('import-mirrors', self.import_mirror, schemas)

        self._execute_all('create-tombstone-namespaces', [
            synthesizer.create_schema(name)
            for name in namespaces('tombstone_schema', mutable_schemas)
        ])
        self._execute_all('create-tombstone-tables', [
            synthesizer.create_tombstone_table(t) for t in mutable_tables
        ])

        self._execute_all('create-shadow-namespaces', [
            synthesizer.create_schema(name)
            for name in namespaces('shadow_schema', mutable_schemas)
        ])
        self._execute_all('create-shadow-tables', [
            synthesizer.create_shadow_table(t) for t in mutable_tables
        ])

        self._execute_all('create-overlay-namespaces', [
            synthesizer.create_schema(name)
            for name in namespaces('overlay_schema', schemas)
        ])
        self._execute_all('create-default-fn-namespaces', [
            synthesizer.create_schema(name)
            for name in namespaces('default_function_schema', mutable_schemas)
        ])

        self._fan_out('create-overlay-objects', self.create_overlay_objects, tables)

        self._execute_all('build-reset-procedure', [
            self.reset_generator.create_reset_function(tables)
        ])

        manifest = [t.manifest_entry() for t in tables]
        logger.info("Overlay built for %d table(s), %d read-only",
                    len(manifest), len(tables) - len(mutable_tables))
        return manifest


def _open_pool(options, driver_name=None):
    driver = drivers.select_driver(driver_name or options.driver)
    if not driver.gevent_cooperative():
        logger.info("Driver %s does not cooperate with gevent; "
                    "statements will be issued one at a time.", driver)
    return ConnectionPool(Psycopg2ConnectionManager(driver, options), options.max)


def build_overlay(source_options, overlay_options, driver_name=None):
    """
    Open a pool for each database, build the overlay, and close the
    pools again.

    Returns the manifest from :meth:`OverlayBuilder.build`.
    """
    with _open_pool(source_options, driver_name) as source_pool:
        with _open_pool(overlay_options, driver_name) as overlay_pool:
            builder = OverlayBuilder(source_pool, overlay_pool,
                                     source_options, overlay_options)
            return builder.build()


def reset_overlay(overlay_options, driver_name=None):
    """
    Call the reset function in the overlay database, discarding every
    local edit.
    """
    def call_reset(_conn, cursor):
        cursor.execute('SELECT %s()' % (ResetGenerator.function_name,))
        cursor.fetchall()

    with _open_pool(overlay_options, driver_name) as pool:
        pool.connmanager.open_and_call(call_reset)
    logger.info("Overlay reset")
