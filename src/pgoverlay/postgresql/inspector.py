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
Catalog queries.

The builder discovers the source tables with these, and asks the
overlay database which mirrors it already imported.
"""
from __future__ import absolute_import

from zope.interface import implementer

from ..interfaces import IMetadataInspector
from ..model import ColumnDescriptor
from ..model import PrimaryKeyColumn
from ..model import TableDescriptor
from ..sql import quote_qualified

logger = __import__('logging').getLogger(__name__)

#: Schemas that hold the system catalog rather than user tables.
DEFAULT_EXCLUDED_SCHEMAS = ('pg_catalog', 'information_schema')


@implementer(IMetadataInspector)
class PostgreSQLInspector(object):
    """
    Discovers tables, columns and primary keys.

    Nothing is cached; each call reads the current catalog.

    :param pool: An :class:`pgoverlay.interfaces.IConnectionPool`
        for the database to inspect.
    """

    TABLES_QUERY = """
    SELECT schemaname, tablename
    FROM pg_catalog.pg_tables
    WHERE tableowner = current_user
    AND NOT (schemaname = ANY(%s))
    ORDER BY schemaname, tablename
    """

    # The relation is given as a quoted qualified name so that
    # mixed-case and non-ASCII names resolve through ``regclass``.
    COLUMNS_QUERY = """
    SELECT a.attname,
           format_type(a.atttypid, a.atttypmod),
           NOT a.attnotnull,
           pg_get_expr(d.adbin, d.adrelid)
    FROM pg_catalog.pg_attribute a
    LEFT JOIN pg_catalog.pg_attrdef d
        ON d.adrelid = a.attrelid AND d.adnum = a.attnum
    WHERE a.attrelid = %s::regclass
    AND a.attnum > 0
    AND NOT a.attisdropped
    ORDER BY a.attnum
    """

    RELATIONS_QUERY = """
    SELECT DISTINCT table_name
    FROM information_schema.tables
    WHERE table_schema = %s
    """

    PRIMARY_KEY_QUERY = """
    SELECT a.attname,
           format_type(a.atttypid, a.atttypmod)
    FROM pg_catalog.pg_index i
    JOIN pg_catalog.pg_attribute a
        ON a.attrelid = i.indrelid AND a.attnum = ANY(i.indkey)
    WHERE i.indrelid = %s::regclass
    AND i.indisprimary
    ORDER BY array_position(i.indkey::smallint[], a.attnum)
    """

    def __init__(self, pool):
        self.pool = pool

    def list_tables(self, excluded_schemas=None):
        if excluded_schemas is None:
            excluded_schemas = DEFAULT_EXCLUDED_SCHEMAS
        rows = self.pool.execute(self.TABLES_QUERY, (list(excluded_schemas),))
        return [(schema_name, table_name) for schema_name, table_name in rows]

    def list_columns(self, schema_name, table_name):
        rows = self.pool.execute(
            self.COLUMNS_QUERY,
            (quote_qualified((schema_name, table_name)),)
        )
        return [
            ColumnDescriptor(name, data_type, nullable, default_expression)
            for name, data_type, nullable, default_expression in rows
        ]

    def list_primary_key(self, schema_name, table_name):
        rows = self.pool.execute(
            self.PRIMARY_KEY_QUERY,
            (quote_qualified((schema_name, table_name)),)
        )
        return [PrimaryKeyColumn(name, data_type) for name, data_type in rows]

    def list_relations(self, schema_name):
        rows = self.pool.execute(self.RELATIONS_QUERY, (schema_name,))
        return sorted(row[0] for row in rows)

    def describe_table(self, schema_name, table_name):
        table = TableDescriptor.from_catalog(
            schema_name, table_name,
            self.list_columns(schema_name, table_name),
            self.list_primary_key(schema_name, table_name),
        )
        logger.debug("Discovered %r", table)
        return table
