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
Descriptions of source tables, as read from the catalog.

These are created fresh on every run and never modified.
"""
from __future__ import absolute_import

from collections import namedtuple

__all__ = [
    'ColumnDescriptor',
    'PrimaryKeyColumn',
    'TableDescriptor',
    'ManifestEntry',
]


class ColumnDescriptor(namedtuple('_ColumnDescriptor',
                                  ('name', 'data_type', 'nullable', 'default_expression'))):
    """
    One column of a source table.

    *data_type* is the formatted type, including any modifier, and
    *default_expression* is the raw default text, or None.
    """
    __slots__ = ()

    def __new__(cls, name, data_type, nullable=True, default_expression=None):
        return super(ColumnDescriptor, cls).__new__(
            cls, name, data_type, bool(nullable), default_expression)

    @property
    def has_default(self):
        return self.default_expression is not None


PrimaryKeyColumn = namedtuple('PrimaryKeyColumn', ('column_name', 'data_type'))


ManifestEntry = namedtuple('ManifestEntry', ('schema_name', 'table_name', 'read_only'))


class TableDescriptor(object):
    """
    A source table: its columns, in order, and the (possibly empty)
    primary key drawn from those columns.

    A table without a primary key is read-only.
    """

    __slots__ = (
        'schema_name',
        'table_name',
        'columns',
        'primary_key',
    )

    def __init__(self, schema_name, table_name, columns, primary_key=()):
        columns = tuple(columns)
        primary_key = tuple(primary_key)
        for key_column in primary_key:
            if key_column not in columns:
                __traceback_info__ = columns
                raise ValueError("Primary key column %r is not a column of %s.%s" % (
                    key_column, schema_name, table_name
                ))
        object.__setattr__(self, 'schema_name', schema_name)
        object.__setattr__(self, 'table_name', table_name)
        object.__setattr__(self, 'columns', columns)
        object.__setattr__(self, 'primary_key', primary_key)

    def __setattr__(self, name, value):
        raise AttributeError("TableDescriptor is immutable")

    @classmethod
    def from_catalog(cls, schema_name, table_name, columns, key_columns):
        """
        Build a descriptor from the results of the inspector's
        ``list_columns`` and ``list_primary_key``.
        """
        columns = tuple(columns)
        by_name = {c.name: c for c in columns}
        try:
            primary_key = [by_name[k.column_name] for k in key_columns]
        except KeyError as ex:
            raise ValueError("Primary key column %s is not a column of %s.%s" % (
                ex, schema_name, table_name
            )) from ex
        return cls(schema_name, table_name, columns, primary_key)

    @property
    def read_only(self):
        return not self.primary_key

    @property
    def qualified_name(self):
        return (self.schema_name, self.table_name)

    def manifest_entry(self):
        return ManifestEntry(self.schema_name, self.table_name, self.read_only)

    def __eq__(self, other):
        if not isinstance(other, TableDescriptor):
            return NotImplemented
        return self.qualified_name == other.qualified_name

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        return hash(self.qualified_name)

    def __repr__(self):
        return '<%s %s.%s columns=%r primary_key=%r>' % (
            type(self).__name__,
            self.schema_name, self.table_name,
            [c.name for c in self.columns],
            [c.name for c in self.primary_key],
        )
