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
The DDL making up a copy-on-write overlay.

For each source table ``s.t`` the overlay database gets:

- a foreign table mirroring it, ``overlay_lower_s.t``;
- for tables with a primary key, a tombstone table of deleted keys,
  ``overlay_upper_deleted_s.t``, and a shadow table of locally
  written rows, ``overlay_upper_inserted_s.t``;
- a view ``s.t`` merging those; and
- rules on that view redirecting writes to the tombstone and shadow
  tables, plus functions supplying column defaults.

A table without a primary key gets only the mirror and a view that
passes it through; writes to that view fail.
"""
from __future__ import absolute_import

from zope.interface import implementer

from ..interfaces import IOverlaySynthesizer
from ..namespaces import NamespaceSet
from ..sql import IDENTIFIER
from ..sql import QUALIFIED
from ..sql import RAW
from ..sql import Raw
from ..sql import Secret
from ..sql import Template
from ..sql import join_raw
from ..sql import quote_identifier
from ..sql import quote_literal
from ..sql import quote_qualified

logger = __import__('logging').getLogger(__name__)

#: The foreign data wrapper the mirrors are imported through.
WRAPPER_NAME = 'postgres_fdw'
#: The name of the foreign server standing for the source database.
SERVER_NAME = 'overlay_lower_server'
#: ``IMPORT FOREIGN SCHEMA ... EXCEPT ()`` is a syntax error, so this
#: name fills an otherwise empty exception list.
IMPORT_SENTINEL = '_overlay_lower_import_sentinel_never_exists'
#: The trigger on each tombstone table that removes the matching
#: shadow row.
FORGET_SHADOW_TRIGGER_NAME = 'overlay_forget_shadow'

# Aliases used inside the merged view.
IDS_ALIAS = '_ids'
MIRROR_ALIAS = '_mirror'
SHADOW_ALIAS = '_shadow'

# Default expressions for these types are recomputed from the
# largest value in use rather than copied.
_INCREMENTING_TYPES = frozenset((
    'smallint',
    'integer',
    'bigint',
    'numeric',
    'real',
    'double precision',
))


def _column(alias, column):
    return alias + '.' + quote_identifier(column.name)


def _column_list(columns):
    return join_raw(', ', (quote_identifier(c.name) for c in columns))


def _conditions(left, right, columns):
    """
    ``left.c = right.c AND ...`` for every column, where *left* and
    *right* are already-quoted prefixes.
    """
    return join_raw(' AND ', (
        '%s.%s = %s.%s' % (left, quote_identifier(c.name), right, quote_identifier(c.name))
        for c in columns
    ))


@implementer(IOverlaySynthesizer)
class OverlaySynthesizer(object):
    """
    Produces the text of every overlay statement. Nothing is executed
    here.
    """

    CREATE_EXTENSION = Template(
        'CREATE EXTENSION IF NOT EXISTS #{extension_name}',
        extension_name=IDENTIFIER,
    )

    CREATE_SERVER = Template(
        'CREATE SERVER IF NOT EXISTS #{server_name} '
        'FOREIGN DATA WRAPPER #{wrapper_name} '
        "OPTIONS (host #{host}, port #{port}, dbname #{dbname}, updatable 'false')",
        server_name=IDENTIFIER,
        wrapper_name=IDENTIFIER,
        host=RAW,
        port=RAW,
        dbname=RAW,
    )

    CREATE_USER_MAPPING = Template(
        'CREATE USER MAPPING IF NOT EXISTS FOR #{role_name} '
        'SERVER #{server_name} '
        'OPTIONS (user #{user}, password #{password})',
        role_name=IDENTIFIER,
        server_name=IDENTIFIER,
        user=RAW,
        password=RAW,
    )

    CREATE_SCHEMA = Template(
        'CREATE SCHEMA IF NOT EXISTS #{schema_name}',
        schema_name=IDENTIFIER,
    )

    IMPORT_FOREIGN_SCHEMA = Template(
        'IMPORT FOREIGN SCHEMA #{remote_schema} '
        'EXCEPT (#{excluded_tables}) '
        'FROM SERVER #{server_name} '
        'INTO #{local_schema}',
        remote_schema=IDENTIFIER,
        excluded_tables=RAW,
        server_name=IDENTIFIER,
        local_schema=IDENTIFIER,
    )

    CREATE_TABLE = Template(
        'CREATE TABLE IF NOT EXISTS #{table_name} (#{column_definitions})',
        table_name=QUALIFIED,
        column_definitions=RAW,
    )

    CREATE_PASSTHROUGH_VIEW = Template(
        'CREATE OR REPLACE VIEW #{view_name} AS SELECT * FROM #{mirror_table}',
        view_name=QUALIFIED,
        mirror_table=QUALIFIED,
    )

    # UNION and EXCEPT bind equally and associate to the left, so this
    # is (shadow keys UNION mirror keys) EXCEPT tombstone keys.
    CREATE_MERGED_VIEW = Template(
        'CREATE OR REPLACE VIEW #{view_name} AS '
        'SELECT #{select_list} '
        'FROM ('
        'SELECT #{key_columns} FROM #{shadow_table} '
        'UNION SELECT #{key_columns} FROM #{mirror_table} '
        'EXCEPT SELECT #{key_columns} FROM #{tombstone_table}'
        ') AS ' + IDS_ALIAS + ' '
        'LEFT JOIN #{mirror_table} AS ' + MIRROR_ALIAS + ' ON #{mirror_join} '
        'LEFT JOIN #{shadow_table} AS ' + SHADOW_ALIAS + ' ON #{shadow_join}',
        view_name=QUALIFIED,
        select_list=RAW,
        key_columns=RAW,
        shadow_table=QUALIFIED,
        mirror_table=QUALIFIED,
        tombstone_table=QUALIFIED,
        mirror_join=RAW,
        shadow_join=RAW,
    )

    CREATE_DEFAULT_FUNCTION = Template(
        'CREATE OR REPLACE FUNCTION #{function_name}() RETURNS #{return_type} AS '
        '$overlay$ BEGIN RETURN #{expression}; END $overlay$ '
        'LANGUAGE plpgsql',
        function_name=QUALIFIED,
        return_type=RAW,
        expression=RAW,
    )

    SET_COLUMN_DEFAULT = Template(
        'ALTER VIEW #{view_name} ALTER COLUMN #{column_name} '
        'SET DEFAULT #{function_name}()',
        view_name=QUALIFIED,
        column_name=IDENTIFIER,
        function_name=QUALIFIED,
    )

    # A delete only writes the tombstone. The shadow row, if any, is
    # removed by a trigger on the tombstone table: a second rule action
    # would re-read OLD through the view, which by then no longer
    # shows the row (or, run first, shows the mirror version instead).
    CREATE_DELETE_RULE = Template(
        'CREATE OR REPLACE RULE #{rule_name} AS ON DELETE TO #{view_name} '
        'DO INSTEAD '
        'INSERT INTO #{tombstone_table} VALUES (#{old_key_values}) ON CONFLICT DO NOTHING',
        rule_name=IDENTIFIER,
        view_name=QUALIFIED,
        tombstone_table=QUALIFIED,
        old_key_values=RAW,
    )

    CREATE_FORGET_SHADOW_FUNCTION = Template(
        'CREATE OR REPLACE FUNCTION #{function_name}() RETURNS trigger AS '
        '$overlay$ BEGIN '
        'DELETE FROM #{shadow_table} WHERE #{shadow_matches_new}; '
        'RETURN NEW; '
        'END $overlay$ LANGUAGE plpgsql',
        function_name=QUALIFIED,
        shadow_table=QUALIFIED,
        shadow_matches_new=RAW,
    )

    # There is no CREATE TRIGGER IF NOT EXISTS before PostgreSQL 14.
    DROP_FORGET_SHADOW_TRIGGER = Template(
        'DROP TRIGGER IF EXISTS #{trigger_name} ON #{tombstone_table}',
        trigger_name=IDENTIFIER,
        tombstone_table=QUALIFIED,
    )

    CREATE_FORGET_SHADOW_TRIGGER = Template(
        'CREATE TRIGGER #{trigger_name} BEFORE INSERT ON #{tombstone_table} '
        'FOR EACH ROW EXECUTE PROCEDURE #{function_name}()',
        trigger_name=IDENTIFIER,
        tombstone_table=QUALIFIED,
        function_name=QUALIFIED,
    )

    CREATE_UPDATE_RULE = Template(
        'CREATE OR REPLACE RULE #{rule_name} AS ON UPDATE TO #{view_name} '
        'DO INSTEAD '
        'INSERT INTO #{shadow_table} VALUES (#{new_values}) '
        'ON CONFLICT (#{key_columns}) DO UPDATE SET #{assignments}',
        rule_name=IDENTIFIER,
        view_name=QUALIFIED,
        shadow_table=QUALIFIED,
        new_values=RAW,
        key_columns=RAW,
        assignments=RAW,
    )

    # The tombstone is cleared before the row is written, so a key
    # deleted and then inserted again is visible.
    CREATE_INSERT_RULE = Template(
        'CREATE OR REPLACE RULE #{rule_name} AS ON INSERT TO #{view_name} '
        'DO INSTEAD ('
        'DELETE FROM #{tombstone_table} WHERE #{tombstone_matches_new}; '
        'INSERT INTO #{shadow_table} VALUES (#{new_values}) '
        'ON CONFLICT (#{key_columns}) DO UPDATE SET #{assignments} '
        'RETURNING *'
        ')',
        rule_name=IDENTIFIER,
        view_name=QUALIFIED,
        tombstone_table=QUALIFIED,
        tombstone_matches_new=RAW,
        shadow_table=QUALIFIED,
        new_values=RAW,
        key_columns=RAW,
        assignments=RAW,
    )

    def __init__(self):
        self._namespaces = {}

    def namespaces(self, source_schema):
        try:
            return self._namespaces[source_schema]
        except KeyError:
            result = self._namespaces[source_schema] = NamespaceSet.for_schema(source_schema)
            return result

    ###
    # Names of the objects for one table
    ###

    def view_name(self, table):
        return (self.namespaces(table.schema_name).overlay_schema, table.table_name)

    def mirror_table_name(self, table):
        return (self.namespaces(table.schema_name).mirror_schema, table.table_name)

    def tombstone_table_name(self, table):
        return (self.namespaces(table.schema_name).tombstone_schema, table.table_name)

    def shadow_table_name(self, table):
        return (self.namespaces(table.schema_name).shadow_schema, table.table_name)

    def default_function_name(self, table, column):
        # The length prefix keeps the name unambiguous when either part
        # itself contains the separator.
        return (
            self.namespaces(table.schema_name).default_function_schema,
            '%d_%s__%s' % (len(table.table_name), table.table_name, column.name),
        )

    def forget_shadow_function_name(self, table):
        return self.tombstone_table_name(table)

    ###
    # Server setup
    ###

    def create_extension(self):
        return self.CREATE_EXTENSION.bind(extension_name=WRAPPER_NAME)

    def create_server(self, source_options):
        return self.CREATE_SERVER.bind(
            server_name=SERVER_NAME,
            wrapper_name=WRAPPER_NAME,
            host=Raw(quote_literal(source_options.host)),
            port=Raw(quote_literal(source_options.port)),
            dbname=Raw(quote_literal(source_options.database)),
        )

    def create_user_mapping(self, overlay_user, source_options):
        return self.CREATE_USER_MAPPING.bind(
            role_name=overlay_user,
            server_name=SERVER_NAME,
            user=Raw(quote_literal(source_options.user)),
            password=Secret(quote_literal(source_options.password)),
        )

    def create_schema(self, schema_name):
        return self.CREATE_SCHEMA.bind(schema_name=schema_name)

    def import_mirror(self, source_schema, existing_tables):
        excluded = sorted(existing_tables) or [IMPORT_SENTINEL]
        return self.IMPORT_FOREIGN_SCHEMA.bind(
            remote_schema=source_schema,
            excluded_tables=join_raw(', ', (quote_identifier(t) for t in excluded)),
            server_name=SERVER_NAME,
            local_schema=self.namespaces(source_schema).mirror_schema,
        )

    ###
    # Storage for local edits
    ###

    def _primary_key_constraint(self, table):
        return 'PRIMARY KEY (%s)' % (_column_list(table.primary_key),)

    def create_tombstone_table(self, table):
        definitions = [
            '%s %s NOT NULL' % (quote_identifier(c.name), c.data_type)
            for c in table.primary_key
        ]
        definitions.append(self._primary_key_constraint(table))
        return self.CREATE_TABLE.bind(
            table_name=self.tombstone_table_name(table),
            column_definitions=join_raw(', ', definitions),
        )

    def create_shadow_table(self, table):
        definitions = [
            '%s %s%s' % (quote_identifier(c.name), c.data_type,
                         '' if c.nullable else ' NOT NULL')
            for c in table.columns
        ]
        definitions.append(self._primary_key_constraint(table))
        return self.CREATE_TABLE.bind(
            table_name=self.shadow_table_name(table),
            column_definitions=join_raw(', ', definitions),
        )

    ###
    # The view readers and writers use
    ###

    def create_view(self, table):
        if table.read_only:
            return self.CREATE_PASSTHROUGH_VIEW.bind(
                view_name=self.view_name(table),
                mirror_table=self.mirror_table_name(table),
            )

        # A shadow row exists exactly when its (non-null) key columns do.
        shadow_exists = '%s IS NOT NULL' % (_column(SHADOW_ALIAS, table.primary_key[0]),)
        select_list = join_raw(', ', (
            'CASE WHEN %s THEN %s ELSE %s END AS %s' % (
                shadow_exists,
                _column(SHADOW_ALIAS, c),
                _column(MIRROR_ALIAS, c),
                quote_identifier(c.name),
            )
            for c in table.columns
        ))
        return self.CREATE_MERGED_VIEW.bind(
            view_name=self.view_name(table),
            select_list=select_list,
            key_columns=_column_list(table.primary_key),
            shadow_table=self.shadow_table_name(table),
            mirror_table=self.mirror_table_name(table),
            tombstone_table=self.tombstone_table_name(table),
            mirror_join=_conditions(MIRROR_ALIAS, IDS_ALIAS, table.primary_key),
            shadow_join=_conditions(SHADOW_ALIAS, IDS_ALIAS, table.primary_key),
        )

    def _default_expression(self, table, column):
        base_type = column.data_type.split('(', 1)[0].strip()
        if base_type in _INCREMENTING_TYPES or column.default_expression.startswith('nextval('):
            name = quote_identifier(column.name)
            return Raw(
                'COALESCE(GREATEST('
                '(SELECT MAX(%s) FROM %s), '
                '(SELECT MAX(%s) FROM %s)'
                '), 0) + 1' % (
                    name, quote_qualified(self.mirror_table_name(table)),
                    name, quote_qualified(self.shadow_table_name(table)),
                )
            )
        # Anything else (now(), a constant) is evaluated here as written.
        # An expression naming objects that only exist in the source
        # creates fine but fails when a row is inserted.
        return Raw('(%s)' % (column.default_expression,))

    def default_statements(self, table):
        """
        For each column of a writable *table* that has a default, the
        statements creating the function that computes it and binding
        it as the view column's default.
        """
        if table.read_only:
            return []
        result = []
        for column in table.columns:
            if not column.has_default:
                continue
            function_name = self.default_function_name(table, column)
            result.append(self.CREATE_DEFAULT_FUNCTION.bind(
                function_name=function_name,
                return_type=Raw(column.data_type),
                expression=self._default_expression(table, column),
            ))
            result.append(self.SET_COLUMN_DEFAULT.bind(
                view_name=self.view_name(table),
                column_name=column.name,
                function_name=function_name,
            ))
        return result

    ###
    # Rules
    ###

    def _rule_name(self, table, rule_schema_field):
        namespaces = self.namespaces(table.schema_name)
        return namespaces.rule_name(getattr(namespaces, rule_schema_field), table.table_name)

    def _new_values(self, table):
        return join_raw(', ', (_column('NEW', c) for c in table.columns))

    def _assignments(self, table):
        return join_raw(', ', (
            '%s = EXCLUDED.%s' % (quote_identifier(c.name), quote_identifier(c.name))
            for c in table.columns
        ))

    def delete_rule(self, table):
        return self.CREATE_DELETE_RULE.bind(
            rule_name=self._rule_name(table, 'delete_rule_schema'),
            view_name=self.view_name(table),
            tombstone_table=self.tombstone_table_name(table),
            old_key_values=join_raw(', ', (_column('OLD', c) for c in table.primary_key)),
        )

    def forget_shadow_statements(self, table):
        """
        The statements making each new tombstone row of *table* remove
        the shadow row with the same key.
        """
        shadow_table = self.shadow_table_name(table)
        tombstone_table = self.tombstone_table_name(table)
        function_name = self.forget_shadow_function_name(table)
        return [
            self.CREATE_FORGET_SHADOW_FUNCTION.bind(
                function_name=function_name,
                shadow_table=shadow_table,
                shadow_matches_new=_conditions(quote_qualified(shadow_table), 'NEW',
                                               table.primary_key),
            ),
            self.DROP_FORGET_SHADOW_TRIGGER.bind(
                trigger_name=FORGET_SHADOW_TRIGGER_NAME,
                tombstone_table=tombstone_table,
            ),
            self.CREATE_FORGET_SHADOW_TRIGGER.bind(
                trigger_name=FORGET_SHADOW_TRIGGER_NAME,
                tombstone_table=tombstone_table,
                function_name=function_name,
            ),
        ]

    def update_rule(self, table):
        return self.CREATE_UPDATE_RULE.bind(
            rule_name=self._rule_name(table, 'update_rule_schema'),
            view_name=self.view_name(table),
            shadow_table=self.shadow_table_name(table),
            new_values=self._new_values(table),
            key_columns=_column_list(table.primary_key),
            assignments=self._assignments(table),
        )

    def insert_rule(self, table):
        tombstone_table = self.tombstone_table_name(table)
        return self.CREATE_INSERT_RULE.bind(
            rule_name=self._rule_name(table, 'insert_rule_schema'),
            view_name=self.view_name(table),
            tombstone_table=tombstone_table,
            tombstone_matches_new=_conditions(quote_qualified(tombstone_table), 'NEW',
                                              table.primary_key),
            shadow_table=self.shadow_table_name(table),
            new_values=self._new_values(table),
            key_columns=_column_list(table.primary_key),
            assignments=self._assignments(table),
        )

    def statements_for_table(self, table):
        statements = [self.create_view(table)]
        if not table.read_only:
            statements.extend(self.default_statements(table))
            statements.extend(self.forget_shadow_statements(table))
            statements.append(self.delete_rule(table))
            statements.append(self.update_rule(table))
            statements.append(self.insert_rule(table))
        return statements
