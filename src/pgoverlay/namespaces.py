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
Names of the overlay schemas derived from a source schema.

Every derived name is a fixed prefix followed by the source schema
name. No prefix is a prefix of another, so the mapping is injective
and the source name can be recovered from any derived name.
"""
from __future__ import absolute_import

from collections import namedtuple

logger = __import__('logging').getLogger(__name__)

#: PostgreSQL silently truncates identifiers longer than this many bytes.
MAX_IDENTIFIER_BYTES = 63

MIRROR_PREFIX = 'overlay_lower_'
TOMBSTONE_PREFIX = 'overlay_upper_deleted_'
SHADOW_PREFIX = 'overlay_upper_inserted_'
DELETE_RULE_PREFIX = 'overlay_upper_delete_rule_'
INSERT_RULE_PREFIX = 'overlay_upper_insert_rule_'
UPDATE_RULE_PREFIX = 'overlay_upper_update_rule_'
DEFAULT_FUNCTION_PREFIX = 'overlay_upper_default_function_'

_FIELDS_AND_PREFIXES = (
    ('mirror_schema', MIRROR_PREFIX),
    ('tombstone_schema', TOMBSTONE_PREFIX),
    ('shadow_schema', SHADOW_PREFIX),
    ('delete_rule_schema', DELETE_RULE_PREFIX),
    ('insert_rule_schema', INSERT_RULE_PREFIX),
    ('update_rule_schema', UPDATE_RULE_PREFIX),
    ('default_function_schema', DEFAULT_FUNCTION_PREFIX),
)

PREFIXES = tuple(prefix for _, prefix in _FIELDS_AND_PREFIXES)


class NamespaceSet(namedtuple('_NamespaceSet',
                              ('source_schema', 'overlay_schema')
                              + tuple(field for field, _ in _FIELDS_AND_PREFIXES))):
    """
    The names derived from one source schema.

    The merged views live in ``overlay_schema``, which is the source
    schema name itself.
    """
    __slots__ = ()

    @classmethod
    def for_schema(cls, source_schema):
        derived = [prefix + source_schema for _, prefix in _FIELDS_AND_PREFIXES]
        for name in derived:
            if len(name.encode('utf-8')) > MAX_IDENTIFIER_BYTES:
                logger.warning(
                    "Derived name %r is longer than %d bytes and will be truncated "
                    "by the server; it may collide with other names.",
                    name, MAX_IDENTIFIER_BYTES
                )
        return cls(source_schema, source_schema, *derived)

    def rule_name(self, rule_schema, table_name):
        """
        The single identifier naming a rule on *table_name*.

        *rule_schema* is one of the rule schema names of this set.
        """
        return rule_schema + '__' + table_name


def source_schema_for(derived_name):
    """
    Return the source schema name that *derived_name* was produced
    from by :meth:`NamespaceSet.for_schema`.

    :raises ValueError: If *derived_name* does not start with any
        known prefix.
    """
    for prefix in PREFIXES:
        if derived_name.startswith(prefix):
            return derived_name[len(prefix):]
    raise ValueError("Not a derived overlay name: %r" % (derived_name,))
