# -*- coding: utf-8 -*-
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
Quoting of identifiers and constants for PostgreSQL.
"""
from __future__ import absolute_import
from __future__ import division
from __future__ import print_function

from .._compat import string_types

__all__ = [
    'Raw',
    'Secret',
    'Statement',
    'loggable',
    'join_raw',
    'quote_identifier',
    'quote_literal',
    'quote_qualified',
]


class Raw(str):
    """
    A fragment of SQL that is already escaped and is to be used
    verbatim.
    """
    __slots__ = ()

    def __repr__(self):
        return 'Raw(%s)' % (str.__repr__(self),)


#: What a secret renders as wherever statements are logged.
REDACTED = '<hidden>'


class Secret(Raw):
    """
    A `Raw` fragment, such as a quoted password, that must not appear
    in logs or tracebacks.
    """
    __slots__ = ()

    def __repr__(self):
        return 'Secret(%r)' % (REDACTED,)


class Statement(str):
    """
    Rendered statement text that contains secrets.

    The text itself is what gets executed; :attr:`redacted` is the
    same statement with every secret replaced, for logging.
    """

    redacted = None

    def __repr__(self):
        return 'Statement(%r)' % (self.redacted,)


def loggable(stmt):
    """
    Return the form of *stmt* that is safe to write to a log.
    """
    return getattr(stmt, 'redacted', None) or stmt


def join_raw(separator, fragments):
    """
    Join already-escaped *fragments* with *separator*, producing
    a `Raw`.
    """
    return Raw(separator.join(fragments))


def quote_identifier(name):
    """
    Return *name* as a quoted identifier.

    The name is always quoted, and embedded double quotes are
    doubled, so the result names exactly *name* no matter its case
    or content.

    :raises TypeError: If *name* is not text.
    :raises ValueError: If *name* is empty or contains a NUL
        character, which no identifier can.
    """
    if not isinstance(name, string_types):
        raise TypeError("Identifier must be text, not %r" % (name,))
    if not name:
        raise ValueError("Identifier must not be empty")
    if '\x00' in name:
        raise ValueError("Identifier must not contain NUL: %r" % (name,))
    return '"' + name.replace('"', '""') + '"'


def quote_qualified(names):
    """
    Return the sequence *names* as a dotted, qualified identifier,
    each segment quoted individually.
    """
    if isinstance(names, string_types):
        raise TypeError("Qualified names must be a sequence of text, not %r" % (names,))
    names = tuple(names)
    if not names:
        raise ValueError("Qualified names must have at least one segment")
    return '.'.join(quote_identifier(name) for name in names)


def quote_literal(value):
    """
    Return *value* as a SQL string constant.

    Integers are converted to text first. If the text contains a
    backslash, the escape string form (``E'...'``) is used so the
    result does not depend on ``standard_conforming_strings``.
    """
    if isinstance(value, bool) or not isinstance(value, string_types + (int,)):
        raise TypeError("Cannot quote %r as a literal" % (value,))
    value = str(value)
    if '\x00' in value:
        raise ValueError("Literal must not contain NUL: %r" % (value,))
    quoted = "'" + value.replace("'", "''")
    if '\\' in value:
        return "E" + quoted.replace('\\', '\\\\') + "'"
    return quoted + "'"
