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
Statement templates with declared, typed slots.

A template is defined once, usually as a class attribute::

    class Installer(object):
        CREATE_SCHEMA = Template(
            'CREATE SCHEMA IF NOT EXISTS #{schema_name}',
            schema_name=IDENTIFIER,
        )

and rendered with :meth:`Template.bind`::

    Installer.CREATE_SCHEMA.bind(schema_name='public')

"""
from __future__ import absolute_import
from __future__ import division
from __future__ import print_function

import re

from zope.interface import implementer

from .._compat import string_types
from ..interfaces import SubstitutionError
from ..interfaces import TemplateDefinitionError
from .interfaces import ITemplate
from .interfaces import IValueKind
from .quoting import REDACTED
from .quoting import Raw
from .quoting import Secret
from .quoting import Statement
from .quoting import quote_identifier
from .quoting import quote_qualified

logger = __import__('logging').getLogger(__name__)

__all__ = [
    'Template',
    'IDENTIFIER',
    'QUALIFIED',
    'RAW',
]

_PLACEHOLDER = re.compile(r'#\{(\w+)\}')


@implementer(IValueKind)
class _Identifier(object):
    name = 'identifier'

    def accepts(self, value):
        return isinstance(value, string_types) and not isinstance(value, Raw) and bool(value)

    def render(self, value):
        return quote_identifier(value)

    def __repr__(self):
        return 'IDENTIFIER'


@implementer(IValueKind)
class _Qualified(object):
    name = 'qualified identifier'

    def accepts(self, value):
        if not isinstance(value, (tuple, list)) or not value:
            return False
        return all(IDENTIFIER.accepts(segment) for segment in value)

    def render(self, value):
        return quote_qualified(value)

    def __repr__(self):
        return 'QUALIFIED'


@implementer(IValueKind)
class _Raw(object):
    name = 'raw fragment'

    def accepts(self, value):
        return isinstance(value, Raw)

    def render(self, value):
        return str(value)

    def __repr__(self):
        return 'RAW'


#: A plain name, rendered as one quoted identifier.
IDENTIFIER = _Identifier()
#: A sequence of names, rendered as a dotted qualified identifier.
QUALIFIED = _Qualified()
#: A :class:`~.Raw` fragment, rendered verbatim.
RAW = _Raw()


@implementer(ITemplate)
class Template(object):
    """
    A statement whose ``#{slot}`` placeholders are declared, with
    their kinds, as keyword arguments.

    Every placeholder in *text* must be declared and every declared
    slot must appear in *text*; otherwise construction raises
    :exc:`~pgoverlay.interfaces.TemplateDefinitionError`.
    """

    __slots__ = (
        'text',
        'slots',
        '_parts',
    )

    def __init__(self, text, **slots):
        self.text = text
        self.slots = slots
        # Alternating literal text and slot names; literal text is at
        # even indices.
        self._parts = _PLACEHOLDER.split(text)

        referenced = set(self._parts[1::2])
        declared = set(slots)
        if referenced != declared:
            raise TemplateDefinitionError(
                "Template slots do not match; undeclared: %s; unused: %s" % (
                    sorted(referenced - declared), sorted(declared - referenced)
                ),
                text, slots
            )
        for name, kind in slots.items():
            if not IValueKind.providedBy(kind):
                raise TemplateDefinitionError(
                    "Slot %r has no value kind: %r" % (name, kind),
                    text, slots
                )

    def substitute(self, values):
        try:
            return self._render(values)
        except SubstitutionError:
            logger.warning("Failed to substitute template %r with values %r",
                           self.text, values)
            raise

    def bind(self, **values):
        return self.substitute(values)

    def _render(self, values):
        missing = sorted(set(self.slots) - set(values))
        if missing:
            raise SubstitutionError("Missing values for slots %s" % (missing,),
                                    self.text, values)
        unexpected = sorted(set(values) - set(self.slots))
        if unexpected:
            raise SubstitutionError("Unexpected values for slots %s" % (unexpected,),
                                    self.text, values)

        rendered = {}
        for name, kind in self.slots.items():
            value = values[name]
            if not kind.accepts(value):
                raise SubstitutionError(
                    "Slot %r expects a %s, not %r" % (name, kind.name, value),
                    self.text, values
                )
            try:
                rendered[name] = kind.render(value)
            except (TypeError, ValueError) as ex:
                raise SubstitutionError(
                    "Slot %r could not be rendered: %s" % (name, ex),
                    self.text, values
                ) from ex

        text = self._join(rendered)
        secrets = [name for name, value in values.items() if isinstance(value, Secret)]
        if not secrets:
            return text
        result = Statement(text)
        rendered.update((name, REDACTED) for name in secrets)
        result.redacted = self._join(rendered)
        return result

    def _join(self, rendered):
        parts = list(self._parts)
        for i in range(1, len(parts), 2):
            parts[i] = rendered[parts[i]]
        return ''.join(parts)

    def __repr__(self):
        return '<%s %r slots=%r>' % (type(self).__name__, self.text, self.slots)
