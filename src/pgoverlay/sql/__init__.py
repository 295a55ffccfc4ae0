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
A small layer for producing DDL text.

Features:

    - Statements are written as plain SQL with named ``#{slot}``
      placeholders.

    - Each template declares its slots, and the kind of value each
      accepts, when it is defined; a template whose text disagrees
      with its declaration fails at import time.

    - Identifiers are always quoted, so mixed case, whitespace,
      reserved words and non-ASCII names survive unchanged.

    - Pre-assembled fragments must be explicitly marked :class:`Raw`.

Catalog queries don't use this; they use driver bind parameters.
"""

from __future__ import absolute_import
from __future__ import division
from __future__ import print_function

from .quoting import Raw
from .quoting import Secret
from .quoting import loggable
from .quoting import quote_identifier
from .quoting import quote_qualified
from .quoting import quote_literal
from .quoting import join_raw

from .template import Template
from .template import IDENTIFIER
from .template import QUALIFIED
from .template import RAW

__all__ = [
    # Values
    'Raw',
    'Secret',
    'loggable',
    'quote_identifier',
    'quote_qualified',
    'quote_literal',
    'join_raw',

    # Templates
    'Template',
    'IDENTIFIER',
    'QUALIFIED',
    'RAW',
]
