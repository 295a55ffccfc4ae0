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
The function that discards every local edit.
"""
from __future__ import absolute_import

from zope.interface import implementer

from ..interfaces import IResetGenerator
from ..sql import IDENTIFIER
from ..sql import RAW
from ..sql import Template
from ..sql import join_raw
from ..sql import quote_qualified

logger = __import__('logging').getLogger(__name__)

#: The name the reset function is created with.
RESET_FUNCTION_NAME = 'overlay_reset'


@implementer(IResetGenerator)
class ResetGenerator(object):
    """
    Builds ``overlay_reset()``, which empties the tombstone and shadow
    tables of every writable table so the views show exactly the
    mirrors again.

    The function is replaced wholesale on every run, so it always
    covers exactly the tables of the latest run.
    """

    function_name = RESET_FUNCTION_NAME

    CREATE_RESET_FUNCTION = Template(
        'CREATE OR REPLACE FUNCTION #{function_name}() RETURNS void AS '
        '$overlay$ BEGIN #{function_body} END $overlay$ '
        'LANGUAGE plpgsql',
        function_name=IDENTIFIER,
        function_body=RAW,
    )

    def __init__(self, synthesizer):
        # Names the tombstone and shadow tables.
        self.synthesizer = synthesizer

    def create_reset_function(self, tables):
        statements = []
        for table in tables:
            if table.read_only:
                continue
            statements.append('DELETE FROM %s;' % (
                quote_qualified(self.synthesizer.tombstone_table_name(table)),))
            statements.append('DELETE FROM %s;' % (
                quote_qualified(self.synthesizer.shadow_table_name(table)),))
        if not statements:
            statements.append('NULL;')
        logger.debug("Reset function covers %d tables", len(statements) // 2)
        return self.CREATE_RESET_FUNCTION.bind(
            function_name=self.function_name,
            function_body=join_raw(' ', statements),
        )
