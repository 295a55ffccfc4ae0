#!/usr/bin/env python
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
Build a copy-on-write overlay of one PostgreSQL database inside another.

The source database is configured with LOWER_USER, LOWER_HOST,
LOWER_PORT, LOWER_DATABASE and LOWER_PASSWORD; the overlay database
with the same names prefixed by UPPER_. LOWER_MAX and UPPER_MAX limit
the connections opened to each.
"""

import argparse
import logging
import sys

from pgoverlay.builder import build_overlay
from pgoverlay.builder import reset_overlay
from pgoverlay.interfaces import ConfigurationError
from pgoverlay.options import ConnectionOptions
from pgoverlay.options import OVERLAY_PREFIX
from pgoverlay.options import SOURCE_PREFIX

logger = logging.getLogger("pgoverlay-setup")


def main(argv=None, environ=None):
    if argv is None:
        argv = sys.argv
    parser = argparse.ArgumentParser(description=__doc__)

    parser.add_argument(
        "-v", "--verbose", dest="verbose", default=False,
        action="store_true",
        help="Log every statement as it is executed.",
    )
    parser.add_argument(
        "--driver", dest="driver", default=None,
        help="The name of the database driver to use (default: the "
        "LOWER_DRIVER and UPPER_DRIVER settings, or the best available).",
    )
    parser.add_argument(
        "--reset", dest="reset", default=False,
        action="store_true",
        help="Instead of building the overlay, discard every local edit "
        "made through an existing one.",
    )
    options = parser.parse_args(argv[1:])

    logging.basicConfig(
        level=logging.DEBUG if options.verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s %(message)s"
    )

    try:
        overlay_options = ConnectionOptions.from_environ(OVERLAY_PREFIX, environ)
        if options.reset:
            reset_overlay(overlay_options, options.driver)
            return []
        source_options = ConnectionOptions.from_environ(SOURCE_PREFIX, environ)
    except ConfigurationError as ex:
        parser.error(str(ex))

    logger.info("Building the overlay of %s/%s in %s/%s.",
                source_options.host, source_options.database,
                overlay_options.host, overlay_options.database)
    manifest = build_overlay(source_options, overlay_options, options.driver)
    read_only = 0
    for entry in manifest:
        if entry.read_only:
            read_only += 1
            logger.warning("Table will be read-only: %s.%s",
                           entry.schema_name, entry.table_name)
    logger.info("Overlay ready: %d table(s), %d writable, %d read-only.",
                len(manifest), len(manifest) - read_only, read_only)
    return manifest


def run():
    """
    The console script entry point.
    """
    main()


if __name__ == '__main__':
    run()
