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
from setuptools import setup
from setuptools import find_packages

VERSION = '1.0.0'

tests_require = [
    'zope.testrunner',
    'nti.testing',
    'PyHamcrest',
    # The integration tests talk to real databases.
    'psycopg2 >= 2.8.3',
]

setup(
    name="PGOverlay",
    version=VERSION,
    author="Zope Foundation and Contributors",
    keywords="PostgreSQL overlay copy-on-write postgres_fdw testing",
    packages=find_packages('src'),
    package_dir={'': 'src'},
    include_package_data=True,
    license="ZPL 2.1",
    platforms=["any"],
    description=(
        "Builds a writable, resettable copy-on-write overlay of a "
        "PostgreSQL database inside another PostgreSQL database."
    ),
    python_requires=">=3.9",
    classifiers=[
        "Intended Audience :: Developers",
        "License :: OSI Approved :: Zope Public License",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: Implementation :: CPython",
        "Topic :: Database",
        "Topic :: Software Development :: Testing",
        "Operating System :: Unix",
        "Development Status :: 4 - Beta",
    ],
    zip_safe=False,
    install_requires=[
        'perfmetrics >= 3.0.0',
        'zope.interface',
        # Option parsing and validation.
        'ZConfig',
        # The builder runs each phase's statements in greenlets.
        'gevent >= 23.7.0',
        # Notes on psycopg2: the authors request that other modules
        # not depend on psycopg2-binary, so we don't.
        # 2.8 is needed for conn.info and extensions.parse_dsn.
        'psycopg2 >= 2.8.3',
    ],
    tests_require=tests_require,
    extras_require={
        'test': tests_require,
    },
    entry_points={
        'console_scripts': [
            'pgoverlay-setup = pgoverlay.overlaysetup:run',
        ],
    },
)
