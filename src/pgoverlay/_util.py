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

from __future__ import absolute_import
from __future__ import division
from __future__ import print_function

import os

import logging
from logging import DEBUG
from logging import INFO
from logging import WARN
from logging import ERROR

from ZConfig.datatypes import asBoolean
from ZConfig.datatypes import integer
from ZConfig.datatypes import RangeCheckedConversion

from perfmetrics import metricmethod

from pgoverlay._compat import wraps
from pgoverlay._compat import perf_counter
from pgoverlay._compat import IN_TESTRUNNER

_logger = logging.getLogger('pgoverlay')
perf_logger = _logger.getChild('timing')

__all__ = [
    'get_non_negative_float_from_environ',
    'get_boolean_from_environ',

    'log_timed',
    'metricmethod',
    'parse_boolean',
    'positive_integer',
    'timer',
]

positive_integer = RangeCheckedConversion(integer, min=1)
non_negative_float = RangeCheckedConversion(float, min=0)

def _setting_from_environ(converter, environ_name, default, logger, environ=None):
    environ = os.environ if environ is None else environ
    result = default
    env_val = environ.get(environ_name, default)
    if env_val is not default:
        try:
            result = converter(env_val)
        except (ValueError, TypeError):
            logger.exception("Failed to parse environment value %r for key %r",
                             env_val, environ_name)
            result = default

    logger.debug('Using value %s from environ %r=%r (default=%r)',
                 result, environ_name, env_val, default)
    return result


def get_non_negative_float_from_environ(environ_name, default, logger=_logger, environ=None):
    return _setting_from_environ(non_negative_float, environ_name, default, logger, environ)

def parse_boolean(val):
    if val == '0':
        return False
    if val == '1':
        return True
    return asBoolean(val)

def get_boolean_from_environ(environ_name, default, logger=_logger, environ=None):
    return _setting_from_environ(parse_boolean, environ_name, default, logger, environ)


class timer(object):
    __begin = None
    __end = None
    duration = None

    counter = perf_counter

    def __enter__(self):
        self.__begin = self.counter()
        return self

    def __exit__(self, t, v, tb):
        self.__end = self.counter()
        self.duration = self.__end - self.__begin


def _get_log_time_level(level_int, default):
    level_name = logging.getLevelName(level_int)
    val = get_non_negative_float_from_environ(
        'PGO_PERF_LOG_%s_MIN' % level_name, default, logger=perf_logger)
    return (level_int, float(val))

# A list of tuples (level_int, min_duration), ordered by increasing
# min_duration. Modify this list in place to apply to all functions;
# place a copy in ``func.log_levels`` to change an individual function.
_LOG_TIMED_DEFAULT_DURATIONS = [
    _get_log_time_level(DEBUG, 0.5),
    _get_log_time_level(INFO, 5.0),
    _get_log_time_level(WARN, 30.0),
    _get_log_time_level(ERROR, 120.0),
]

_LOG_TIMED_DEFAULT_DURATIONS.sort(key=lambda x: x[1])

# If this is false when a module is imported, timer decorations
# are omitted.
_LOG_TIMED_COMPILETIME_ENABLE = get_boolean_from_environ(
    'PGO_PERF_LOG_ENABLE',
    'on',
    logger=perf_logger,
)


def _log_level_for_duration(levels, duration):
    log_level = None
    for level, min_duration in levels:
        if duration < min_duration:
            break
        log_level = level
    return log_level


def log_timed(func):
    """
    Decorator that logs how long *func* took, at a level chosen by
    comparing the duration with ``func.log_levels``.

    Short calls are not logged at all.
    """
    func.log_levels = _LOG_TIMED_DEFAULT_DURATIONS
    if not _LOG_TIMED_COMPILETIME_ENABLE:
        return func

    counter = perf_counter
    func_logger = logging.getLogger(func.__module__).getChild('timing')

    @wraps(func)
    def f(*args, **kwargs):
        begin = counter()
        try:
            result = func(*args, **kwargs)
        finally:
            duration = counter() - begin
            level = _log_level_for_duration(func.log_levels, duration)
            if level is not None:
                func_logger.log(level, "Function %s took %.3fs.",
                                func.__name__, duration)
        return result

    return f


if IN_TESTRUNNER and os.environ.get('PGO_TEST_DISABLE_METRICS'):
    # If we're running under the testrunner,
    # don't apply the metricmethod stuff. It makes
    # backtraces ugly and makes stepping in the
    # debugger annoying.
    metricmethod = lambda f: f

