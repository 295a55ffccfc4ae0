# -*- coding: utf-8 -*-
"""
Interfaces for the sql module.

"""
from __future__ import absolute_import
from __future__ import division
from __future__ import print_function

# pylint:disable=inherit-non-class,no-method-argument,no-self-argument

from zope.interface import Attribute
from zope.interface import Interface


class IValueKind(Interface):
    """
    The kind of value a template slot accepts, and how it is
    rendered into SQL text.
    """

    name = Attribute("A short name, used in error messages.")

    def accepts(value):
        """
        Return whether *value* can be rendered by this kind.
        """

    def render(value):
        """
        Return the SQL text for *value*.

        Raises :exc:`ValueError` or :exc:`TypeError` if it cannot.
        """


class ITemplate(Interface):
    """
    A SQL statement with named placeholders.
    """

    text = Attribute("The template text, containing ``#{slot}`` placeholders.")

    slots = Attribute("A mapping from slot name to its `IValueKind`.")

    def substitute(values):
        """
        Return the SQL text with every placeholder replaced by the
        rendering of the corresponding entry in the mapping *values*.

        Raises :exc:`pgoverlay.interfaces.SubstitutionError` if a
        slot has no value, a value is given for an unknown slot, or a
        value is not of the slot's kind.
        """

    def bind(**values):
        """
        Like `substitute`, taking the values as keyword arguments.
        """
