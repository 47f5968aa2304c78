"""Exceptions raised while compiling a diagram expression into a contraction plan.

All of them indicate a structurally invalid diagram, which needs to be fixed where it is written.
They are raised as soon as the problem is detected, such that no partial plan is ever returned.
"""
# Copyright (C) TeNPy Developers, Apache license

__all__ = ['DiagramError', 'ArityError', 'ReservedNameError', 'BraidingError', 'BraidingSpaceError',
           'PlanarityError', 'BraidingRemovalError', 'UnknownExpressionError']


class DiagramError(Exception):
    """Base class for exceptions that are raised if a diagram expression is invalid."""

    pass


class ArityError(DiagramError):
    """The number of indices on a tensor does not match its number of output / input legs."""

    pass


class ReservedNameError(DiagramError):
    """The reserved name of the braiding tensor was used as the target of an assignment."""

    pass


class BraidingError(DiagramError):
    """A braiding tensor is malformed, e.g. does not have two input and two output indices."""

    pass


class BraidingSpaceError(BraidingError):
    """The spaces of the legs of a braiding tensor can not be determined from its neighbors."""

    pass


class BraidingRemovalError(BraidingError):
    """Removing a braiding tensor would change the value of the expression."""

    pass


class PlanarityError(DiagramError):
    """The diagram can not be drawn in the plane without crossing legs."""

    pass


class UnknownExpressionError(DiagramError):
    """An expression is neither a scalar, a tensor, a product nor a linear combination."""

    pass
