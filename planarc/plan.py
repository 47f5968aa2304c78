"""Contraction plans and the compile entry points.

A :class:`ContractionPlan` is the result of compiling a diagram expression. It is a flat list of
statements, which :func:`~planarc.execution.execute_plan` runs in order:

1. :class:`~planarc.expressions.BindObject` for the pre-existing objects,
2. :class:`~planarc.expressions.CheckArity` for their references,
3. :class:`~planarc.expressions.ConstructBraiding` and the definitions of temporaries, followed by
   the lowered assignments (or expressions), statement by statement,
4. :class:`~planarc.expressions.ExportObject` for the new and assigned objects.

There are two entry points. :func:`compile_planar` keeps the diagram planar, such that it can be
evaluated for any braided category, with braiding tensors made explicit.
:func:`compile_symmetric` removes the braiding tensors, which is only valid if the braid is
symmetric, and leaves the contraction order to the backend.
"""
# Copyright (C) TeNPy Developers, Apache license
from __future__ import annotations

import logging
import textwrap
from dataclasses import replace

from .dummy_config import config, printoptions
from .expressions import (AnnotatedBlock, Assignment, BindObject, Block, Expression, ExportObject,
                          Handle, Node, OpaqueBlock, ScalarTerm, SymbolTable, map_tensors)
from .planar import check_planarity, decompose_planar_contractions
from .preprocessors import (bind_objects, binarize_products, conj_to_adjoint,
                            construct_braiding_tensors, remove_braiding_tensors)

__all__ = ['ContractionPlan', 'compile_planar', 'compile_symmetric', 'flatten_statements']

logger = logging.getLogger(__name__)


def flatten_statements(ex: Node) -> list[Node]:
    """Flatten nested :class:`Block` s and :class:`AnnotatedBlock` s into a list of statements.

    The bodies of :class:`OpaqueBlock` s are flattened too, but the opaque blocks are kept.
    """
    if isinstance(ex, (Block, AnnotatedBlock)):
        return [s for statement in ex.statements for s in flatten_statements(statement)]
    if isinstance(ex, (list, tuple)):
        return [s for statement in ex for s in flatten_statements(statement)]
    if isinstance(ex, OpaqueBlock):
        return [replace(ex, body=Block(tuple(flatten_statements(ex.body))))]
    return [ex]


class ContractionPlan:
    """An ordered list of statements that evaluates a diagram expression.

    Parameters
    ----------
    statements : list
        The statements, possibly nested in blocks. They are flattened.
    symbols : SymbolTable
        The symbol table of the compilation.

    Attributes
    ----------
    statements : list
        The flat list of statements.
    symbols : SymbolTable
        The symbol table of the compilation, which knows the names of the aliases.

    """

    def __init__(self, statements, symbols: SymbolTable):
        self.statements = flatten_statements(statements)
        self.symbols = symbols

    @property
    def temporaries(self) -> list[Handle]:
        return self.symbols.temporaries

    @property
    def inputs(self) -> list[str]:
        """The names of the objects that need to be passed to execute the plan."""
        return [s.name for s in self.statements if isinstance(s, BindObject)]

    @property
    def outputs(self) -> list[str]:
        """The names of the objects (and scalars) that are returned by executing the plan."""
        res = [s.name for s in self.statements if isinstance(s, ExportObject)]
        for s in self.statements:
            if isinstance(s, Assignment) and isinstance(s.lhs, ScalarTerm):
                res.append(str(s.lhs.value))
        return res

    def __len__(self):
        return len(self.statements)

    def __iter__(self):
        return iter(self.statements)

    def _display(self, statement) -> str:
        if not printoptions.show_handles and isinstance(statement, (Expression, Assignment,
                                                                    OpaqueBlock)):
            statement = map_tensors(lambda t: replace(t, obj=self.symbols.name(t.obj)), statement)
        return str(statement)

    def __str__(self):
        indent = ' ' * printoptions.indent
        lines = [f'ContractionPlan({len(self.inputs)} inputs, {len(self.outputs)} outputs, '
                 f'{len(self.temporaries)} temporaries)']
        for statement in self.statements:
            for line in self._display(statement).split('\n'):
                lines.extend(textwrap.wrap(line, width=printoptions.linewidth,
                                           initial_indent=indent,
                                           subsequent_indent=indent * 2) or [indent])
        return '\n'.join(lines)

    def __repr__(self):
        return f'<ContractionPlan with {len(self.statements)} statements>'


def compile_planar(ex: Node, order=None) -> ContractionPlan:
    """Compile a diagram expression into a plan of planar binary contractions.

    Parameters
    ----------
    ex
        The expression, assignment or block of statements.
    order : ContractionTree | nested tuple of str, optional
        The contraction order, see :func:`~planarc.preprocessors.binarize_products`.

    Raises
    ------
    DiagramError
        If the diagram is invalid. See :mod:`planarc.errors` for the subclasses.

    """
    logger.debug('compile_planar: %s', ex)
    symbols = SymbolTable()
    ex = conj_to_adjoint(ex)
    ex = binarize_products(ex, order)
    binding = bind_objects(ex, symbols)
    body = construct_braiding_tensors(binding.expression, symbols)
    if config.check_planarity:
        check_planarity(body)
    body = decompose_planar_contractions(body, symbols)
    plan = ContractionPlan([binding.pre, binding.checks, body, binding.post], symbols)
    logger.debug('compile_planar: %i statements, %i temporaries', len(plan),
                 len(plan.temporaries))
    return plan


def compile_symmetric(ex: Node, order=None) -> ContractionPlan:
    """Compile a diagram expression for a symmetric braid.

    The braiding tensors are removed and the products are kept as they are written (but
    binarized), without any planarity constraints.
    Parameters and errors as for :func:`compile_planar`.
    """
    logger.debug('compile_symmetric: %s', ex)
    symbols = SymbolTable()
    ex = conj_to_adjoint(ex)
    ex = binarize_products(ex, order)
    binding = bind_objects(ex, symbols)
    body = remove_braiding_tensors(binding.expression)
    plan = ContractionPlan([binding.pre, binding.checks, body, binding.post], symbols)
    logger.debug('compile_symmetric: %i statements', len(plan))
    return plan
