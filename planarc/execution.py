"""Execution of a :class:`~planarc.plan.ContractionPlan` on actual tensors.

The plan is interpreted statement by statement, with all operations on tensors delegated to an
:class:`~planarc.backends.ExecutionBackend`. Intermediate values keep track of the index label of
each leg, such that the legs can be matched up in contractions and linear combinations.
"""
# Copyright (C) TeNPy Developers, Apache license
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from numbers import Number

from .backends import ExecutionBackend, get_backend
from .errors import ArityError, UnknownExpressionError
from .expressions import (AnnotatedBlock, Assignment, BindObject, Block, CheckArity, Conj,
                          ConstructBraiding, ExportObject, Expression, OpaqueBlock, Product,
                          ScalarTerm, SpaceRef, Sum, TensorTerm, is_general_tensor)
from .plan import ContractionPlan

__all__ = ['execute_plan', 'check_arities']

logger = logging.getLogger(__name__)


@dataclass
class _Labeled:
    """A tensor with a label for each of its legs."""
    tensor: object
    labels: tuple


class _Interpreter:

    def __init__(self, plan: ContractionPlan, backend: ExecutionBackend, objects: dict):
        self.plan = plan
        self.backend = backend
        self.namespace = dict(objects)  # {name: object or scalar}
        self.env = {}  # {Handle: object}
        self.results = {}

    def run(self, arity_only: bool = False) -> dict:
        for statement in self.plan.statements:
            if arity_only and not isinstance(statement, (BindObject, CheckArity)):
                continue
            self.execute(statement)
        return self.results

    def execute(self, statement):
        if isinstance(statement, BindObject):
            if statement.name not in self.namespace:
                raise ValueError(f'Missing object: {statement.name}')
            self.env[statement.handle] = self.namespace[statement.name]
        elif isinstance(statement, CheckArity):
            self.check_arity(statement)
        elif isinstance(statement, ConstructBraiding):
            V1 = self.space(statement.space1)
            V2 = self.space(statement.space2)
            self.env[statement.handle] = self.backend.braiding_tensor(V1, V2)
        elif isinstance(statement, ExportObject):
            obj = self.env[statement.handle]
            self.namespace[statement.name] = obj
            self.results[statement.name] = obj
        elif isinstance(statement, Assignment):
            self.assign(statement)
        elif isinstance(statement, (Block, AnnotatedBlock)):
            for s in statement.statements:
                self.execute(s)
        elif isinstance(statement, OpaqueBlock):
            raise NotImplementedError(f'Can not execute a {statement.kind} block')
        elif isinstance(statement, Expression):
            value = self.evaluate(statement)
            self.results['_'] = value.tensor if isinstance(value, _Labeled) else value
        else:
            raise UnknownExpressionError(f'Unknown statement: {statement}')

    def check_arity(self, check: CheckArity):
        obj = self.env[check.handle]
        num_out, num_in = self.backend.num_out(obj), self.backend.num_in(obj)
        if (num_out, num_in) != (check.num_out, check.num_in):
            raise ArityError(f'incorrect number of output-input indices: '
                             f'({check.num_out}, {check.num_in}) instead of ({num_out}, {num_in}) '
                             f'for {check.name}.')

    def space(self, ref: SpaceRef):
        obj = self.lookup(ref.obj)
        if ref.is_adjoint:
            obj = self.backend.adjoint(obj)
        res = self.backend.space(obj, ref.position)
        return res.dual if ref.dual else res

    def lookup(self, obj):
        if obj in self.env:
            return self.env[obj]
        if isinstance(obj, str) and obj in self.namespace:
            return self.namespace[obj]
        raise ValueError(f'Unknown object: {obj}')

    def assign(self, statement: Assignment):
        lhs, rhs = statement.lhs, statement.rhs
        if isinstance(lhs, ScalarTerm):
            value = self.evaluate(rhs)
            if isinstance(value, _Labeled):
                value = self.backend.to_scalar(value.tensor)
            self.namespace[lhs.value] = value
            self.results[lhs.value] = value
            return
        if isinstance(rhs, Product) and rhs.is_binary and is_general_tensor(rhs.left) \
                and is_general_tensor(rhs.right):
            # a binary contraction, directly into the order of the lhs
            a = self.evaluate(rhs.left)
            b = self.evaluate(rhs.right)
            res = self.backend.contract(a.tensor, a.labels, b.tensor, b.labels, lhs.left,
                                        lhs.right)
        else:
            value = self.evaluate(rhs)
            if not isinstance(value, _Labeled):
                raise ValueError(f'Can not assign a scalar to a tensor: {statement}')
            res = self.backend.permute(value.tensor, value.labels, lhs.left, lhs.right)
        if lhs.is_adjoint:
            res = self.backend.adjoint(res)
        self.env[lhs.obj] = res

    def evaluate(self, ex: Expression) -> _Labeled | Number:
        if isinstance(ex, ScalarTerm):
            if isinstance(ex.value, str):
                return self.namespace[ex.value]
            return ex.value
        if isinstance(ex, Conj):
            value = self.evaluate(ex.arg)
            if isinstance(value, _Labeled):
                raise UnknownExpressionError(f'Conjugate of a tensor should be an adjoint: {ex}')
            return value.conjugate()
        if isinstance(ex, TensorTerm):
            obj = self.lookup(ex.obj)
            if ex.is_adjoint:
                obj = self.backend.adjoint(obj)
            labels = ex.left + ex.right
            counts = Counter(labels)
            if all(c == 1 for c in counts.values()):
                return _Labeled(obj, labels)
            # partial trace
            left = tuple(i for i in ex.left if counts[i] == 1)
            right = tuple(i for i in ex.right if counts[i] == 1)
            return _Labeled(self.backend.permute(obj, labels, left, right), left + right)
        if isinstance(ex, Product):
            res = self.evaluate(ex.factors[0])
            for f in ex.factors[1:]:
                res = self.multiply(res, self.evaluate(f))
            return res
        if isinstance(ex, Sum):
            res = None
            for term, sign in zip(ex.terms, ex.signs):
                value = self.evaluate(term)
                if res is None:
                    res = value if sign > 0 else self.multiply(-1, value)
                else:
                    res = self.add(res, value, sign)
            return res
        raise UnknownExpressionError(f'Unknown tensor expression: {ex}')

    def multiply(self, a, b):
        if not isinstance(a, _Labeled):
            if not isinstance(b, _Labeled):
                return a * b
            return _Labeled(self.backend.scale(b.tensor, a), b.labels)
        if not isinstance(b, _Labeled):
            return _Labeled(self.backend.scale(a.tensor, b), a.labels)
        left = tuple(i for i in a.labels if i not in b.labels)
        right = tuple(i for i in b.labels if i not in a.labels)
        return _Labeled(self.backend.contract(a.tensor, a.labels, b.tensor, b.labels, left, right),
                        left + right)

    def add(self, a, b, sign: int):
        if not isinstance(a, _Labeled) and not isinstance(b, _Labeled):
            return a + sign * b
        if not isinstance(a, _Labeled) or not isinstance(b, _Labeled):
            raise ValueError('Can not add a scalar and a tensor')
        num_out = self.backend.num_out(a.tensor)
        b = self.backend.permute(b.tensor, b.labels, a.labels[:num_out], a.labels[num_out:])
        if sign < 0:
            b = self.backend.scale(b, -1)
        return _Labeled(self.backend.add(a.tensor, b), a.labels)


def execute_plan(plan: ContractionPlan, backend: ExecutionBackend | str = None, **objects) -> dict:
    """Execute a compiled plan.

    The statements are run in order. Control constructs (:class:`~planarc.expressions.OpaqueBlock`)
    are compiled, but their semantics are up to the caller, so a plan that contains one can not be
    executed here.

    Parameters
    ----------
    plan : ContractionPlan
        The plan to execute.
    backend : ExecutionBackend | str, optional
        The backend (or its name for :func:`~planarc.backends.get_backend`).
    **objects
        The pre-existing tensor objects and named scalars, by name.

    Returns
    -------
    dict
        The exported objects and assigned scalars, by name. The value of a standalone expression
        is stored as ``'_'``.

    Raises
    ------
    ArityError
        If a pre-existing object has the wrong number of output or input legs.
    NotImplementedError
        If the plan contains an :class:`~planarc.expressions.OpaqueBlock`.

    """
    backend = get_backend(backend)
    logger.debug('executing %r with %r', plan, backend)
    return _Interpreter(plan, backend, objects).run()


def check_arities(plan: ContractionPlan, backend: ExecutionBackend | str = None, **objects):
    """Only run the arity checks of a plan, without executing it.

    Raises :class:`~planarc.errors.ArityError` if one fails, see :func:`execute_plan`.
    """
    backend = get_backend(backend)
    _Interpreter(plan, backend, objects).run(arity_only=True)
