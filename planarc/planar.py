"""Planarity analysis and the decomposition of planar diagrams into binary contractions.

A diagram is planar if it can be drawn in the plane without any crossing legs, with the open legs
on the boundary in a fixed cyclic order. For a single tensor ``A[l; r]``, the legs go around the
tensor in the (cyclic) order ``[*l, *reversed(r)]``, i.e. the outputs from left to right followed
by the inputs from right to left. Any rotation of this order describes the same tensor, since legs
can be bent around the tensor without braiding.

The main entry points are :func:`check_planarity`, which rejects non-planar assignments and
:func:`decompose_planar_contractions`, which rewrites assignments into a sequence of binary
contractions, with temporaries whose index order is fixed such that every intermediate step is
planar too.
"""
# Copyright (C) TeNPy Developers, Apache license
from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import TypeVar

import numpy as np

from .errors import PlanarityError, UnknownExpressionError
from .expressions import (AnnotatedBlock, Assignment, Block, Expression, OpaqueBlock, Product,
                          ScalarTerm, Sum, SymbolTable, TensorTerm, decompose_general_tensor,
                          has_trace_indices, is_general_tensor, is_scalar_expr, is_tensor_expr)
from .tools import duplicate_entries, roll_list

__all__ = ['is_cyclic_permutation', 'planar_unique', 'possible_planar_indices',
           'possible_planar_complements', 'parse_leg_bipartition', 'check_planarity', 'Target',
           'decompose_planar_contractions', 'extract_contraction_pairs', 'ContractionTreeNode',
           'ContractionTree']

logger = logging.getLogger(__name__)

NestedContainer_str = TypeVar('NestedContainer_str')


def is_cyclic_permutation(seq1: Sequence, seq2: Sequence) -> bool:
    """If `seq1` can be obtained by rotating `seq2`. Reversal is not allowed."""
    seq1 = list(seq1)
    seq2 = list(seq2)
    if len(seq1) != len(seq2):
        return False
    if len(seq1) == 0:
        return True
    return any(seq1 == seq2[n:] + seq2[:n] for n in range(len(seq2)))


def planar_unique(indices: Sequence) -> tuple:
    """Remove planar traces from a cyclic sequence of indices.

    Repeatedly removes pairs of equal indices that are neighbors on the circle (note that the
    last and the first entry are neighbors too). Those are partial traces that can be performed
    without any braids. Traces which are not planar leave duplicate entries in the result.
    """
    res = list(indices)
    removing = True
    while removing:
        removing = False
        n = 0
        while n < len(res) and len(res) > 1:
            m = (n + 1) % len(res)
            if res[n] == res[m]:
                # remove both, the neighbor first, such that n stays valid if m == 0
                res.pop(max(n, m))
                res.pop(min(n, m))
                removing = True
            else:
                n += 1
    return tuple(res)


def possible_planar_indices(ex: Expression) -> list[tuple]:
    """The index orders of an expression that are admissible in a planar diagram.

    Each returned tuple is an order of the free indices of `ex` (up to rotation), such that
    `ex` can be drawn without crossings and with the free legs in that cyclic order.
    An empty list means that `ex` is not planar at all.
    Scalars have the single admissible order ``()``.
    """
    if is_scalar_expr(ex):
        return [()]
    if is_general_tensor(ex):
        _, left, right, _ = decompose_general_tensor(ex)
        indices = planar_unique(left + right[::-1])
        if len(duplicate_entries(indices)) > 0:
            return []
        return [indices]
    if isinstance(ex, Sum):
        indices = possible_planar_indices(ex.terms[0])
        for term in ex.terms[1:]:
            other = possible_planar_indices(term)
            indices = [i for i in indices if any(is_cyclic_permutation(i, o) for o in other)]
        return indices
    if isinstance(ex, Product):
        res = []
        for ind1 in possible_planar_indices(ex.left):
            for ind2 in possible_planar_indices(ex.right):
                for oind1, oind2, _, _ in possible_planar_complements(ind1, ind2):
                    res.append(oind1 + oind2)
        return res
    return []


def possible_planar_complements(ind1: Sequence, ind2: Sequence) -> list[tuple]:
    """The ways to contract two tensors with the given cyclic index orders in a planar way.

    Parameters
    ----------
    ind1, ind2 : sequence of Index
        The (unique) indices of the two tensors, in cyclic order. Indices that appear in both are
        contracted.

    Returns
    -------
    list of (oind1, oind2, cind1, cind2)
        The open (``oind``) and contracted (``cind``) indices of the two tensors. The open ones
        are in cyclic order, starting after the contracted ones, such that the open indices of
        the result are ``oind1 + oind2``. The contracted ones are in cyclic order too, and
        ``cind2 == cind1[::-1]``. Disconnected tensors can be placed next to each other in many
        ways, in that case all of them are returned. An empty list means that there is no planar
        way to do the contraction.

    """
    ind1 = tuple(ind1)
    ind2 = tuple(ind2)
    if len(ind1) == 0 or len(ind2) == 0:
        return [(ind1, ind2, (), ())]
    shared = [i for i in ind1 if i in ind2]
    if len(shared) == 0:
        # disconnected
        return [(tuple(roll_list(ind1, n1)), tuple(roll_list(ind2, n2)), (), ())
                for n1 in range(len(ind1)) for n2 in range(len(ind2))]
    try:
        contr1, open1 = parse_leg_bipartition([ind1.index(i) for i in shared], len(ind1))
        contr2, open2 = parse_leg_bipartition([ind2.index(i) for i in shared], len(ind2))
    except ValueError:
        # the contracted legs are not contiguous on one of the tensors
        return []
    cind1 = tuple(ind1[n] for n in contr1)
    cind2 = tuple(ind2[n] for n in contr2)
    oind1 = tuple(ind1[n] for n in open1)
    oind2 = tuple(ind2[n] for n in open2)
    # as cind1 goes around tensor1 counter-clockwise, the legs must go around tensor2 clockwise.
    # if all legs of a tensor are contracted, their starting point is not fixed by the open legs.
    if len(oind1) > 0 and len(oind2) > 0:
        if cind2 != cind1[::-1]:
            return []
    elif not is_cyclic_permutation(cind2, cind1[::-1]):
        return []
    elif len(oind1) == 0:
        cind1 = cind2[::-1]
    else:
        cind2 = cind1[::-1]
    return [(oind1, oind2, cind1, cind2)]


def parse_leg_bipartition(legs: Sequence[int], num_legs: int) -> tuple[list[int], list[int]]:
    """Parse a planar bipartition of legs into two subsets.

    We view the indices on a circle with length `num_legs`, i.e. ``0`` comes after ``num_legs - 1``.
    We verify that the ``legs`` form a single contiguous subset on that circle.
    Note that "on the circle" means that it may "wrap around", e.g. ``[7, 8, 0, 1, 2]`` is
    contiguous if ``num_legs=9``.

    Parameters
    ----------
    legs : list of int
        A subset of legs, in any order. Is explicitly checked to be contiguous on the circle.
    num_legs : int
        The total number of legs, such that we look at subsets of ``range(num_legs)``.

    Returns
    -------
    legs
        The `legs`, sorted in order around the circle.
        Note that this may include a jump, e.g. ``[7, 8, 0, 1, 2]`` is sorted if ``num_legs=9``.
    other_legs
        The complementary subset, sorted in order around the circle, starting after `legs`.

    """
    assert not duplicate_entries(legs)
    assert all(0 <= l < num_legs for l in legs)
    # special cases
    if len(legs) == 0:
        return [], [*range(num_legs)]
    if len(legs) == num_legs:
        return [*range(num_legs)], []

    sorted_legs = np.sort(legs)
    jumps = np.where(sorted_legs[1:] != sorted_legs[:-1] + 1)[0]
    if len(jumps) == 0:
        # legs is contiguous even on a line -> other subset wraps around the circle
        res_legs = [int(l) for l in sorted_legs]
        other_legs = [*range(sorted_legs[-1] + 1, num_legs), *range(sorted_legs[0])]
    elif len(jumps) == 1 and sorted_legs[0] == 0 and sorted_legs[-1] == num_legs - 1:
        # a single jump is ok, but only if the legs "wrap around", i.e. contain 0 and L-1
        # legs "wraps" around the circle -> other subset is contiguous even on the line
        last = sorted_legs[jumps[0]]
        first = sorted_legs[jumps[0] + 1]
        res_legs = [*range(first, num_legs), *range(last + 1)]
        other_legs = [*range(last + 1, first)]
    else:
        raise ValueError('Not a planar bipartition')

    return res_legs, other_legs


def check_planarity(ex):
    """Verify that all assignments in `ex` are planar.

    For every assignment with a tensor expression on the right hand side, one of the admissible
    planar index orders of the right hand side must be a rotation of the index order of the left
    hand side. Recurses into blocks, skips :class:`AnnotatedBlock` s.

    Returns
    -------
    ex
        The unchanged input.

    Raises
    ------
    PlanarityError
        If an assignment is not planar.

    """
    if isinstance(ex, AnnotatedBlock):
        return ex
    if isinstance(ex, Assignment):
        if not is_tensor_expr(ex.rhs):
            return ex
        if is_tensor_expr(ex.lhs):
            lhs_indices = possible_planar_indices(ex.lhs)
            if len(lhs_indices) != 1:
                raise PlanarityError(f'Not a planar left hand side: {ex.lhs}')
            lhs_ind = lhs_indices[0]
        else:
            lhs_ind = ()
        rhs_indices = possible_planar_indices(ex.rhs)
        if len(rhs_indices) == 0:
            raise PlanarityError(f'Not a planar diagram expression: {ex.rhs}')
        if not any(is_cyclic_permutation(ind, lhs_ind) for ind in rhs_indices):
            raise PlanarityError(f'Not a planar diagram expression: {ex}')
        return ex
    if isinstance(ex, Block):
        for statement in ex.statements:
            check_planarity(statement)
        return ex
    if isinstance(ex, OpaqueBlock):
        check_planarity(ex.body)
        return ex
    return ex


@dataclass(frozen=True)
class Target:
    """The required index order for the result of a (sub-)expression.

    Attributes
    ----------
    left, right : tuple of Index
        The output and input indices of the result.
    is_temporary : bool
        If the result is a temporary, which means that ``left, right`` is only a suggestion and the
        decomposition may choose any rotation. Otherwise, they are fixed by the left hand side of
        an assignment.

    """
    left: tuple
    right: tuple
    is_temporary: bool = True

    def __post_init__(self):
        object.__setattr__(self, 'left', tuple(self.left))
        object.__setattr__(self, 'right', tuple(self.right))

    @classmethod
    def from_lhs(cls, lhs: TensorTerm | ScalarTerm) -> Target:
        if isinstance(lhs, TensorTerm):
            return cls(lhs.left, lhs.right, is_temporary=False)
        return cls((), (), is_temporary=False)

    @property
    def cyclic_order(self) -> tuple:
        return self.left + self.right[::-1]


def decompose_planar_contractions(ex, symbols: SymbolTable = None):
    """Decompose the contractions in `ex` into binary contractions that are planar.

    Each assignment is replaced by a :class:`Block` of definitions of temporaries, followed by
    the rewritten assignment. A standalone tensor expression is lowered towards a temporary
    with its first admissible planar index order.
    Recurses into blocks, skips :class:`AnnotatedBlock` s.

    Parameters
    ----------
    ex
        The expression or statement. Products must be binary,
        see :func:`~planarc.preprocessors.binarize_products`.
    symbols : SymbolTable, optional
        The symbol table of the compilation, used to allocate temporaries.

    """
    if symbols is None:
        symbols = SymbolTable()
    if isinstance(ex, AnnotatedBlock):
        return ex
    if isinstance(ex, Assignment):
        if not is_tensor_expr(ex.rhs):
            return ex
        pre = []
        rhs = extract_contraction_pairs(ex.rhs, Target.from_lhs(ex.lhs), pre, symbols)
        return Block((*pre, replace(ex, rhs=rhs)))
    if is_tensor_expr(ex):
        orders = possible_planar_indices(ex)
        if len(orders) == 0:
            raise PlanarityError(f'Not a planar diagram expression: {ex}')
        pre = []
        res = extract_contraction_pairs(ex, Target(orders[0], ()), pre, symbols)
        return Block((*pre, res))
    if isinstance(ex, Block):
        return Block(tuple(decompose_planar_contractions(s, symbols) for s in ex.statements))
    if isinstance(ex, OpaqueBlock):
        return replace(ex, body=decompose_planar_contractions(ex.body, symbols))
    return ex


def extract_contraction_pairs(rhs: Expression, target: Target, pre: list,
                              symbols: SymbolTable) -> Expression:
    """Recursively lower `rhs` to binary contractions of tensors without inner traces.

    Parameters
    ----------
    rhs : Expression
        The expression to lower. Products must be binary.
    target : Target
        The required (or, for a temporary, suggested) index order of the result.
    pre : list
        The definitions of new temporaries are appended to this list, in the order in which
        they need to be executed.
    symbols : SymbolTable
        Used to allocate the temporaries.

    Returns
    -------
    Expression
        The lowered expression. Either a scalar, a general tensor, a binary product of two general
        tensors whose natural index order matches the `target` or a linear combination thereof.

    """
    if is_scalar_expr(rhs):
        return rhs

    if is_general_tensor(rhs):
        if target.is_temporary and has_trace_indices(rhs):
            # do the trace while making the temporary
            return _new_temporary(rhs, target.left, target.right, pre, symbols)
        return rhs

    if isinstance(rhs, Product):
        leftind, rightind = target.left, target.right
        lhs_ind = target.cyclic_order

        match = None
        for ind1 in possible_planar_indices(rhs.left):
            for ind2 in possible_planar_indices(rhs.right):
                for oind1, oind2, cind1, cind2 in possible_planar_complements(ind1, ind2):
                    if is_cyclic_permutation(oind1 + oind2, lhs_ind):
                        match = (oind1, oind2, cind1, cind2)
                        break
                if match is not None:
                    break
            if match is not None:
                break
        if match is None:
            raise PlanarityError(f'Not a planar diagram expression: {rhs}')
        oind1, oind2, cind1, cind2 = match

        if all(i in leftind for i in oind2) and all(i in rightind for i in oind1):
            # reverse order
            target1 = Target(oind2, cind2[::-1])
            target2 = Target(cind1, oind1[::-1])
            a1 = extract_contraction_pairs(rhs.right, target1, pre, symbols)
            a2 = extract_contraction_pairs(rhs.left, target2, pre, symbols)
            oind1, oind2 = oind2, oind1
            cind1, cind2 = cind2, cind1
        else:
            target1 = Target(oind1, cind1[::-1])
            target2 = Target(cind2, oind2[::-1])
            a1 = extract_contraction_pairs(rhs.left, target1, pre, symbols)
            a2 = extract_contraction_pairs(rhs.right, target2, pre, symbols)

        if is_scalar_expr(a1) or is_scalar_expr(a2):
            res = Product((a1, a2))
            if target.is_temporary:
                return _new_temporary(res, oind1, oind2[::-1], pre, symbols)
            return res

        # a linear combination can not be a factor in a binary contraction; make it a temporary
        if not is_general_tensor(a1):
            a1 = _new_temporary(a1, target1.left, target1.right, pre, symbols)
        if not is_general_tensor(a2):
            a2 = _new_temporary(a2, target2.left, target2.right, pre, symbols)

        # the index order of the targets was only a suggestion, now we have the actual order
        _, l1, r1, _ = decompose_general_tensor(a1)
        _, l2, r2, _ = decompose_general_tensor(a2)
        if all(i in r1 for i in oind1) and all(i in l2 for i in oind2):
            # reverse order
            a1, a2 = a2, a1
            oind1, oind2 = oind2, oind1

        if target.is_temporary:
            return _new_temporary(Product((a1, a2)), oind1, oind2[::-1], pre, symbols)
        if leftind == oind1 and rightind == oind2[::-1]:
            return Product((a1, a2))
        if leftind == oind2 and rightind == oind1[::-1]:
            return Product((a2, a1))
        return _new_temporary(Product((a1, a2)), oind1, oind2[::-1], pre, symbols)

    if isinstance(rhs, Sum):
        terms = tuple(extract_contraction_pairs(t, target, pre, symbols) for t in rhs.terms)
        return Sum(terms, rhs.signs)

    raise UnknownExpressionError(f'Unknown tensor expression: {rhs}')


def _new_temporary(rhs: Expression, left: Sequence, right: Sequence, pre: list,
                   symbols: SymbolTable) -> TensorTerm:
    """Append the definition ``tmp[left; right] := rhs`` to `pre` and return ``tmp[left; right]``."""
    handle = symbols.new_temporary()
    lhs = TensorTerm(handle, tuple(left), tuple(right))
    pre.append(Assignment(lhs, rhs, is_definition=True))
    logger.debug('new temporary %s := %s', lhs, rhs)
    return lhs


class ContractionTreeNode:
    """Node in a :class:`ContractionTree`. Leaves carry a term name, inner nodes ``None``."""

    def __init__(self, value: str | None, left_child: ContractionTreeNode = None,
                 right_child: ContractionTreeNode = None):
        if (left_child is None) != (right_child is None):
            raise ValueError('Must have either none or two child nodes')
        self.value = value
        self.left_child = left_child
        self.right_child = right_child

    def test_sanity(self):
        if not self.is_leaf:
            assert self.value is None
            self.left_child.test_sanity()
            self.right_child.test_sanity()

    @property
    def is_leaf(self) -> bool:
        return self.left_child is None

    def copy(self) -> ContractionTreeNode:
        if self.is_leaf:
            return ContractionTreeNode(self.value)
        return ContractionTreeNode(self.value, self.left_child.copy(), self.right_child.copy())

    def leaves(self) -> list[str]:
        if self.is_leaf:
            return [self.value]
        return [*self.left_child.leaves(), *self.right_child.leaves()]

    def pop_contraction(self) -> tuple[str, str, str]:
        if self.is_leaf:
            raise ValueError('Can not pop a contraction from a single leaf')
        for child in [self.left_child, self.right_child]:
            if not child.is_leaf:
                return child.pop_contraction()
        a = self.left_child.value
        b = self.right_child.value
        self.left_child = self.right_child = None
        self.value = f'({a}, {b})'
        return a, b, self.value

    def _str_lines(self, prefix_0: str = '', prefix: str = '') -> list[str]:
        if self.is_leaf:
            return [prefix_0 + str(self.value)]
        return [prefix_0 + '┓',
                *self.left_child._str_lines(prefix_0=prefix + '┣━', prefix=prefix + '┃ '),
                *self.right_child._str_lines(prefix_0=prefix + '┗━', prefix=prefix + '  ')]


class ContractionTree:
    """An explicit order of pairwise contractions, as a binary tree over term names.

    The leaves are the names of the tensor terms in a product, ``"A'"`` for an adjoint reference
    to ``A``. Used by :func:`~planarc.preprocessors.binarize_products` to nest an n-ary product
    into binary products along the tree, innermost pairs first.
    """

    def __init__(self, root: ContractionTreeNode):
        self.root = root

    def test_sanity(self):
        self.root.test_sanity()
        assert not duplicate_entries(self.leaves)

    @property
    def leaves(self) -> list[str]:
        return self.root.leaves()

    @classmethod
    def from_contraction_order(cls, order: Sequence[tuple[str, str]]) -> ContractionTree:
        """Build a tree from a list of pairs of names, contracted in that order.

        A pair whose names are already in the same contracted group is skipped.
        """
        if len(order) == 0:
            raise ValueError('Can not be empty')
        groups = []  # [(nested pairs, set of names)]
        for a, b in order:
            if a == b:
                raise ValueError(f'Can not contract {a} with itself')
            n_a = [n for n, (_, names) in enumerate(groups) if a in names]
            n_b = [n for n, (_, names) in enumerate(groups) if b in names]
            tree_a, names_a = groups[n_a[0]] if n_a else (a, {a})
            tree_b, names_b = groups[n_b[0]] if n_b else (b, {b})
            if n_a and n_a == n_b:
                continue
            groups = [g for n, g in enumerate(groups) if n not in n_a + n_b]
            groups.append(((tree_a, tree_b), names_a | names_b))
        if len(groups) != 1:
            raise ValueError('The contraction order does not connect all tensors')
        return cls.from_nested_containers(groups[0][0])

    @classmethod
    def from_nested_containers(cls, tree: NestedContainer_str) -> ContractionTree:
        """Build a tree from nested pairs of names, e.g. ``('A', ('B', 'C'))``."""
        if isinstance(tree, ContractionTree):
            return tree
        if not isinstance(tree, (tuple, list)):
            return cls(ContractionTreeNode(tree))
        if len(tree) != 2:
            raise ValueError(f'Expected pairs. Got {tree}')
        left = cls.from_nested_containers(tree[0])
        right = cls.from_nested_containers(tree[1])
        return left.fuse(right)

    def copy(self) -> ContractionTree:
        return ContractionTree(self.root.copy())

    def fuse(self, other: ContractionTree) -> ContractionTree:
        """A new tree with the roots of `self` and `other` as left and right child."""
        return ContractionTree(ContractionTreeNode(None, self.root, other.root))

    def pop_contraction(self) -> tuple[str, str, str]:
        """Replace the leftmost inner node whose children are both leaves by a new leaf, in-place.

        Returns
        -------
        a, b : str
            The names of the leaves that are removed.
        new_name : str
            The name of the new leaf, ``'(a, b)'``.
        """
        return self.root.pop_contraction()

    def __str__(self):
        return '\n'.join(self.root._str_lines())
