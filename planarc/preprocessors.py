"""Passes that prepare a diagram expression for the planar (or symmetric) compilation.

Each pass takes an expression or statement tree and returns a new one, the input is never
modified. The passes recurse into :class:`~planarc.expressions.Block` s and the bodies of
:class:`~planarc.expressions.OpaqueBlock` s. Except for :func:`conj_to_adjoint`, they leave
:class:`~planarc.expressions.AnnotatedBlock` s untouched, such that the statements emitted by
earlier passes are not rewritten again.

Braiding tensors are written with the reserved name ``config.braiding_name`` (default ``'τ'``)
as ``τ[i2b, i1b; i1a, i2a]``. This is the braiding (crossing) of two strands, where strand ``1``
enters at ``i1a`` and leaves at ``i1b`` and strand ``2`` enters at ``i2a`` and leaves at ``i2b``.
The adjoint is written ``τ'[i1b, i2b; i2a, i1a]``. There are two ways of dealing with them,
:func:`construct_braiding_tensors` makes them explicit tensors in the planar pathway, while
:func:`remove_braiding_tensors` identifies the indices on both ends of each strand, which is only
valid for symmetric braids.
"""
# Copyright (C) TeNPy Developers, Apache license
from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace
from numbers import Number

from .dummy_config import config
from .errors import BraidingError, BraidingRemovalError, BraidingSpaceError, ReservedNameError
from .expressions import (AnnotatedBlock, Assignment, BindObject, Block, CheckArity, Conj,
                          ConstructBraiding, ExportObject, Expression, Index, Node, OpaqueBlock,
                          Product, ScalarTerm, SpaceRef, Sum, SymbolTable, TensorTerm,
                          decompose_general_tensor, get_tensors, is_general_tensor,
                          is_scalar_expr, is_tensor_expr, map_tensors, replace_indices)
from .planar import ContractionTree
from .tools import duplicate_entries

__all__ = ['conj_to_adjoint', 'binarize_products', 'ObjectBinding', 'bind_objects',
           'braiding_strands', 'construct_braiding_tensors', 'remove_braiding_tensors',
           'close_index_map', 'locate_index', 'purge_braiding_tensors']

logger = logging.getLogger(__name__)


# ADJOINT NORMALIZER


def conj_to_adjoint(ex: Node) -> Node:
    """Replace the conjugates of tensor references by references to the adjoint.

    ``conj(A[l; r])`` becomes ``A'[r; l]``. Conjugation is distributed over products and linear
    combinations. Numbers are conjugated directly, named scalars keep their :class:`Conj`.
    """
    if isinstance(ex, Conj):
        return _conj(ex.arg)
    if isinstance(ex, Product):
        return Product(tuple(conj_to_adjoint(f) for f in ex.factors))
    if isinstance(ex, Sum):
        return Sum(tuple(conj_to_adjoint(t) for t in ex.terms), ex.signs)
    if isinstance(ex, Assignment):
        return replace(ex, rhs=conj_to_adjoint(ex.rhs))
    if isinstance(ex, Block):
        return Block(tuple(conj_to_adjoint(s) for s in ex.statements))
    if isinstance(ex, OpaqueBlock):
        return replace(ex, body=conj_to_adjoint(ex.body))
    return ex


def _conj(ex: Expression) -> Expression:
    """The normalized form of ``conj(ex)``."""
    if isinstance(ex, TensorTerm):
        return ex.flipped()
    if isinstance(ex, Conj):
        return conj_to_adjoint(ex.arg)
    if isinstance(ex, Product):
        return Product(tuple(_conj(f) for f in ex.factors))
    if isinstance(ex, Sum):
        return Sum(tuple(_conj(t) for t in ex.terms), ex.signs)
    if isinstance(ex, ScalarTerm) and isinstance(ex.value, Number):
        return ScalarTerm(ex.value.conjugate())
    return Conj(ex)


# PRODUCT BINARIZATION


def binarize_products(ex: Node, order=None) -> Node:
    """Rewrite all products as nested binary products.

    Parameters
    ----------
    ex
        The expression or statement.
    order : ContractionTree | nested tuple of str, optional
        The order of pairwise contractions, e.g. ``('A', ('B', 'C'))`` to contract ``B`` with
        ``C`` first. The leaves are the names of the tensor factors, where an adjoint reference
        ``A'[...]`` is named ``"A'"``. It is used for all products with exactly these factors,
        their scalar factors are multiplied in front. Other products, and all products if no
        `order` is given, are contracted from left to right.

    """
    if order is not None:
        order = ContractionTree.from_nested_containers(order)
        if duplicate_entries(order.leaves):
            raise ValueError(f'Duplicate names in contraction order: {order.leaves}')
    return _binarize(ex, order)


def _binarize(ex: Node, order: ContractionTree | None) -> Node:
    if isinstance(ex, Product):
        factors = [_binarize(f, order) for f in ex.factors]
        if order is not None:
            res = _binarize_along_tree(factors, order)
            if res is not None:
                return res
        res = factors[0]
        for f in factors[1:]:
            res = Product((res, f))
        return res
    if isinstance(ex, Conj):
        return Conj(_binarize(ex.arg, order))
    if isinstance(ex, Sum):
        return Sum(tuple(_binarize(t, order) for t in ex.terms), ex.signs)
    if isinstance(ex, Assignment):
        return replace(ex, rhs=_binarize(ex.rhs, order))
    if isinstance(ex, Block):
        return Block(tuple(_binarize(s, order) for s in ex.statements))
    if isinstance(ex, OpaqueBlock):
        return replace(ex, body=_binarize(ex.body, order))
    return ex


def _binarize_along_tree(factors: list, order: ContractionTree) -> Expression | None:
    """Contract the factors as specified by `order`. ``None`` if the factors do not match it."""
    scalars = []
    tensors = {}
    for f in factors:
        if is_scalar_expr(f):
            scalars.append(f)
            continue
        if not is_general_tensor(f):
            return None
        term = decompose_general_tensor(f)[0]
        name = f"{term.obj}'" if term.is_adjoint else str(term.obj)
        if name in tensors:
            return None
        tensors[name] = f
    if set(tensors.keys()) != set(order.leaves):
        return None
    tree = order.copy()
    while not tree.root.is_leaf:
        a, b, new_value = tree.pop_contraction()
        tensors[new_value] = Product((tensors.pop(a), tensors.pop(b)))
    res = tensors[tree.root.value]
    for s in reversed(scalars):
        res = Product((s, res))
    return res


# OBJECT BINDER


@dataclass(frozen=True)
class ObjectBinding:
    """Result of :func:`bind_objects`.

    Attributes
    ----------
    objects : tuple of str
        The distinct names of the tensor objects, in order of first appearance.
    expression
        The input, with all objects replaced by their alias :class:`~planarc.expressions.Handle`.
    pre : AnnotatedBlock
        The :class:`~planarc.expressions.BindObject` statements for pre-existing objects.
    checks : AnnotatedBlock
        The :class:`~planarc.expressions.CheckArity` statements for pre-existing objects.
    post : AnnotatedBlock
        The :class:`~planarc.expressions.ExportObject` statements for objects that are newly
        defined or assigned to.

    """
    objects: tuple
    expression: Node
    pre: AnnotatedBlock
    checks: AnnotatedBlock
    post: AnnotatedBlock

    def as_block(self) -> Block:
        return Block((self.pre, self.checks, self.expression, self.post))


def bind_objects(ex: Node, symbols: SymbolTable = None, check_arity: bool = None) -> ObjectBinding:
    """Bind the tensor objects in `ex` to alias handles.

    An object is pre-existing if it is used before (or without) being defined with a definition
    ``:=``. Pre-existing objects are bound to their alias at the start and, if `check_arity`, each
    of their references is checked to have the right number of output and input indices.
    Objects that are defined or assigned to are exported under their name at the end.
    An adjoint reference ``A'[r; l]`` counts as a reference to ``A`` with indices ``[l; r]``.
    Braiding tensors are not bound.

    Parameters
    ----------
    ex
        The expression or statement.
    symbols : SymbolTable, optional
        The symbol table of the compilation.
    check_arity : bool, optional
        If the arity checks should be generated. Defaults to ``config.check_arity``.

    Raises
    ------
    ReservedNameError
        If the braiding name is defined or assigned to.

    """
    if symbols is None:
        symbols = SymbolTable()
    if check_arity is None:
        check_arity = config.check_arity

    references = list(_iter_references(ex))
    objects = []
    existing = set()
    exports = set()
    for term, role, statement in references:
        if term.is_braiding:
            if role != 'use':
                raise ReservedNameError(f'The name {term.obj} is reserved for the braiding tensor '
                                        f'and can not be assigned to: {statement}')
            continue
        if term.obj not in objects:
            objects.append(term.obj)
            if role != 'define':
                existing.add(term.obj)
        if role != 'use':
            exports.add(term.obj)

    aliases = {name: symbols.alias(name) for name in objects}
    pre = [BindObject(aliases[name], name) for name in objects if name in existing]
    checks = []
    if check_arity:
        for term, role, _ in references:
            if term.is_braiding or term.obj not in existing or role == 'define':
                continue
            num_out, num_in = len(term.left), len(term.right)
            if term.is_adjoint:
                num_out, num_in = num_in, num_out
            checks.append(CheckArity(aliases[term.obj], term.obj, num_out, num_in))
    post = [ExportObject(name, aliases[name]) for name in objects if name in exports]

    def _bind(t: TensorTerm) -> TensorTerm:
        if t.is_braiding:
            return t
        return replace(t, obj=aliases[t.obj])

    expression = map_tensors(_bind, ex)
    logger.debug('bound %i objects (%i pre-existing, %i exported)', len(objects), len(pre),
                 len(post))
    return ObjectBinding(tuple(objects), expression, AnnotatedBlock(pre), AnnotatedBlock(checks),
                         AnnotatedBlock(post))


def _iter_references(ex):
    """Yield ``(term, role, statement)`` for all tensor references, in order of evaluation.

    The role is ``'use'``, ``'define'`` (lhs of a definition) or ``'assign'`` (lhs of an
    assignment). The rhs of an assignment is evaluated before its lhs.
    """
    if isinstance(ex, AnnotatedBlock):
        return
    if isinstance(ex, Assignment):
        for term in get_tensors(ex.rhs):
            yield term, 'use', ex
        if isinstance(ex.lhs, TensorTerm):
            yield ex.lhs, 'define' if ex.is_definition else 'assign', ex
    elif isinstance(ex, Block):
        for s in ex.statements:
            yield from _iter_references(s)
    elif isinstance(ex, OpaqueBlock):
        yield from _iter_references(ex.body)
    else:
        for term in get_tensors(ex):
            yield term, 'use', ex


# BRAIDING RESOLVER


def braiding_strands(t: TensorTerm) -> tuple[tuple[Index, Index], tuple[Index, Index]]:
    """The two strands ``(i1a, i1b), (i2a, i2b)`` of a braiding tensor."""
    if len(t.left) != 2 or len(t.right) != 2:
        raise BraidingError(f'The name {config.braiding_name} is reserved for the braiding and '
                            f'should have two output and two input indices: {t}')
    if t.is_adjoint:
        i1b, i2b = t.left
        i2a, i1a = t.right
    else:
        i2b, i1b = t.left
        i1a, i2a = t.right
    return (i1a, i1b), (i2a, i2b)


def _statement_terms(ex):
    """The tensor references of an assignment or expression, ``None`` for other nodes."""
    if isinstance(ex, Assignment):
        if not is_tensor_expr(ex.rhs):
            return None
        return get_tensors(ex.rhs)
    if is_tensor_expr(ex):
        return get_tensors(ex)
    return None


def construct_braiding_tensors(ex: Node, symbols: SymbolTable = None) -> Node:
    """Make the braiding tensors in `ex` explicit.

    For each assignment or standalone expression with braiding tensors, the spaces of their legs
    are determined from the neighboring tensors. Each distinct braiding tensor is then
    constructed by a :class:`~planarc.expressions.ConstructBraiding` statement, placed in an
    :class:`~planarc.expressions.AnnotatedBlock` in front of the statement, and its references
    are replaced by the new handle.

    For a mutating assignment ``A[l; r] = ...``, the existing ``A'[r; l]`` acts as a neighbor too.

    Raises
    ------
    BraidingError
        If a braiding tensor does not have two output and two input indices.
    BraidingSpaceError
        If the space of a strand can not be determined.

    """
    if symbols is None:
        symbols = SymbolTable()
    if isinstance(ex, AnnotatedBlock):
        return ex
    if isinstance(ex, Block):
        return Block(tuple(construct_braiding_tensors(s, symbols) for s in ex.statements))
    if isinstance(ex, OpaqueBlock):
        return replace(ex, body=construct_braiding_tensors(ex.body, symbols))
    terms = _statement_terms(ex)
    if terms is None:
        return ex
    if isinstance(ex, Assignment) and not ex.is_definition and isinstance(ex.lhs, TensorTerm):
        terms.append(ex.lhs.flipped())

    braidings = list(dict.fromkeys(t for t in terms if t.is_braiding))
    if len(braidings) == 0:
        return ex
    neighbors = [t for t in terms if not t.is_braiding]

    spaces = {}  # {index: SpaceRef}
    unresolved = []  # [(ia, ib)]
    for t in braidings:
        for ia, ib in braiding_strands(t):
            found = locate_index(ia, neighbors)
            if found is not None:
                term, pos = found
                spaces[ia] = spaces[ib] = SpaceRef(term.obj, pos, term.is_adjoint)
                continue
            found = locate_index(ib, neighbors)
            if found is not None:
                term, pos = found
                spaces[ia] = spaces[ib] = SpaceRef(term.obj, pos, term.is_adjoint, dual=True)
                continue
            unresolved.append((ia, ib))
    # strands that connect two braidings get their space from the other one
    changed = True
    while changed:
        changed = False
        remaining = []
        for ia, ib in unresolved:
            if ia in spaces:
                spaces[ib] = spaces[ia]
                changed = True
            elif ib in spaces:
                spaces[ia] = spaces[ib]
                changed = True
            else:
                remaining.append((ia, ib))
        unresolved = remaining
    if len(unresolved) > 0:
        raise BraidingSpaceError(f'Can not determine the spaces of indices {tuple(unresolved)} '
                                 f'for the braiding tensors in {ex}')

    constructions = []
    handles = {}
    for t in braidings:
        (_, i1b), (_, i2b) = braiding_strands(t)
        handle = symbols.new_braiding()
        handles[t] = handle
        constructions.append(ConstructBraiding(handle, spaces[i1b], spaces[i2b]))
    logger.debug('constructing %i braiding tensors for %s', len(constructions), ex)

    def _replace(t: TensorTerm) -> TensorTerm:
        if t in handles:
            return replace(t, obj=handles[t])
        return t

    return Block((AnnotatedBlock(constructions), map_tensors(_replace, ex)))


def remove_braiding_tensors(ex: Node) -> Node:
    """Remove the braiding tensors from `ex`, by identifying the indices at both ends of a strand.

    This is only valid if the braid is symmetric, i.e. if over- and under-crossings are the same.
    The strands are processed one by one, each end replaced by the index that currently represents
    it. Of the two, the one that is free on the left hand side is kept. If neither is free, the
    larger of two ``int`` indices is kept, otherwise the incoming index ``ia``.

    Raises
    ------
    BraidingError
        If a braiding tensor is malformed, or the identification of indices does not converge.
    BraidingRemovalError
        If a braiding tensor can not be removed, see :func:`purge_braiding_tensors`.

    """
    if isinstance(ex, AnnotatedBlock):
        return ex
    if isinstance(ex, Block):
        return Block(tuple(remove_braiding_tensors(s) for s in ex.statements))
    if isinstance(ex, OpaqueBlock):
        return replace(ex, body=remove_braiding_tensors(ex.body))
    terms = _statement_terms(ex)
    if terms is None:
        return ex
    outgoing = ()
    if isinstance(ex, Assignment) and isinstance(ex.lhs, TensorTerm):
        outgoing = ex.lhs.indices

    braidings = [t for t in terms if t.is_braiding]
    if len(braidings) == 0:
        return ex
    index_map = {}
    for t in braidings:
        for ia, ib in braiding_strands(t):
            ia = _representative(index_map, ia)
            ib = _representative(index_map, ib)
            if ia in outgoing:
                rep = ia
            elif ib in outgoing:
                rep = ib
            elif isinstance(ia, int) and isinstance(ib, int):
                rep = max(ia, ib)
            else:
                rep = ia
            index_map = {**index_map, ia: rep, ib: rep}
    index_map = close_index_map(index_map)
    logger.debug('removing %i braiding tensors with index map %s', len(braidings), index_map)
    ex = replace_indices(lambda i: index_map.get(i, i), ex)
    return purge_braiding_tensors(ex)


def _representative(index_map: dict, index: Index) -> Index:
    """Follow `index` through `index_map` to the index that currently represents it."""
    seen = {index}
    while index_map.get(index, index) != index:
        index = index_map[index]
        if index in seen:
            raise BraidingError(f'Index map does not converge: {index_map}')
        seen.add(index)
    return index


def close_index_map(index_map: dict) -> dict:
    """Close an index map transitively, i.e. ``{a: b, b: c}`` becomes ``{a: c, b: c}``.

    Returns a new dictionary. Raises :class:`BraidingError` if the map does not converge.
    """
    res = dict(index_map)
    seen = set()
    changed = True
    while changed:
        snapshot = tuple(res.items())
        if snapshot in seen:
            raise BraidingError(f'Index map does not converge: {index_map}')
        seen.add(snapshot)
        changed = False
        for k in list(res.keys()):
            v = res[k]
            if v in res and res[v] != v:
                res[k] = res[v]
                changed = True
    return res


def locate_index(index: Index, terms: Sequence[TensorTerm]) -> tuple[TensorTerm, int] | None:
    """Find the first term with the given index.

    Returns
    -------
    (term, position) | None
        The term and the position of the index among its legs, where the input (right) legs
        come after the output (left) legs. ``None`` if the index is not found.

    """
    for t in terms:
        if index in t.left:
            return t, t.left.index(index)
        if index in t.right:
            return t, len(t.left) + t.right.index(index)
    return None


def _is_braiding_term(ex) -> bool:
    if isinstance(ex, Conj):
        ex = ex.arg
    return isinstance(ex, TensorTerm) and ex.is_braiding


def _check_removable(ex):
    if isinstance(ex, Conj):
        ex = ex.arg
    if len(ex.left) != 2 or len(ex.right) != 2 or ex.left[0] != ex.right[1] \
            or ex.left[1] != ex.right[0]:
        raise BraidingRemovalError(f'Unable to remove braiding tensor {ex}')


def purge_braiding_tensors(ex: Node) -> Node:
    """Drop the braiding tensors from the products in `ex`.

    The indices must already be identified, such that each braiding tensor has the form
    ``τ[a, b; b, a]``. A product that is left with a single factor is replaced by that factor, a
    nested product that is left with no factors is dropped from the enclosing product.

    Raises
    ------
    BraidingRemovalError
        If a braiding tensor does not have the form above, or is not a factor in a product with
        other tensors.

    """
    if _is_braiding_term(ex):
        raise BraidingRemovalError(f'Unable to remove braiding tensor {ex}, it is not part of a '
                                   f'contraction')
    if isinstance(ex, Product):
        res = _purge_product(ex)
        if res is None:
            raise BraidingRemovalError(f'Unable to remove braiding tensors from {ex}, '
                                       f'nothing would remain')
        return res
    if isinstance(ex, Conj):
        return Conj(purge_braiding_tensors(ex.arg))
    if isinstance(ex, Sum):
        return Sum(tuple(purge_braiding_tensors(t) for t in ex.terms), ex.signs)
    if isinstance(ex, Assignment):
        return replace(ex, rhs=purge_braiding_tensors(ex.rhs))
    if isinstance(ex, Block):
        return Block(tuple(purge_braiding_tensors(s) for s in ex.statements))
    if isinstance(ex, OpaqueBlock):
        return replace(ex, body=purge_braiding_tensors(ex.body))
    return ex


def _purge_product(ex: Product) -> Expression | None:
    """Drop the braiding tensors from a product, ``None`` if no factor remains."""
    factors = []
    for f in ex.factors:
        if _is_braiding_term(f):
            _check_removable(f)
        elif isinstance(f, Product):
            f = _purge_product(f)
            if f is not None:
                factors.append(f)
        else:
            factors.append(purge_braiding_tensors(f))
    if len(factors) == 0:
        return None
    if len(factors) == 1:
        return factors[0]
    return Product(tuple(factors))
