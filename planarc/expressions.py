r"""Expression trees for tensor network diagrams.

A diagram expression is a tree of immutable nodes. The node types form a closed set:

========================  =======================================================================
Node                      Meaning
========================  =======================================================================
:class:`TensorTerm`       A reference ``A[a, b; c]`` to a tensor object with output (left)
                          indices ``a, b`` and input (right) indices ``c``, possibly as adjoint
                          ``A'[...]``.
------------------------  -----------------------------------------------------------------------
:class:`ScalarTerm`       A number, or the name of a scalar variable.
------------------------  -----------------------------------------------------------------------
:class:`Conj`             Explicit complex conjugation. Normalized away for tensor references.
------------------------  -----------------------------------------------------------------------
:class:`Sum`              A linear combination ``± t1 ± t2 ...``.
------------------------  -----------------------------------------------------------------------
:class:`Product`          A contraction of factors over shared indices. May have any number of
                          factors when written, has exactly two after binarization.
------------------------  -----------------------------------------------------------------------
:class:`Assignment`       ``lhs = rhs`` (mutating an existing object) or ``lhs := rhs``
                          (definition).
------------------------  -----------------------------------------------------------------------
:class:`Block`            A sequence of statements.
------------------------  -----------------------------------------------------------------------
:class:`OpaqueBlock`      A control construct (e.g. a loop). Passes only act on its body.
------------------------  -----------------------------------------------------------------------
:class:`AnnotatedBlock`   A region that is excluded from all rewriting.
========================  =======================================================================

Indices are arbitrary hashables, typically ``str`` (symbolic) or ``int`` (positional).
An index that appears twice in an expression is contracted, an index that appears once is free
and must appear on the left hand side of the enclosing assignment.

The passes in :mod:`planarc.preprocessors` and :mod:`planarc.planar` never modify their input,
they build new trees. Objects are referred to by their surface name (a ``str``) until they are
bound to a :class:`Handle` from the :class:`SymbolTable` of the compilation.

Expressions can be written directly in python, e.g.::

    A = tensor('A', ['a', 'c'])
    B = tensor('B', ['c'], ['b'])
    ex = define(tensor('E', ['a'], ['b']), 2 * A * B)

"""
# Copyright (C) TeNPy Developers, Apache license
from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Hashable, Sequence
from dataclasses import dataclass, replace
from numbers import Number
from typing import Literal, Union

from .dummy_config import config, printoptions
from .errors import UnknownExpressionError
from .tools.misc import duplicate_entries, to_iterable
from .tools.string import format_indices, indent_lines

__all__ = ['Index', 'Handle', 'SymbolTable', 'Expression', 'TensorTerm', 'ScalarTerm', 'Conj',
           'Sum', 'Product', 'Assignment', 'Block', 'OpaqueBlock', 'AnnotatedBlock', 'SpaceRef',
           'BindObject', 'CheckArity', 'ExportObject', 'ConstructBraiding', 'Node', 'tensor',
           'conj', 'prod', 'assign', 'define', 'block', 'as_expression', 'is_tensor_expr',
           'is_scalar_expr', 'is_general_tensor', 'decompose_general_tensor', 'has_trace_indices',
           'get_tensors', 'map_tensors', 'replace_indices', 'open_indices']

Index = Hashable
"""Type hint for an index (leg label) of a tensor reference."""


@dataclass(frozen=True)
class Handle:
    """A handle for an object that only exists within a single compiled plan.

    Attributes
    ----------
    kind : {'alias', 'temporary', 'braiding'}
        Aliases stand for the objects that the user passes in (or gets back), temporaries for
        intermediate contraction results and braidings for constructed braiding tensors.
    index : int
        Counts the handles of the same `kind` within the compilation, starting at ``0``.

    """
    kind: Literal['alias', 'temporary', 'braiding']
    index: int

    def __str__(self):
        return f'%{self.kind[0]}{self.index}'


class SymbolTable:
    """The arena of :class:`Handle` s for a single compilation.

    Maps surface names to alias handles and allocates temporaries and braiding handles.
    The counters start at zero for every new table, such that compiling the same expression
    twice yields identical plans.
    """

    def __init__(self):
        self._aliases = {}  # {name: Handle}
        self._names = {}  # {Handle: name}
        self._counts = dict(alias=0, temporary=0, braiding=0)

    def _new_handle(self, kind: str, name: str | None) -> Handle:
        handle = Handle(kind, self._counts[kind])
        self._counts[kind] += 1
        self._names[handle] = name
        return handle

    def alias(self, name: str) -> Handle:
        """The alias handle for the object with the given surface `name`. Created if needed."""
        handle = self._aliases.get(name, None)
        if handle is None:
            handle = self._new_handle('alias', name)
            self._aliases[name] = handle
        return handle

    def new_temporary(self) -> Handle:
        return self._new_handle('temporary', None)

    def new_braiding(self) -> Handle:
        return self._new_handle('braiding', None)

    def name(self, obj: str | Handle) -> str:
        """Display name of an object, i.e. its surface name if it has one."""
        if isinstance(obj, Handle):
            name = self._names.get(obj, None)
            return str(obj) if name is None else name
        return str(obj)

    def handles(self, kind: str = None) -> list[Handle]:
        return [h for h in self._names if kind is None or h.kind == kind]

    @property
    def temporaries(self) -> list[Handle]:
        return self.handles('temporary')

    @property
    def aliases(self) -> dict[str, Handle]:
        return dict(self._aliases)

    def __len__(self):
        return len(self._names)

    def __repr__(self):
        return f'SymbolTable({", ".join(f"{h}={n}" for h, n in self._names.items())})'


class Expression:
    """Common base class for the nodes of a tensor expression.

    Implements the python operators, such that expressions can be combined with ``*``, ``+``,
    ``-``. Numbers are converted to :class:`ScalarTerm` s automatically.
    """

    def __mul__(self, other):
        other = as_expression(other, strict=False)
        if other is None:
            return NotImplemented
        return Product((self, other))

    def __rmul__(self, other):
        other = as_expression(other, strict=False)
        if other is None:
            return NotImplemented
        return Product((other, self))

    def __add__(self, other):
        other = as_expression(other, strict=False)
        if other is None:
            return NotImplemented
        return _linear_combination(self, other, +1)

    def __radd__(self, other):
        other = as_expression(other, strict=False)
        if other is None:
            return NotImplemented
        return _linear_combination(other, self, +1)

    def __sub__(self, other):
        other = as_expression(other, strict=False)
        if other is None:
            return NotImplemented
        return _linear_combination(self, other, -1)

    def __rsub__(self, other):
        other = as_expression(other, strict=False)
        if other is None:
            return NotImplemented
        return _linear_combination(other, self, -1)

    def __neg__(self):
        return Sum((self,), (-1,))

    def conj(self) -> Conj:
        return Conj(self)


@dataclass(frozen=True)
class TensorTerm(Expression):
    """A reference to a tensor object with explicit index lists.

    Attributes
    ----------
    obj : str | Handle
        The object. A surface name before binding, a :class:`Handle` afterwards.
        The reserved name ``config.braiding_name`` denotes a braiding tensor.
    left : tuple of Index
        The indices of the output (codomain) legs.
    right : tuple of Index
        The indices of the input (domain) legs.
    is_adjoint : bool
        If the reference is to the adjoint ``A'`` of the object.

    """
    obj: str | Handle
    left: tuple = ()
    right: tuple = ()
    is_adjoint: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'left', tuple(self.left))
        object.__setattr__(self, 'right', tuple(self.right))

    @property
    def indices(self) -> tuple:
        return self.left + self.right

    @property
    def num_legs(self) -> int:
        return len(self.left) + len(self.right)

    @property
    def is_braiding(self) -> bool:
        return isinstance(self.obj, str) and self.obj == config.braiding_name

    def flipped(self) -> TensorTerm:
        """The same term written for the adjoint object, with swapped index lists.

        ``conj(A[l; r])`` is ``A'[r; l]`` and vice versa.
        """
        return TensorTerm(self.obj, self.right, self.left, not self.is_adjoint)

    def __str__(self):
        adj = "'" if self.is_adjoint else ''
        return f'{self.obj}{adj}{format_indices(self.left, self.right)}'


@dataclass(frozen=True)
class ScalarTerm(Expression):
    """A scalar, either a number or the name of a scalar variable."""
    value: Number | str

    def __str__(self):
        return str(self.value)


@dataclass(frozen=True)
class Conj(Expression):
    """Complex conjugation of an expression."""
    arg: Expression

    def __str__(self):
        return f'conj({self.arg})'


@dataclass(frozen=True)
class Sum(Expression):
    """A linear combination ``signs[0] * terms[0] + signs[1] * terms[1] + ...``."""
    terms: tuple
    signs: tuple = None

    def __post_init__(self):
        terms = tuple(self.terms)
        signs = (+1,) * len(terms) if self.signs is None else tuple(self.signs)
        if len(terms) == 0 or len(signs) != len(terms):
            raise ValueError('Need a (non-empty) sign for each term')
        if any(s not in (+1, -1) for s in signs):
            raise ValueError(f'Invalid signs: {signs}')
        object.__setattr__(self, 'terms', terms)
        object.__setattr__(self, 'signs', signs)

    def __str__(self):
        res = []
        for n, (t, s) in enumerate(zip(self.terms, self.signs)):
            t = f'({t})' if isinstance(t, Sum) else str(t)
            if n == 0:
                res.append(t if s > 0 else f'-{t}')
            else:
                res.append(f'+ {t}' if s > 0 else f'- {t}')
        return ' '.join(res)


@dataclass(frozen=True)
class Product(Expression):
    """A contraction of the `factors` over their shared indices.

    Any number (at least two) of factors is allowed in the input to
    :func:`~planarc.preprocessors.binarize_products`, after which all products are binary.
    """
    factors: tuple

    def __post_init__(self):
        factors = tuple(self.factors)
        if len(factors) < 2:
            raise ValueError('A Product needs at least two factors')
        object.__setattr__(self, 'factors', factors)

    @property
    def is_binary(self) -> bool:
        return len(self.factors) == 2

    @property
    def left(self) -> Expression:
        if not self.is_binary:
            raise ValueError(f'Not a binary product: {self}')
        return self.factors[0]

    @property
    def right(self) -> Expression:
        if not self.is_binary:
            raise ValueError(f'Not a binary product: {self}')
        return self.factors[1]

    def __str__(self):
        return ' * '.join(f'({f})' if isinstance(f, (Sum, Product)) else str(f) for f in self.factors)


@dataclass(frozen=True)
class Assignment:
    """Assignment ``lhs = rhs`` or, if `is_definition`, the definition ``lhs := rhs``.

    The `lhs` is a :class:`TensorTerm` or a :class:`ScalarTerm` naming a scalar result.
    """
    lhs: TensorTerm | ScalarTerm
    rhs: Expression
    is_definition: bool = False

    def __str__(self):
        return f'{self.lhs} {":=" if self.is_definition else "="} {self.rhs}'


@dataclass(frozen=True)
class Block:
    """A sequence of statements."""
    statements: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, 'statements', tuple(self.statements))

    def __str__(self):
        return '\n'.join(map(str, self.statements))


@dataclass(frozen=True)
class OpaqueBlock:
    """A control construct, e.g. a loop. The passes act on its `body` but not on the construct."""
    kind: str
    body: Node

    def __str__(self):
        return f'{self.kind}:\n' + indent_lines(str(self.body), printoptions.indent)


@dataclass(frozen=True)
class AnnotatedBlock:
    """A region that is excluded from rewriting, e.g. the statements emitted by the binder."""
    statements: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, 'statements', tuple(self.statements))

    def __str__(self):
        return '\n'.join(map(str, self.statements))


@dataclass(frozen=True)
class SpaceRef:
    """The space of leg `position` of `obj` (or of its adjoint), optionally dualized."""
    obj: str | Handle
    position: int
    is_adjoint: bool = False
    dual: bool = False

    def __str__(self):
        adj = "'" if self.is_adjoint else ''
        res = f'space({self.obj}{adj}, {self.position})'
        return f'dual({res})' if self.dual else res


@dataclass(frozen=True)
class BindObject:
    """Bind the object `name` to the local alias `handle`."""
    handle: Handle
    name: str

    def __str__(self):
        return f'{self.handle} = {self.name}'


@dataclass(frozen=True)
class CheckArity:
    """Check that the object bound to `handle` has `num_out` output and `num_in` input legs."""
    handle: Handle
    name: str
    num_out: int
    num_in: int

    def __str__(self):
        return f'check_arity({self.handle}, {self.num_out}, {self.num_in})  # {self.name}'


@dataclass(frozen=True)
class ExportObject:
    """Make the object bound to `handle` available as `name` after the plan is executed."""
    name: str
    handle: Handle

    def __str__(self):
        return f'{self.name} = {self.handle}'


@dataclass(frozen=True)
class ConstructBraiding:
    """Construct a braiding tensor ``V1 ⊗ V2 -> V2 ⊗ V1`` and bind it to `handle`."""
    handle: Handle
    space1: SpaceRef
    space2: SpaceRef

    def __str__(self):
        return f'{self.handle} = braiding_tensor({self.space1}, {self.space2})'


Node = Union[Expression, Assignment, Block, OpaqueBlock, AnnotatedBlock, BindObject, CheckArity,
             ExportObject, ConstructBraiding]


# BUILDERS


def tensor(name: str | Handle, left: Sequence[Index] = (), right: Sequence[Index] = (),
           adjoint: bool = False) -> TensorTerm:
    """Build a reference ``name[left; right]`` to a tensor (or ``name'[left; right]``).

    A single index may be given instead of a list, e.g. ``tensor('v', 'a')``.
    """
    return TensorTerm(name, tuple(to_iterable(left)), tuple(to_iterable(right)), adjoint)


def conj(ex) -> Conj:
    return Conj(as_expression(ex))


def prod(*factors) -> Expression:
    """The (n-ary) product of the `factors`. A single factor is returned as is."""
    factors = [as_expression(f) for f in factors]
    if len(factors) == 0:
        raise ValueError('Need at least one factor')
    if len(factors) == 1:
        return factors[0]
    return Product(tuple(factors))


def assign(lhs: TensorTerm | str, rhs) -> Assignment:
    """The mutating assignment ``lhs = rhs``. A ``str`` lhs names a scalar result."""
    if isinstance(lhs, str):
        lhs = ScalarTerm(lhs)
    return Assignment(lhs, as_expression(rhs), is_definition=False)


def define(lhs: TensorTerm | str, rhs) -> Assignment:
    """The definition ``lhs := rhs`` of a new object. A ``str`` lhs names a scalar result."""
    if isinstance(lhs, str):
        lhs = ScalarTerm(lhs)
    return Assignment(lhs, as_expression(rhs), is_definition=True)


def block(*statements) -> Block:
    return Block(tuple(statements))


def as_expression(x, strict: bool = True) -> Expression | None:
    """Convert numbers and names of scalars to :class:`ScalarTerm`.

    Returns ``None`` for unsupported input if not `strict`, otherwise raises ``TypeError``.
    """
    if isinstance(x, Expression):
        return x
    if isinstance(x, (Number, str)):
        return ScalarTerm(x)
    if strict:
        raise TypeError(f'Can not convert {type(x).__name__} to an expression')
    return None


def _linear_combination(a: Expression, b: Expression, sign: int) -> Sum:
    if isinstance(a, Sum):
        return Sum(a.terms + (b,), a.signs + (sign,))
    return Sum((a, b), (+1, sign))


# ANALYSIS


def is_tensor_expr(ex) -> bool:
    """If `ex` is an expression with tensor indices (as opposed to a scalar or a statement)."""
    if isinstance(ex, TensorTerm):
        return True
    if isinstance(ex, Conj):
        return is_tensor_expr(ex.arg)
    if isinstance(ex, Product):
        return any(is_tensor_expr(f) for f in ex.factors)
    if isinstance(ex, Sum):
        return all(is_tensor_expr(t) for t in ex.terms)
    return False


def is_scalar_expr(ex) -> bool:
    """If `ex` is an expression without any tensor references."""
    if isinstance(ex, ScalarTerm):
        return True
    if isinstance(ex, Conj):
        return is_scalar_expr(ex.arg)
    if isinstance(ex, Product):
        return all(is_scalar_expr(f) for f in ex.factors)
    if isinstance(ex, Sum):
        return all(is_scalar_expr(t) for t in ex.terms)
    return False


def is_general_tensor(ex) -> bool:
    """If `ex` is a single tensor reference, possibly conjugated and multiplied by scalars."""
    if isinstance(ex, TensorTerm):
        return True
    if isinstance(ex, Conj):
        return is_general_tensor(ex.arg)
    if isinstance(ex, Product):
        num_tensors = 0
        for f in ex.factors:
            if is_general_tensor(f):
                num_tensors += 1
            elif not is_scalar_expr(f):
                return False
        return num_tensors == 1
    return False


def decompose_general_tensor(ex: Expression) -> tuple[TensorTerm, tuple, tuple, tuple]:
    """Split a general tensor into its tensor reference and scalar factors.

    Returns
    -------
    term : TensorTerm
        The tensor reference. Conjugation is absorbed, i.e. ``conj(A[l; r])`` gives ``A'[r; l]``.
    left, right : tuple of Index
        The index lists of `term`.
    scalars : tuple of Expression
        The scalar prefactors.

    """
    if isinstance(ex, TensorTerm):
        return ex, ex.left, ex.right, ()
    if isinstance(ex, Conj):
        term, left, right, scalars = decompose_general_tensor(ex.arg)
        return term.flipped(), right, left, tuple(Conj(s) for s in scalars)
    if isinstance(ex, Product) and is_general_tensor(ex):
        scalars = []
        for f in ex.factors:
            if is_general_tensor(f):
                term, left, right, more_scalars = decompose_general_tensor(f)
                scalars.extend(more_scalars)
            else:
                scalars.append(f)
        return term, left, right, tuple(scalars)
    raise UnknownExpressionError(f'Not a general tensor: {ex}')


def has_trace_indices(ex: Expression) -> bool:
    """If a general tensor has (partial) traces, i.e. an index that appears twice on it."""
    _, left, right, _ = decompose_general_tensor(ex)
    return len(duplicate_entries(left + right)) > 0


def get_tensors(ex) -> list[TensorTerm]:
    """All tensor references in an expression, in order of appearance."""
    if isinstance(ex, TensorTerm):
        return [ex]
    if isinstance(ex, Conj):
        return get_tensors(ex.arg)
    if isinstance(ex, (Product, Sum)):
        children = ex.factors if isinstance(ex, Product) else ex.terms
        return [t for child in children for t in get_tensors(child)]
    return []


def map_tensors(f: Callable[[TensorTerm], Expression], ex: Node) -> Node:
    """Replace every tensor reference ``t`` in `ex` by ``f(t)``.

    Recurses into statements (both sides of assignments) and blocks, except for
    :class:`AnnotatedBlock` s, which are left untouched.
    """
    if isinstance(ex, TensorTerm):
        return f(ex)
    if isinstance(ex, Conj):
        return Conj(map_tensors(f, ex.arg))
    if isinstance(ex, Product):
        return Product(tuple(map_tensors(f, a) for a in ex.factors))
    if isinstance(ex, Sum):
        return Sum(tuple(map_tensors(f, a) for a in ex.terms), ex.signs)
    if isinstance(ex, Assignment):
        return replace(ex, lhs=map_tensors(f, ex.lhs), rhs=map_tensors(f, ex.rhs))
    if isinstance(ex, Block):
        return Block(tuple(map_tensors(f, s) for s in ex.statements))
    if isinstance(ex, OpaqueBlock):
        return replace(ex, body=map_tensors(f, ex.body))
    return ex


def replace_indices(f: Callable[[Index], Index], ex: Node) -> Node:
    """Replace every index ``i`` in `ex` by ``f(i)``."""
    def _replace(t: TensorTerm) -> TensorTerm:
        return replace(t, left=tuple(map(f, t.left)), right=tuple(map(f, t.right)))
    return map_tensors(_replace, ex)


def open_indices(ex: Expression) -> list:
    """The free indices of a tensor expression, in order of appearance.

    These are the indices that appear exactly once. For a linear combination, the free indices
    of the first term are returned.
    """
    if isinstance(ex, Sum):
        return open_indices(ex.terms[0])
    indices = [i for t in get_tensors(ex) for i in t.indices]
    counts = Counter(indices)
    return [i for i in indices if counts[i] == 1]
