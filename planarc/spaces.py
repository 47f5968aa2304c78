"""Vector spaces for the legs of the dense tensors of :mod:`planarc.backends.numpy`."""
# Copyright (C) TeNPy Developers, Apache license
from __future__ import annotations

__all__ = ['ElementarySpace']


class ElementarySpace:
    r"""A finite-dimensional space without any symmetry, or its dual.

    We distinguish "ket" spaces :math:`V` with ``is_dual=False`` and "bra" spaces :math:`V^*`
    with ``is_dual=True``. A leg of one tensor can only be contracted with a leg of another
    tensor that has the dual space.

    Attributes
    ----------
    dim : int
        The dimension of the space.
    is_dual : bool
        If this is a ket space (``False``) or a bra space (``True``).

    """

    def __init__(self, dim: int, is_dual: bool = False):
        self.dim = int(dim)
        self.is_dual = bool(is_dual)

    def test_sanity(self):
        assert self.dim >= 0

    @property
    def dual(self) -> ElementarySpace:
        """The dual space, that is obtained when bending a leg with this space."""
        return ElementarySpace(self.dim, is_dual=not self.is_dual)

    @property
    def ascii_arrow(self) -> str:
        """A single character arrow, for use in tensor diagrams"""
        return 'v' if self.is_dual else '^'

    def is_equal_or_dual(self, other: ElementarySpace) -> bool:
        """If another space is equal to self or its dual."""
        return isinstance(other, ElementarySpace) and other.dim == self.dim

    def __eq__(self, other):
        if not isinstance(other, ElementarySpace):
            return NotImplemented
        return self.dim == other.dim and self.is_dual == other.is_dual

    def __hash__(self):
        return hash((self.dim, self.is_dual))

    def __repr__(self):
        return f'ElementarySpace({self.dim}, is_dual={self.is_dual})'

    def __str__(self):
        return f'{"V*" if self.is_dual else "V"}({self.dim})'
