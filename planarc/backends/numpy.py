"""A dense reference backend using numpy.

Tensors are :class:`DenseTensor` s, i.e. a single numpy array together with the spaces of the
codomain and domain. There is no symmetry, such that the braid is trivial and braiding tensors
are just permutations of the legs.
"""
# Copyright (C) TeNPy Developers, Apache license
from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from ..expressions import Index
from ..spaces import ElementarySpace
from ._backend import ExecutionBackend

__all__ = ['DenseTensor', 'NumpyBackend']


class DenseTensor:
    """A dense tensor, i.e. a linear map from the `domain` to the `codomain`.

    Attributes
    ----------
    data : numpy.ndarray
        The entries, with one axis per leg. The axes are the codomain legs followed by the domain
        legs, both in the order of the respective list of spaces.
    codomain, domain : list of ElementarySpace
        The spaces of the output and input legs.

    """

    def __init__(self, data, codomain: Sequence[ElementarySpace],
                 domain: Sequence[ElementarySpace] = ()):
        self.data = np.asarray(data)
        self.codomain = list(codomain)
        self.domain = list(domain)
        if self.data.shape != self.shape:
            raise ValueError(f'Shape mismatch: data has {self.data.shape}, legs have {self.shape}')

    def test_sanity(self):
        for leg in self.codomain + self.domain:
            assert isinstance(leg, ElementarySpace)
            leg.test_sanity()
        assert self.data.shape == self.shape

    @property
    def num_codomain_legs(self) -> int:
        return len(self.codomain)

    @property
    def num_domain_legs(self) -> int:
        return len(self.domain)

    @property
    def num_legs(self) -> int:
        return len(self.codomain) + len(self.domain)

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(leg.dim for leg in self.codomain + self.domain)

    def __repr__(self):
        return f'<DenseTensor {self.codomain!r} <- {self.domain!r}>'


class NumpyBackend(ExecutionBackend):
    """Execution backend for :class:`DenseTensor` s with a trivial braid."""

    def num_out(self, t: DenseTensor) -> int:
        return t.num_codomain_legs

    def num_in(self, t: DenseTensor) -> int:
        return t.num_domain_legs

    def space(self, t: DenseTensor, i: int) -> ElementarySpace:
        if not 0 <= i < t.num_legs:
            raise ValueError(f'Leg {i} out of bounds for {t.num_legs} legs')
        if i < t.num_codomain_legs:
            return t.codomain[i]
        return t.domain[i - t.num_codomain_legs].dual

    def adjoint(self, t: DenseTensor) -> DenseTensor:
        J = t.num_codomain_legs
        perm = [*range(J, t.num_legs), *range(J)]
        return DenseTensor(np.conj(t.data).transpose(perm), codomain=t.domain, domain=t.codomain)

    def braiding_tensor(self, V1: ElementarySpace, V2: ElementarySpace) -> DenseTensor:
        # legs [V2, V1; V1, V2], each strand is an identity
        data = np.einsum('xa,yb->yxab', np.eye(V1.dim), np.eye(V2.dim))
        return DenseTensor(data, codomain=[V2, V1], domain=[V1, V2])

    def contract(self, t1: DenseTensor, labels1: Sequence[Index], t2: DenseTensor,
                 labels2: Sequence[Index], out_left: Sequence[Index],
                 out_right: Sequence[Index]) -> DenseTensor:
        labels1 = self._check_labels(t1, labels1)
        labels2 = self._check_labels(t2, labels2)
        spaces = [self.space(t1, n) for n in range(t1.num_legs)]
        spaces.extend(self.space(t2, n) for n in range(t2.num_legs))
        codomain, domain = self._result_legs(labels1 + labels2, spaces, out_left, out_right)
        sub1, sub2, sub_out = _einsum_sublists(labels1, labels2, [*out_left, *out_right])
        data = np.einsum(t1.data, sub1, t2.data, sub2, sub_out)
        return DenseTensor(data, codomain, domain)

    def permute(self, t: DenseTensor, labels: Sequence[Index], out_left: Sequence[Index],
                out_right: Sequence[Index]) -> DenseTensor:
        labels = self._check_labels(t, labels)
        spaces = [self.space(t, n) for n in range(t.num_legs)]
        codomain, domain = self._result_legs(labels, spaces, out_left, out_right)
        sub, sub_out = _einsum_sublists(labels, [*out_left, *out_right])
        data = np.einsum(t.data, sub, sub_out)
        return DenseTensor(data, codomain, domain)

    def scale(self, t: DenseTensor, alpha: complex) -> DenseTensor:
        return DenseTensor(alpha * t.data, t.codomain, t.domain)

    def add(self, t1: DenseTensor, t2: DenseTensor) -> DenseTensor:
        if t1.codomain != t2.codomain or t1.domain != t2.domain:
            raise ValueError(f'Mismatching legs: {t1!r} and {t2!r}')
        return DenseTensor(t1.data + t2.data, t1.codomain, t1.domain)

    def to_scalar(self, t: DenseTensor) -> complex:
        if t.num_legs != 0:
            raise ValueError(f'Expected a tensor without legs. Got {t!r}')
        return t.data.item()

    @staticmethod
    def _check_labels(t: DenseTensor, labels: Sequence[Index]) -> list:
        labels = list(labels)
        if len(labels) != t.num_legs:
            raise ValueError(f'Expected {t.num_legs} labels. Got {len(labels)}')
        return labels

    @staticmethod
    def _result_legs(labels: list, spaces: list[ElementarySpace], out_left: Sequence[Index],
                     out_right: Sequence[Index]) -> tuple[list, list]:
        """Check the spaces of the contracted legs and get the legs of the result."""
        positions = {}
        for n, l in enumerate(labels):
            positions.setdefault(l, []).append(n)
        for l, pos in positions.items():
            if len(pos) > 2:
                raise ValueError(f'Label {l!r} appears more than twice')
            if len(pos) == 2 and spaces[pos[0]] != spaces[pos[1]].dual:
                msg = f'Incompatible legs {spaces[pos[0]]!r} and {spaces[pos[1]]!r} for label {l!r}'
                raise ValueError(msg)
        open_labels = [l for l, pos in positions.items() if len(pos) == 1]
        out = [*out_left, *out_right]
        if len(out) != len(open_labels) or set(out) != set(open_labels):
            raise ValueError(f'Output labels {out} do not match open labels {open_labels}')
        codomain = [spaces[positions[l][0]] for l in out_left]
        domain = [spaces[positions[l][0]].dual for l in out_right]
        return codomain, domain


def _einsum_sublists(*label_lists) -> list[list[int]]:
    """Translate lists of arbitrary labels to the integer sublists used by ``np.einsum``."""
    ints = {}
    return [[ints.setdefault(l, len(ints)) for l in labels] for labels in label_lists]
