"""The interface between a compiled plan and the tensor objects it acts on.

A plan is agnostic of how tensors are stored. Everything it needs to do with them is abstracted
as methods of an :class:`ExecutionBackend`, which :func:`~planarc.execution.execute_plan` calls.
"""
# Copyright (C) TeNPy Developers, Apache license
from __future__ import annotations

from abc import ABCMeta, abstractmethod
from collections.abc import Sequence
from typing import TypeVar

from ..expressions import Index

__all__ = ['ExecutionBackend', 'Tensor', 'Space']

# placeholders for backend-specific types
Tensor = TypeVar('Tensor')
Space = TypeVar('Space')


class ExecutionBackend(metaclass=ABCMeta):
    """Abstract base class for execution backends.

    A tensor with ``num_out`` output (codomain) legs and ``num_in`` input (domain) legs is a map
    from the domain to the codomain. Its legs are numbered ``0, ..., num_out + num_in - 1``,
    output legs first. A reference ``A[l; r]`` in a diagram assigns the indices ``l`` to the output
    legs and ``r`` to the input legs.
    """

    def __repr__(self):
        return f'{type(self).__name__}()'

    @abstractmethod
    def num_out(self, t: Tensor) -> int:
        """The number of output (codomain) legs."""
        ...

    @abstractmethod
    def num_in(self, t: Tensor) -> int:
        """The number of input (domain) legs."""
        ...

    @abstractmethod
    def space(self, t: Tensor, i: int) -> Space:
        """The space of leg `i`.

        This is the space of the codomain for ``i < num_out(t)``. For the input legs, it is the dual
        of the space in the domain, such that two legs can be contracted if their spaces are
        mutually dual.
        """
        ...

    @abstractmethod
    def adjoint(self, t: Tensor) -> Tensor:
        """The adjoint (hermitian conjugate) map, with codomain and domain exchanged."""
        ...

    @abstractmethod
    def braiding_tensor(self, V1: Space, V2: Space) -> Tensor:
        """The braid ``V1 ⊗ V2 -> V2 ⊗ V1`` as a tensor with legs ``[V2, V1; V1, V2]``."""
        ...

    @abstractmethod
    def contract(self, t1: Tensor, labels1: Sequence[Index], t2: Tensor,
                 labels2: Sequence[Index], out_left: Sequence[Index],
                 out_right: Sequence[Index]) -> Tensor:
        """Contract two tensors over their shared labels.

        Parameters
        ----------
        t1, t2 : Tensor
            The two tensors.
        labels1, labels2 : sequence of Index
            The labels for all legs of the tensors. Labels that appear twice are contracted,
            also if both appearances are on the same tensor.
        out_left, out_right : sequence of Index
            The labels of the remaining legs, in the order of output and input legs of the result.

        """
        ...

    @abstractmethod
    def permute(self, t: Tensor, labels: Sequence[Index], out_left: Sequence[Index],
                out_right: Sequence[Index]) -> Tensor:
        """Rearrange the legs of a tensor and trace over labels that appear twice.

        Same conventions as :meth:`contract`, with a single tensor.
        """
        ...

    @abstractmethod
    def scale(self, t: Tensor, alpha: complex) -> Tensor:
        ...

    @abstractmethod
    def add(self, t1: Tensor, t2: Tensor) -> Tensor:
        """The sum of two tensors with the same legs."""
        ...

    @abstractmethod
    def to_scalar(self, t: Tensor) -> complex:
        """Convert a tensor without legs to a python scalar."""
        ...
