"""Miscellaneous tools, somewhat random mix yet often helpful."""
# Copyright (C) TeNPy Developers, Apache license

from collections.abc import Sequence
from typing import TypeVar

__all__ = ['duplicate_entries', 'is_iterable', 'to_iterable', 'roll_list']

_T = TypeVar('_T')  # used in typing some functions


def duplicate_entries(seq: Sequence[_T], ignore: Sequence[_T] = []) -> set[_T]:
    """The duplicate entries in a sequence, with exceptions from `ignore`."""
    return set(ele for idx, ele in enumerate(seq) if ele in seq[idx + 1:] and ele not in ignore)


def is_iterable(a):
    """If the given object is iterable."""
    try:
        iter(a)
    except TypeError:
        return False
    return True


def to_iterable(a):
    """If `a` is a not iterable or a string, return ``[a]``, else return ``a``."""
    if type(a) is str:
        return [a]
    if is_iterable(a):
        return a
    return [a]


def roll_list(seq: Sequence[_T], shift: int) -> list[_T]:
    """Cyclically shift a sequence to the right, like :func:`numpy.roll` but for any entries.

    ``roll_list(seq, 1)[1] == seq[0]``. The `shift` may be negative or larger than ``len(seq)``.
    """
    seq = list(seq)
    if len(seq) == 0:
        return seq
    shift = shift % len(seq)
    return seq[len(seq) - shift:] + seq[:len(seq) - shift]
