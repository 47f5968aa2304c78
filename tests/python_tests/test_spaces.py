"""A collection of tests for planarc.spaces."""
# Copyright (C) TeNPy Developers, Apache license
import pytest

from planarc.spaces import ElementarySpace


def test_ElementarySpace():
    V = ElementarySpace(3)
    V.test_sanity()
    assert V.dim == 3
    assert not V.is_dual
    assert V.dual.is_dual
    assert V.dual.dual == V
    assert V.dual != V
    assert V.is_equal_or_dual(V.dual)
    assert not V.is_equal_or_dual(ElementarySpace(2))
    assert V.ascii_arrow == '^'
    assert V.dual.ascii_arrow == 'v'
    assert hash(V) == hash(ElementarySpace(3, is_dual=False))
    assert len({V, V.dual, ElementarySpace(3)}) == 2
    assert repr(V.dual) == 'ElementarySpace(3, is_dual=True)'
    assert str(V.dual) == 'V*(3)'


@pytest.mark.parametrize('is_dual', [True, False, None])
def test_random_ElementarySpace(is_dual, make_any_space):
    for _ in range(10):
        V = make_any_space(max_dim=3, is_dual=is_dual)
        V.test_sanity()
        assert 1 <= V.dim <= 3
        if is_dual is not None:
            assert V.is_dual == is_dual
