r"""Provide test configuration for backends etc.

Fixtures
--------

The following table summarizes the available fixtures.

=============================  ======================  ===========================================
Fixture                        Depends on / # cases    Description
=============================  ======================  ===========================================
np_random                      -                       A numpy random Generator. Use this for
                                                       reproducibility.
-----------------------------  ----------------------  -------------------------------------------
any_backend                    Generates ~1 case       Goes over all execution backends, selected
                                                       by ``--backends``.
-----------------------------  ----------------------  -------------------------------------------
make_any_space                 np_random               RNG for spaces.
                                                       ``make(max_dim=4, is_dual=None)``
-----------------------------  ----------------------  -------------------------------------------
make_any_tensor                np_random               RNG for dense tensors.
                                                       ``make(codomain, domain=(), real=False)``
-----------------------------  ----------------------  -------------------------------------------
make_objects                   np_random               RNG for the objects of an expression, with
                                                       matching legs.
                                                       ``make(ex, index_spaces=None, real=False)``
=============================  ======================  ===========================================

The function returned by the fixture ``make_objects`` returns a dictionary ``{name: tensor}``
that can be passed as keywords to :func:`planarc.execute_plan`, see
:func:`planarc.testing.random_objects`.


Marks
-----
Note: a list of marks should also be maintained in ``pyproject.toml``.

- ``slow``: marks tests as slow (deselect with ``-m "not slow"``)
- ``numpy``: marks tests that use the numpy backend.

"""

# Copyright (C) TeNPy Developers, Apache license
from __future__ import annotations

import numpy as np
import pytest

from planarc import backends, spaces
from planarc.testing import random_ElementarySpace, random_objects, random_tensor

# OVERRIDE pytest routines


def pytest_addoption(parser):
    parser.addoption('--backends', action='store', default='numpy', help=f'Comma separated backend names')
    parser.addoption('--rng-seed', action='store', default=12345, type=int, help=f'The rng seed')


def pytest_generate_tests(metafunc):
    if 'any_backend' in metafunc.fixturenames:
        names = metafunc.config.getoption('--backends').split(',')
        assert all(b in _backend_params for b in names), str(names)
        metafunc.parametrize('any_backend', [_backend_params[b] for b in names], indirect=True)


# QUICK CONFIGURATION

_backend_params = dict(
    numpy=pytest.param('numpy', marks=pytest.mark.numpy),
)


# FIXTURES


@pytest.fixture
def np_random(request) -> np.random.Generator:
    return np.random.default_rng(seed=request.config.getoption('--rng-seed'))


@pytest.fixture  # values defined during `pytest_generate_tests`
def any_backend(request) -> backends.ExecutionBackend:
    return backends.get_backend(request.param)


@pytest.fixture
def make_any_space(np_random):
    def make(max_dim: int = 4, is_dual: bool = None) -> spaces.ElementarySpace:
        return random_ElementarySpace(max_dim=max_dim, is_dual=is_dual, np_random=np_random)

    return make


@pytest.fixture
def make_any_tensor(np_random):
    def make(codomain: list[spaces.ElementarySpace], domain: list[spaces.ElementarySpace] = (),
             real: bool = False) -> backends.DenseTensor:
        return random_tensor(codomain, domain, real=real, np_random=np_random)

    return make


@pytest.fixture
def make_objects(np_random):
    def make(ex, index_spaces: dict = None, real: bool = False) -> dict:
        return random_objects(ex, index_spaces=index_spaces, real=real, np_random=np_random)

    return make
