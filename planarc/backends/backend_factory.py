"""Utility functions to access backend instances."""

# Copyright (C) TeNPy Developers, Apache license
from __future__ import annotations

import logging

from ..dummy_config import config
from ._backend import ExecutionBackend
from .numpy import NumpyBackend

__all__ = ['get_backend']

logger = logging.getLogger(__name__)

_backend_classes = dict(  # values: (cls, kwargs)
    numpy=(NumpyBackend, {}),
    cpu=(NumpyBackend, {}),
)
_instantiated_backends = {}  # keys: name


def get_backend(name: str | ExecutionBackend = None) -> ExecutionBackend:
    """Get an instance of an execution backend.

    Backends are instantiated only once and then cached. If a suitable backend instance is in
    the cache, that same instance is returned.

    Parameters
    ----------
    name : {None, 'numpy', 'cpu'} | ExecutionBackend
        Which backend to use. Defaults to ``config.default_backend``.
        An :class:`ExecutionBackend` instance is returned as is.

    """
    if isinstance(name, ExecutionBackend):
        return name
    if name is None:
        name = config.default_backend
    if not isinstance(name, str):
        msg = f'Invalid type for `name`. Expected ExecutionBackend or str. Got {type(name).__name__}'
        raise TypeError(msg)

    backend = _instantiated_backends.get(name, None)
    if backend is not None:
        return backend

    if name not in _backend_classes:
        raise ValueError(f'Unknown backend: {name}')
    BackendCls, kwargs = _backend_classes[name]
    backend = BackendCls(**kwargs)
    logger.debug('instantiated %r for %s', backend, name)

    _instantiated_backends[name] = backend
    return backend
