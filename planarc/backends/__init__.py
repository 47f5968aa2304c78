"""Execution backends, which evaluate the statements of a contraction plan on actual tensors."""

# Copyright (C) TeNPy Developers, Apache license
from ._backend import ExecutionBackend
from .backend_factory import get_backend
from .numpy import DenseTensor, NumpyBackend
