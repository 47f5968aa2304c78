r"""planarc library - compiler for planar tensor network diagrams.

Lowers diagram expressions in named-index notation into plans of binary contractions that keep
the diagram planar at every step, with explicit braiding tensors where legs cross.

"""
# Copyright (C) TeNPy Developers, Apache license

# note: order matters!
from . import (
    tools,
    dummy_config,
    errors,
    expressions,
    spaces,
    backends,
    planar,
    preprocessors,
    plan,
    execution,
    testing,
    version,
)

# subpackages
from .backends import DenseTensor, ExecutionBackend, NumpyBackend, get_backend

# modules under planarc
from .errors import (
    ArityError,
    BraidingError,
    BraidingRemovalError,
    BraidingSpaceError,
    DiagramError,
    PlanarityError,
    ReservedNameError,
    UnknownExpressionError,
)
from .execution import check_arities, execute_plan
from .expressions import (
    Assignment,
    Block,
    Handle,
    Product,
    ScalarTerm,
    Sum,
    SymbolTable,
    TensorTerm,
    assign,
    block,
    conj,
    define,
    prod,
    tensor,
)
from .plan import ContractionPlan, compile_planar, compile_symmetric
from .planar import ContractionTree, check_planarity
from .spaces import ElementarySpace
from .version import full_version as __full_version__
from .version import version as __version__


def show_config():
    """Print information about the version of planarc and used libraries.

    The information printed is :attr:`planarc.version.version_summary`.
    """
    print(version.version_summary)
