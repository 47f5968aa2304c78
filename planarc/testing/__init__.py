"""Tools for testing."""
# Copyright (C) TeNPy Developers, Apache license
from . import random_generation
from .asserting import assert_tensors_almost_equal
from .random_generation import (
    random_block,
    random_ElementarySpace,
    random_index_spaces,
    random_objects,
    random_tensor,
)
