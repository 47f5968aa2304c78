"""Small helpers used throughout the package."""
# Copyright (C) TeNPy Developers, Apache license

from . import misc, string
from .misc import duplicate_entries, is_iterable, roll_list, to_iterable
from .string import format_indices, format_like_list, indent_lines
