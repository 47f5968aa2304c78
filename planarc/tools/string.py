"""Tools for handling strings."""
# Copyright (C) TeNPy Developers, Apache license

__all__ = ['format_like_list', 'format_indices', 'indent_lines']


def format_like_list(it) -> str:
    """Format elements of an iterable as if it were a plain list.

    This means surrounding them with brackets and separating them by `', '`.
    """
    return f'[{", ".join(map(str, it))}]'


def format_indices(left, right) -> str:
    """Format the two index lists of a tensor reference, e.g. ``[a, b; c]``.

    The semicolon is dropped if there are no `right` indices.
    """
    if len(right) == 0:
        return format_like_list(left)
    return f'[{", ".join(map(str, left))}; {", ".join(map(str, right))}]'


def indent_lines(text: str, indent: int) -> str:
    """Indent every line of `text` by `indent` spaces."""
    return '\n'.join(' ' * indent + line for line in text.split('\n'))
