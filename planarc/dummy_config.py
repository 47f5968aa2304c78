"""Temporary solution for global config options."""
# Copyright (C) TeNPy Developers, Apache license


class printoptions:
    """A collection of global config options. The class is used as a namespace"""

    linewidth: int = 100
    indent: int = 4
    show_handles: bool = False  # False -> print surface names instead of alias handles


class config:
    """A collection of global config options. The class is used as a namespace"""
    printoptions = printoptions
    braiding_name = 'τ'  # reserved object name for an explicit braiding (crossing) tensor
    check_arity = True  # If the binder should insert arity checks for pre-existing objects
    check_planarity = True  # If compile_planar should run the planarity checker
    default_backend = 'numpy'
