"""Perform linting checks.

These are checks for coding guidelines, best practices etc.
The code may still run fine even if these checks fail.
We therefore consider them part of a linting routine and do *not* call them from pytest.
"""
# Copyright (C) TeNPy Developers, Apache license

import importlib
import os
import pkgutil
import types

import planarc


def main():
    """Called when this script is called, e.g. via `python python_linting.py`"""
    print('Checking __all__ attributes')
    for module in get_modules(planarc):
        check_all_attribute(module)
    print('Checking copyright notices')
    check_copyright_notice()
    print('Done')


# Exceptions: these do not need to be listed in __all__
_dunder_all_exceptions = {
    planarc.planar: [planarc.planar.NestedContainer_str],
}


def get_modules(package=planarc) -> list[types.ModuleType]:
    """All (non-package) modules under a package. Packages only re-export, they have no __all__."""
    res = []
    for info in pkgutil.walk_packages(package.__path__, package.__name__ + '.'):
        if info.ispkg:
            continue
        res.append(importlib.import_module(info.name))
    return res


def check_all_attribute(check_module):
    """Check the `__all__` attribute of a module.

    In each module under planarc/, there should be an __all__, which fulfills::
        - Each entry should be valid (i.e. importable from that module).
        - Each object declared in that module should be listed (unless it starts with ``_``)
    """
    _name_ = check_module.__name__
    if not hasattr(check_module, '__all__'):
        if _name_ in ['planarc.dummy_config', 'planarc.version'] or _name_.startswith('planarc.testing'):
            return
        raise AssertionError("module {0} has no line __all__ = [...]".format(_name_))
    _all_ = check_module.__all__
    exceptions = _dunder_all_exceptions.get(check_module, [])

    # find entries in __all__ but not in the module
    nonexistent = [n for n in _all_ if not hasattr(check_module, n)]
    if len(nonexistent) > 0:
        raise AssertionError("found entries {0!s} in __all__ but not in module {1}".format(
            nonexistent, _name_))

    # find objects in the module, which are not listed in __all__ (although they should be)
    missing_objects = []
    for n in dir(check_module):
        if n[0] == '_' or n in _all_:  # private or listed in __all__
            continue
        obj = getattr(check_module, n)
        if any(obj is e for e in exceptions):
            continue
        if getattr(obj, "__module__", None) == _name_:
            missing_objects.append(obj)
    if missing_objects:
        print()
        print(f'File "{check_module.__file__}:"')
        print(f'Missing objects:')
        for obj in missing_objects:
            print(f'  {obj.__name__}')
        print()
        msg = f'In module {_name_}, the items listed before the stacktrace are missing from __all__'
        raise AssertionError(msg)


def get_python_files(top):
    """return list of all python files in a directory. Recursive."""
    python_files = []
    for dirpath, dirnames, filenames in os.walk(top):
        if '__pycache__' in dirnames:
            del dirnames[dirnames.index('__pycache__')]
        for fn in filenames:
            if fn.endswith('.py'):
                python_files.append(os.path.join(dirpath, fn))
    return python_files


def check_copyright_notice():
    expected_notice = '# Copyright (C) TeNPy Developers, Apache license'
    planarc_files = get_python_files(os.path.dirname(planarc.__file__))
    for fn in planarc_files:
        with open(fn, 'r') as f:
            for line in f:
                if line.startswith(expected_notice):
                    break
            else:  # no break
                raise AssertionError(f'No/wrong copyright notice in {fn}.')


if __name__ == '__main__':
    main()
