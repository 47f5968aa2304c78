"""Access to version of this library.

The version is provided in the standard python format ``major.minor.revision`` as string.

.. autodata :: version
.. autodata :: full_version
.. autodata :: version_summary
"""
# Copyright (C) TeNPy Developers, Apache license

import sys

import numpy as np

__all__ = ['version', 'full_version', 'version_summary']

version = '0.1.0'
"""current release version as a string"""

full_version = version
"""the full version string, the same as :data:`version` for releases"""

version_summary = (f'planarc {full_version},\n'
                   f'python {sys.version}\n'
                   f'numpy {np.__version__}')
"""summary of the versions of planarc and the libraries it depends on"""
