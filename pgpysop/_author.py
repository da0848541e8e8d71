"""_author.py

Canonical location for authorship information
__version__ is a PEP-440 compliant version string
"""

__all__ = ['__author__',
           '__copyright__',
           '__license__',
           '__version__']

__author__ = "pgpysop contributors"
__copyright__ = "Copyright (c) 2024 pgpysop contributors"
__license__ = "BSD"
__version__ = "0.3.0"
