"""
TagWeave References Package.

Requires Python 3.11+.
"""

from references.index import DependencyIndex

__all__ = ["DependencyIndex"]
