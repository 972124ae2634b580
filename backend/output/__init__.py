"""
TagWeave Output Package.

Requires Python 3.11+.
"""

from output.writer import OutputWriter, WriteResult

__all__ = ["OutputWriter", "WriteResult"]
