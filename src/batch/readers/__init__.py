"""
Batch data source readers.
"""

from .fixed_width_reader import Chunk, FixedWidthReader

__all__ = [
    "Chunk",
    "FixedWidthReader",
]
