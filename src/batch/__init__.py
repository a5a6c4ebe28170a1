"""
Legacy file migration: chunked reading, bulk loading and orchestration.
"""

from .loader import PartitionAwareBulkLoader, RetryPolicy
from .pipeline import MigrationPipeline, PipelinePorts
from .readers import Chunk, FixedWidthReader

__all__ = [
    "MigrationPipeline",
    "PipelinePorts",
    "PartitionAwareBulkLoader",
    "RetryPolicy",
    "Chunk",
    "FixedWidthReader",
]
