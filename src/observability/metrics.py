"""
Prometheus metrics collection for the CardDemo migration pipeline

This module provides metrics instrumentation for monitoring
chunk throughput, skip reasons and persistence health.
"""
import os
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# PIPELINE METRICS
# =======================

# Records processed counter
records_processed_total = Counter(
    name="migration_records_processed_total",
    documentation="Total number of legacy records processed",
    labelnames=["record_type", "status"],  # status: loaded, skipped, failed_fatal
    registry=REGISTRY,
)

# Skipped records by category
records_skipped_total = Counter(
    name="migration_records_skipped_total",
    documentation="Records skipped, by skip kind (format, validation, reference)",
    labelnames=["record_type", "kind"],
    registry=REGISTRY,
)

# Validation warnings counter
validation_warnings_total = Counter(
    name="migration_validation_warnings_total",
    documentation="Total number of non-blocking validation warnings",
    labelnames=["record_type", "rule_name"],
    registry=REGISTRY,
)

# Chunk load duration
chunk_load_duration_seconds = Histogram(
    name="migration_chunk_load_duration_seconds",
    documentation="Time spent committing one chunk, retries included",
    labelnames=["record_type"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
    registry=REGISTRY,
)

# Chunk size
chunk_size_records = Histogram(
    name="migration_chunk_size_records",
    documentation="Rows committed per chunk",
    labelnames=["record_type"],
    buckets=[1, 10, 50, 100, 500, 1000, 5000, 10000],
    registry=REGISTRY,
)

# =======================
# PERSISTENCE METRICS
# =======================

chunk_retries_total = Counter(
    name="migration_chunk_retries_total",
    documentation="Chunk transactions retried after a transient conflict",
    labelnames=["record_type"],
    registry=REGISTRY,
)

partitions_created_total = Counter(
    name="migration_partitions_created_total",
    documentation="Monthly partitions created by the loader",
    labelnames=["table"],
    registry=REGISTRY,
)

fatal_chunks_total = Counter(
    name="migration_fatal_chunks_total",
    documentation="Chunks that failed fatally and aborted the job",
    labelnames=["record_type"],
    registry=REGISTRY,
)

chunks_in_flight = Gauge(
    name="migration_chunks_in_flight",
    documentation="Chunks submitted to workers and not yet finished",
    labelnames=["record_type"],
    registry=REGISTRY,
)


# =======================
# METRICS EXPORT
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    # Lazy import: the HTTP server is only needed when --metrics-port is given
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


# =======================
# CONTEXT MANAGERS
# =======================

class track_duration:
    """
    Context manager for tracking operation duration

    Usage:
        with track_duration(chunk_load_duration_seconds, record_type="card"):
            # do work
            pass
    """

    def __init__(self, histogram: Histogram, **labels):
        self.histogram = histogram
        self.labels = labels
        self.timer = None

    def __enter__(self):
        self.timer = self.histogram.labels(**self.labels).time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.timer.__exit__(exc_type, exc_val, exc_tb)
        return False


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    if value:
        counter.labels(**labels).inc(value)


# =======================
# MIGRATION HELPERS
# =======================

def record_chunk_committed(record_type: str, rows: int, retries: int) -> None:
    """
    Record a committed chunk.

    Args:
        record_type: card, account or transaction
        rows: Rows inserted
        retries: Attempts beyond the first
    """
    increment_counter(records_processed_total, rows, record_type=record_type, status="loaded")
    chunk_size_records.labels(record_type=record_type).observe(rows)
    increment_counter(chunk_retries_total, retries, record_type=record_type)


def record_skip(record_type: str, kind: str) -> None:
    increment_counter(records_processed_total, 1, record_type=record_type, status="skipped")
    increment_counter(records_skipped_total, 1, record_type=record_type, kind=kind)


def record_fatal_chunk(record_type: str, rows: int) -> None:
    increment_counter(fatal_chunks_total, 1, record_type=record_type)
    increment_counter(records_processed_total, rows, record_type=record_type, status="failed_fatal")
