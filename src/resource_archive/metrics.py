"""
Prometheus collectors for the sink pipelines.

Registered in the global REGISTRY on import.
"""

from prometheus_client import Counter, Histogram

SINK_CHUNKS_TOTAL = Counter(
    "archive_sink_chunks_total",
    "Batch calls issued per sink",
    ["sink", "status"],
)

SINK_OPERATIONS_TOTAL = Counter(
    "archive_sink_operations_total",
    "Write operations reconciled per sink",
    ["sink", "outcome"],
)

SINK_CHUNK_LATENCY = Histogram(
    "archive_sink_chunk_latency_seconds",
    "Batch call latency in seconds",
    ["sink"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10],
)
