"""Prometheus metrics for pipeline runs and oracle calls."""
from prometheus_client import Counter, Histogram


PIPELINE_RUNS = Counter(
    "docquiz_pipeline_runs_total",
    "Pipeline runs by operation and outcome",
    ["operation", "outcome"],
)

GENERATION_LATENCY = Histogram(
    "docquiz_generation_seconds",
    "Latency of generation oracle calls",
    buckets=(0.5, 1, 2.5, 5, 10, 30, 60, 120),
)

GENERATION_FAILURES = Counter(
    "docquiz_generation_failures_total",
    "Generation oracle calls that failed",
)
