"""Prometheus metrics for WorkloadLens."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# Upward boundary operations
operation_duration_seconds = Histogram(
    "workloadlens_operation_duration_seconds",
    "Duration of workload service operations in seconds",
    ["operation", "outcome"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Fetch orchestrator
fetch_errors_total = Counter(
    "workloadlens_fetch_errors_total",
    "Total failed resource collection fetches",
    ["kind"],
)

# Resolver / builder
workloads_resolved = Gauge(
    "workloadlens_workloads_resolved",
    "Number of workloads returned by the last resolution pass",
    ["path"],
)

workloads_dropped_total = Counter(
    "workloadlens_workloads_dropped_total",
    "Workloads dropped because their controller disappeared before build",
    ["kind"],
)

unmanaged_controller_kinds_total = Counter(
    "workloadlens_unmanaged_controller_kinds_total",
    "Tie-break inputs naming a controller kind outside the precedence table",
    ["kind"],
)

# Log window parser
log_lines_skipped_total = Counter(
    "workloadlens_log_lines_skipped_total",
    "Log lines skipped by the bounded log window parser",
    ["reason"],
)

# Namespace cache
cache_reads_total = Counter(
    "workloadlens_cache_reads_total",
    "Reads served by the namespace cache",
    ["kind", "result"],
)

cache_refreshes_total = Counter(
    "workloadlens_cache_refreshes_total",
    "Total namespace cache refreshes (population or invalidation)",
    ["reason"],
)

cache_namespaces = Gauge(
    "workloadlens_cache_namespaces",
    "Number of namespaces currently mirrored by the cache",
)

# Proxy status
proxy_status_requests_total = Counter(
    "workloadlens_proxy_status_requests_total",
    "Proxy status lookups against the mesh control plane",
    ["success"],
)
