"""
Prometheus metrics for file transfers.

Served on METRICS_PORT by a separate listener so the API port only answers
/files/ paths.
"""
from prometheus_client import Counter, start_http_server

FILE_REQUESTS = Counter(
    "files_requests_total",
    "File requests by operation and response status",
    ["operation", "status"],
)

FILE_BYTES = Counter(
    "files_bytes_total",
    "Bytes transferred by operation",
    ["operation"],
)


def record_request(operation: str, status_code: int, size: int = 0) -> None:
    FILE_REQUESTS.labels(operation=operation, status=str(status_code)).inc()
    if size:
        FILE_BYTES.labels(operation=operation).inc(size)


def start_metrics_server(port: int) -> None:
    start_http_server(port)
