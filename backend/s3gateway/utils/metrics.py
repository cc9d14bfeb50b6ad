"""
Prometheus metrics definitions for the HTTP layer and backend fan-out.
All metrics are registered here and can be imported by other modules.
"""
from prometheus_client import Counter, Histogram

# HTTP request metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'path', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'path'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Error metrics
errors_total = Counter(
    'errors_total',
    'Total errors',
    ['error_type']
)

# Backend fan-out metrics
storage_backend_operations_total = Counter(
    'storage_backend_operations_total',
    'Total per-backend storage operations',
    ['backend', 'operation', 'outcome']
)

storage_backend_operation_duration_seconds = Histogram(
    'storage_backend_operation_duration_seconds',
    'Per-backend storage operation duration in seconds',
    ['backend', 'operation'],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

storage_buckets_created_total = Counter(
    'storage_buckets_created_total',
    'Total buckets created by the provisioner',
    ['backend']
)
