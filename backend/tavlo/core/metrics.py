"""
Prometheus metrics configuration
"""
import os

from prometheus_client import (CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry,
                               Counter, Gauge, Histogram, generate_latest)
from prometheus_client.multiprocess import MultiProcessCollector

# ============================================================================
# HTTP Request Metrics
# ============================================================================

http_requests_total = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status_code']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint', 'status_code'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

http_errors_total = Counter(
    'http_errors_total',
    'Total number of HTTP errors',
    ['method', 'endpoint', 'status_code', 'error_type']
)

# ============================================================================
# LLM Request Metrics
# ============================================================================

llm_requests_total = Counter(
    'llm_requests_total',
    'Total number of LLM requests',
    ['model', 'task_type', 'status']
)

llm_request_duration_seconds = Histogram(
    'llm_request_duration_seconds',
    'LLM request duration in seconds',
    ['model', 'task_type'],
    buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0)
)

llm_tokens_total = Counter(
    'llm_tokens_total',
    'Total number of tokens processed',
    ['model', 'type']  # type: 'input' or 'output'
)

llm_errors_total = Counter(
    'llm_errors_total',
    'Total number of LLM errors',
    ['model', 'error_type']
)

# ============================================================================
# Ingestion Metrics
# ============================================================================

pipeline_runs_total = Counter(
    'pipeline_runs_total',
    'Total number of ingestion pipeline runs',
    ['channel', 'status']  # channel: 'url', 'email'; status: 'success', 'rejected', 'failed'
)

pipeline_duration_seconds = Histogram(
    'pipeline_duration_seconds',
    'Ingestion pipeline duration in seconds',
    ['channel'],
    buckets=(0.5, 1.0, 2.0, 5.0, 10.0, 20.0, 45.0, 90.0)
)

extraction_attempts_total = Counter(
    'extraction_attempts_total',
    'Content extraction attempts',
    ['platform', 'strategy', 'status']
)

side_effect_failures_total = Counter(
    'side_effect_failures_total',
    'Pipeline side effects that failed and were skipped',
    ['effect']
)

# ============================================================================
# Gamification Metrics
# ============================================================================

xp_awarded_total = Counter(
    'xp_awarded_total',
    'Total XP awarded',
    ['action']
)

badges_awarded_total = Counter(
    'badges_awarded_total',
    'Total badges awarded',
    ['badge_key']
)

rate_limit_rejections_total = Counter(
    'rate_limit_rejections_total',
    'Requests rejected by the rate limiter',
    ['window']
)

# ============================================================================
# Database Metrics
# ============================================================================

db_queries_total = Counter(
    'db_queries_total',
    'Total number of database queries',
    ['operation', 'table']
)

db_query_duration_seconds = Histogram(
    'db_query_duration_seconds',
    'Database query duration in seconds',
    ['operation', 'table'],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0)
)

db_connection_pool_size = Gauge(
    'db_connection_pool_size',
    'Database connection pool size',
    ['state']  # state: 'active', 'idle'
)


def get_metrics() -> bytes:
    """Render metrics in Prometheus text format"""
    if os.environ.get('PROMETHEUS_MULTIPROC_DIR'):
        registry = CollectorRegistry()
        MultiProcessCollector(registry)
        return generate_latest(registry)
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Content type for the metrics endpoint"""
    return CONTENT_TYPE_LATEST
