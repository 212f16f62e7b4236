"""
Utility modules for connectors.
"""

from .cache import TTLCache
from .pagination import PaginationInfo, extract_pagination_info
from .rate_limit import SlidingWindowRateLimiter
from .rest import APIResponse, RESTClient, build_url, extract_rate_limit_info
from .retry import RetryPolicy, is_retryable
from .sweeper import PeriodicTask
from .webhooks import compute_signature, verify_signature

__all__ = [
    "RESTClient",
    "APIResponse",
    "build_url",
    "extract_rate_limit_info",
    "RetryPolicy",
    "is_retryable",
    "SlidingWindowRateLimiter",
    "TTLCache",
    "PeriodicTask",
    "PaginationInfo",
    "extract_pagination_info",
    "compute_signature",
    "verify_signature",
]
