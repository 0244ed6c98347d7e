"""Shared building blocks: results, cancellation, HTTP pipeline, caching, logging."""

from .cache import CacheEntry, LruCache
from .cancellation import CancelReason, CancellationToken, LinkedCancellation, OperationAborted
from .http_client import (
    AiohttpTransport,
    HttpClient,
    HttpMiddleware,
    HttpPipeline,
    RateLimitMiddleware,
    RetryMiddleware,
)
from .result import AppError, ErrorCode, RegistrationContractError, Result, ResultUnwrapError, combine_results

__all__ = [
    "CacheEntry",
    "LruCache",
    "CancelReason",
    "CancellationToken",
    "LinkedCancellation",
    "OperationAborted",
    "AiohttpTransport",
    "HttpClient",
    "HttpMiddleware",
    "HttpPipeline",
    "RateLimitMiddleware",
    "RetryMiddleware",
    "AppError",
    "ErrorCode",
    "RegistrationContractError",
    "Result",
    "ResultUnwrapError",
    "combine_results",
]
