"""
Queue Module - Black Box Interface

Purpose: Hold reconcile keys until a worker is free to process them
Interface: add(), get(), done(), forget(), add_rate_limited(), shut_down()
Hidden: Dirty/processing bookkeeping, delayed insertion, backoff policy

Can be replaced with any queue that keeps the single-flight guarantee.
"""

from .queue import RateLimitingQueue, WorkQueue
from .rate_limiter import (
    BucketRateLimiter,
    ItemExponentialFailureRateLimiter,
    MaxOfRateLimiter,
    RateLimiter,
    default_controller_rate_limiter,
)

__all__ = [
    "BucketRateLimiter",
    "ItemExponentialFailureRateLimiter",
    "MaxOfRateLimiter",
    "RateLimiter",
    "RateLimitingQueue",
    "WorkQueue",
    "default_controller_rate_limiter",
]
