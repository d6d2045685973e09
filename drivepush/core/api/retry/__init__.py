"""Retry strategies using Strategy Pattern."""
from .retry_strategy import RetryStrategy, ExponentialBackoffStrategy, RetryGovernor

__all__ = [
    'RetryStrategy',
    'ExponentialBackoffStrategy',
    'RetryGovernor',
]
