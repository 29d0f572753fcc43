"""Utility modules for the Weibo crawler."""

from .headers import HeaderGenerator
from .retry import RetryConfig, RetryableError, retry_async

__all__ = ["HeaderGenerator", "RetryConfig", "RetryableError", "retry_async"]
