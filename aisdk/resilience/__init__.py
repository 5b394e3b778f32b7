from .retries import RetryConfig, retry_with_backoff, should_retry

__all__ = ["RetryConfig", "retry_with_backoff", "should_retry"]
