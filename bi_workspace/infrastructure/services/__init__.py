from .retry import create_conflict_retry, is_retryable_error

__all__ = ["create_conflict_retry", "is_retryable_error"]
