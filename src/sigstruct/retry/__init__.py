# src/sigstruct/retry/__init__.py
from .backoff import BackoffPolicy
from .handler import RetryHandler, RetryOutcome

__all__ = ["BackoffPolicy", "RetryHandler", "RetryOutcome"]
