"""
Domain errors for the reconciliation core.

The store client translates Kubernetes API exceptions into these so the
rest of the core never inspects HTTP status codes.
"""
from typing import Optional


class OperatorError(Exception):
    """Base class for all reconciliation errors."""


class NotFound(OperatorError):
    """The requested object does not exist. Expected, drives create-vs-noop."""

    def __init__(self, kind: str, namespace: str, name: str):
        super().__init__(f"{kind} {namespace}/{name} not found")
        self.kind = kind
        self.namespace = namespace
        self.name = name


class TransientStoreError(OperatorError):
    """
    The store could not serve the request (unavailable, conflict, forbidden...).
    Always retryable; the original exception is kept as ``__cause__``.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class AlreadyExists(TransientStoreError):
    """A create raced with another writer for the same name."""


class ValidationError(OperatorError):
    """The declared spec is malformed and cannot be materialized."""
