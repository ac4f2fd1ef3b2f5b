"""Error taxonomy shared by the gateway, the resolver and the log parser."""

from __future__ import annotations


class WorkloadLensError(Exception):
    """Base class for all WorkloadLens errors."""


class NotFoundError(WorkloadLensError):
    """The target object or namespace does not exist."""

    def __init__(self, kind: str, name: str, namespace: str = "") -> None:
        where = f" in namespace {namespace!r}" if namespace else ""
        super().__init__(f"{kind} {name!r} not found{where}")
        self.kind = kind
        self.name = name
        self.namespace = namespace


class AccessDeniedError(WorkloadLensError):
    """The caller is not allowed to see the namespace."""

    def __init__(self, namespace: str, reason: str = "") -> None:
        detail = f": {reason}" if reason else ""
        super().__init__(f"access to namespace {namespace!r} denied{detail}")
        self.namespace = namespace
        self.reason = reason


class UpstreamError(WorkloadLensError):
    """Any other failure talking to the cluster API (network, timeout, 5xx)."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class MalformedObjectError(WorkloadLensError):
    """A fetched object could not be interpreted."""


class InvalidInputError(WorkloadLensError):
    """Caller input was rejected before any request was issued."""
