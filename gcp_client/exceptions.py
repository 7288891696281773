"""Error taxonomy for the compute client.

``OperationError`` lives in :mod:`gcp_client.model`: a remote operation that
finished with a domain failure is a return value, not an exception.
"""

from __future__ import annotations


class ComputeError(Exception):
    """Base class for every error raised by gcp_client."""


class InvalidArgumentError(ComputeError, ValueError):
    """A precondition failed before any remote call was made."""


class ComputeIOError(ComputeError, OSError):
    """A remote call could not be completed."""


class ResourceNotFoundError(ComputeIOError):
    """The remote API answered 404 for the requested resource."""


class OperationTimeoutError(ComputeError, TimeoutError):
    """A long-running operation did not reach DONE within its budget.

    The remote operation itself keeps running; only the wait gave up.
    """

    def __init__(self, operation_id: str, timeout: float) -> None:
        super().__init__(
            f"Timed out waiting for operation {operation_id} to complete "
            f"after {timeout:.1f}s"
        )
        self.operation_id = operation_id
        self.timeout = timeout
