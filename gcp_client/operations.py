"""Waiting on Compute Engine zonal long-running operations.

Compute Engine offers no completion callback, so an operation is polled at a
fixed interval until its status is ``DONE`` or the caller's budget runs out::

    poller = OperationPoller(client.get_zone_operation, interval=5.0)
    error = await poller.wait_for_completion("proj", "us-central1-a", "op-123", 600)
    if not error.ok:
        ...

A transport failure on one poll only costs that interval. Timing out does
not cancel the remote operation.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeAlias

from loguru import logger

from gcp_client.exceptions import ComputeIOError, OperationTimeoutError
from gcp_client.model import Operation, OperationError
from gcp_client.validation import require_non_empty, require_positive
from gcp_client.wait import PollTimeoutError, Sleep, wait_for_ready

if TYPE_CHECKING:
    from loguru import Logger

FetchOperation: TypeAlias = Callable[[str, str, str], Awaitable[Operation]]

DEFAULT_POLL_INTERVAL = 5.0


class OperationPoller:
    """Blocks the calling task until an operation reaches ``DONE``."""

    def __init__(
        self,
        fetch: FetchOperation,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        log: Logger | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        require_positive(interval, "interval")
        self._fetch = fetch
        self._interval = interval
        self._log = (log or logger).bind(component="poller")
        self._sleep = sleep

    @property
    def interval(self) -> float:
        return self._interval

    async def wait_for_completion(
        self, project: str, zone: str, operation_id: str, timeout: float,
    ) -> OperationError:
        """Wait for ``operation_id`` and return its terminal error payload.

        Parameters
        ----------
        project
            Project that owns the operation.
        zone
            Zone name the operation is scoped to.
        operation_id
            Operation name as returned by the mutating call.
        timeout
            Budget in seconds; must be positive.

        Returns
        -------
        OperationError
            Error payload observed on the poll that saw ``DONE``. Empty
            when the operation succeeded.

        Raises
        ------
        InvalidArgumentError
            If an identifier is empty or ``timeout`` is not positive.
        OperationTimeoutError
            If the operation is still not done when the budget runs out.
        """
        require_non_empty(project=project, zone=zone, operation_id=operation_id)
        require_positive(timeout, "timeout")

        log = self._log.bind(project=project, zone=zone, operation=operation_id)

        async def _poll() -> Operation:
            log.debug("Waiting for operation {op} to complete", op=operation_id)
            return await self._fetch(project, zone, operation_id)

        try:
            operation = await wait_for_ready(
                _poll,
                lambda op: op.done,
                timeout=timeout,
                interval=self._interval,
                retry_on=(ComputeIOError,),
                description=f"operation {operation_id}",
                sleep=self._sleep,
                log=log,
            )
        except PollTimeoutError as e:
            log.warning(
                "Operation {op} not done after {t:.1f}s", op=operation_id, t=timeout,
            )
            raise OperationTimeoutError(operation_id, timeout) from e

        log.debug("Operation {op} done ({err})", op=operation_id, err=operation.error)
        return operation.error
