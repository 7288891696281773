"""Concurrent snapshots of every disk attached to an instance.

One task per disk is gathered on the running loop. Each task creates a
snapshot named after its disk and waits for it with the full caller budget,
so N disks finish within one timeout rather than N of them.

The first failing disk fails the whole call. Its siblings are not cancelled:
they keep running on the loop and their outcomes are discarded.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeAlias

from loguru import logger

from gcp_client.exceptions import ComputeIOError, OperationTimeoutError
from gcp_client.model import Instance, Operation, OperationError, SnapshotRequest
from gcp_client.operations import OperationPoller
from gcp_client.resources import name_from_self_link
from gcp_client.validation import require_non_empty, require_positive

if TYPE_CHECKING:
    from loguru import Logger

GetInstance: TypeAlias = Callable[[str, str, str], Awaitable[Instance]]
CreateDiskSnapshot: TypeAlias = Callable[[str, str, str, str], Awaitable[Operation]]


class SnapshotOrchestrator:
    def __init__(
        self,
        *,
        get_instance: GetInstance,
        create_disk_snapshot: CreateDiskSnapshot,
        poller: OperationPoller,
        log: Logger | None = None,
    ) -> None:
        self._get_instance = get_instance
        self._create_disk_snapshot = create_disk_snapshot
        self._poller = poller
        self._log = (log or logger).bind(component="snapshots")

    async def create_snapshot(
        self, project: str, zone_link: str, instance_id: str, timeout: float,
    ) -> dict[str, OperationError]:
        """Snapshot every disk attached to ``instance_id``.

        Returns the terminal error payload of each disk's operation, keyed by
        disk name. Raises the first ``ComputeIOError`` or
        ``OperationTimeoutError`` hit by any disk.
        """
        require_non_empty(project=project, zone_link=zone_link, instance_id=instance_id)
        require_positive(timeout, "timeout")

        zone = name_from_self_link(zone_link)
        log = self._log.bind(project=project, zone=zone, instance=instance_id)

        try:
            instance = await self._get_instance(project, zone, instance_id)
        except ComputeIOError as e:
            log.warning("Error retrieving instance {iid}: {err}", iid=instance_id, err=e)
            raise

        requests = [
            SnapshotRequest(project=project, zone=zone, disk_name=disk.name, timeout=timeout)
            for disk in instance.disks
        ]
        log.info(
            "Snapshotting {n} disks of {iid}", n=len(requests), iid=instance_id,
        )

        errors = await asyncio.gather(*(self._snapshot_disk(r, log) for r in requests))
        return {r.disk_name: err for r, err in zip(requests, errors, strict=True)}

    async def create_snapshot_for_disk(
        self, project: str, zone: str, disk_name: str, timeout: float,
    ) -> OperationError:
        """Create a snapshot named after ``disk_name`` and wait for it."""
        require_non_empty(project=project, zone=zone, disk_name=disk_name)
        require_positive(timeout, "timeout")

        zone = name_from_self_link(zone)

        operation = await self._create_disk_snapshot(project, zone, disk_name, disk_name)
        return await self._poller.wait_for_completion(
            project, operation.zone or zone, operation.id, timeout,
        )

    async def _snapshot_disk(self, request: SnapshotRequest, log: Logger) -> OperationError:
        log = log.bind(disk=request.disk_name)
        try:
            error = await self.create_snapshot_for_disk(
                request.project, request.zone, request.disk_name, request.timeout,
            )
        except ComputeIOError as e:
            log.warning("Error in creating snapshot of {disk}: {err}", disk=request.disk_name, err=e)
            raise
        except OperationTimeoutError as e:
            log.warning("Interruption in creating snapshot of {disk}: {err}", disk=request.disk_name, err=e)
            raise

        if not error.ok:
            log.warning(
                "Snapshot of {disk} finished with errors: {err}",
                disk=request.disk_name, err=error,
            )
        else:
            log.info("Snapshot of {disk} completed", disk=request.disk_name)
        return error
