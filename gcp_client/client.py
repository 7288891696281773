"""Compute Engine client façade.

Turns simple verbs ("create instance", "snapshot disk", "delete template")
into calls against a :class:`ResourceGateway`. Blocking gateway calls are
dispatched to a dedicated thread pool so concurrent tasks really run in
parallel; list results are filtered and sorted before they are returned.

    async with ComputeClient.create() as client:
        regions = await client.get_regions("my-project")
        errors = await client.create_snapshot("my-project", "us-central1-a", "vm-1", 600)
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from operator import attrgetter
from types import TracebackType
from typing import TYPE_CHECKING, Any, Self, TypeVar

from loguru import logger

from gcp_client.config import ClientConfig
from gcp_client.gateway import ComputeGateway, ResourceGateway
from gcp_client.model import (
    AcceleratorType,
    DiskType,
    Image,
    Instance,
    InstanceTemplate,
    MachineType,
    Metadata,
    MetadataItem,
    Network,
    Operation,
    OperationError,
    Region,
    Snapshot,
    Subnetwork,
    Zone,
)
from gcp_client.operations import OperationPoller
from gcp_client.resources import (
    build_labels_filter_string,
    is_deprecated,
    merge_metadata_items,
    name_from_self_link,
    process_resource_list,
)
from gcp_client.snapshots import SnapshotOrchestrator
from gcp_client.validation import require_non_empty, require_not_none, require_positive
from gcp_client.wait import Sleep

T = TypeVar("T")

if TYPE_CHECKING:
    from loguru import Logger

_by_name = attrgetter("name")


class ComputeClient:
    """Async façade over a :class:`ResourceGateway`.

    Zone and region arguments named ``*_link`` accept either a full self
    link or a bare name.
    """

    merge_metadata_items = staticmethod(merge_metadata_items)

    def __init__(
        self,
        gateway: ResourceGateway,
        config: ClientConfig | None = None,
        *,
        log: Logger | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._gateway = gateway
        self._config = config or ClientConfig()
        self._log = (log or logger).bind(component="compute")
        self._pool = ThreadPoolExecutor(
            max_workers=self._config.thread_pool_size,
            thread_name_prefix="gcp-io",
        )
        self._poller = OperationPoller(
            self.get_zone_operation,
            interval=self._config.poll_interval,
            log=self._log,
            sleep=sleep,
        )
        self._snapshots = SnapshotOrchestrator(
            get_instance=self.get_instance,
            create_disk_snapshot=self._create_disk_snapshot,
            poller=self._poller,
            log=self._log,
        )

    @classmethod
    def create(
        cls, config: ClientConfig | None = None, *, log: Logger | None = None,
    ) -> Self:
        """Build a client over ``compute_v1`` using Application Default Credentials."""
        return cls(ComputeGateway.create(), config, log=log)

    @property
    def config(self) -> ClientConfig:
        return self._config

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self._pool.shutdown(wait=False)

    async def _run(self, fn: Callable[..., T], *args: object) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._pool, fn, *args)

    # -------------------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------------------

    async def get_regions(self, project: str) -> list[Region]:
        require_non_empty(project=project)
        regions = await self._run(self._gateway.list_regions, project)
        return process_resource_list(
            regions, lambda r: not is_deprecated(r.deprecated), _by_name,
        )

    async def get_zones(self, project: str, region_link: str) -> list[Zone]:
        require_non_empty(project=project, region_link=region_link)
        zones = await self._run(self._gateway.list_zones, project)
        return process_resource_list(
            zones, lambda z: region_link.lower() == z.region.lower(), _by_name,
        )

    async def get_machine_types(self, project: str, zone_link: str) -> list[MachineType]:
        require_non_empty(project=project, zone_link=zone_link)
        machine_types = await self._run(
            self._gateway.list_machine_types, project, name_from_self_link(zone_link),
        )
        return process_resource_list(
            machine_types, lambda m: not is_deprecated(m.deprecated), _by_name,
        )

    async def get_cpu_platforms(self, project: str, zone_link: str) -> list[str]:
        require_non_empty(project=project, zone_link=zone_link)
        zone = await self._run(self._gateway.get_zone, project, name_from_self_link(zone_link))
        return process_resource_list(zone.available_cpu_platforms)

    async def get_disk_types(self, project: str, zone_link: str) -> list[DiskType]:
        require_non_empty(project=project, zone_link=zone_link)
        disk_types = await self._run(
            self._gateway.list_disk_types, project, name_from_self_link(zone_link),
        )
        return process_resource_list(
            disk_types, lambda d: not is_deprecated(d.deprecated), _by_name,
        )

    async def get_boot_disk_types(self, project: str, zone_link: str) -> list[DiskType]:
        require_non_empty(project=project, zone_link=zone_link)
        disk_types = await self._run(
            self._gateway.list_disk_types, project, name_from_self_link(zone_link),
        )
        # Local SSDs cannot be boot disks
        return process_resource_list(
            disk_types,
            lambda d: not is_deprecated(d.deprecated) and not d.name.startswith("local-"),
            _by_name,
        )

    async def get_images(self, project: str) -> list[Image]:
        require_non_empty(project=project)
        images = await self._run(self._gateway.list_images, project)
        return process_resource_list(
            images, lambda i: not is_deprecated(i.deprecated), _by_name,
        )

    async def get_image(self, project: str, image_name: str) -> Image:
        require_non_empty(project=project, image_name=image_name)
        return await self._run(self._gateway.get_image, project, image_name)

    async def get_accelerator_types(
        self, project: str, zone_link: str,
    ) -> list[AcceleratorType]:
        require_non_empty(project=project, zone_link=zone_link)
        accelerators = await self._run(
            self._gateway.list_accelerator_types, project, name_from_self_link(zone_link),
        )
        return process_resource_list(
            accelerators, lambda a: not is_deprecated(a.deprecated), _by_name,
        )

    async def get_networks(self, project: str) -> list[Network]:
        require_non_empty(project=project)
        networks = await self._run(self._gateway.list_networks, project)
        return process_resource_list(networks, key=_by_name)

    async def get_subnetworks(
        self, project: str, network_link: str, region_link: str,
    ) -> list[Subnetwork]:
        require_non_empty(project=project, network_link=network_link, region_link=region_link)
        subnetworks = await self._run(
            self._gateway.list_subnetworks, project, name_from_self_link(region_link),
        )
        return process_resource_list(
            subnetworks, lambda s: network_link.lower() == s.network.lower(), _by_name,
        )

    # -------------------------------------------------------------------------
    # Instances
    # -------------------------------------------------------------------------

    async def insert_instance(
        self, project: str, instance: Any, template_link: str | None = None,
    ) -> Operation:
        """Insert ``instance`` (a ``compute_v1.Instance``) into its own zone.

        When ``template_link`` is given the instance is created from that
        template, with ``instance`` fields overriding it.
        """
        require_non_empty(project=project)
        require_not_none(instance, "instance")
        zone_link = getattr(instance, "zone", None)
        require_non_empty(instance_zone=zone_link)
        if template_link is not None:
            require_non_empty(template_link=template_link)

        zone = name_from_self_link(zone_link)  # type: ignore[arg-type]
        operation = await self._run(
            self._gateway.insert_instance, project, zone, instance, template_link,
        )
        self._log.bind(project=project, zone=zone).info(
            "Requested insertion of instance {name}", name=getattr(instance, "name", ""),
        )
        return operation

    async def terminate_instance(
        self, project: str, zone_link: str, instance_id: str,
    ) -> Operation:
        require_non_empty(project=project, zone_link=zone_link, instance_id=instance_id)
        zone = name_from_self_link(zone_link)
        operation = await self._run(self._gateway.delete_instance, project, zone, instance_id)
        self._log.bind(project=project, zone=zone, instance=instance_id).info(
            "Requested deletion of instance {name}", name=instance_id,
        )
        return operation

    async def terminate_instance_with_status(
        self, project: str, zone_link: str, instance_id: str, desired_status: str,
    ) -> Operation | None:
        """Delete the instance only if its current status is ``desired_status``."""
        require_non_empty(
            project=project,
            zone_link=zone_link,
            instance_id=instance_id,
            desired_status=desired_status,
        )
        zone = name_from_self_link(zone_link)
        instance = await self._run(self._gateway.get_instance, project, zone, instance_id)
        if instance.status != desired_status:
            self._log.bind(project=project, zone=zone, instance=instance_id).debug(
                "Instance {name} is {status}, not {desired}; keeping it",
                name=instance_id, status=instance.status, desired=desired_status,
            )
            return None
        return await self._run(self._gateway.delete_instance, project, zone, instance_id)

    async def get_instance(self, project: str, zone_link: str, instance_id: str) -> Instance:
        require_non_empty(project=project, zone_link=zone_link, instance_id=instance_id)
        return await self._run(
            self._gateway.get_instance, project, name_from_self_link(zone_link), instance_id,
        )

    async def get_instances_with_label(
        self, project: str, labels: Mapping[str, str],
    ) -> list[Instance]:
        require_non_empty(project=project)
        require_not_none(labels, "labels")
        return await self._run(
            self._gateway.aggregated_list_instances,
            project,
            build_labels_filter_string(labels),
        )

    async def append_instance_metadata(
        self,
        project: str,
        zone_link: str,
        instance_id: str,
        items: Sequence[MetadataItem],
        timeout: float,
    ) -> OperationError:
        """Merge ``items`` over the instance's metadata and wait for the update.

        Keys in ``items`` replace existing entries; other existing entries
        are preserved. The existing fingerprint is sent back so concurrent
        writers are rejected by the API instead of overwritten.
        """
        require_non_empty(project=project, zone_link=zone_link, instance_id=instance_id)
        require_not_none(items, "items")
        require_positive(timeout, "timeout")

        zone = name_from_self_link(zone_link)
        instance = await self.get_instance(project, zone, instance_id)
        existing = instance.metadata
        merged = Metadata(
            items=tuple(merge_metadata_items(items, existing.items)),
            fingerprint=existing.fingerprint,
        )

        operation = await self._run(
            self._gateway.set_instance_metadata, project, zone, instance_id, merged,
        )
        return await self.wait_for_operation(project, operation, timeout)

    # -------------------------------------------------------------------------
    # Templates
    # -------------------------------------------------------------------------

    async def get_template(self, project: str, template_name: str) -> InstanceTemplate:
        require_non_empty(project=project, template_name=template_name)
        return await self._run(self._gateway.get_instance_template, project, template_name)

    async def insert_template(self, project: str, template: Any) -> Operation:
        require_non_empty(project=project)
        require_not_none(template, "template")
        return await self._run(self._gateway.insert_instance_template, project, template)

    async def delete_template(self, project: str, template_name: str) -> Operation:
        require_non_empty(project=project, template_name=template_name)
        operation = await self._run(
            self._gateway.delete_instance_template, project, template_name,
        )
        self._log.bind(project=project).info(
            "Requested deletion of instance template {name}", name=template_name,
        )
        return operation

    async def get_templates(self, project: str) -> list[InstanceTemplate]:
        require_non_empty(project=project)
        templates = await self._run(self._gateway.list_instance_templates, project)
        return process_resource_list(templates, key=_by_name)

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    async def create_snapshot(
        self, project: str, zone_link: str, instance_id: str, timeout: float,
    ) -> dict[str, OperationError]:
        """Snapshot every disk attached to an instance, concurrently.

        See :meth:`SnapshotOrchestrator.create_snapshot`.
        """
        return await self._snapshots.create_snapshot(project, zone_link, instance_id, timeout)

    async def create_snapshot_for_disk(
        self, project: str, zone: str, disk_name: str, timeout: float,
    ) -> OperationError:
        return await self._snapshots.create_snapshot_for_disk(
            project, zone, disk_name, timeout,
        )

    async def delete_snapshot(self, project: str, snapshot_name: str) -> Operation:
        require_non_empty(project=project, snapshot_name=snapshot_name)
        return await self._run(self._gateway.delete_snapshot, project, snapshot_name)

    async def get_snapshot(self, project: str, snapshot_name: str) -> Snapshot:
        require_non_empty(project=project, snapshot_name=snapshot_name)
        return await self._run(self._gateway.get_snapshot, project, snapshot_name)

    async def _create_disk_snapshot(
        self, project: str, zone: str, disk: str, snapshot_name: str,
    ) -> Operation:
        return await self._run(
            self._gateway.create_disk_snapshot, project, zone, disk, snapshot_name,
        )

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def get_zone_operation(
        self, project: str, zone_link: str, operation_id: str,
    ) -> Operation:
        require_non_empty(project=project, zone_link=zone_link, operation_id=operation_id)
        return await self._run(
            self._gateway.get_zone_operation,
            project,
            name_from_self_link(zone_link),
            operation_id,
        )

    async def wait_for_operation(
        self, project: str, operation: Operation, timeout: float,
    ) -> OperationError:
        require_not_none(operation, "operation")
        return await self.wait_for_operation_completion(
            project, operation.zone, operation.id, timeout,
        )

    async def wait_for_operation_completion(
        self, project: str, zone_link: str, operation_id: str, timeout: float,
    ) -> OperationError:
        """Poll a zonal operation until ``DONE``; see :class:`OperationPoller`."""
        require_non_empty(project=project, zone_link=zone_link, operation_id=operation_id)
        return await self._poller.wait_for_completion(
            project, name_from_self_link(zone_link), operation_id, timeout,
        )
