"""Resource gateway over the Compute Engine API.

``ResourceGateway`` is the synchronous request/response surface the client
façade drives. ``ComputeGateway`` implements it with the ``google-cloud-compute``
clients and converts their proto messages into :mod:`gcp_client.model` records.

Every gateway failure surfaces as :class:`ComputeIOError`. Retries,
authentication and rate limiting are left to the underlying transport.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Protocol, Self, runtime_checkable

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.auth.exceptions import GoogleAuthError
from loguru import logger

from gcp_client.exceptions import ComputeIOError, ResourceNotFoundError
from gcp_client.model import (
    AcceleratorType,
    AttachedDisk,
    DiskType,
    ErrorEntry,
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
from gcp_client.resources import name_from_self_link

log = logger.bind(component="gateway")


@runtime_checkable
class ResourceGateway(Protocol):
    """Blocking primitives against the remote compute API.

    Implementations must be safe to call from several threads at once.
    Zone and region arguments are short names, never self links.
    """

    def list_regions(self, project: str) -> list[Region]: ...

    def list_zones(self, project: str) -> list[Zone]: ...

    def get_zone(self, project: str, zone: str) -> Zone: ...

    def list_machine_types(self, project: str, zone: str) -> list[MachineType]: ...

    def list_disk_types(self, project: str, zone: str) -> list[DiskType]: ...

    def list_accelerator_types(self, project: str, zone: str) -> list[AcceleratorType]: ...

    def list_images(self, project: str) -> list[Image]: ...

    def get_image(self, project: str, name: str) -> Image: ...

    def list_networks(self, project: str) -> list[Network]: ...

    def list_subnetworks(self, project: str, region: str) -> list[Subnetwork]: ...

    def get_instance(self, project: str, zone: str, name: str) -> Instance: ...

    def insert_instance(
        self, project: str, zone: str, instance: Any, source_template: str | None = None,
    ) -> Operation: ...

    def delete_instance(self, project: str, zone: str, name: str) -> Operation: ...

    def aggregated_list_instances(self, project: str, filter: str) -> list[Instance]: ...  # noqa: A002

    def set_instance_metadata(
        self, project: str, zone: str, name: str, metadata: Metadata,
    ) -> Operation: ...

    def get_instance_template(self, project: str, name: str) -> InstanceTemplate: ...

    def list_instance_templates(self, project: str) -> list[InstanceTemplate]: ...

    def insert_instance_template(self, project: str, template: Any) -> Operation: ...

    def delete_instance_template(self, project: str, name: str) -> Operation: ...

    def create_disk_snapshot(
        self, project: str, zone: str, disk: str, snapshot_name: str,
    ) -> Operation: ...

    def get_snapshot(self, project: str, name: str) -> Snapshot: ...

    def delete_snapshot(self, project: str, name: str) -> Operation: ...

    def get_zone_operation(self, project: str, zone: str, operation: str) -> Operation: ...


@dataclass(frozen=True, slots=True)
class ComputeApis:
    """The ``compute_v1`` service clients a :class:`ComputeGateway` talks to."""

    regions: Any
    zones: Any
    machine_types: Any
    disk_types: Any
    accelerator_types: Any
    images: Any
    networks: Any
    subnetworks: Any
    instances: Any
    instance_templates: Any
    disks: Any
    snapshots: Any
    zone_operations: Any

    @classmethod
    def default(cls) -> Self:
        """Build every client from Application Default Credentials."""
        from google.cloud import compute_v1  # type: ignore[reportMissingImports]

        return cls(
            regions=compute_v1.RegionsClient(),
            zones=compute_v1.ZonesClient(),
            machine_types=compute_v1.MachineTypesClient(),
            disk_types=compute_v1.DiskTypesClient(),
            accelerator_types=compute_v1.AcceleratorTypesClient(),
            images=compute_v1.ImagesClient(),
            networks=compute_v1.NetworksClient(),
            subnetworks=compute_v1.SubnetworksClient(),
            instances=compute_v1.InstancesClient(),
            instance_templates=compute_v1.InstanceTemplatesClient(),
            disks=compute_v1.DisksClient(),
            snapshots=compute_v1.SnapshotsClient(),
            zone_operations=compute_v1.ZoneOperationsClient(),
        )


class ComputeGateway(ResourceGateway):
    """``ResourceGateway`` backed by the sync ``google-cloud-compute`` clients."""

    def __init__(self, apis: ComputeApis) -> None:
        self._apis = apis

    @classmethod
    def create(cls) -> Self:
        log.debug("Initializing compute_v1 clients")
        return cls(ComputeApis.default())

    def list_regions(self, project: str) -> list[Region]:
        with _api_errors("list regions"):
            return [_to_region(r) for r in self._apis.regions.list(project=project)]

    def list_zones(self, project: str) -> list[Zone]:
        with _api_errors("list zones"):
            return [_to_zone(z) for z in self._apis.zones.list(project=project)]

    def get_zone(self, project: str, zone: str) -> Zone:
        with _api_errors(f"get zone {zone}"):
            return _to_zone(self._apis.zones.get(project=project, zone=zone))

    def list_machine_types(self, project: str, zone: str) -> list[MachineType]:
        with _api_errors("list machine types"):
            pager = self._apis.machine_types.list(project=project, zone=zone)
            return [_to_machine_type(m) for m in pager]

    def list_disk_types(self, project: str, zone: str) -> list[DiskType]:
        with _api_errors("list disk types"):
            pager = self._apis.disk_types.list(project=project, zone=zone)
            return [_to_disk_type(d) for d in pager]

    def list_accelerator_types(self, project: str, zone: str) -> list[AcceleratorType]:
        with _api_errors("list accelerator types"):
            pager = self._apis.accelerator_types.list(project=project, zone=zone)
            return [_to_accelerator_type(a) for a in pager]

    def list_images(self, project: str) -> list[Image]:
        with _api_errors("list images"):
            return [_to_image(i) for i in self._apis.images.list(project=project)]

    def get_image(self, project: str, name: str) -> Image:
        with _api_errors(f"get image {name}"):
            return _to_image(self._apis.images.get(project=project, image=name))

    def list_networks(self, project: str) -> list[Network]:
        with _api_errors("list networks"):
            return [_to_network(n) for n in self._apis.networks.list(project=project)]

    def list_subnetworks(self, project: str, region: str) -> list[Subnetwork]:
        with _api_errors("list subnetworks"):
            pager = self._apis.subnetworks.list(project=project, region=region)
            return [_to_subnetwork(s) for s in pager]

    def get_instance(self, project: str, zone: str, name: str) -> Instance:
        with _api_errors(f"get instance {name}"):
            return _to_instance(
                self._apis.instances.get(project=project, zone=zone, instance=name),
            )

    def insert_instance(
        self, project: str, zone: str, instance: Any, source_template: str | None = None,
    ) -> Operation:
        from google.cloud import compute_v1  # type: ignore[reportMissingImports]

        request = compute_v1.InsertInstanceRequest(
            project=project, zone=zone, instance_resource=instance,
        )
        if source_template:
            request.source_instance_template = source_template

        with _api_errors("insert instance"):
            return _to_operation(self._apis.instances.insert(request=request))

    def delete_instance(self, project: str, zone: str, name: str) -> Operation:
        with _api_errors(f"delete instance {name}"):
            return _to_operation(
                self._apis.instances.delete(project=project, zone=zone, instance=name),
            )

    def aggregated_list_instances(self, project: str, filter: str) -> list[Instance]:  # noqa: A002
        from google.cloud import compute_v1  # type: ignore[reportMissingImports]

        request = compute_v1.AggregatedListInstancesRequest(project=project, filter=filter)
        with _api_errors("list instances"):
            return [
                _to_instance(inst)
                for _, scoped in self._apis.instances.aggregated_list(request=request)
                for inst in (getattr(scoped, "instances", None) or ())
            ]

    def set_instance_metadata(
        self, project: str, zone: str, name: str, metadata: Metadata,
    ) -> Operation:
        from google.cloud import compute_v1  # type: ignore[reportMissingImports]

        resource = compute_v1.Metadata(
            items=[
                compute_v1.Items(key=item.key, value=item.value)
                if item.value is not None
                else compute_v1.Items(key=item.key)
                for item in metadata.items
            ],
        )
        if metadata.fingerprint:
            resource.fingerprint = metadata.fingerprint

        with _api_errors(f"set metadata of instance {name}"):
            return _to_operation(
                self._apis.instances.set_metadata(
                    project=project, zone=zone, instance=name, metadata_resource=resource,
                ),
            )

    def get_instance_template(self, project: str, name: str) -> InstanceTemplate:
        with _api_errors(f"get instance template {name}"):
            return _to_template(
                self._apis.instance_templates.get(project=project, instance_template=name),
            )

    def list_instance_templates(self, project: str) -> list[InstanceTemplate]:
        with _api_errors("list instance templates"):
            pager = self._apis.instance_templates.list(project=project)
            return [_to_template(t) for t in pager]

    def insert_instance_template(self, project: str, template: Any) -> Operation:
        with _api_errors("insert instance template"):
            return _to_operation(
                self._apis.instance_templates.insert(
                    project=project, instance_template_resource=template,
                ),
            )

    def delete_instance_template(self, project: str, name: str) -> Operation:
        with _api_errors(f"delete instance template {name}"):
            return _to_operation(
                self._apis.instance_templates.delete(project=project, instance_template=name),
            )

    def create_disk_snapshot(
        self, project: str, zone: str, disk: str, snapshot_name: str,
    ) -> Operation:
        from google.cloud import compute_v1  # type: ignore[reportMissingImports]

        with _api_errors(f"create snapshot of disk {disk}"):
            return _to_operation(
                self._apis.disks.create_snapshot(
                    project=project,
                    zone=zone,
                    disk=disk,
                    snapshot_resource=compute_v1.Snapshot(name=snapshot_name),
                ),
            )

    def get_snapshot(self, project: str, name: str) -> Snapshot:
        with _api_errors(f"get snapshot {name}"):
            return _to_snapshot(self._apis.snapshots.get(project=project, snapshot=name))

    def delete_snapshot(self, project: str, name: str) -> Operation:
        with _api_errors(f"delete snapshot {name}"):
            return _to_operation(self._apis.snapshots.delete(project=project, snapshot=name))

    def get_zone_operation(self, project: str, zone: str, operation: str) -> Operation:
        with _api_errors(f"get operation {operation}"):
            return _to_operation(
                self._apis.zone_operations.get(project=project, zone=zone, operation=operation),
            )


# =============================================================================
# Proto -> model conversion (no API calls)
# =============================================================================


@contextmanager
def _api_errors(action: str) -> Iterator[None]:
    """Re-raise Google transport and API errors as ComputeIOError."""
    try:
        yield
    except NotFound as e:
        raise ResourceNotFoundError(f"Failed to {action}: {e.message}") from e
    except (GoogleAPIError, GoogleAuthError, OSError) as e:
        raise ComputeIOError(f"Failed to {action}: {e}") from e


def _enum_name(value: object) -> str:
    """Name of a proto enum value; plain strings pass through."""
    if value is None:
        return ""
    return str(getattr(value, "name", value))


def _deprecation_state(resource: object) -> str | None:
    deprecated = getattr(resource, "deprecated", None)
    return getattr(deprecated, "state", None) or None


def _to_operation_error(error: object) -> OperationError:
    entries: Sequence[object] = getattr(error, "errors", None) or ()
    return OperationError(
        errors=tuple(
            ErrorEntry(
                code=str(getattr(e, "code", "") or ""),
                message=str(getattr(e, "message", "") or ""),
                location=str(getattr(e, "location", "") or ""),
            )
            for e in entries
        ),
    )


def _to_operation(op: object) -> Operation:
    return Operation(
        id=str(getattr(op, "name", "")),
        zone=name_from_self_link(getattr(op, "zone", "") or ""),
        status=_enum_name(getattr(op, "status", None)),
        error=_to_operation_error(getattr(op, "error", None)),
    )


def _to_metadata(metadata: object) -> Metadata:
    items = getattr(metadata, "items", None) or ()
    return Metadata(
        items=tuple(
            MetadataItem(key=i.key, value=getattr(i, "value", None))
            for i in items
        ),
        fingerprint=getattr(metadata, "fingerprint", None) or None,
    )


def _labels(resource: object) -> dict[str, str]:
    labels: Mapping[str, str] | None = getattr(resource, "labels", None)
    return dict(labels) if labels else {}


def _to_instance(inst: object) -> Instance:
    return Instance(
        name=inst.name,  # type: ignore[attr-defined]
        zone=name_from_self_link(getattr(inst, "zone", "") or ""),
        status=getattr(inst, "status", "") or "",
        disks=tuple(
            AttachedDisk(
                source=d.source,
                device_name=getattr(d, "device_name", "") or "",
                boot=bool(getattr(d, "boot", False)),
            )
            for d in (getattr(inst, "disks", None) or ())
        ),
        metadata=_to_metadata(getattr(inst, "metadata", None)),
        labels=_labels(inst),
        self_link=getattr(inst, "self_link", "") or "",
        id=str(getattr(inst, "id", "") or ""),
    )


def _to_region(r: object) -> Region:
    return Region(
        name=r.name,  # type: ignore[attr-defined]
        self_link=getattr(r, "self_link", "") or "",
        deprecated=_deprecation_state(r),
    )


def _to_zone(z: object) -> Zone:
    return Zone(
        name=z.name,  # type: ignore[attr-defined]
        region=getattr(z, "region", "") or "",
        self_link=getattr(z, "self_link", "") or "",
        available_cpu_platforms=tuple(getattr(z, "available_cpu_platforms", None) or ()),
        deprecated=_deprecation_state(z),
    )


def _to_machine_type(m: object) -> MachineType:
    return MachineType(
        name=m.name,  # type: ignore[attr-defined]
        zone=getattr(m, "zone", "") or "",
        self_link=getattr(m, "self_link", "") or "",
        guest_cpus=int(getattr(m, "guest_cpus", 0) or 0),
        memory_mb=int(getattr(m, "memory_mb", 0) or 0),
        deprecated=_deprecation_state(m),
    )


def _to_disk_type(d: object) -> DiskType:
    return DiskType(
        name=d.name,  # type: ignore[attr-defined]
        zone=getattr(d, "zone", "") or "",
        self_link=getattr(d, "self_link", "") or "",
        deprecated=_deprecation_state(d),
    )


def _to_image(i: object) -> Image:
    return Image(
        name=i.name,  # type: ignore[attr-defined]
        self_link=getattr(i, "self_link", "") or "",
        family=getattr(i, "family", "") or "",
        deprecated=_deprecation_state(i),
    )


def _to_accelerator_type(a: object) -> AcceleratorType:
    return AcceleratorType(
        name=a.name,  # type: ignore[attr-defined]
        zone=getattr(a, "zone", "") or "",
        self_link=getattr(a, "self_link", "") or "",
        maximum_cards_per_instance=int(getattr(a, "maximum_cards_per_instance", 0) or 0),
        deprecated=_deprecation_state(a),
    )


def _to_network(n: object) -> Network:
    return Network(
        name=n.name,  # type: ignore[attr-defined]
        self_link=getattr(n, "self_link", "") or "",
    )


def _to_subnetwork(s: object) -> Subnetwork:
    return Subnetwork(
        name=s.name,  # type: ignore[attr-defined]
        network=getattr(s, "network", "") or "",
        region=getattr(s, "region", "") or "",
        self_link=getattr(s, "self_link", "") or "",
    )


def _to_template(t: object) -> InstanceTemplate:
    properties = getattr(t, "properties", None)
    return InstanceTemplate(
        name=t.name,  # type: ignore[attr-defined]
        self_link=getattr(t, "self_link", "") or "",
        machine_type=getattr(properties, "machine_type", "") or "",
        labels=_labels(properties),
    )


def _to_snapshot(s: object) -> Snapshot:
    return Snapshot(
        name=s.name,  # type: ignore[attr-defined]
        source_disk=getattr(s, "source_disk", "") or "",
        status=_enum_name(getattr(s, "status", None)),
        self_link=getattr(s, "self_link", "") or "",
    )
