from __future__ import annotations

from dataclasses import dataclass, field

from gcp_client.resources import name_from_self_link

DONE = "DONE"


@dataclass(frozen=True, slots=True)
class ErrorEntry:
    code: str
    message: str = ""
    location: str = ""


@dataclass(frozen=True, slots=True)
class OperationError:
    """Terminal failure detail of an operation. No entries means success."""
    errors: tuple[ErrorEntry, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors

    def __str__(self) -> str:
        if self.ok:
            return "no errors"
        return "; ".join(f"{e.code}: {e.message}" for e in self.errors)


@dataclass(frozen=True, slots=True)
class Operation:
    """Read-only view of a long-running remote operation at one poll."""
    id: str
    zone: str
    status: str
    error: OperationError = field(default_factory=OperationError)

    @property
    def done(self) -> bool:
        return self.status == DONE


@dataclass(frozen=True, slots=True)
class MetadataItem:
    key: str
    value: str | None = None


@dataclass(frozen=True, slots=True)
class Metadata:
    items: tuple[MetadataItem, ...] = ()
    fingerprint: str | None = None


@dataclass(frozen=True, slots=True)
class AttachedDisk:
    source: str
    device_name: str = ""
    boot: bool = False

    @property
    def name(self) -> str:
        return name_from_self_link(self.source)


@dataclass(frozen=True, slots=True)
class Instance:
    name: str
    zone: str
    status: str
    disks: tuple[AttachedDisk, ...] = ()
    metadata: Metadata = field(default_factory=Metadata)
    labels: dict[str, str] = field(default_factory=dict)
    self_link: str = ""
    id: str = ""


@dataclass(frozen=True, slots=True)
class Region:
    name: str
    self_link: str = ""
    deprecated: str | None = None


@dataclass(frozen=True, slots=True)
class Zone:
    name: str
    region: str = ""
    self_link: str = ""
    available_cpu_platforms: tuple[str, ...] = ()
    deprecated: str | None = None


@dataclass(frozen=True, slots=True)
class MachineType:
    name: str
    zone: str = ""
    self_link: str = ""
    guest_cpus: int = 0
    memory_mb: int = 0
    deprecated: str | None = None


@dataclass(frozen=True, slots=True)
class DiskType:
    name: str
    zone: str = ""
    self_link: str = ""
    deprecated: str | None = None


@dataclass(frozen=True, slots=True)
class Image:
    name: str
    self_link: str = ""
    family: str = ""
    deprecated: str | None = None


@dataclass(frozen=True, slots=True)
class AcceleratorType:
    name: str
    zone: str = ""
    self_link: str = ""
    maximum_cards_per_instance: int = 0
    deprecated: str | None = None


@dataclass(frozen=True, slots=True)
class Network:
    name: str
    self_link: str = ""


@dataclass(frozen=True, slots=True)
class Subnetwork:
    name: str
    network: str = ""
    region: str = ""
    self_link: str = ""


@dataclass(frozen=True, slots=True)
class InstanceTemplate:
    name: str
    self_link: str = ""
    machine_type: str = ""
    labels: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Snapshot:
    name: str
    source_disk: str = ""
    status: str = ""
    self_link: str = ""


@dataclass(frozen=True, slots=True)
class SnapshotRequest:
    """One unit of snapshot fan-out work: a single disk and its wait budget."""
    project: str
    zone: str
    disk_name: str
    timeout: float
