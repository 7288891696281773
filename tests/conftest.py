from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Iterator

import pytest
import pytest_asyncio
from loguru import logger

from gcp_client import ClientConfig, ComputeClient
from gcp_client.exceptions import ResourceNotFoundError
from gcp_client.model import (
    AttachedDisk,
    ErrorEntry,
    Instance,
    Metadata,
    Operation,
    OperationError,
)

ZONE = "us-central1-a"
ZONE_LINK = f"https://www.googleapis.com/compute/v1/projects/proj/zones/{ZONE}"


def pending(op_id: str, zone: str = ZONE) -> Operation:
    return Operation(id=op_id, zone=zone, status="PENDING")


def running(op_id: str, zone: str = ZONE) -> Operation:
    return Operation(id=op_id, zone=zone, status="RUNNING")


def done(op_id: str, *errors: ErrorEntry, zone: str = ZONE) -> Operation:
    return Operation(id=op_id, zone=zone, status="DONE", error=OperationError(errors))


def disk(name: str, *, boot: bool = False) -> AttachedDisk:
    return AttachedDisk(
        source=f"projects/proj/zones/{ZONE}/disks/{name}",
        device_name=name,
        boot=boot,
    )


class FakeGateway:
    """In-memory ResourceGateway.

    Operation polls replay a scripted sequence per operation id; the last
    entry repeats forever. Exceptions in a script are raised from the poll.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.calls: list[tuple[str, tuple[object, ...]]] = []
        self.instances: dict[str, Instance] = {}
        self.operation_scripts: dict[str, list[Operation | Exception]] = {}
        self.snapshot_failures: dict[str, Exception] = {}
        self.snapshot_barrier: threading.Barrier | None = None
        self.lists: dict[str, list[object]] = defaultdict(list)
        self.zone = None
        self.metadata_updates: list[Metadata] = []

    def _record(self, name: str, *args: object) -> None:
        with self._lock:
            self.calls.append((name, args))

    def called(self, name: str) -> list[tuple[object, ...]]:
        with self._lock:
            return [args for n, args in self.calls if n == name]

    def script(self, op_id: str, *steps: Operation | Exception) -> None:
        self.operation_scripts[op_id] = list(steps)

    # Listing

    def list_regions(self, project):
        self._record("list_regions", project)
        return list(self.lists["regions"])

    def list_zones(self, project):
        self._record("list_zones", project)
        return list(self.lists["zones"])

    def get_zone(self, project, zone):
        self._record("get_zone", project, zone)
        return self.zone

    def list_machine_types(self, project, zone):
        self._record("list_machine_types", project, zone)
        return list(self.lists["machine_types"])

    def list_disk_types(self, project, zone):
        self._record("list_disk_types", project, zone)
        return list(self.lists["disk_types"])

    def list_accelerator_types(self, project, zone):
        self._record("list_accelerator_types", project, zone)
        return list(self.lists["accelerator_types"])

    def list_images(self, project):
        self._record("list_images", project)
        return list(self.lists["images"])

    def get_image(self, project, name):
        self._record("get_image", project, name)
        return next(i for i in self.lists["images"] if i.name == name)

    def list_networks(self, project):
        self._record("list_networks", project)
        return list(self.lists["networks"])

    def list_subnetworks(self, project, region):
        self._record("list_subnetworks", project, region)
        return list(self.lists["subnetworks"])

    # Instances

    def get_instance(self, project, zone, name):
        self._record("get_instance", project, zone, name)
        if name not in self.instances:
            raise ResourceNotFoundError(f"Failed to get instance {name}: not found")
        return self.instances[name]

    def insert_instance(self, project, zone, instance, source_template=None):
        self._record("insert_instance", project, zone, instance, source_template)
        return pending(f"op-insert-{instance.name}", zone)

    def delete_instance(self, project, zone, name):
        self._record("delete_instance", project, zone, name)
        return pending(f"op-delete-{name}", zone)

    def aggregated_list_instances(self, project, filter):  # noqa: A002
        self._record("aggregated_list_instances", project, filter)
        return list(self.instances.values())

    def set_instance_metadata(self, project, zone, name, metadata):
        self._record("set_instance_metadata", project, zone, name, metadata)
        self.metadata_updates.append(metadata)
        op_id = f"op-metadata-{name}"
        self.operation_scripts.setdefault(op_id, [done(op_id, zone=zone)])
        return pending(op_id, zone)

    # Templates

    def get_instance_template(self, project, name):
        self._record("get_instance_template", project, name)
        return next(t for t in self.lists["templates"] if t.name == name)

    def list_instance_templates(self, project):
        self._record("list_instance_templates", project)
        return list(self.lists["templates"])

    def insert_instance_template(self, project, template):
        self._record("insert_instance_template", project, template)
        return pending("op-template-insert", "")

    def delete_instance_template(self, project, name):
        self._record("delete_instance_template", project, name)
        return pending(f"op-template-delete-{name}", "")

    # Snapshots

    def create_disk_snapshot(self, project, zone, disk, snapshot_name):
        self._record("create_disk_snapshot", project, zone, disk, snapshot_name)
        if self.snapshot_barrier is not None:
            self.snapshot_barrier.wait()
        if disk in self.snapshot_failures:
            raise self.snapshot_failures[disk]
        op_id = f"op-snapshot-{disk}"
        self.operation_scripts.setdefault(op_id, [done(op_id, zone=zone)])
        return pending(op_id, zone)

    def get_snapshot(self, project, name):
        self._record("get_snapshot", project, name)
        return next(s for s in self.lists["snapshots"] if s.name == name)

    def delete_snapshot(self, project, name):
        self._record("delete_snapshot", project, name)
        return pending(f"op-snapshot-delete-{name}", "")

    # Operations

    def get_zone_operation(self, project, zone, operation):
        self._record("get_zone_operation", project, zone, operation)
        with self._lock:
            steps = self.operation_scripts[operation]
            step = steps.pop(0) if len(steps) > 1 else steps[0]
        if isinstance(step, Exception):
            raise step
        return step


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def instance_with_disks(gateway: FakeGateway) -> Instance:
    instance = Instance(
        name="i-1",
        zone=ZONE,
        status="RUNNING",
        disks=(disk("d1", boot=True), disk("d2")),
    )
    gateway.instances["i-1"] = instance
    return instance


@pytest_asyncio.fixture
async def client(gateway: FakeGateway):
    async with ComputeClient(gateway, ClientConfig(poll_interval=0.01)) as c:
        yield c


@pytest.fixture
def log_records() -> Iterator[list[dict]]:
    records: list[dict] = []
    logger.enable("gcp_client")
    hid = logger.add(lambda m: records.append(m.record), level="TRACE", filter="gcp_client")
    yield records
    logger.remove(hid)
