"""Tests for concurrent multi-disk snapshots."""

from __future__ import annotations

import asyncio
import threading

import pytest

from gcp_client.exceptions import (
    ComputeIOError,
    InvalidArgumentError,
    OperationTimeoutError,
    ResourceNotFoundError,
)
from gcp_client.model import ErrorEntry, Instance

from tests.conftest import ZONE, ZONE_LINK, done, pending


@pytest.mark.asyncio
async def test_snapshots_every_attached_disk(client, gateway, instance_with_disks):
    errors = await client.create_snapshot("proj", ZONE, "i-1", 5)

    assert set(errors) == {"d1", "d2"}
    assert all(e.ok for e in errors.values())
    created = gateway.called("create_disk_snapshot")
    assert sorted(created) == [
        ("proj", ZONE, "d1", "d1"),
        ("proj", ZONE, "d2", "d2"),
    ]


@pytest.mark.asyncio
async def test_accepts_zone_self_link(client, gateway, instance_with_disks):
    await client.create_snapshot("proj", ZONE_LINK, "i-1", 5)

    assert gateway.called("get_instance") == [("proj", ZONE, "i-1")]


@pytest.mark.asyncio
async def test_disks_run_in_parallel(client, gateway, instance_with_disks):
    # Both create calls must be in flight at once for the barrier to open
    gateway.snapshot_barrier = threading.Barrier(2, timeout=5)

    errors = await client.create_snapshot("proj", ZONE, "i-1", 5)

    assert set(errors) == {"d1", "d2"}


@pytest.mark.asyncio
async def test_multi_poll_disks_complete(client, gateway, instance_with_disks):
    gateway.script("op-snapshot-d1", *[pending("op-snapshot-d1")] * 4, done("op-snapshot-d1"))
    gateway.script("op-snapshot-d2", *[pending("op-snapshot-d2")] * 4, done("op-snapshot-d2"))

    errors = await client.create_snapshot("proj", ZONE, "i-1", 1.0)

    assert all(e.ok for e in errors.values())


@pytest.mark.asyncio
async def test_domain_errors_are_returned_per_disk(client, gateway, instance_with_disks):
    quota = ErrorEntry(code="QUOTA_EXCEEDED", message="Quota 'SNAPSHOTS' exceeded")
    gateway.script("op-snapshot-d2", pending("op-snapshot-d2"), done("op-snapshot-d2", quota))

    errors = await client.create_snapshot("proj", ZONE, "i-1", 5)

    assert errors["d1"].ok
    assert errors["d2"].errors == (quota,)


@pytest.mark.asyncio
async def test_first_disk_failure_propagates_without_cancelling_siblings(
    client, gateway, instance_with_disks,
):
    gateway.script("op-snapshot-d1", pending("op-snapshot-d1"), done("op-snapshot-d1"))
    gateway.snapshot_failures["d2"] = ComputeIOError("Failed to create snapshot of disk d2")

    with pytest.raises(ComputeIOError, match="d2"):
        await client.create_snapshot("proj", ZONE, "i-1", 5)

    # d1 was already issued and keeps being driven to completion
    await asyncio.sleep(0.2)
    assert ("proj", ZONE, "d1", "d1") in gateway.called("create_disk_snapshot")
    polls = [args for args in gateway.called("get_zone_operation") if args[2] == "op-snapshot-d1"]
    assert len(polls) == 2


@pytest.mark.asyncio
async def test_timeout_on_one_disk_fails_the_call(client, gateway, instance_with_disks):
    gateway.script("op-snapshot-d2", pending("op-snapshot-d2"))

    with pytest.raises(OperationTimeoutError) as exc_info:
        await client.create_snapshot("proj", ZONE, "i-1", 0.05)

    assert exc_info.value.operation_id == "op-snapshot-d2"


@pytest.mark.asyncio
async def test_instance_lookup_failure_attempts_no_snapshot(client, gateway, log_records):
    with pytest.raises(ResourceNotFoundError):
        await client.create_snapshot("proj", ZONE, "missing", 5)

    assert gateway.called("create_disk_snapshot") == []
    assert any(
        r["level"].name == "WARNING" and r["extra"].get("instance") == "missing"
        for r in log_records
    )


@pytest.mark.asyncio
async def test_instance_without_disks(client, gateway):
    gateway.instances["bare"] = Instance(name="bare", zone=ZONE, status="RUNNING")

    assert await client.create_snapshot("proj", ZONE, "bare", 5) == {}


@pytest.mark.asyncio
async def test_disk_failure_is_logged_with_disk_context(
    client, gateway, instance_with_disks, log_records,
):
    gateway.snapshot_failures["d1"] = ComputeIOError("boom")

    with pytest.raises(ComputeIOError):
        await client.create_snapshot("proj", ZONE, "i-1", 5)

    failures = [r for r in log_records if r["extra"].get("disk") == "d1"]
    assert failures and failures[0]["level"].name == "WARNING"
    assert failures[0]["extra"]["instance"] == "i-1"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("project", "zone", "instance_id", "timeout"),
    [
        ("", ZONE, "i-1", 5),
        ("proj", "", "i-1", 5),
        ("proj", ZONE, "", 5),
        ("proj", ZONE, "i-1", 0),
        ("proj", ZONE, "i-1", -5),
    ],
)
async def test_invalid_arguments_make_no_remote_call(
    client, gateway, instance_with_disks, project, zone, instance_id, timeout,
):
    with pytest.raises(InvalidArgumentError):
        await client.create_snapshot(project, zone, instance_id, timeout)

    assert gateway.calls == []


class TestCreateSnapshotForDisk:
    @pytest.mark.asyncio
    async def test_names_snapshot_after_disk_and_waits(self, client, gateway):
        gateway.script("op-snapshot-data", pending("op-snapshot-data"), done("op-snapshot-data"))

        error = await client.create_snapshot_for_disk("proj", ZONE, "data", 5)

        assert error.ok
        assert gateway.called("create_disk_snapshot") == [("proj", ZONE, "data", "data")]
        assert len(gateway.called("get_zone_operation")) == 2

    @pytest.mark.asyncio
    async def test_create_failure_is_raised(self, client, gateway):
        gateway.snapshot_failures["data"] = ComputeIOError("disk busy")

        with pytest.raises(ComputeIOError, match="disk busy"):
            await client.create_snapshot_for_disk("proj", ZONE, "data", 5)

        assert gateway.called("get_zone_operation") == []

    @pytest.mark.asyncio
    async def test_non_positive_timeout_is_rejected(self, client, gateway):
        with pytest.raises(InvalidArgumentError):
            await client.create_snapshot_for_disk("proj", ZONE, "data", 0)

        assert gateway.calls == []
