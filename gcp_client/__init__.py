"""gcp-client - an asyncio façade over the Compute Engine API.

Example:

    from gcp_client import ComputeClient, MetadataItem

    async with ComputeClient.create() as client:
        zones = await client.get_zones("proj", region_link)

        # Snapshot every attached disk in parallel
        errors = await client.create_snapshot("proj", "us-central1-a", "vm-1", 600)

        # Merge metadata and wait for the update
        error = await client.append_instance_metadata(
            "proj", "us-central1-a", "vm-1",
            [MetadataItem("startup-script", "#!/bin/bash")], 300,
        )
"""

# Client
from gcp_client.client import ComputeClient

# Configuration
from gcp_client.config import ClientConfig, load_config, load_log_config

# Errors
from gcp_client.exceptions import (
    ComputeError,
    ComputeIOError,
    InvalidArgumentError,
    OperationTimeoutError,
    ResourceNotFoundError,
)

# Gateway
from gcp_client.gateway import ComputeApis, ComputeGateway, ResourceGateway

# Model
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
    SnapshotRequest,
    Subnetwork,
    Zone,
)

# Logging
from gcp_client.observability import LogConfig, setup_logging, teardown_logging

# Long-running operations
from gcp_client.operations import OperationPoller
from gcp_client.resources import merge_metadata_items, name_from_self_link
from gcp_client.snapshots import SnapshotOrchestrator

__all__ = [
    # Client
    "ComputeClient",
    "OperationPoller",
    "SnapshotOrchestrator",
    # Configuration
    "ClientConfig",
    "load_config",
    "load_log_config",
    # Errors
    "ComputeError",
    "ComputeIOError",
    "InvalidArgumentError",
    "OperationTimeoutError",
    "ResourceNotFoundError",
    # Gateway
    "ComputeApis",
    "ComputeGateway",
    "ResourceGateway",
    # Model
    "AcceleratorType",
    "AttachedDisk",
    "DiskType",
    "ErrorEntry",
    "Image",
    "Instance",
    "InstanceTemplate",
    "MachineType",
    "Metadata",
    "MetadataItem",
    "Network",
    "Operation",
    "OperationError",
    "Region",
    "Snapshot",
    "SnapshotRequest",
    "Subnetwork",
    "Zone",
    # Logging
    "LogConfig",
    "setup_logging",
    "teardown_logging",
    # Helpers
    "merge_metadata_items",
    "name_from_self_link",
]
