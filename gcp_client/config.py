"""TOML-based client configuration.

Loads ~/.gcp-client/defaults.toml (global) and gcp-client.toml (project),
merges them, and resolves the ``[client]`` and ``[logging]`` tables into
immutable config objects::

    [client]
    poll_interval = 5.0
    operation_timeout = 600.0
    thread_pool_size = 16

    [logging]
    level = "DEBUG"
    file = ".gcp-client/client.log"
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, TypeAlias, TypeVar

from gcp_client.observability.logging import LogConfig

RawConfig: TypeAlias = dict[str, Any]

T = TypeVar("T")

GLOBAL_CONFIG_PATH = Path.home() / ".gcp-client" / "defaults.toml"
PROJECT_CONFIG_NAME = "gcp-client.toml"


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Compute client configuration.

    Example:
        >>> from gcp_client.config import ClientConfig
        >>> config = ClientConfig(poll_interval=2.0)

    Args:
        poll_interval: Seconds between two status queries of an operation. Default: 5.
        operation_timeout: Default budget in seconds callers hand to waits. Default: 300.
        thread_pool_size: Workers that run blocking API calls. Default: 8.
    """

    poll_interval: float = 5.0
    operation_timeout: float = 300.0
    thread_pool_size: int = 8

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.operation_timeout <= 0:
            raise ValueError(
                f"operation_timeout must be positive, got {self.operation_timeout}"
            )
        if self.thread_pool_size < 1:
            raise ValueError(
                f"thread_pool_size must be at least 1, got {self.thread_pool_size}"
            )


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    with path.open("rb") as f:
        return tomllib.load(f)


def load_raw_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("client", {})
    merged.setdefault("logging", {})
    return merged


def _build(cls: type[T], section: str, raw: RawConfig) -> T:
    valid = {f.name for f in fields(cls)}  # type: ignore[arg-type]
    if unknown := sorted(set(raw) - valid):
        raise ValueError(
            f"Unknown key(s) in [{section}]: {', '.join(unknown)}. "
            f"Valid: {', '.join(sorted(valid))}"
        )
    return cls(**raw)


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> ClientConfig:
    raw = load_raw_config(project_dir=project_dir, global_path=global_path)
    return _build(ClientConfig, "client", raw["client"])


def load_log_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> LogConfig:
    raw = load_raw_config(project_dir=project_dir, global_path=global_path)
    return _build(LogConfig, "logging", raw["logging"])
