"""Argument guards run before any remote call."""

from __future__ import annotations

from gcp_client.exceptions import InvalidArgumentError


def require_non_empty(**values: str | None) -> None:
    for name, value in values.items():
        if not value:
            raise InvalidArgumentError(f"'{name}' must be a non-empty string")


def require_not_none(value: object, name: str) -> None:
    if value is None:
        raise InvalidArgumentError(f"'{name}' must not be None")


def require_positive(value: float, name: str) -> None:
    if value <= 0:
        raise InvalidArgumentError(f"'{name}' must be positive, got {value}")
