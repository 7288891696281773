"""Pure helpers over Compute Engine resource records.

No API calls happen here: these functions filter, sort and merge
records the gateway has already fetched.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from gcp_client.model import MetadataItem

T = TypeVar("T")


def name_from_self_link(link: str) -> str:
    """Extract the short resource name from a self link.

    Parameters
    ----------
    link
        Full self link (e.g., ".../projects/p/zones/us-central1-a")
        or an already-bare name.

    Returns
    -------
    str
        The last path segment of ``link``.
    """
    return link.rstrip("/").rsplit("/", 1)[-1]


def is_deprecated(state: str | None) -> bool:
    """Check if a deprecation state marks the resource as deprecated."""
    return state is not None and state.upper() == "DEPRECATED"


def process_resource_list(
    items: Iterable[T | None] | None,
    predicate: Callable[[T], bool] | None = None,
    key: Callable[[T], Any] | None = None,
) -> list[T]:
    """Drop missing items, keep those matching ``predicate``, sort by ``key``."""
    if items is None:
        return []
    kept = [
        item for item in items
        if item is not None and (predicate is None or predicate(item))
    ]
    return sorted(kept, key=key)  # type: ignore[arg-type]


def build_labels_filter_string(labels: Mapping[str, str]) -> str:
    """Build a list filter that matches every label in ``labels``.

    >>> build_labels_filter_string({"env": "prod", "team": "infra"})
    '(labels.env eq prod) (labels.team eq infra)'
    """
    return " ".join(f"(labels.{key} eq {value})" for key, value in labels.items())


def merge_metadata_items(
    winner: Sequence[MetadataItem],
    loser: Sequence[MetadataItem] | None,
) -> list[MetadataItem]:
    """Merge two metadata item lists, ``winner`` taking precedence by key.

    Every ``winner`` entry is kept in order, followed by the ``loser``
    entries whose key does not appear in ``winner``.
    """
    if loser is None:
        return list(winner)

    winning_keys = {item.key for item in winner}
    return [*winner, *(item for item in loser if item.key not in winning_keys)]
