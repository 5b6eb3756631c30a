# =============================================================================
# core/services/result_merger.py - Federated Result Merging
# =============================================================================
# Combines the row lists of a federated read into one list:
# - deduplicated by primary key (entities are immutable here, so any two
#   rows with one key are identical)
# - sorted ascending by the entity's ordering key, ties broken by primary key
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from core.models.entity import EntityType

logger = logging.getLogger(__name__)


def _sort_key(row: dict[str, Any], ordering_key: str, primary_key: str) -> tuple:
    value = row.get(ordering_key)
    # Rows without an ordering value sort first
    return (value is not None, value if value is not None else "", str(row.get(primary_key, "")))


def merge_results(
    result_lists: Iterable[Iterable[dict[str, Any]]],
    ordering_key: str,
    primary_key: str = "id",
) -> list[dict[str, Any]]:
    """
    Merge row lists, dropping duplicate primary keys, in stable order.

    Args:
        result_lists: Row lists from each federated lookup
        ordering_key: Column to sort by (ascending)
        primary_key: Column identifying a row

    Returns:
        Merged rows; never longer than the inputs combined

    Example:
        merge_results([[{"id": "2", "date": "2024-01-02"}],
                       [{"id": "1", "date": "2024-01-01"},
                        {"id": "2", "date": "2024-01-02"}]], "date")
        # [{"id": "1", ...}, {"id": "2", ...}]
    """
    merged: dict[Any, dict[str, Any]] = {}
    unkeyed: list[dict[str, Any]] = []
    total = 0

    for rows in result_lists:
        for row in rows:
            total += 1
            key = row.get(primary_key)
            if key is None:
                unkeyed.append(row)
            else:
                merged.setdefault(key, row)

    if unkeyed:
        logger.warning(f"{len(unkeyed)} row(s) without '{primary_key}' kept without deduplication")

    result = sorted(
        [*merged.values(), *unkeyed],
        key=lambda row: _sort_key(row, ordering_key, primary_key),
    )
    logger.debug(f"Merged {total} rows into {len(result)}")
    return result


def merge_for(
    entity_type: EntityType,
    result_lists: Iterable[Iterable[dict[str, Any]]],
) -> list[dict[str, Any]]:
    """merge_results() keyed by the entity type's ordering and primary keys."""
    return merge_results(result_lists, entity_type.ordering_key, entity_type.primary_key)
