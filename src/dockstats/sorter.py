"""
Table ordering.

sort_snapshots() reorders a snapshot list in place by one SortField. The key
functions only read metrics, they never write them. Python's sort is
stable, so rows with equal keys keep their collection order in either
direction.
"""

from typing import Any, Callable, Dict, List

from .model import ContainerSnapshot, SortField

SortKey = Callable[[ContainerSnapshot], Any]

SORT_KEYS: Dict[SortField, SortKey] = {
    SortField.NAME: lambda s: s.name,
    SortField.CPU: lambda s: s.metrics.cpu_percent,
    SortField.MEMORY: lambda s: s.metrics.mem_percent,
    SortField.NET_IO: lambda s: s.net_total,
    SortField.BLOCK_IO: lambda s: s.block_total,
    SortField.IMAGE_SIZE: lambda s: s.metrics.image_size,
}


def sort_snapshots(snapshots: List[ContainerSnapshot], field: SortField, ascending: bool) -> None:
    key = SORT_KEYS.get(field)
    if key is None:
        # Unknown field: name, low to high
        snapshots.sort(key=SORT_KEYS[SortField.NAME])
        return
    snapshots.sort(key=key, reverse=not ascending)
