"""
Data models and structures for dockstats.

This module defines the dataclasses shared by the collector, the sorter,
the session state and the presentation layer:
  - ContainerIdentity: who a container is for one polling cycle
  - ResourceMetrics: what it is consuming (derived from raw counters)
  - ContainerSnapshot: the (identity, metrics) pair shown as one table row
  - SortField / SortSpec: active ordering of the table
  - ViewState: selection cursor and scroll offset into the sorted rows
  - DaemonSummary: aggregate daemon information for the info bar
  - SessionView: read-only copy of the session handed to the UI

Key Points:
  - Identities are rebuilt every cycle, nothing is matched across cycles
  - Byte and count fields are plain non-negative ints
  - Percentages are only ever filled in by derive.py
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


@dataclass(frozen=True)
class ContainerIdentity:
    id: str  # short form, 12 chars
    name: str
    image: str
    state: str  # running, exited, paused, ...
    status: str = ""  # human string from the daemon, e.g. "Up 3 hours"
    created: Optional[datetime] = None


@dataclass
class ResourceMetrics:
    cpu_percent: float = 0.0
    cpu_limit: float = 0.0  # cores, 0 means unlimited
    mem_usage: int = 0
    mem_limit: int = 0
    mem_percent: float = 0.0
    net_rx: int = 0
    net_tx: int = 0
    block_read: int = 0
    block_write: int = 0
    pids: int = 0
    container_size: int = 0
    image_size: int = 0


@dataclass
class ContainerSnapshot:
    identity: ContainerIdentity
    metrics: ResourceMetrics = field(default_factory=ResourceMetrics)

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def net_total(self) -> int:
        return self.metrics.net_rx + self.metrics.net_tx

    @property
    def block_total(self) -> int:
        return self.metrics.block_read + self.metrics.block_write


class SortField(Enum):
    NAME = "name"
    CPU = "cpu"
    MEMORY = "memory"
    NET_IO = "net_io"
    BLOCK_IO = "block_io"
    IMAGE_SIZE = "image_size"

    @property
    def default_ascending(self) -> bool:
        # Numeric columns start "biggest first"
        return self is SortField.NAME

    @property
    def label(self) -> str:
        return _SORT_LABELS[self]


_SORT_LABELS = {
    SortField.NAME: "NAME",
    SortField.CPU: "CPU",
    SortField.MEMORY: "MEM",
    SortField.NET_IO: "NET",
    SortField.BLOCK_IO: "DISK",
    SortField.IMAGE_SIZE: "IMG",
}


@dataclass(frozen=True)
class SortSpec:
    field: SortField = SortField.CPU
    ascending: bool = False

    @property
    def indicator(self) -> str:
        return "↑" if self.ascending else "↓"


@dataclass
class ViewState:
    selected: int = 0
    scroll: int = 0
    visible_rows: int = 20


@dataclass(frozen=True)
class DaemonSummary:
    server_version: str = ""
    containers_total: int = 0
    containers_running: int = 0
    containers_paused: int = 0
    containers_stopped: int = 0
    images_total: int = 0
    images_size: int = 0
    cpus: int = 0
    memory_total: int = 0
    os_type: str = ""
    architecture: str = ""


class SessionPhase(Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class SessionView:
    snapshots: List[ContainerSnapshot] = field(default_factory=list)
    sort: SortSpec = field(default_factory=SortSpec)
    view: ViewState = field(default_factory=ViewState)
    phase: SessionPhase = SessionPhase.IDLE
    last_error: str = ""
    summary: Optional[DaemonSummary] = None
    updated_at: Optional[datetime] = None
    version: int = 0

    @property
    def selected_snapshot(self) -> Optional[ContainerSnapshot]:
        if 0 <= self.view.selected < len(self.snapshots):
            return self.snapshots[self.view.selected]
        return None

    @property
    def visible_snapshots(self) -> List[ContainerSnapshot]:
        start = self.view.scroll
        return self.snapshots[start:start + self.view.visible_rows]
