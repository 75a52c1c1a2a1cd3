"""
Per-cycle container metric collection.

Collector.collect() runs one collect cycle:

  1. list containers (fatal for the cycle on failure -> CollectError)
  2. fan out one thread per container, with no cap
  3. each thread builds identity, looks up image size and CPU limit, and for
     running containers fetches one stats payload and derives metrics
  4. join the threads until the cycle deadline, return the snapshots in
     completion order

Anything that fails inside step 3 only zeroes the affected fields of that
one container, including a malformed list entry. A Deadline shared by every
thread bounds the cycle: runtime calls are skipped once it expires or is
cancelled, and the join gives up when it expires. Containers whose thread
has not finished by then are reported with their list-call fields only.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout, as_completed
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from . import derive
from .backend import DockerBackend
from .exceptions import CollectError, DeadlineExceeded
from .model import ContainerIdentity, ContainerSnapshot, ResourceMetrics

logger = logging.getLogger(__name__)

SHORT_ID_LENGTH = 12


class Deadline:
    """Monotonic deadline for one collect cycle, cancellable from another thread."""

    def __init__(self, timeout: Optional[float] = None):
        self._expires_at = None if timeout is None else time.monotonic() + timeout
        self._cancelled = threading.Event()

    def remaining(self) -> Optional[float]:
        """Seconds left, 0 once cancelled, None when unbounded."""
        if self._cancelled.is_set():
            return 0.0
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def expired(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    def check(self, what: str) -> None:
        if self._cancelled.is_set():
            raise DeadlineExceeded(f"{what}: cycle cancelled")
        if self.expired():
            raise DeadlineExceeded(f"{what}: cycle deadline exceeded")


def short_id(container_id: str) -> str:
    return (container_id or "")[:SHORT_ID_LENGTH]


def display_name(names: Optional[List[str]]) -> str:
    """First alias without the leading '/'."""
    if not names:
        return ""
    name = names[0] or ""
    if name.startswith("/"):
        return name[1:]
    return name


def _created_at(epoch: Any) -> Optional[datetime]:
    if not epoch:
        return None
    try:
        return datetime.fromtimestamp(epoch, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def identity_from_summary(summary: Dict[str, Any]) -> ContainerIdentity:
    return ContainerIdentity(
        id=short_id(summary.get("Id", "")),
        name=display_name(summary.get("Names")),
        image=summary.get("Image", ""),
        state=summary.get("State", ""),
        status=summary.get("Status", ""),
        created=_created_at(summary.get("Created")),
    )


def list_snapshot(summary: Dict[str, Any]) -> ContainerSnapshot:
    """
    Snapshot built from the list entry alone, with zeroed live metrics.

    Never raises: a malformed entry still yields a row keyed by whatever id
    can be recovered from it.
    """
    try:
        identity = identity_from_summary(summary)
    except Exception as e:
        raw_id = summary.get("Id") if isinstance(summary, dict) else None
        logger.warning(f"Malformed container entry {raw_id!r}: {e}")
        cid = short_id(str(raw_id or ""))
        identity = ContainerIdentity(id=cid, name=cid, image="", state="unknown")

    metrics = ResourceMetrics()
    try:
        metrics.container_size = max(0, int(summary.get("SizeRw") or 0))
    except (AttributeError, TypeError, ValueError):
        pass
    return ContainerSnapshot(identity=identity, metrics=metrics)


class Collector:
    def __init__(self, backend: DockerBackend):
        self.backend = backend

    def collect(self, deadline: Deadline, include_stopped: bool = False) -> List[ContainerSnapshot]:
        try:
            deadline.check("list containers")
            containers = self.backend.list_containers(include_stopped, want_sizes=True)
        except Exception as e:
            logger.error(f"Container list failed: {e}")
            raise CollectError(f"Failed to list containers: {e}") from e

        if not containers:
            return []

        results: List[ContainerSnapshot] = []
        pool = ThreadPoolExecutor(max_workers=len(containers), thread_name_prefix="collect")
        futures = {pool.submit(self._collect_one, summary, deadline): summary for summary in containers}
        try:
            for future in as_completed(futures, timeout=deadline.remaining()):
                try:
                    results.append(future.result())
                except Exception as e:
                    logger.error(f"Collect task failed: {e}", exc_info=True)
                    results.append(list_snapshot(futures[future]))
        except FuturesTimeout:
            late = [summary for future, summary in futures.items() if not future.done()]
            logger.warning(f"Cycle deadline reached with {len(late)} containers outstanding")
            # Fresh snapshots: the late threads still own theirs
            results.extend(list_snapshot(summary) for summary in late)
        finally:
            # Late threads finish their current call; the expired deadline skips any further one
            pool.shutdown(wait=False, cancel_futures=True)

        logger.debug(f"Collected {len(results)} containers")
        return results

    def _collect_one(self, summary: Dict[str, Any], deadline: Deadline) -> ContainerSnapshot:
        snapshot = list_snapshot(summary)
        identity, metrics = snapshot.identity, snapshot.metrics
        container_id = summary.get("Id", "")

        try:
            deadline.check("image size")
            metrics.image_size = self.backend.image_size(summary.get("ImageID") or identity.image)
        except Exception as e:
            logger.debug(f"Image size lookup failed for {identity.name}: {e}")

        try:
            deadline.check("inspect container")
            detail = self.backend.inspect_container(container_id)
            metrics.cpu_limit = derive.cpu_limit_from_host_config(detail.get("HostConfig"))
        except Exception as e:
            logger.debug(f"Inspect failed for {identity.name}: {e}")

        if identity.state != "running":
            return snapshot

        try:
            deadline.check("stats")
            payload = self.backend.fetch_stats(container_id)
            derive.derive_metrics(derive.parse_stats(payload), metrics)
        except Exception as e:
            # Keep the partial snapshot; the next cycle is the retry
            logger.warning(f"Stats unavailable for {identity.name}: {e}")

        return snapshot
