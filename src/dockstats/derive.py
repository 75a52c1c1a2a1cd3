"""
Derived container metrics.

Pure functions turning the raw counters of a Docker stats payload into the
numbers shown in the table. No I/O, no logging, no state.

A one-shot stats call (stream=False) returns both the current sample
(`cpu_stats`) and the immediately preceding one (`precpu_stats`), so CPU%
can be computed from a single payload with the usual two-sample delta:

    cpu%  = (cpu_delta / system_delta) * online_cpus * 100

Missing keys decode as zero. Anything that is not a mapping, or counters that
are not numbers, raise StatsDecodeError so the collector can fall back to
partial metrics.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from .exceptions import StatsDecodeError
from .model import ResourceMetrics


@dataclass
class CPUSample:
    total_usage: int = 0
    system_usage: int = 0
    online_cpus: int = 0
    percpu_usage: List[int] = field(default_factory=list)


@dataclass
class RawStats:
    cpu: CPUSample = field(default_factory=CPUSample)
    precpu: CPUSample = field(default_factory=CPUSample)
    mem_usage: int = 0
    mem_limit: int = 0
    networks: Dict[str, Tuple[int, int]] = field(default_factory=dict)
    blkio: List[Tuple[str, int]] = field(default_factory=list)
    pids: int = 0


def _mapping(value: Any, what: str) -> Mapping:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise StatsDecodeError(f"{what} is not an object: {type(value).__name__}")
    return value


def _counter(value: Any, what: str) -> int:
    if value is None:
        return 0
    # bool is an int subclass but never a valid counter
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise StatsDecodeError(f"{what} is not a number: {value!r}")
    return max(0, int(value))


def _parse_cpu(value: Any, what: str) -> CPUSample:
    data = _mapping(value, what)
    usage = _mapping(data.get("cpu_usage"), f"{what}.cpu_usage")
    percpu = usage.get("percpu_usage") or []
    if not isinstance(percpu, list):
        raise StatsDecodeError(f"{what}.cpu_usage.percpu_usage is not a list")
    return CPUSample(
        total_usage=_counter(usage.get("total_usage"), f"{what}.total_usage"),
        system_usage=_counter(data.get("system_cpu_usage"), f"{what}.system_cpu_usage"),
        online_cpus=_counter(data.get("online_cpus"), f"{what}.online_cpus"),
        percpu_usage=[_counter(v, f"{what}.percpu_usage") for v in percpu],
    )


def parse_stats(payload: Any) -> RawStats:
    """Decode a Docker stats payload into RawStats."""
    if payload is None:
        raise StatsDecodeError("empty stats payload")
    data = _mapping(payload, "stats")

    memory = _mapping(data.get("memory_stats"), "memory_stats")

    networks = {}
    for iface, counters in _mapping(data.get("networks"), "networks").items():
        counters = _mapping(counters, f"networks.{iface}")
        networks[iface] = (
            _counter(counters.get("rx_bytes"), f"networks.{iface}.rx_bytes"),
            _counter(counters.get("tx_bytes"), f"networks.{iface}.tx_bytes"),
        )

    blkio_stats = _mapping(data.get("blkio_stats"), "blkio_stats")
    entries = blkio_stats.get("io_service_bytes_recursive") or []
    if not isinstance(entries, list):
        raise StatsDecodeError("blkio_stats.io_service_bytes_recursive is not a list")
    blkio = []
    for entry in entries:
        entry = _mapping(entry, "blkio entry")
        blkio.append((str(entry.get("op") or ""), _counter(entry.get("value"), "blkio value")))

    pids = _mapping(data.get("pids_stats"), "pids_stats")

    return RawStats(
        cpu=_parse_cpu(data.get("cpu_stats"), "cpu_stats"),
        precpu=_parse_cpu(data.get("precpu_stats"), "precpu_stats"),
        mem_usage=_counter(memory.get("usage"), "memory_stats.usage"),
        mem_limit=_counter(memory.get("limit"), "memory_stats.limit"),
        networks=networks,
        blkio=blkio,
        pids=_counter(pids.get("current"), "pids_stats.current"),
    )


def cpu_percent(raw: RawStats) -> float:
    cpu_delta = raw.cpu.total_usage - raw.precpu.total_usage
    system_delta = raw.cpu.system_usage - raw.precpu.system_usage

    if system_delta > 0 and cpu_delta > 0:
        cores = raw.cpu.online_cpus or len(raw.cpu.percpu_usage) or 1
        return (cpu_delta / system_delta) * cores * 100.0
    return 0.0


def mem_percent(usage: int, limit: int) -> float:
    if limit > 0:
        return usage / limit * 100.0
    return 0.0


def network_totals(networks: Mapping[str, Tuple[int, int]]) -> Tuple[int, int]:
    rx = sum(counters[0] for counters in networks.values())
    tx = sum(counters[1] for counters in networks.values())
    return rx, tx


def block_io_totals(entries: Iterable[Tuple[str, int]]) -> Tuple[int, int]:
    read = write = 0
    for op, value in entries:
        op = op.lower()
        if op == "read":
            read += value
        elif op == "write":
            write += value
    return read, write


def cpu_limit_from_host_config(host_config: Any) -> float:
    """
    Number of CPU cores a container may use, 0 meaning unlimited.

    NanoCpus (set by `--cpus`) wins; otherwise the CFS quota/period pair.
    """
    if not isinstance(host_config, Mapping):
        return 0.0
    nano_cpus = host_config.get("NanoCpus") or 0
    if nano_cpus > 0:
        return nano_cpus / 1e9
    quota = host_config.get("CpuQuota") or 0
    period = host_config.get("CpuPeriod") or 0
    if quota > 0 and period > 0:
        return quota / period
    return 0.0


def derive_metrics(raw: RawStats, metrics: ResourceMetrics) -> ResourceMetrics:
    """Fill the live fields of `metrics` from `raw` and return it."""
    metrics.cpu_percent = cpu_percent(raw)
    metrics.mem_usage = raw.mem_usage
    metrics.mem_limit = raw.mem_limit
    metrics.mem_percent = mem_percent(raw.mem_usage, raw.mem_limit)
    metrics.net_rx, metrics.net_tx = network_totals(raw.networks)
    metrics.block_read, metrics.block_write = block_io_totals(raw.blkio)
    metrics.pids = raw.pids
    return metrics
