import os
import tempfile

# Keep the global ConfigManager and the log file out of the real home directory
_sandbox = tempfile.mkdtemp(prefix="dockstats-tests-")
os.environ["XDG_CONFIG_HOME"] = os.path.join(_sandbox, "config")
os.environ["XDG_DATA_HOME"] = os.path.join(_sandbox, "data")

from unittest.mock import MagicMock

import pytest

from dockstats.cache import cache_manager


@pytest.fixture(autouse=True)
def clear_cache():
    cache_manager.invalidate()
    yield
    cache_manager.invalidate()


def full_id(cid):
    return cid.ljust(64, "0")


def container_summary(cid, name, state="running", image="nginx:latest", size_rw=0, created=1700000000):
    return {
        "Id": full_id(cid),
        "Names": [f"/{name}"],
        "Image": image,
        "ImageID": f"sha256:{name}",
        "State": state,
        "Status": "Up 5 minutes" if state == "running" else "Exited (0)",
        "Created": created,
        "SizeRw": size_rw,
    }


def stats_payload(cpu_delta=0, system_delta=1000, online_cpus=1, mem_usage=0, mem_limit=0,
                  networks=None, blkio=None, pids=0):
    return {
        "cpu_stats": {
            "cpu_usage": {"total_usage": 10_000 + cpu_delta, "percpu_usage": [1]},
            "system_cpu_usage": 100_000 + system_delta,
            "online_cpus": online_cpus,
        },
        "precpu_stats": {
            "cpu_usage": {"total_usage": 10_000},
            "system_cpu_usage": 100_000,
        },
        "memory_stats": {"usage": mem_usage, "limit": mem_limit},
        "networks": networks or {},
        "blkio_stats": {"io_service_bytes_recursive": blkio or []},
        "pids_stats": {"current": pids},
    }


def make_backend(containers=None, stats=None, inspect=None, image_sizes=None):
    """MagicMock backend; stats/inspect/image_sizes map full container id (or ImageID) to a value or exception."""
    backend = MagicMock()
    backend.list_containers.return_value = containers or []
    stats = stats or {}
    inspect = inspect or {}
    image_sizes = image_sizes or {}

    def _lookup(table, key, default):
        value = table.get(key, default)
        if isinstance(value, Exception):
            raise value
        return value

    backend.fetch_stats.side_effect = lambda cid: _lookup(stats, cid, {})
    backend.inspect_container.side_effect = lambda cid: _lookup(inspect, cid, {"HostConfig": {}})
    backend.image_size.side_effect = lambda ref: _lookup(image_sizes, ref, 0)
    backend.get_daemon_summary.return_value = None
    return backend
