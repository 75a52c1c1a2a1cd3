"""
Docker API wrapper.

This module is the only place that talks to the Docker daemon. It wraps the
low-level API of the docker SDK (docker.from_env().api) so the collector
works on the same JSON documents the Engine API returns:
  - list_containers(): /containers/json, optionally with stopped containers
  - inspect_container() / inspect_image(): source of CPU limit and image size
  - fetch_stats(): one non-streaming /containers/{id}/stats payload, which
    embeds both the current and the preceding CPU sample
  - daemon_info() / list_images(): inputs of the daemon summary

Every call is bounded by the client timeout, which is set to the refresh
cycle timeout.

Error Handling:
  - Connection failures at startup raise DockerConnectionError
  - Per-call errors propagate to the collector, which decides whether they
    are fatal (container list) or degrade one container (everything else)
  - get_daemon_summary() is wrapped in @docker_safe and returns None on error

Dependencies:
  - docker>=7.0.0 (docker-py client)
"""

import docker
import functools
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from .cache import cached
from .exceptions import DockerConnectionError
from .model import DaemonSummary

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10


def docker_safe(default_return: Any = None) -> Callable:
    """
    Decorator for Docker API methods whose failure must never reach the UI.

    Catches exceptions, logs them, and returns a default value.

    Args:
        default_return: Value to return if exception occurs ([], {}, None, etc.)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                logger.error(f"Docker operation failed in {func.__name__}: {e}", exc_info=True)
                return default_return
        return wrapper
    return decorator


class DockerBackend:
    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = timeout
        self.client = None
        self._closed = False
        self._lock = threading.Lock()

    @classmethod
    def from_env(cls, timeout: float = DEFAULT_TIMEOUT) -> "DockerBackend":
        backend = cls(timeout=timeout)
        backend.connect()
        return backend

    def connect(self) -> None:
        """Create the client and ping the daemon. Raises DockerConnectionError."""
        try:
            client = docker.from_env(timeout=max(1.0, float(self.timeout)))
        except Exception as e:
            raise DockerConnectionError(f"Failed to create Docker client: {e}") from e

        try:
            client.ping()
        except Exception as e:
            try:
                client.close()
            except Exception:
                logger.debug("Ignoring close error after failed ping", exc_info=True)
            raise DockerConnectionError(f"Failed to connect to Docker daemon: {e}") from e

        self.client = client
        self._closed = False
        logger.info("Connected to Docker daemon")

    @property
    def api(self):
        if self.client is None or self._closed:
            raise DockerConnectionError("Docker client is not connected")
        return self.client.api

    def list_containers(self, include_stopped: bool, want_sizes: bool = True) -> List[Dict[str, Any]]:
        return self.api.containers(all=include_stopped, size=want_sizes)

    def inspect_container(self, container_id: str) -> Dict[str, Any]:
        return self.api.inspect_container(container_id)

    def inspect_image(self, image_ref: str) -> Dict[str, Any]:
        return self.api.inspect_image(image_ref)

    @cached("image_size")
    def image_size(self, image_ref: str) -> int:
        return int(self.inspect_image(image_ref).get("Size") or 0)

    def fetch_stats(self, container_id: str) -> Dict[str, Any]:
        # stream=False waits for the second sample so precpu_stats is filled
        return self.api.stats(container_id, stream=False)

    def daemon_info(self) -> Dict[str, Any]:
        return self.api.info()

    def list_images(self) -> List[Dict[str, Any]]:
        return self.api.images()

    @docker_safe(default_return=None)
    @cached("daemon_summary")
    def get_daemon_summary(self) -> Optional[DaemonSummary]:
        info = self.daemon_info()
        images = self.list_images()
        return DaemonSummary(
            server_version=info.get("ServerVersion", ""),
            containers_total=info.get("Containers", 0),
            containers_running=info.get("ContainersRunning", 0),
            containers_paused=info.get("ContainersPaused", 0),
            containers_stopped=info.get("ContainersStopped", 0),
            images_total=len(images),
            images_size=sum(img.get("Size") or 0 for img in images),
            cpus=info.get("NCPU", 0),
            memory_total=info.get("MemTotal", 0),
            os_type=info.get("OSType", ""),
            architecture=info.get("Architecture", ""),
        )

    def close(self) -> None:
        with self._lock:
            if self.client is None or self._closed:
                return
            self._closed = True
            try:
                self.client.close()
                logger.info("Docker client closed")
            except Exception as e:
                logger.warning(f"Error while closing Docker client: {e}")
