"""
dockstats exceptions.

Only two of these ever reach the user: DockerConnectionError (startup,
fatal) and CollectError (one refresh cycle failed, previous table kept).
The rest are raised and absorbed inside the collector.
"""


class DockStatsError(Exception):
    """Base exception for all dockstats errors"""

    def __init__(self, message: str, recovery_hint: str = ""):
        self.message = message
        self.recovery_hint = recovery_hint
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.recovery_hint:
            return f"{self.message} Hint: {self.recovery_hint}"
        return self.message


class DockerConnectionError(DockStatsError):
    """Raised when the Docker daemon cannot be reached at startup"""

    def __init__(self, message: str = "Cannot connect to Docker daemon", recovery_hint: str = ""):
        default_hint = (
            "Make sure the Docker daemon is running and you have permission "
            "to access its socket."
        )
        super().__init__(message, recovery_hint or default_hint)


class CollectError(DockStatsError):
    """Raised when the container list call of a refresh cycle fails"""


class DeadlineExceeded(DockStatsError):
    """Raised when a cycle deadline elapsed or the cycle was cancelled"""


class StatsDecodeError(DockStatsError):
    """Raised when a stats payload cannot be decoded"""
