"""
Command-line interface for dockstats.

Two modes:
  - interactive (default): Textual table refreshed every --interval seconds
  - --once: collect one cycle, print a Rich table sorted by CPU and exit

Command line flags override the YAML config.
"""

import logging
import signal
from datetime import datetime
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

from . import __version__, setup_logging
from .backend import DockerBackend
from .collector import Collector, Deadline
from .config import config_manager
from .exceptions import CollectError, DockerConnectionError
from .format import format_block_io, format_bytes, format_mem_usage, format_net_io, format_percent
from .model import ContainerSnapshot, DaemonSummary, SortField
from .sorter import sort_snapshots
from .state import RefreshWorker, SessionState, shutdown

logger = logging.getLogger(__name__)

console = Console()


def build_once_table(snapshots: List[ContainerSnapshot]) -> Table:
    table = Table(box=None, header_style="bold yellow", pad_edge=False)
    table.add_column("CONTAINER", no_wrap=True, max_width=20)
    table.add_column("STATE")
    table.add_column("CPU%", justify="right")
    table.add_column("MEM USAGE / LIMIT")
    table.add_column("MEM%", justify="right")
    table.add_column("NET I/O")
    table.add_column("BLOCK I/O")
    table.add_column("PIDS", justify="right")
    table.add_column("IMAGE", justify="right")

    for snap in snapshots:
        m = snap.metrics
        table.add_row(
            snap.name,
            snap.identity.state,
            format_percent(m.cpu_percent),
            format_mem_usage(m.mem_usage, m.mem_limit),
            format_percent(m.mem_percent),
            format_net_io(m.net_rx, m.net_tx),
            format_block_io(m.block_read, m.block_write),
            str(m.pids),
            format_bytes(m.image_size),
        )
    return table


def summary_line(summary: Optional[DaemonSummary]) -> str:
    line = f"DOCKER STATS {__version__} | {datetime.now().strftime('%H:%M:%S')}"
    if summary is not None:
        line += (
            f" | Docker {summary.server_version} | "
            f"{summary.containers_running}/{summary.containers_total} containers | "
            f"{summary.images_total} images"
        )
    return line


def run_once(backend: DockerBackend, show_all: bool, timeout: float) -> int:
    collector = Collector(backend)
    try:
        snapshots = collector.collect(Deadline(timeout), show_all)
    except CollectError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1

    sort_snapshots(snapshots, SortField.CPU, ascending=False)
    console.print(summary_line(backend.get_daemon_summary()), style="bold cyan", markup=False)
    console.print(build_once_table(snapshots))
    return 0


def run_interactive(backend: DockerBackend, interval: float, show_all: bool, timeout: float) -> None:
    # Imported lazily so --once works without initialising Textual
    from .textual_app import DockStatsApp

    state = SessionState()
    worker = RefreshWorker(
        state, Collector(backend), backend,
        interval=interval, include_stopped=show_all, timeout=timeout,
    )
    app = DockStatsApp(state, worker)

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        worker.stop()
        app.exit()

    signal.signal(signal.SIGTERM, handle_signal)
    try:
        app.run()
    finally:
        shutdown(worker, backend, join_timeout=timeout + 1)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--interval", type=click.FloatRange(min=0.1), default=None,
              help="Refresh interval in seconds (default: from config, 2s)")
@click.option("-a", "--all", "show_all", is_flag=True, default=False,
              help="Show all containers, including stopped ones")
@click.option("--once", is_flag=True, help="Print one table and exit")
@click.option("--timeout", type=click.FloatRange(min=1.0), default=None,
              help="Timeout of one refresh cycle in seconds (default: from config, 10s)")
@click.version_option(version=__version__, prog_name="dockstats")
def main(interval: Optional[float], show_all: bool, once: bool, timeout: Optional[float]) -> None:
    """dockstats - real-time Docker container statistics in your terminal"""
    log_config = config_manager.get_config().logging
    setup_logging(
        level=config_manager.get_log_level(),
        file_path=config_manager.get_custom_log_path(),
        max_size_mb=log_config.max_size_mb,
        backup_count=log_config.backup_count,
    )

    interval = interval or config_manager.get_refresh_interval()
    timeout = timeout or config_manager.get_timeout()
    show_all = show_all or config_manager.should_show_all()
    logger.info(f"Starting dockstats {__version__} (interval={interval}s, all={show_all}, once={once})")

    try:
        backend = DockerBackend.from_env(timeout=timeout)
    except DockerConnectionError as e:
        console.print(f"[red]Error connecting to Docker:[/red] {e.message}")
        console.print(e.recovery_hint)
        raise SystemExit(1)

    if once:
        try:
            code = run_once(backend, show_all, timeout)
        finally:
            backend.close()
        raise SystemExit(code)

    run_interactive(backend, interval, show_all, timeout)
