"""
dockstats - a `top`-like terminal monitor for Docker container resources.

Polls the Docker daemon and shows a continuously refreshing, sortable,
scrollable table of per-container CPU, memory, network and block I/O usage.

Features:
  - Concurrent per-container stats collection (one thread per container)
  - CPU%, memory%, network and disk totals derived from one-shot stats
  - Sorting by name, CPU, memory, network I/O, disk I/O or image size
  - Keyboard navigation, manual refresh, daemon summary bar
  - One-shot plain table output (--once)

Main Components:
  - cli.py: Command line entry point
  - backend.py: Docker API wrapper
  - collector.py: Concurrent per-cycle collection
  - derive.py: Derived metrics
  - sorter.py: Table ordering
  - state.py: Thread-safe session state and refresh worker
  - textual_app.py: Textual UI
  - model.py: Data structures

Usage:
  python -m dockstats [--interval 2] [--all] [--once]

Dependencies:
  - docker>=7.0.0
  - textual, rich, click, PyYAML
  - Python 3.10+
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

__version__ = "1.0.0"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def get_log_path() -> str:
    """
    Get the log file path following XDG Base Directory spec.

    Returns XDG_DATA_HOME/dockstats/logs/dockstats.log with fallback to /tmp.
    Creates directory if it doesn't exist.

    Returns:
        str: Absolute path to log file (/tmp/dockstats.log as fallback)
    """
    xdg_data_home = os.environ.get('XDG_DATA_HOME')
    if not xdg_data_home:
        xdg_data_home = Path.home() / '.local' / 'share'
    else:
        xdg_data_home = Path(xdg_data_home)

    log_dir = xdg_data_home / 'dockstats' / 'logs'

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        return str(log_dir / 'dockstats.log')
    except (PermissionError, OSError):
        return '/tmp/dockstats.log'


def setup_logging(level: str = "INFO", file_path: Optional[str] = None,
                  max_size_mb: int = 10, backup_count: int = 5) -> logging.Handler:
    """Send the package's logs to a rotating file; the terminal belongs to the UI."""
    handler = RotatingFileHandler(
        file_path or get_log_path(),
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return handler
