"""Textual-based UI for dockstats."""

from __future__ import annotations

from typing import Optional

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.widgets import Footer, Static

from .config import config_manager
from .format import format_bytes, format_cpu_limit, format_percent
from .model import DaemonSummary, SessionPhase, SessionView, SortField, SortSpec
from .state import RefreshWorker, SessionState

# info bar, sort bar, table header, status line, footer
CHROME_ROWS = 6

SORT_ACTIONS = {
    "sort_cpu": SortField.CPU,
    "sort_memory": SortField.MEMORY,
    "sort_name": SortField.NAME,
    "sort_network": SortField.NET_IO,
    "sort_disk": SortField.BLOCK_IO,
    "sort_image": SortField.IMAGE_SIZE,
}

BAR_WIDTH = 8
PERCENT_WIDTH = 8

COLUMNS = [
    ("NAME", 24),
    ("STATE", 9),
    ("CPU", BAR_WIDTH + 1 + PERCENT_WIDTH),
    ("LIMIT", 6),
    ("MEM USAGE / LIMIT", 21),
    ("MEM", BAR_WIDTH + 1 + PERCENT_WIDTH),
    ("NET I/O", 21),
    ("BLOCK I/O", 21),
    ("PIDS", 6),
    ("IMAGE", 9),
]


def cpu_style(percent: float) -> str:
    if percent >= 80:
        return "red"
    if percent >= 50:
        return "yellow"
    if percent >= 20:
        return "green"
    return "white"


def mem_style(percent: float) -> str:
    if percent >= 90:
        return "red"
    if percent >= 70:
        return "yellow"
    if percent >= 40:
        return "green"
    return "white"


def gauge_bar(percent: float, width: int = BAR_WIDTH) -> Text:
    """Fixed-width usage bar, full at 100%."""
    filled = max(0, min(width, int(percent / 100 * width)))
    if percent >= 90:
        style = "red"
    elif percent >= 70:
        style = "yellow"
    elif percent >= 40:
        style = "green"
    else:
        style = "cyan"
    bar = Text()
    bar.append("█" * filled, style=style)
    bar.append("░" * (width - filled), style="dim")
    return bar


def visible_rows_for(height: int) -> int:
    return max(1, height - CHROME_ROWS)


def _cell(value: str, width: int) -> str:
    if len(value) > width - 1:
        value = value[:width - 2] + "…"
    return f"{value:<{width}}"


def render_header() -> str:
    return "".join(_cell(name, width) for name, width in COLUMNS)


def render_table(view: SessionView) -> Text:
    text = Text()
    text.append(render_header() + "\n", style="bold yellow")

    if not view.snapshots:
        if view.updated_at is None and view.phase != SessionPhase.ERROR:
            text.append("Loading...", style="dim")
        else:
            text.append("No containers found", style="dim")
        return text

    start = view.view.scroll
    for index, snap in enumerate(view.visible_snapshots, start=start):
        m = snap.metrics
        selected = index == view.view.selected
        row = Text(style="reverse" if selected else "")
        row.append(_cell(snap.name, COLUMNS[0][1]), style="bold" if selected else "white")
        row.append(_cell(snap.identity.state, COLUMNS[1][1]),
                   style="green" if snap.identity.state == "running" else "bright_black")
        row.append_text(gauge_bar(m.cpu_percent))
        row.append(" " + _cell(format_percent(m.cpu_percent), PERCENT_WIDTH), style=cpu_style(m.cpu_percent))
        row.append(_cell(format_cpu_limit(m.cpu_limit), COLUMNS[3][1]), style="dim")
        row.append(_cell(f"{format_bytes(m.mem_usage)} / {format_bytes(m.mem_limit)}", COLUMNS[4][1]))
        row.append_text(gauge_bar(m.mem_percent))
        row.append(" " + _cell(format_percent(m.mem_percent), PERCENT_WIDTH), style=mem_style(m.mem_percent))
        row.append(_cell(f"{format_bytes(m.net_rx)} / {format_bytes(m.net_tx)}", COLUMNS[6][1]), style="cyan")
        row.append(_cell(f"{format_bytes(m.block_read)} / {format_bytes(m.block_write)}", COLUMNS[7][1]), style="blue")
        row.append(_cell(str(m.pids), COLUMNS[8][1]))
        row.append(_cell(format_bytes(m.image_size), COLUMNS[9][1]), style="magenta")
        text.append_text(row)
        text.append("\n")

    total = len(view.snapshots)
    if total > view.view.visible_rows:
        end = min(total, start + view.view.visible_rows)
        text.append(f"[{start + 1}-{end} of {total}]", style="dim")
    return text


def render_info(summary: Optional[DaemonSummary]) -> str:
    if summary is None:
        return ""
    return (
        f"Docker {summary.server_version} | Containers: {summary.containers_running} running, "
        f"{summary.containers_total} total | Images: {summary.images_total} "
        f"({format_bytes(summary.images_size)}) | CPUs: {summary.cpus} | "
        f"Memory: {format_bytes(summary.memory_total)} | {summary.os_type}/{summary.architecture}"
    )


def render_sort_bar(sort: SortSpec) -> str:
    keys = config_manager.get_config().keybindings
    return (
        f"Sort: {sort.field.label} {sort.indicator}  |  "
        f"[{keys.sort_cpu}]cpu [{keys.sort_memory}]mem [{keys.sort_name}]name "
        f"[{keys.sort_network}]net [{keys.sort_disk}]disk [{keys.sort_image}]img  |  "
        f"[{keys.refresh}]efresh [{keys.quit}]uit"
    )


def render_status(view: SessionView, interval: float) -> Text:
    if view.phase == SessionPhase.ERROR:
        return Text(f"Error: {view.last_error}", style="bold red")
    parts = [f"Containers: {len(view.snapshots)}"]
    if view.updated_at is not None:
        parts.append(f"Updated: {view.updated_at.astimezone().strftime('%H:%M:%S')}")
    if view.phase == SessionPhase.LOADING:
        parts.append("refreshing...")
    parts.append(f"Auto-refresh: {interval:g}s")
    return Text("  |  ".join(parts), style="dim")


class DockStatsApp(App[None]):
    TITLE = "dockstats"
    SUB_TITLE = "Docker container stats"

    CSS = """
    Screen {
      layout: vertical;
    }

    #info {
      height: 1;
      padding: 0 1;
      background: $surface;
      color: $text;
    }

    #sortbar {
      height: 1;
      padding: 0 1;
      color: $text-muted;
    }

    #table {
      height: 1fr;
      padding: 0 1;
    }

    #status {
      height: 1;
      padding: 0 1;
      background: $panel;
    }
    """

    BINDINGS = [
        Binding("up", "navigate('up')", "Up", show=False),
        Binding("k", "navigate('up')", "Up", show=False),
        Binding("down", "navigate('down')", "Down", show=False),
        Binding("j", "navigate('down')", "Down", show=False),
        Binding("pageup", "navigate('page_up')", "Page Up", show=False),
        Binding("pagedown", "navigate('page_down')", "Page Down", show=False),
        Binding("home", "navigate('home')", "Top", show=False),
        Binding("end", "navigate('end')", "Bottom", show=False),
        Binding("ctrl+c", "quit", "Quit", show=False),
    ]

    def __init__(self, state: SessionState, worker: RefreshWorker) -> None:
        super().__init__()
        self.state = state
        self.refresh_worker = worker
        self._last_version = -1

    def compose(self) -> ComposeResult:
        yield Vertical(
            Static("", id="info", markup=False),
            Static("", id="sortbar", markup=False),
            Static("", id="table"),
            Static("", id="status"),
        )
        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#info", Static).display = config_manager.get_config().ui.show_summary
        self.state.resize(visible_rows_for(self.size.height))
        if not self.refresh_worker.is_alive():
            self.refresh_worker.start()
        self.set_interval(0.25, self._poll_version)
        self.refresh_view()

    def on_resize(self, event: events.Resize) -> None:
        self.state.resize(visible_rows_for(event.size.height))
        self.refresh_view()

    def _poll_version(self) -> None:
        # Re-render only when the session changed
        if self.state.get_version() != self._last_version:
            self.refresh_view()

    def refresh_view(self) -> None:
        view = self.state.get_view()
        self.query_one("#info", Static).update(render_info(view.summary))
        self.query_one("#sortbar", Static).update(render_sort_bar(view.sort))
        self.query_one("#table", Static).update(render_table(view))
        self.query_one("#status", Static).update(render_status(view, self.refresh_worker.interval))
        self._last_version = view.version

    def action_navigate(self, command: str) -> None:
        self.state.navigate(command)
        self.refresh_view()

    def action_refresh(self) -> None:
        self.refresh_worker.force_refresh()

    def action_sort(self, field: SortField) -> None:
        self.state.sort_by(field)
        self.refresh_view()

    async def action_quit(self) -> None:
        # The CLI joins the worker and closes the client after the app exits
        self.refresh_worker.stop()
        self.exit()

    async def on_key(self, event: events.Key) -> None:
        key = event.character or event.key
        if config_manager.is_key_binding(key, "quit"):
            await self.action_quit()
            event.stop()
            return
        if config_manager.is_key_binding(key, "refresh"):
            self.action_refresh()
            event.stop()
            return
        for action, field in SORT_ACTIONS.items():
            if config_manager.is_key_binding(key, action):
                self.action_sort(field)
                event.stop()
                return
