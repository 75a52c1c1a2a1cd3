import time
from unittest.mock import MagicMock

import pytest

from dockstats.collector import Collector
from dockstats.exceptions import CollectError
from dockstats.model import (
    ContainerIdentity, ContainerSnapshot, DaemonSummary, ResourceMetrics, SessionPhase, SortField, SortSpec,
    ViewState,
)
from dockstats.state import RefreshWorker, SessionState, shutdown

from conftest import container_summary, make_backend


def snap(name, cpu=0.0, mem=0.0):
    return ContainerSnapshot(
        identity=ContainerIdentity(id=name, name=name, image="img", state="running"),
        metrics=ResourceMetrics(cpu_percent=cpu, mem_percent=mem),
    )


def many(count):
    return [snap(f"c{i:02d}", cpu=float(i)) for i in range(count)]


@pytest.fixture
def state():
    return SessionState(visible_rows=5)


class TestCommit:
    def test_initial_view(self, state):
        view = state.get_view()
        assert view.phase == SessionPhase.IDLE
        assert view.snapshots == []
        assert view.updated_at is None
        assert view.sort == SortSpec(SortField.CPU, False)

    def test_commit_sorts_and_marks_ready(self, state):
        state.begin_refresh()
        assert state.phase == SessionPhase.LOADING
        state.commit_snapshots([snap("a", cpu=5), snap("b", cpu=90), snap("c", cpu=50)])

        view = state.get_view()
        assert [s.name for s in view.snapshots] == ["b", "c", "a"]
        assert view.phase == SessionPhase.READY
        assert view.updated_at is not None

    def test_commit_bumps_version(self, state):
        before = state.get_version()
        state.commit_snapshots([snap("a")])
        assert state.get_version() > before

    def test_view_is_a_copy(self, state):
        state.commit_snapshots([snap("a"), snap("b")])
        view = state.get_view()
        view.snapshots.clear()
        view.view.selected = 99
        again = state.get_view()
        assert len(again.snapshots) == 2
        assert again.view.selected == 0

    def test_stale_ticket_is_dropped(self, state):
        old = state.begin_refresh()
        new = state.begin_refresh()
        assert state.commit_snapshots([snap("fresh")], new)
        assert not state.commit_snapshots([snap("stale")], old)
        assert [s.name for s in state.get_view().snapshots] == ["fresh"]

    def test_list_failure_keeps_rows_and_cursor(self, state):
        state.commit_snapshots(many(10))
        for _ in range(7):
            state.navigate("down")
        before = state.get_view()
        assert before.view == ViewState(selected=7, scroll=3, visible_rows=5)

        ticket = state.begin_refresh()
        state.fail_refresh(CollectError("Failed to list containers: daemon down"), ticket)

        view = state.get_view()
        assert view.phase == SessionPhase.ERROR
        assert "daemon down" in view.last_error
        assert view.view == before.view
        assert len(view.snapshots) == len(before.snapshots)
        assert all(a is b for a, b in zip(view.snapshots, before.snapshots))
        assert view.sort == before.sort
        assert view.updated_at == before.updated_at

    def test_error_persists_until_success(self, state):
        state.fail_refresh(CollectError("down"))
        state.begin_refresh()
        assert state.phase == SessionPhase.ERROR
        state.commit_snapshots([snap("a")])
        view = state.get_view()
        assert view.phase == SessionPhase.READY
        assert view.last_error == ""

    def test_shrink_clamps_selection(self, state):
        state.commit_snapshots(many(10))
        state.navigate("end")
        assert state.get_view().view.selected == 9

        state.commit_snapshots(many(3))
        view = state.get_view()
        assert view.view.selected == 2
        assert view.view.scroll == 0

    def test_empty_commit_resets_cursor(self, state):
        state.commit_snapshots(many(3))
        state.navigate("end")
        state.commit_snapshots([])
        view = state.get_view()
        assert (view.view.selected, view.view.scroll) == (0, 0)
        assert view.selected_snapshot is None

    def test_summary(self, state):
        summary = DaemonSummary(server_version="24.0.7", containers_total=3)
        state.set_summary(summary)
        assert state.get_view().summary == summary


class TestSort:
    def test_same_field_toggles(self, state):
        assert state.sort_by(SortField.CPU) == SortSpec(SortField.CPU, True)
        assert state.sort_by(SortField.CPU) == SortSpec(SortField.CPU, False)

    def test_new_field_uses_default_direction(self, state):
        assert state.sort_by(SortField.NAME) == SortSpec(SortField.NAME, True)
        assert state.sort_by(SortField.MEMORY) == SortSpec(SortField.MEMORY, False)

    def test_sort_reorders_current_rows(self, state):
        state.commit_snapshots([snap("b", mem=1), snap("a", mem=3), snap("c", mem=2)])
        state.sort_by(SortField.NAME)
        assert [s.name for s in state.get_view().snapshots] == ["a", "b", "c"]
        state.sort_by(SortField.MEMORY)
        assert [s.name for s in state.get_view().snapshots] == ["a", "c", "b"]

    def test_next_commit_uses_active_sort(self, state):
        state.sort_by(SortField.NAME)
        state.commit_snapshots([snap("z"), snap("m"), snap("a")])
        assert [s.name for s in state.get_view().snapshots] == ["a", "m", "z"]


class TestNavigate:
    def test_down_scrolls_when_leaving_window(self, state):
        state.commit_snapshots(many(10))
        for _ in range(5):
            state.navigate("down")
        view = state.get_view()
        assert view.view.selected == 5
        assert view.view.scroll == 1
        assert view.visible_snapshots[-1] is view.selected_snapshot

    def test_up_at_top_is_noop(self, state):
        state.commit_snapshots(many(3))
        version = state.get_version()
        state.navigate("up")
        assert state.get_view().view.selected == 0
        assert state.get_version() == version

    def test_paging(self, state):
        state.commit_snapshots(many(12))
        state.navigate("page_down")
        assert state.get_view().view.selected == 5
        state.navigate("page_down")
        state.navigate("page_down")
        view = state.get_view()
        assert view.view.selected == 11
        assert view.view.scroll == 7
        state.navigate("page_up")
        assert state.get_view().view.selected == 6

    def test_home_end(self, state):
        state.commit_snapshots(many(8))
        state.navigate("end")
        assert state.get_view().view.scroll == 3
        state.navigate("home")
        view = state.get_view()
        assert (view.view.selected, view.view.scroll) == (0, 0)

    def test_empty_list(self, state):
        state.navigate("down")
        assert state.get_view().view.selected == 0

    def test_unknown_command(self, state):
        state.commit_snapshots(many(2))
        with pytest.raises(ValueError):
            state.navigate("sideways")

    def test_resize_clamps_scroll(self, state):
        state.commit_snapshots(many(10))
        state.navigate("end")
        state.resize(20)
        view = state.get_view()
        assert view.view.visible_rows == 20
        assert view.view.scroll == 0
        assert view.view.selected == 9


class TestRefreshWorker:
    def make_worker(self, backend, state=None, **kwargs):
        return RefreshWorker(state or SessionState(), Collector(backend), backend, **kwargs)

    def test_cycle_commits_snapshots_and_summary(self):
        backend = make_backend([container_summary("a", "web")])
        summary = DaemonSummary(server_version="25.0")
        backend.get_daemon_summary.return_value = summary
        worker = self.make_worker(backend)

        worker.run_cycle()

        view = worker.state.get_view()
        assert view.phase == SessionPhase.READY
        assert [s.name for s in view.snapshots] == ["web"]
        assert view.summary == summary
        backend.list_containers.assert_called_once_with(False, want_sizes=True)

    def test_cycle_passes_show_all(self):
        backend = make_backend([])
        self.make_worker(backend, include_stopped=True).run_cycle()
        backend.list_containers.assert_called_once_with(True, want_sizes=True)

    def test_slow_summary_does_not_eat_collect_budget(self):
        backend = make_backend([container_summary("a", "web")])
        summary = DaemonSummary(server_version="25.0")

        def slow_summary():
            time.sleep(0.3)
            return summary

        backend.get_daemon_summary.side_effect = slow_summary
        worker = self.make_worker(backend, timeout=0.2)

        worker.run_cycle()

        view = worker.state.get_view()
        assert view.phase == SessionPhase.READY
        assert [s.name for s in view.snapshots] == ["web"]
        assert view.summary == summary
        backend.list_containers.assert_called_once()

    def test_summary_failure_still_commits_table(self):
        backend = make_backend([container_summary("a", "web")])
        backend.get_daemon_summary.side_effect = RuntimeError("info endpoint down")
        worker = self.make_worker(backend)

        worker.run_cycle()

        view = worker.state.get_view()
        assert view.phase == SessionPhase.READY
        assert [s.name for s in view.snapshots] == ["web"]
        assert view.summary is None

    def test_cycle_records_list_failure(self):
        backend = make_backend()
        backend.list_containers.side_effect = RuntimeError("socket closed")
        worker = self.make_worker(backend)

        worker.run_cycle()

        assert worker.state.phase == SessionPhase.ERROR
        assert "socket closed" in worker.state.get_view().last_error

    def test_stopped_worker_does_not_collect(self):
        backend = make_backend([container_summary("a", "web")])
        worker = self.make_worker(backend)
        worker.stop()
        worker.run_cycle()
        backend.list_containers.assert_not_called()

    def test_stop_cancels_in_flight_cycle(self):
        backend = make_backend([container_summary("a", "web")])
        worker = self.make_worker(backend)

        def list_then_stop(include_stopped, want_sizes=True):
            worker.stop()
            return [container_summary("a", "web")]

        backend.list_containers.side_effect = list_then_stop
        worker.run_cycle()

        backend.fetch_stats.assert_not_called()
        # A cancelled cycle is never committed
        assert worker.state.get_view().snapshots == []

    def test_thread_runs_and_stops(self):
        backend = make_backend([container_summary("a", "web")])
        worker = self.make_worker(backend, interval=60)
        worker.start()
        try:
            for _ in range(100):
                if worker.state.phase == SessionPhase.READY:
                    break
                worker.join(0.05)
            assert worker.state.phase == SessionPhase.READY
        finally:
            shutdown(worker, backend, join_timeout=5)
        assert not worker.is_alive()
        backend.close.assert_called_once()

    def test_force_refresh_wakes_worker(self):
        backend = make_backend([container_summary("a", "web")])
        worker = self.make_worker(backend, interval=60)
        worker.start()
        try:
            for _ in range(100):
                if backend.list_containers.call_count >= 1:
                    break
                worker.join(0.05)
            worker.force_refresh()
            for _ in range(100):
                if backend.list_containers.call_count >= 2:
                    break
                worker.join(0.05)
            assert backend.list_containers.call_count >= 2
        finally:
            shutdown(worker, backend, join_timeout=5)


def test_shutdown_stops_worker_before_closing_backend():
    calls = []
    worker = MagicMock()
    worker.stop.side_effect = lambda: calls.append("stop")
    worker.is_alive.return_value = True
    worker.join.side_effect = lambda timeout=None: calls.append("join")
    backend = MagicMock()
    backend.close.side_effect = lambda: calls.append("close")

    shutdown(worker, backend)

    assert calls == ["stop", "join", "close"]


def test_shutdown_tolerates_missing_parts():
    shutdown(None, None)
