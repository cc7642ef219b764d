"""Tests for the process lister and window resolver."""

import logging
import subprocess

import psutil
import pytest

from rdwatch import probes
from rdwatch.probes import ProbeError, ProcessLister, WindowResolver, run_command


class FakeProc:
    """Stand-in for psutil.Process as yielded by process_iter."""

    def __init__(self, pid, name, cmdline, username="alice"):
        self._info = {"pid": pid, "name": name, "cmdline": cmdline, "username": username}

    @property
    def info(self):
        return self._info


class VanishedProc:
    """Process that exits while being read."""

    @property
    def info(self):
        raise psutil.NoSuchProcess(4242)


def completed(args, returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args, returncode, stdout=stdout, stderr=stderr)


class TestProcessLister:
    """Tests for ProcessLister."""

    def test_lists_matching_processes(self, monkeypatch):
        """Test only processes of the executable are listed, ps -f style."""
        procs = [
            FakeProc(10, "rustdesk", ["/usr/bin/rustdesk", "--service"], username="root"),
            FakeProc(11, "rustdesk", ["rustdesk"]),
            FakeProc(12, "bash", ["bash"]),
        ]
        monkeypatch.setattr(probes.psutil, "process_iter", lambda attrs=None: iter(procs))

        lines = ProcessLister().list_lines()

        assert lines == ["root 10 /usr/bin/rustdesk --service", "alice 11 rustdesk"]

    def test_skips_vanished_processes(self, monkeypatch):
        """Test processes that exit mid-iteration are skipped."""
        procs = [VanishedProc(), FakeProc(11, "rustdesk", ["rustdesk", "--cm"])]
        monkeypatch.setattr(probes.psutil, "process_iter", lambda attrs=None: iter(procs))

        assert ProcessLister().list_lines() == ["alice 11 rustdesk --cm"]

    def test_empty_cmdline_uses_executable(self, monkeypatch):
        """Test a process without readable cmdline shows the executable name."""
        procs = [FakeProc(11, "rustdesk", None)]
        monkeypatch.setattr(probes.psutil, "process_iter", lambda attrs=None: iter(procs))

        assert ProcessLister().list_lines() == ["alice 11 rustdesk"]

    def test_username_is_made_word_safe(self, monkeypatch):
        """Test usernames with punctuation still match the line prefix."""
        procs = [FakeProc(11, "rustdesk", ["rustdesk"], username="first.last")]
        monkeypatch.setattr(probes.psutil, "process_iter", lambda attrs=None: iter(procs))

        assert ProcessLister().list_lines() == ["first_last 11 rustdesk"]

    def test_listing_failure_raises_probe_error(self, monkeypatch):
        """Test a failure to read the process table raises ProbeError."""

        def broken(attrs=None):
            raise psutil.Error("no /proc")

        monkeypatch.setattr(probes.psutil, "process_iter", broken)

        with pytest.raises(ProbeError):
            ProcessLister().list_lines()


class TestRunCommand:
    """Tests for run_command."""

    def test_returns_stdout(self, monkeypatch):
        monkeypatch.setattr(probes.subprocess, "run", lambda args, **kw: completed(args, stdout="ok\n"))

        assert run_command(["echo", "ok"]) == "ok\n"

    def test_non_zero_exit(self, monkeypatch):
        monkeypatch.setattr(probes.subprocess, "run", lambda args, **kw: completed(args, 2, stderr="bad"))

        with pytest.raises(ProbeError) as excinfo:
            run_command(["false"])

        assert excinfo.value.returncode == 2
        assert "bad" in str(excinfo.value)

    def test_missing_command(self, monkeypatch):
        def missing(args, **kw):
            raise FileNotFoundError(args[0])

        monkeypatch.setattr(probes.subprocess, "run", missing)

        with pytest.raises(ProbeError) as excinfo:
            run_command(["xdotool"])

        assert excinfo.value.returncode is None

    def test_timeout(self, monkeypatch):
        def slow(args, **kw):
            raise subprocess.TimeoutExpired(args, kw["timeout"])

        monkeypatch.setattr(probes.subprocess, "run", slow)

        with pytest.raises(ProbeError):
            run_command(["xprop"], timeout=0.5)


class TestWindowResolver:
    """Tests for WindowResolver."""

    def test_find_window(self, monkeypatch):
        """Test the first window id is returned."""
        calls = []

        def fake_run(args, **kw):
            calls.append(args)
            return completed(args, stdout="52428803\n52428809\n")

        monkeypatch.setattr(probes.subprocess, "run", fake_run)

        assert WindowResolver().find_window(11) == "52428803"
        assert calls[0][:4] == ["xdotool", "search", "--all", "--pid"]
        assert "11" in calls[0]

    def test_find_window_no_match(self, monkeypatch, caplog):
        """Test xdotool's no-match exit is an absent window, not a warning."""
        monkeypatch.setattr(probes.subprocess, "run", lambda args, **kw: completed(args, 1))

        with caplog.at_level(logging.DEBUG, logger="rdwatch.probes"):
            assert WindowResolver().find_window(11) is None

        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]

    def test_find_window_missing_tool_is_logged(self, monkeypatch, caplog):
        """Test a missing xdotool degrades to absent and is logged."""

        def missing(args, **kw):
            raise FileNotFoundError(args[0])

        monkeypatch.setattr(probes.subprocess, "run", missing)

        with caplog.at_level(logging.WARNING, logger="rdwatch.probes"):
            assert WindowResolver().find_window(11) is None

        assert "xdotool" in caplog.text

    def test_window_state(self, monkeypatch):
        """Test the WM_STATE token is extracted."""
        stdout = "WM_STATE(WM_STATE):\n\t\twindow state: Normal\n\t\ticon window: 0x0\n"
        monkeypatch.setattr(probes.subprocess, "run", lambda args, **kw: completed(args, stdout=stdout))

        assert WindowResolver().window_state("0x3200003") == "normal"

    def test_window_state_iconic(self, monkeypatch):
        stdout = "WM_STATE(WM_STATE):\n\t\twindow state: Iconic\n"
        monkeypatch.setattr(probes.subprocess, "run", lambda args, **kw: completed(args, stdout=stdout))

        assert WindowResolver().window_state("0x1") == "iconic"

    def test_window_state_missing_field(self, monkeypatch):
        monkeypatch.setattr(
            probes.subprocess, "run", lambda args, **kw: completed(args, stdout="WM_STATE:  not found.\n")
        )

        assert WindowResolver().window_state("0x1") is None

    def test_window_state_failure(self, monkeypatch):
        """Test a failing xprop is treated as an unknown state."""
        monkeypatch.setattr(probes.subprocess, "run", lambda args, **kw: completed(args, 1, stderr="BadWindow"))

        assert WindowResolver().window_state("0x1") is None
