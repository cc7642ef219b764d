"""Process and window queries against the running system."""

import logging
import re
import subprocess

import psutil

log = logging.getLogger(__name__)

WINDOW_STATE_REGEXP = re.compile(r"window state: (?P<state>\w+)\s*$")
_NON_WORD = re.compile(r"\W")


class ProbeError(Exception):
    """An external query failed."""

    def __init__(self, message: str, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode


def run_command(args: list[str], timeout: float = 2.0) -> str:
    """
    Run a command synchronously and return its stdout.

    Raises:
        ProbeError: the command is missing, timed out or exited non-zero.
    """
    try:
        proc = subprocess.run(args, capture_output=True, text=True, timeout=timeout, check=False)
    except FileNotFoundError as exc:
        raise ProbeError(f"Command not found: {args[0]}") from exc
    except subprocess.TimeoutExpired as exc:
        raise ProbeError(f"Command timed out after {timeout}s: {' '.join(args)}") from exc
    except OSError as exc:
        raise ProbeError(f"Command failed: {' '.join(args)}: {exc}") from exc

    if proc.returncode != 0:
        raise ProbeError(
            f"Cmd failed: {' '.join(args)} (exit {proc.returncode})\n"
            f"Error detail: {proc.stderr.strip()}",
            returncode=proc.returncode,
        )
    return proc.stdout


class ProcessLister:
    """
    Lists the processes of one executable as `ps -f` style lines.

    Each line reads "<user> <pid> <command line>".
    """

    def __init__(self, executable: str = "rustdesk") -> None:
        self._executable = executable

    @property
    def executable(self) -> str:
        return self._executable

    def list_lines(self) -> list[str]:
        """
        Return one line per matching process.

        Processes that exit or deny access while being read are skipped.

        Raises:
            ProbeError: the process table could not be read.
        """
        lines: list[str] = []
        try:
            for proc in psutil.process_iter(attrs=["pid", "name", "username", "cmdline"]):
                try:
                    info = proc.info
                    if info.get("name") != self._executable:
                        continue
                    cmdline = info.get("cmdline") or []
                    command_line = " ".join(cmdline) if cmdline else self._executable
                    user = _NON_WORD.sub("_", info.get("username") or "") or "unknown"
                    lines.append(f"{user} {info['pid']} {command_line}")
                except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                    continue
        except (psutil.Error, OSError) as exc:
            raise ProbeError(f"Could not list {self._executable} processes: {exc}") from exc
        return lines


class WindowResolver:
    """Finds X11 windows with xdotool and reads their state with xprop."""

    def __init__(self, timeout: float = 2.0) -> None:
        self._timeout = timeout

    def find_window(self, pid: int) -> str | None:
        """Return the first visible window of a process, or None."""
        args = ["xdotool", "search", "--all", "--pid", str(pid), "--onlyvisible", "--limit", "1"]
        try:
            stdout = run_command(args, self._timeout)
        except ProbeError as exc:
            # xdotool exits 1 when no window matches
            if exc.returncode == 1:
                log.debug("No visible window for pid %s", pid)
            else:
                log.warning("Window search failed for pid %s: %s", pid, exc)
            return None
        for line in stdout.splitlines():
            if line.strip():
                return line.strip()
        return None

    def window_state(self, window_id: str) -> str | None:
        """Return the WM_STATE of a window, e.g. 'normal' or 'iconic'."""
        try:
            stdout = run_command(["xprop", "WM_STATE", "-id", window_id], self._timeout)
        except ProbeError as exc:
            log.warning("Could not read state of window %s: %s", window_id, exc)
            return None
        state = None
        for line in stdout.splitlines():
            found = WINDOW_STATE_REGEXP.search(line.strip())
            if found:
                state = found.group("state").lower()
        return state
