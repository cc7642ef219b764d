"""Fire-and-forget commands issued by the status UI."""

import logging
import signal
import subprocess

import psutil

from rdwatch.models import SESSION_ROLES, ObservedState, Session

log = logging.getLogger(__name__)

SESSION_ACTIONS = tuple(role.action for role in SESSION_ROLES)


class RustDeskActions:
    """
    Spawns RustDesk, systemctl and xdotool commands without waiting for them.

    None of these touch the observed state; the next poll picks up their effect.
    """

    def __init__(self, executable: str = "rustdesk", service_unit: str = "rustdesk") -> None:
        self._executable = executable
        self._service_unit = service_unit

    def _spawn(self, args: list[str]) -> None:
        try:
            subprocess.Popen(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as exc:
            log.error("Could not run %s: %s", " ".join(args), exc)

    def start_app(self) -> None:
        log.info("Starting RustDesk application")
        self._spawn([self._executable])

    def exit_app(self, pid: int) -> None:
        """Send SIGQUIT to a RustDesk process."""
        log.info("Quitting RustDesk process %s", pid)
        try:
            psutil.Process(pid).send_signal(signal.SIGQUIT)
        except psutil.NoSuchProcess:
            log.info("Process %s already exited", pid)
        except psutil.AccessDenied:
            log.error("Not allowed to signal process %s", pid)

    def start_service(self) -> None:
        log.info("Starting RustDesk service")
        self._spawn(["systemctl", "start", self._service_unit])

    def stop_service(self) -> None:
        log.info("Stopping RustDesk service")
        self._spawn(["systemctl", "stop", self._service_unit])

    def restart_service(self) -> None:
        log.info("Restarting RustDesk service")
        self._spawn(["systemctl", "restart", self._service_unit])

    def start_session(self, action: str, session_id: str) -> None:
        """
        Open a session to a peer.

        Args:
            action: One of 'connect', 'file-transfer', 'port-forward'.
            session_id: Numeric peer ID.
        """
        if action not in SESSION_ACTIONS:
            raise ValueError(f"Unknown session action: {action!r}")
        if not session_id.isdigit():
            raise ValueError(f"Invalid session ID: {session_id!r}")
        log.info('Starting "%s" RustDesk session to %s', action, session_id)
        self._spawn([self._executable, f"--{action}", session_id])

    def activate_window(self, window_id: str) -> None:
        log.info("Activating window %s", window_id)
        self._spawn(["xdotool", "windowactivate", window_id])

    def close_session(self, session: Session) -> None:
        """Quit every running process of a session."""
        for pid in session.pids:
            self.exit_app(pid)

    def close_all_sessions(self, state: ObservedState) -> None:
        """Quit every live session; the main window keeps running."""
        for session in state.snapshot.live_sessions():
            self.close_session(session)

    def quit_all(self, state: ObservedState) -> None:
        """Quit the main window and every live session."""
        if state.main is not None and state.main.pid is not None:
            self.exit_app(state.main.pid)
        self.close_all_sessions(state)
