"""rdwatch - Textual status UI for RustDesk."""

import argparse
import logging
from pathlib import Path
from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Static

from rdwatch.actions import RustDeskActions
from rdwatch.builder import SnapshotBuilder
from rdwatch.classifier import LineClassifier
from rdwatch.config import LOG_LEVELS, Settings, SettingsStore
from rdwatch.logging_ import setup_logging
from rdwatch.models import SESSION_ROLES, ObservedState, Role, RoleEntry, Session
from rdwatch.monitor import RustDeskObserver
from rdwatch.probes import ProcessLister, WindowResolver

log = logging.getLogger(__name__)

ICON_CLASSES = ("session-out", "session-in", "service-offline")


def format_session_id(session_id: str) -> str:
    """Group a peer ID in threes from the right, e.g. '123 456 789'."""
    head = len(session_id) % 3
    groups = [session_id[:head]] if head else []
    groups += [session_id[i : i + 3] for i in range(head, len(session_id), 3)]
    return " ".join(groups)


def icon_classes(state: ObservedState) -> list[str]:
    """Classes describing the indicator icon for a state."""
    classes = []
    if state.snapshot.live_sessions():
        classes.append("session-out")
    if state.connection_manager is not None:
        classes.append("session-in")
    if state.service is None:
        classes.append("service-offline")
    return classes


def format_role(entry: RoleEntry | None) -> str:
    """Short text for a role: window state, 'starting' or '-'."""
    if entry is None or not entry.is_running:
        return "-"
    if entry.window_id is None:
        return "starting"
    return entry.state or "open"


class StatusBar(Static):
    """Status line for the service, the main window and sessions."""

    DEFAULT_CSS = """
    StatusBar {
        height: auto;
        padding: 1;
        background: $surface;
    }

    StatusBar.service-offline {
        color: $text-muted;
    }

    StatusBar.session-out {
        border-left: thick $success;
    }

    StatusBar.session-in {
        border-right: thick $warning;
    }
    """

    def __init__(self, *args, settings: Settings | None = None, **kwargs) -> None:
        """Initialize StatusBar."""
        super().__init__("Waiting for RustDesk...", *args, **kwargs)
        self._settings = settings or Settings()
        self._state = ObservedState()

    @property
    def state(self) -> ObservedState:
        return self._state

    def update_state(self, state: ObservedState) -> None:
        """Render a new observed state."""
        self._state = state
        for name in ICON_CLASSES:
            self.set_class(name in icon_classes(state), name)
        running = state.main is not None or bool(state.snapshot.live_sessions())
        self.display = self._settings.show_icon == "always" or running
        self.update(self.status_text())

    def status_text(self) -> str:
        """Markup describing the current state."""
        state = self._state
        lines = []
        if state.main is not None:
            lines.append(f"RustDesk: [green]running[/green] ({format_role(state.main)})")
        else:
            lines.append("RustDesk: [dim]not running[/dim]")
        if self._settings.service:
            if state.service is not None:
                lines.append(f"Service: [green]online[/green] (pid {state.service.pid})")
            else:
                lines.append("Service: [red]offline[/red]")
        if self._settings.connection_manager and state.connection_manager is not None:
            lines.append(f"Connection manager: {format_role(state.connection_manager)}")
        if self._settings.sessions:
            lines.append(f"Sessions: {len(state.snapshot.live_sessions())}")
        return "\n".join(lines)


class SessionTable(Container):
    """Container for the outgoing session table."""

    DEFAULT_CSS = """
    SessionTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize SessionTable."""
        super().__init__(*args, **kwargs)
        self._current_ids: set[str] = set()

    @property
    def session_ids(self) -> set[str]:
        return set(self._current_ids)

    def compose(self) -> ComposeResult:
        """Compose the session table."""
        yield DataTable(id="session-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#session-table", DataTable)
        table.cursor_type = "row"

        table.add_column("Session", key="session", width=14)
        table.add_column("Connect", key=Role.CONNECT.value, width=10)
        table.add_column("Transfer File", key=Role.FILE_TRANSFER.value, width=14)
        table.add_column("TCP Tunneling", key=Role.PORT_FORWARD.value, width=14)

    def update_sessions(self, sessions: list[Session]) -> None:
        """
        Update the table with the live sessions.

        Existing rows are updated in place; rows of vanished sessions are removed.
        """
        table = self.query_one("#session-table", DataTable)
        new_ids = {session.session_id for session in sessions}

        for session_id in self._current_ids - new_ids:
            table.remove_row(session_id)

        for session in sorted(sessions, key=lambda s: s.session_id):
            if session.session_id in self._current_ids:
                for role, entry in session.roles():
                    table.update_cell(session.session_id, role.value, format_role(entry))
            else:
                table.add_row(
                    format_session_id(session.session_id),
                    *(format_role(entry) for _, entry in session.roles()),
                    key=session.session_id,
                )

        self._current_ids = new_ids

    def selected_session_id(self) -> str | None:
        """Session ID of the row under the cursor."""
        table = self.query_one("#session-table", DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return row_key.value


class RdwatchApp(App):
    """Main rdwatch application."""

    TITLE = "rdwatch"
    SUB_TITLE = "RustDesk status"

    CSS = """
    Screen {
        layout: vertical;
    }

    #status-bar {
        dock: top;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("a", "main", "RustDesk"),
        ("m", "connection_manager", "Connection Manager"),
        ("c", "session_role('connect')", "Connect"),
        ("f", "session_role('file_transfer')", "Transfer File"),
        ("p", "session_role('port_forward')", "TCP Tunneling"),
        ("x", "close_session", "Close session"),
        ("s", "toggle_service", "Start/Stop service"),
        ("r", "restart_service", "Restart service"),
        ("w", "close_all_sessions", "Close all sessions"),
        ("k", "quit_rustdesk", "Quit RustDesk"),
    ]

    def __init__(
        self,
        settings: Settings | None = None,
        builder: SnapshotBuilder | None = None,
        actions: RustDeskActions | None = None,
    ) -> None:
        """Initialize the RdwatchApp."""
        super().__init__()
        self._settings = settings or Settings()
        if builder is None:
            builder = SnapshotBuilder(
                lister=ProcessLister(self._settings.executable),
                resolver=WindowResolver(timeout=self._settings.command_timeout),
                classifier=LineClassifier(self._settings.executable),
            )
        self._actions = actions or RustDeskActions(self._settings.executable, self._settings.service_unit)
        self._update_queue: Queue[ObservedState] = Queue()
        self._observer = RustDeskObserver(self._update_queue, builder=builder, poll_rate=self._settings.poll_interval)
        self._state = ObservedState()
        self._drawn: ObservedState | None = None

    @property
    def state(self) -> ObservedState:
        return self._state

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield StatusBar(id="status-bar", settings=self._settings)
        table = SessionTable()
        table.display = self._settings.sessions
        yield table
        yield Footer()

    def on_mount(self) -> None:
        """Start the observer when the app is mounted."""
        self._observer.start()
        self.set_interval(0.5, self._check_for_updates)

    def on_unmount(self) -> None:
        self._observer.stop()

    def _check_for_updates(self) -> None:
        """
        Drain the queue and refresh the UI.

        Redraws when a drained cycle reported changes or when the latest state
        differs from the one on screen, e.g. a window was iconified.
        """
        latest = None
        changed = False
        while True:
            try:
                latest = self._update_queue.get_nowait()
            except Empty:
                break
            changed = changed or latest.pending_changes

        if latest is not None:
            self._state = latest
            if changed or latest != self._drawn:
                self._update_ui(latest)

    def _update_ui(self, state: ObservedState) -> None:
        """Update the widgets with the new state."""
        self.query_one("#status-bar", StatusBar).update_state(state)
        self.query_one(SessionTable).update_sessions(state.snapshot.live_sessions())
        self._drawn = state

    def _selected_session(self) -> Session | None:
        session_id = self.query_one(SessionTable).selected_session_id()
        if session_id is None:
            return None
        session = self._state.sessions.get(session_id)
        if session is None or session.deleted:
            return None
        return session

    def _activate_or(self, entry: RoleEntry | None, fallback) -> None:
        if entry is not None and entry.window_id is not None:
            self._actions.activate_window(entry.window_id)
        elif entry is not None:
            self.notify("Window not mapped yet")
        else:
            fallback()

    def action_main(self) -> None:
        """Raise the main window or start RustDesk."""
        self._activate_or(self._state.main, self._actions.start_app)

    def action_connection_manager(self) -> None:
        if not self._settings.connection_manager or self._state.connection_manager is None:
            return
        self._activate_or(self._state.connection_manager, self._actions.start_app)

    def action_session_role(self, role_name: str) -> None:
        """Raise a session role's window or open that role for the session."""
        session = self._selected_session()
        if session is None:
            self.notify("No session selected")
            return
        role = Role(role_name)
        if role not in SESSION_ROLES:
            return
        entry = session.role(role)
        self._activate_or(
            entry if entry.is_running else None,
            lambda: self._actions.start_session(role.action, session.session_id),
        )

    def action_close_session(self) -> None:
        session = self._selected_session()
        if session is not None:
            self._actions.close_session(session)

    def action_toggle_service(self) -> None:
        if not self._settings.service:
            return
        if self._state.service is not None:
            self._actions.stop_service()
        else:
            self._actions.start_service()

    def action_restart_service(self) -> None:
        if self._settings.service and self._state.service is not None:
            self._actions.restart_service()

    def action_close_all_sessions(self) -> None:
        """Close every live session, leaving the main window running."""
        self._actions.close_all_sessions(self._state)

    def action_quit_rustdesk(self) -> None:
        """Quit the RustDesk main window and all sessions."""
        self._actions.quit_all(self._state)

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._observer.stop()
        self.exit()


def main(argv: list[str] | None = None) -> None:
    """Entry point for rdwatch."""
    parser = argparse.ArgumentParser(prog="rdwatch", description="Watch RustDesk processes and sessions.")
    parser.add_argument("--config", type=Path, default=None, help="settings file (JSON)")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="override the configured log level",
    )
    args = parser.parse_args(argv)

    settings = SettingsStore(args.config).load()
    setup_logging(args.log_level or settings.log_level)
    log.info("Starting rdwatch for %s", settings.executable)

    app = RdwatchApp(settings=settings)
    app.run()


if __name__ == "__main__":
    main()
