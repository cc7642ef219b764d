"""Snapshot assembly from the process listing and window queries."""

import logging

from rdwatch.classifier import LineClassifier, RoleMatch
from rdwatch.models import Role, RoleEntry, Session, Snapshot
from rdwatch.probes import ProbeError, ProcessLister, WindowResolver

log = logging.getLogger(__name__)


class SnapshotBuilder:
    """
    Builds one Snapshot per call.

    The process listing runs once per build; every classified line is then
    resolved to a window. A failed listing yields an empty snapshot so that
    the reconciler sees everything as stopped.
    """

    def __init__(
        self,
        lister: ProcessLister | None = None,
        resolver: WindowResolver | None = None,
        classifier: LineClassifier | None = None,
    ) -> None:
        self._lister = lister or ProcessLister()
        self._resolver = resolver or WindowResolver()
        self._classifier = classifier or LineClassifier(self._lister.executable)

    def build(self) -> Snapshot:
        """Collect a snapshot of the current RustDesk processes."""
        try:
            lines = self._lister.list_lines()
        except (ProbeError, OSError) as exc:
            log.error("Process listing failed: %s", exc)
            return Snapshot.empty()

        service: RoleEntry | None = None
        main: RoleEntry | None = None
        connection_manager: RoleEntry | None = None
        sessions: dict[str, Session] = {}

        for line in lines:
            for match in self._classifier.classify(line):
                if match.role is Role.SERVICE:
                    service = RoleEntry(pid=match.pid)
                elif match.role is Role.MAIN:
                    main = self._resolve(match)
                elif match.role is Role.CONNECTION_MANAGER:
                    connection_manager = self._resolve(match)
                elif match.session_id is not None:
                    session = sessions.get(match.session_id) or Session(session_id=match.session_id)
                    sessions[match.session_id] = session.with_role(match.role, self._resolve(match))

        return Snapshot(
            service=service,
            main=main,
            connection_manager=connection_manager,
            sessions=sessions,
        )

    def _resolve(self, match: RoleMatch) -> RoleEntry:
        """Attach window and window state to a matched process."""
        window_id = self._resolver.find_window(match.pid)
        state = self._resolver.window_state(window_id) if window_id else None
        return RoleEntry(pid=match.pid, window_id=window_id, state=state)
