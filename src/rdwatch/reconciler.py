"""Reconciliation of successive snapshots into change-marked state."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace

from rdwatch.models import SESSION_ROLES, ObservedState, RoleChanges, RoleEntry, Session, Snapshot

log = logging.getLogger(__name__)


def _present(entry: RoleEntry | None) -> RoleEntry | None:
    """Normalize an entry without pid to None."""
    if entry is None or not entry.is_running:
        return None
    return entry


def role_changed(previous: RoleEntry | None, current: RoleEntry | None) -> bool:
    """Compare two singleton role entries by presence, pid and window."""
    previous, current = _present(previous), _present(current)
    if previous is None or current is None:
        return previous is not current
    return previous.pid != current.pid or previous.window_id != current.window_id


def session_windows_changed(previous: Session, current: Session) -> bool:
    """Compare the window of each session role."""
    return any(previous.role(role).window_id != current.role(role).window_id for role in SESSION_ROLES)


@dataclass(slots=True, frozen=True)
class SessionMerge:
    """Result of merging one cycle's sessions into the retained ones."""

    sessions: dict[str, Session]
    purged: tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.purged) or any(s.is_marked for s in self.sessions.values())


def reconcile_sessions(previous: Mapping[str, Session], incoming: Mapping[str, Session]) -> SessionMerge:
    """
    Merge incoming sessions into the previous ones with tombstones.

    Every previous session loses its added/changed markers and is marked
    deleted. One that was already deleted and is still missing is dropped.
    Incoming sessions clear the deleted marker of their previous entry and
    are marked changed if any role's window differs; unknown ones are
    marked added.
    """
    carried: dict[str, Session] = {}
    purged: list[str] = []
    for session_id, session in previous.items():
        if session.deleted and session_id not in incoming:
            purged.append(session_id)
            continue
        carried[session_id] = replace(session, added=False, changed=False, deleted=True)

    merged = dict(carried)
    for session_id, session in incoming.items():
        existing = carried.get(session_id)
        if existing is None:
            merged[session_id] = replace(session, added=True, changed=False, deleted=False)
            continue
        merged[session_id] = replace(
            session,
            added=False,
            changed=session_windows_changed(existing, session),
            deleted=False,
        )

    return SessionMerge(sessions=merged, purged=tuple(purged))


class Reconciler:
    """
    Owns the retained state and merges each new snapshot into it.

    Only one cycle at a time may call update().
    """

    def __init__(self, initial: ObservedState | None = None) -> None:
        self._state = initial or ObservedState()

    @property
    def state(self) -> ObservedState:
        """The state produced by the most recent update."""
        return self._state

    @property
    def pending_changes(self) -> bool:
        return self._state.pending_changes

    def update(self, snapshot: Snapshot) -> ObservedState:
        """Merge a snapshot and return the new observed state."""
        previous = self._state.snapshot
        role_changes = RoleChanges(
            service=role_changed(previous.service, snapshot.service),
            main=role_changed(previous.main, snapshot.main),
            connection_manager=role_changed(previous.connection_manager, snapshot.connection_manager),
        )
        merge = reconcile_sessions(previous.sessions, snapshot.sessions)

        merged = Snapshot(
            service=_present(snapshot.service),
            main=_present(snapshot.main),
            connection_manager=_present(snapshot.connection_manager),
            sessions=merge.sessions,
        )
        self._state = ObservedState(
            snapshot=merged,
            role_changes=role_changes,
            pending_changes=role_changes.any() or merge.changed,
        )

        if self._state.pending_changes:
            log.debug(
                "State changed: roles=%s sessions=%s purged=%s",
                role_changes,
                {sid: (s.added, s.changed, s.deleted) for sid, s in merge.sessions.items() if s.is_marked},
                merge.purged,
            )
        return self._state
