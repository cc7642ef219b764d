"""Data models for rdwatch."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType


class Role(Enum):
    """Functional classification of a matched RustDesk process."""

    SERVICE = "service"
    MAIN = "main"
    CONNECTION_MANAGER = "connection_manager"
    CONNECT = "connect"
    FILE_TRANSFER = "file_transfer"
    PORT_FORWARD = "port_forward"

    @property
    def is_session(self) -> bool:
        """Whether the role belongs to a session."""
        return self in SESSION_ROLES

    @property
    def action(self) -> str:
        """Command-line action keyword of a session role."""
        return self.value.replace("_", "-")


SESSION_ROLES = (Role.CONNECT, Role.FILE_TRANSFER, Role.PORT_FORWARD)


@dataclass(slots=True, frozen=True)
class RoleEntry:
    """One role's process and window. An entry without pid means not running."""

    pid: int | None = None
    window_id: str | None = None
    state: str | None = None  # 'normal', 'iconic', 'withdrawn', ...

    @property
    def is_running(self) -> bool:
        """Check if the role has a process."""
        return self.pid is not None


@dataclass(slots=True, frozen=True)
class Session:
    """A remote session keyed by its peer ID, backed by up to three processes."""

    session_id: str
    connect: RoleEntry = field(default_factory=RoleEntry)
    file_transfer: RoleEntry = field(default_factory=RoleEntry)
    port_forward: RoleEntry = field(default_factory=RoleEntry)
    added: bool = False
    changed: bool = False
    deleted: bool = False

    def role(self, role: Role) -> RoleEntry:
        """Get the entry for one session role."""
        return getattr(self, role.value)

    def roles(self) -> Iterator[tuple[Role, RoleEntry]]:
        """Iterate over the three session roles in display order."""
        for role in SESSION_ROLES:
            yield role, self.role(role)

    def with_role(self, role: Role, entry: RoleEntry) -> "Session":
        """Return a copy with one role replaced."""
        if not role.is_session:
            raise ValueError(f"{role.name} is not a session role")
        return replace(self, **{role.value: entry})

    @property
    def pids(self) -> list[int]:
        """Pids of the running roles."""
        return [entry.pid for _, entry in self.roles() if entry.pid is not None]

    @property
    def is_marked(self) -> bool:
        """Whether the session carries any reconciliation marker."""
        return self.added or self.changed or self.deleted


@dataclass(slots=True, frozen=True)
class Snapshot:
    """One cycle's immutable view of all roles and sessions."""

    service: RoleEntry | None = None
    main: RoleEntry | None = None
    connection_manager: RoleEntry | None = None
    sessions: Mapping[str, Session] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Read-only view over a private copy
        if not isinstance(self.sessions, MappingProxyType):
            object.__setattr__(self, "sessions", MappingProxyType(dict(self.sessions)))

    @classmethod
    def empty(cls) -> "Snapshot":
        """Snapshot of nothing running."""
        return cls()

    def live_sessions(self) -> list[Session]:
        """Sessions not tombstoned."""
        return [s for s in self.sessions.values() if not s.deleted]


@dataclass(slots=True, frozen=True)
class RoleChanges:
    """Which singleton roles changed in the last cycle."""

    service: bool = False
    main: bool = False
    connection_manager: bool = False

    def any(self) -> bool:
        return self.service or self.main or self.connection_manager


@dataclass(slots=True, frozen=True)
class ObservedState:
    """Merged state after one reconciliation cycle, as read by the UI."""

    snapshot: Snapshot = field(default_factory=Snapshot.empty)
    role_changes: RoleChanges = field(default_factory=RoleChanges)
    pending_changes: bool = False

    @property
    def service(self) -> RoleEntry | None:
        return self.snapshot.service

    @property
    def main(self) -> RoleEntry | None:
        return self.snapshot.main

    @property
    def connection_manager(self) -> RoleEntry | None:
        return self.snapshot.connection_manager

    @property
    def sessions(self) -> Mapping[str, Session]:
        return self.snapshot.sessions
