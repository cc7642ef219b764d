"""Classification of process-listing lines into RustDesk roles."""

import re
from dataclasses import dataclass

from rdwatch.models import Role

# Lines look like `ps -f` output: "<user> <pid> ... <command>"
_PREFIX = r"^\w+ +(?P<pid>\d+).*"


@dataclass(slots=True, frozen=True)
class RoleMatch:
    """One pattern hit on a process line."""

    role: Role
    pid: int
    session_id: str | None = None


def build_role_patterns(executable: str = "rustdesk") -> list[tuple[Role, re.Pattern[str]]]:
    """
    Build the ordered (role, pattern) table for an executable name.

    Every pattern is anchored at the end of the line, so the bare main
    pattern does not match command lines carrying a flag.
    """
    exe = re.escape(executable)
    session_tail = r" (?P<session_id>\d+)$"
    return [
        (Role.SERVICE, re.compile(_PREFIX + exe + r" --service$")),
        (Role.MAIN, re.compile(_PREFIX + exe + r"$")),
        (Role.CONNECTION_MANAGER, re.compile(_PREFIX + exe + r" --cm$")),
        (Role.CONNECT, re.compile(_PREFIX + exe + r" --connect" + session_tail)),
        (Role.FILE_TRANSFER, re.compile(_PREFIX + exe + r" --file-transfer" + session_tail)),
        (Role.PORT_FORWARD, re.compile(_PREFIX + exe + r" --port-forward" + session_tail)),
    ]


class LineClassifier:
    """Applies every role pattern to every line."""

    def __init__(self, executable: str = "rustdesk") -> None:
        self._patterns = build_role_patterns(executable)

    @property
    def patterns(self) -> list[tuple[Role, re.Pattern[str]]]:
        return list(self._patterns)

    def classify(self, line: str) -> list[RoleMatch]:
        """Return all role matches for a line; an empty list if none."""
        line = line.rstrip()
        matches: list[RoleMatch] = []
        for role, pattern in self._patterns:
            found = pattern.match(line)
            if found is None:
                continue
            groups = found.groupdict()
            matches.append(
                RoleMatch(
                    role=role,
                    pid=int(groups["pid"]),
                    session_id=groups.get("session_id"),
                )
            )
        return matches
