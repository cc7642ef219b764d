"""Shared fakes for rdwatch tests."""

from rdwatch.builder import SnapshotBuilder


class FakeLister:
    """Process lister returning scripted lines, one list per call."""

    executable = "rustdesk"

    def __init__(self, *cycles: list[str]) -> None:
        self._cycles = list(cycles)
        self.calls = 0

    def list_lines(self) -> list[str]:
        self.calls += 1
        if not self._cycles:
            return []
        result = self._cycles[0] if len(self._cycles) == 1 else self._cycles.pop(0)
        if isinstance(result, Exception):
            raise result
        return list(result)


class FakeResolver:
    """Window resolver backed by dicts."""

    def __init__(self, windows: dict[int, str] | None = None, states: dict[str, str] | None = None) -> None:
        self.windows = windows or {}
        self.states = states or {}
        self.window_calls: list[int] = []
        self.state_calls: list[str] = []

    def find_window(self, pid: int) -> str | None:
        self.window_calls.append(pid)
        return self.windows.get(pid)

    def window_state(self, window_id: str) -> str | None:
        self.state_calls.append(window_id)
        return self.states.get(window_id)


def make_builder(*cycles, resolver: FakeResolver | None = None) -> SnapshotBuilder:
    return SnapshotBuilder(lister=FakeLister(*cycles), resolver=resolver or FakeResolver())

