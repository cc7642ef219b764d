"""Tests for the process line classifier."""

import pytest

from rdwatch.classifier import LineClassifier, RoleMatch, build_role_patterns
from rdwatch.models import Role


@pytest.fixture
def classifier() -> LineClassifier:
    return LineClassifier()


def test_patterns_are_ordered():
    """Test the pattern table covers every role in a fixed order."""
    roles = [role for role, _ in build_role_patterns()]

    assert roles == [
        Role.SERVICE,
        Role.MAIN,
        Role.CONNECTION_MANAGER,
        Role.CONNECT,
        Role.FILE_TRANSFER,
        Role.PORT_FORWARD,
    ]


def test_service_line(classifier):
    """Test a service invocation is classified as service."""
    assert classifier.classify("root 812 1 0 09:00 ? 00:00:03 /usr/bin/rustdesk --service") == [
        RoleMatch(role=Role.SERVICE, pid=812)
    ]


def test_main_line(classifier):
    """Test the bare invocation is classified as main."""
    assert classifier.classify("alice 1234 1 0 09:01 ? 00:00:10 rustdesk") == [RoleMatch(role=Role.MAIN, pid=1234)]


def test_connection_manager_line(classifier):
    """Test the --cm invocation is classified as connection manager."""
    assert classifier.classify("alice 99 1 0 09:01 ? 00:00:01 /usr/lib/rustdesk/rustdesk --cm") == [
        RoleMatch(role=Role.CONNECTION_MANAGER, pid=99)
    ]


@pytest.mark.parametrize(
    ("flag", "role"),
    [
        ("--connect", Role.CONNECT),
        ("--file-transfer", Role.FILE_TRANSFER),
        ("--port-forward", Role.PORT_FORWARD),
    ],
)
def test_session_lines(classifier, flag, role):
    """Test session invocations extract pid and session ID."""
    matches = classifier.classify(f"alice 2001 1 0 09:02 ? 00:00:00 rustdesk {flag} 123456789")

    assert matches == [RoleMatch(role=role, pid=2001, session_id="123456789")]


def test_connect_line_does_not_match_main(classifier):
    """Test a flag-bearing command line never counts as main."""
    matches = classifier.classify("user 123 rustdesk --connect 42")

    assert [m.role for m in matches] == [Role.CONNECT]
    assert matches[0].session_id == "42"


@pytest.mark.parametrize(
    "line",
    [
        "UID          PID    PPID  C STIME TTY          TIME CMD",
        "",
        "alice 77 1 0 09:00 ? 00:00:00 rustdesk --tray",
        "alice 78 1 0 09:00 ? 00:00:00 rustdesk --connect abc",
        "alice 79 1 0 09:00 ? 00:00:00 vim rustdesk.toml",
    ],
)
def test_unmatched_lines_are_ignored(classifier, line):
    """Test header, blank and unknown lines yield no match."""
    assert classifier.classify(line) == []


def test_trailing_newline_is_ignored(classifier):
    """Test trailing whitespace does not defeat the end anchor."""
    assert classifier.classify("alice 5 rustdesk --service\n") == [RoleMatch(role=Role.SERVICE, pid=5)]


def test_custom_executable():
    """Test patterns follow a configured executable name."""
    classifier = LineClassifier("rustdesk-nightly")

    assert classifier.classify("bob 3 rustdesk-nightly --cm")[0].role is Role.CONNECTION_MANAGER
    assert classifier.classify("bob 4 rustdesk --cm") == []
