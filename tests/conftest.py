"""
krabctl Test Configuration
--------------------------
Shared fixtures and configuration for all tests.

No test may start the real cargo: the delegated tool is blocked and
tests either record subprocess calls or spawn sys.executable.
"""

import logging
import subprocess
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from commands.registry import CommandDefinition


# =============================================================================
# Test Isolation: Block Side Effects
# =============================================================================

@pytest.fixture(autouse=True)
def block_cargo(monkeypatch):
    """
    Block subprocess.run() calls that would start cargo.

    Other subprocess calls (sys.executable children) go through.
    """
    _original_run = subprocess.run

    def _guarded_run(args, *a, **kwargs):
        if isinstance(args, (list, tuple)) and args and Path(str(args[0])).name == "cargo":
            raise RuntimeError(
                "Running cargo is forbidden during tests. "
                "Use the fake_run fixture or a sys.executable child."
            )
        return _original_run(args, *a, **kwargs)

    monkeypatch.setattr(subprocess, "run", _guarded_run)


@pytest.fixture(autouse=True)
def reset_logging():
    """Leave the krabctl logger as a plain propagating logger after each test."""
    yield
    logger = logging.getLogger("krabctl")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)

    import infra.logging as krab_logging
    krab_logging._logging_initialized = False
    krab_logging._log_file_path = None


class FakeRun:
    """Records subprocess.run calls instead of spawning anything."""

    def __init__(self):
        self.calls = []
        self.returncode = 0
        self.raises = None

    def __call__(self, args, *a, **kwargs):
        self.calls.append({
            "argv": list(args),
            "env": dict(kwargs.get("env") or {}),
            "cwd": kwargs.get("cwd"),
            "shell": kwargs.get("shell", False),
        })
        if self.raises is not None:
            raise self.raises
        return subprocess.CompletedProcess(args, self.returncode)

    @property
    def last(self):
        return self.calls[-1]


@pytest.fixture
def fake_run(monkeypatch):
    """Replace subprocess.run with a recorder; set .returncode or .raises."""
    recorder = FakeRun()
    monkeypatch.setattr(subprocess, "run", recorder)
    return recorder


@pytest.fixture(scope="session")
def project_root():
    """Return the project root path."""
    return PROJECT_ROOT


@pytest.fixture
def temp_command(tmp_path):
    """A test-run style command whose storage lives under tmp_path."""
    storage = tmp_path / "nested" / "krab"
    return CommandDefinition(
        id="test",
        name="test-run",
        tool="cargo",
        args=["test"],
        env={"KRAB_TEMP_DIR": str(storage)},
        ensure_dirs=[str(storage)],
    )


@pytest.fixture
def python_command():
    """
    Build a command that runs a Python snippet as the delegated tool.

    The snippet sees the child environment, so tests can observe it.
    """
    def _make(code, env=None, ensure_dirs=None, command_id="snippet"):
        return CommandDefinition(
            id=command_id,
            name=f"{command_id}-run",
            tool=sys.executable,
            args=["-c", code],
            env=dict(env or {}),
            ensure_dirs=list(ensure_dirs or []),
        )
    return _make


@pytest.fixture
def command_map_file(tmp_path):
    """Write a command table to a temporary YAML file and return its path."""
    def _write(text):
        path = tmp_path / "command_map.yaml"
        path.write_text(text, encoding="utf-8")
        return str(path)
    return _write
