"""
Command Registry Tests
----------------------
The packaged table, name resolution and table validation.
"""

import pytest

from commands.registry import (
    CommandDefinition,
    CommandRegistry,
    create_default_registry,
    DEFAULT_COMMAND_MAP,
)
from core.errors import CommandMapError, ErrorCategory, UnknownCommandError


@pytest.fixture
def registry():
    return create_default_registry()


class TestDefaultTable:
    """The three krab workflows."""

    def test_packaged_map_exists(self):
        """The command table ships with the package."""
        assert DEFAULT_COMMAND_MAP.is_file()

    def test_exactly_three_commands(self, registry):
        """The table holds the three workflows in order."""
        assert len(registry) == 3
        assert [c.name for c in registry.list_commands()] == [
            "development-run", "test-run", "release-build"
        ]

    def test_development_run(self, registry):
        """development-run: cargo run -p krab with KRAB_DIR=dev."""
        cmd = registry.resolve("development-run")

        assert cmd.argv == ["cargo", "run", "-p", "krab"]
        assert cmd.env == {"KRAB_DIR": "dev"}
        assert cmd.ensure_dirs == []

    def test_test_run(self, registry):
        """test-run: mkdir /tmp/krab, then cargo test with KRAB_TEMP_DIR."""
        cmd = registry.resolve("test-run")

        assert cmd.argv == ["cargo", "test"]
        assert cmd.env == {"KRAB_TEMP_DIR": "/tmp/krab"}
        assert cmd.ensure_dirs == ["/tmp/krab"]

    def test_release_build(self, registry):
        """release-build: cargo build --release with KRAB_DIR=release."""
        cmd = registry.resolve("release-build")

        assert cmd.argv == ["cargo", "build", "--release"]
        assert cmd.env == {"KRAB_DIR": "release"}
        assert cmd.ensure_dirs == []

    def test_dev_and_release_differ_on_selector(self, registry):
        """dev and release builds pick different KRAB_DIR values."""
        dev = registry.resolve("dev")
        build = registry.resolve("build")

        assert dev.env["KRAB_DIR"] != build.env["KRAB_DIR"]

    def test_test_run_does_not_set_krab_dir(self, registry):
        """test-run leaves KRAB_DIR alone."""
        assert "KRAB_DIR" not in registry.resolve("test").env

    def test_no_command_sets_more_than_one_variable(self, registry):
        """No packaged command sets more than one variable."""
        for cmd in registry.list_commands():
            assert len(cmd.env) <= 1


class TestResolve:
    """Name resolution."""

    @pytest.mark.parametrize("short, canonical", [
        ("dev", "development-run"),
        ("test", "test-run"),
        ("build", "release-build"),
    ])
    def test_short_and_canonical_names_agree(self, registry, short, canonical):
        """The Makefile target name and the canonical name resolve alike."""
        assert registry.resolve(short) is registry.resolve(canonical)

    def test_surrounding_whitespace_ignored(self, registry):
        """Leading and trailing whitespace is trimmed."""
        assert registry.resolve("  dev ").id == "dev"

    @pytest.mark.parametrize("name", ["deploy", "DEV", "", "run", "release"])
    def test_unknown_name_raises(self, registry, name):
        """Anything outside the table raises UnknownCommandError."""
        with pytest.raises(UnknownCommandError) as exc_info:
            registry.resolve(name)

        assert exc_info.value.category == ErrorCategory.UNKNOWN_COMMAND
        assert "release-build" in exc_info.value.details["known"]

    def test_none_is_unknown(self, registry):
        """None is treated as an unknown name."""
        with pytest.raises(UnknownCommandError):
            registry.resolve(None)

    def test_contains(self, registry):
        """Membership checks accept both name forms."""
        assert "dev" in registry
        assert "test-run" in registry
        assert "deploy" not in registry

    def test_get_by_short_name_only(self, registry):
        """get() looks up by short name only."""
        assert registry.get("dev").name == "development-run"
        assert registry.get("development-run") is None


class TestLoading:
    """Loading and validating command tables."""

    def test_load_custom_table(self, command_map_file):
        """A table from disk replaces the packaged commands."""
        path = command_map_file("""
commands:
  - id: lint
    name: lint-run
    tool: cargo
    args: [clippy]
""")
        registry = CommandRegistry(path)

        assert len(registry) == 1
        assert registry.resolve("lint").argv == ["cargo", "clippy"]
        assert registry.resolve("lint").env == {}

    def test_missing_file(self, tmp_path):
        """A missing table file raises CommandMapError."""
        with pytest.raises(CommandMapError, match="not found"):
            CommandRegistry(str(tmp_path / "absent.yaml"))

    def test_invalid_yaml(self, command_map_file):
        """Broken YAML raises CommandMapError."""
        path = command_map_file("commands: [unclosed")

        with pytest.raises(CommandMapError, match="Invalid YAML"):
            CommandRegistry(path)

    def test_missing_commands_list(self, command_map_file):
        """A table without a commands list is rejected."""
        path = command_map_file("tools: {}")

        with pytest.raises(CommandMapError, match="'commands' list"):
            CommandRegistry(path)

    def test_two_variables_rejected(self, command_map_file):
        """A command may set at most one variable."""
        path = command_map_file("""
commands:
  - id: dev
    name: development-run
    tool: cargo
    env:
      KRAB_DIR: dev
      KRAB_TEMP_DIR: /tmp/krab
""")
        with pytest.raises(CommandMapError, match="at most one variable"):
            CommandRegistry(path)

    def test_missing_tool_rejected(self, command_map_file):
        """An entry with no tool is rejected by position."""
        path = command_map_file("""
commands:
  - id: dev
    name: development-run
""")
        with pytest.raises(CommandMapError, match="Invalid command #0"):
            CommandRegistry(path)

    def test_blank_directory_rejected(self, command_map_file):
        """A blank directory entry is rejected."""
        path = command_map_file("""
commands:
  - id: test
    name: test-run
    tool: cargo
    ensure_dirs: ["  "]
""")
        with pytest.raises(CommandMapError):
            CommandRegistry(path)

    def test_duplicate_name_rejected(self, command_map_file):
        """Two commands may not share a name."""
        path = command_map_file("""
commands:
  - id: dev
    name: development-run
    tool: cargo
  - id: development-run
    name: other
    tool: cargo
""")
        with pytest.raises(CommandMapError, match="Duplicate"):
            CommandRegistry(path)

    def test_register_definition(self):
        """register() makes both names resolvable."""
        registry = CommandRegistry()
        registry.register(CommandDefinition(id="a", name="alpha", tool="true"))

        assert registry.resolve("alpha").id == "a"
        assert sorted(registry.names()) == ["a", "alpha"]
