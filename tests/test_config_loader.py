"""Tests for db_schema_sync.config_loader -- layered YAML config."""

import textwrap

import pytest
import yaml

from db_schema_sync.config_loader import (
    CONFIG_ENV_VAR,
    discover_config_files,
    ensure_config,
    interpolate_env_vars,
    load_hierarchical_config,
    load_yaml_file,
    merge_config,
)


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Empty CWD and HOME with no config env var."""
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.chdir(tmp_path)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return tmp_path


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text))
    return path


# -------------------------------------------------------------------------
# Env var interpolation
# -------------------------------------------------------------------------


class TestInterpolateEnvVars:
    def test_set_variable(self, monkeypatch):
        monkeypatch.setenv("SCHEMA_ROOT", "/srv/schema")
        assert interpolate_env_vars("${SCHEMA_ROOT}/dms") == "/srv/schema/dms"

    def test_default_when_unset_or_empty(self, monkeypatch):
        monkeypatch.delenv("SCHEMA_ROOT", raising=False)
        assert interpolate_env_vars("${SCHEMA_ROOT:-/tmp/x}") == "/tmp/x"
        monkeypatch.setenv("SCHEMA_ROOT", "")
        assert interpolate_env_vars("${SCHEMA_ROOT:-/tmp/x}") == "/tmp/x"

    def test_unset_without_default_is_empty(self, monkeypatch):
        monkeypatch.delenv("SCHEMA_ROOT", raising=False)
        assert interpolate_env_vars("a${SCHEMA_ROOT}b") == "ab"

    def test_unclosed_reference_left_alone(self):
        assert interpolate_env_vars("${NOPE") == "${NOPE"

    def test_expanded_while_loading(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GIT_EXE", "/opt/git")
        path = _write(
            tmp_path / "config.yml",
            """\
            repos:
              git:
                executable: ${GIT_EXE}
                timeouts: {status: 30}
            list: ["${GIT_EXE}", 1]
            """,
        )

        assert load_yaml_file(path) == {
            "repos": {
                "git": {"executable": "/opt/git", "timeouts": {"status": 30}}
            },
            "list": ["/opt/git", 1],
        }


# -------------------------------------------------------------------------
# !include
# -------------------------------------------------------------------------


class TestIncludeDirective:
    def test_relative_include(self, tmp_path):
        _write(tmp_path / "repos.yml", "git:\n  executable: /opt/git\n")
        main = _write(tmp_path / "config.yml", "repos: !include repos.yml\n")

        assert load_yaml_file(main) == {
            "repos": {"git": {"executable": "/opt/git"}}
        }

    def test_missing_include(self, tmp_path):
        main = _write(tmp_path / "config.yml", "repos: !include missing.yml\n")

        with pytest.raises(FileNotFoundError, match="missing.yml"):
            load_yaml_file(main)

    def test_circular_include(self, tmp_path):
        _write(tmp_path / "a.yml", "x: !include b.yml\n")
        _write(tmp_path / "b.yml", "y: !include a.yml\n")

        with pytest.raises(ValueError, match="Circular include"):
            load_yaml_file(tmp_path / "a.yml")


# -------------------------------------------------------------------------
# Discovery
# -------------------------------------------------------------------------


class TestDiscoverConfigFiles:
    def test_nothing_found(self, isolated):
        assert discover_config_files() == []

    def test_precedence_order(self, isolated, monkeypatch):
        env_file = _write(isolated / "custom.yml", "a: 1\n")
        project = _write(isolated / ".db_schema_sync" / "config.yml", "b: 1\n")
        global_file = _write(
            isolated / "home" / ".config" / "db_schema_sync" / "config.yml",
            "c: 1\n",
        )
        monkeypatch.setenv(CONFIG_ENV_VAR, str(env_file))

        assert discover_config_files() == [
            env_file.resolve(),
            project,
            global_file,
        ]

    def test_explicit_path_first(self, isolated):
        explicit = _write(isolated / "explicit.yml", "a: 1\n")
        project = _write(isolated / ".db_schema_sync" / "config.yaml", "b: 1\n")

        assert discover_config_files(explicit) == [explicit.resolve(), project]

    def test_missing_explicit_path_raises(self, isolated):
        with pytest.raises(FileNotFoundError):
            discover_config_files(isolated / "nope.yml")


# -------------------------------------------------------------------------
# Merge
# -------------------------------------------------------------------------


class TestMergeConfig:
    """Section-by-section merge of one file over the layers below it."""

    def test_flat_sections_merge_per_key(self, tmp_path):
        base = {"sync": {"destination": "/global", "git": True}}

        merge_config(base, {"sync": {"destination": "/project"}}, tmp_path)

        assert base == {"sync": {"destination": "/project", "git": True}}

    def test_repo_tools_merge_per_kind_and_key(self, tmp_path):
        base = {
            "repos": {
                "git": {"executable": "/usr/bin/git", "install_hint": "x"},
                "svn": {"executable": "svn"},
            }
        }

        merge_config(
            base, {"repos": {"git": {"executable": "/opt/git"}}}, tmp_path
        )

        assert base["repos"] == {
            "git": {"executable": "/opt/git", "install_hint": "x"},
            "svn": {"executable": "svn"},
        }

    def test_unknown_section_ignored(self, tmp_path, caplog):
        base = {}

        merge_config(base, {"trac": {"url": "x"}}, tmp_path)

        assert base == {}
        assert "unknown section 'trac'" in caplog.text

    def test_empty_section_is_allowed(self, tmp_path):
        base = {}
        merge_config(base, {"sync": None}, tmp_path)
        assert base == {"sync": {}}

    @pytest.mark.parametrize(
        "layer, where",
        [
            ({"sync": ["destination"]}, "'sync'"),
            ({"repos": {"git": "/opt/git"}}, "'repos.git'"),
        ],
    )
    def test_section_must_be_mapping(self, tmp_path, layer, where):
        with pytest.raises(ValueError, match=where):
            merge_config({}, layer, tmp_path)


class TestLoadHierarchicalConfig:
    def test_zero_config(self, isolated):
        assert load_hierarchical_config() == {}

    def test_project_overrides_global_per_key(self, isolated, monkeypatch):
        monkeypatch.setenv("SCHEMA_ROOT", "/srv/schema")
        _write(
            isolated / "home" / ".config" / "db_schema_sync" / "config.yml",
            """\
            sync:
              destination: /global
              git: true
            repos:
              git:
                executable: /usr/bin/git
                push_commands: [[push, origin]]
            logging:
              level: DEBUG
            """,
        )
        _write(
            isolated / ".db_schema_sync" / "config.yml",
            """\
            sync:
              destination: ${SCHEMA_ROOT}
            repos:
              git:
                executable: /opt/git
            """,
        )

        result = load_hierarchical_config()

        assert result["sync"] == {"destination": "/srv/schema", "git": True}
        assert result["repos"]["git"] == {
            "executable": "/opt/git",
            "push_commands": [["push", "origin"]],
        }
        assert result["logging"] == {"level": "DEBUG"}

    def test_explicit_file_wins(self, isolated):
        _write(isolated / ".db_schema_sync" / "config.yml", "sync: {commit: true}\n")
        explicit = _write(isolated / "run.yml", "sync: {commit: false}\n")

        assert load_hierarchical_config(explicit)["sync"] == {"commit": False}

    def test_empty_file(self, isolated):
        _write(isolated / ".db_schema_sync" / "config.yml", "# nothing\n")

        assert load_hierarchical_config() == {}

    def test_non_mapping_root_rejected(self, isolated):
        _write(isolated / ".db_schema_sync" / "config.yml", "- just\n- a list\n")

        with pytest.raises(ValueError, match="'root' must be a mapping"):
            load_hierarchical_config()

    def test_invalid_yaml_propagates(self, isolated):
        _write(isolated / ".db_schema_sync" / "config.yml", "sync: [unclosed\n")

        with pytest.raises(yaml.YAMLError):
            load_hierarchical_config()


# -------------------------------------------------------------------------
# Bootstrapping
# -------------------------------------------------------------------------


class TestEnsureConfig:
    def test_explicit_target(self, isolated):
        target = isolated / "elsewhere" / "config.yml"

        assert ensure_config(target) == target
        assert target.exists()

    def test_creates_starter_file(self, isolated):
        path = ensure_config()

        assert path == isolated / ".db_schema_sync" / "config.yml"
        text = path.read_text()
        assert "SCHEMA_SYNC_DIR" in text
        # Every section is commented out, so the file loads as empty.
        assert load_hierarchical_config() == {}

    def test_existing_file_untouched(self, isolated):
        existing = _write(isolated / ".db_schema_sync" / "config.yml", "a: 1\n")

        assert ensure_config() == existing
        assert existing.read_text() == "a: 1\n"
