"""
Layered YAML configuration for db_schema_sync.

Config files are looked up in a fixed set of places and merged section by
section: a project file can override ``sync.destination`` or a single
``repos.git.executable`` without repeating the rest of a global file.

File features:
    * ``${VAR}`` / ``${VAR:-default}`` in any string value
    * ``repos: !include repos.yml`` to share the client table between projects

Usage:
    from db_schema_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config(args.config)
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "DB_SCHEMA_SYNC_CONFIG"
PROJECT_CONFIG_DIR = ".db_schema_sync"

# Sections merged key by key; "repos" is merged one level deeper, per kind.
FLAT_SECTIONS = ("sync", "logging")
REPOS_SECTION = "repos"
KNOWN_SECTIONS = FLAT_SECTIONS + (REPOS_SECTION,)

_ENV_REFERENCE = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in *value*.

    An unset or empty variable falls back to its default, or to ``""``.
    A ``${`` with no closing brace is kept as written.
    """

    def _expand(match: re.Match) -> str:
        return os.environ.get(match.group(1)) or match.group(2) or ""

    return _ENV_REFERENCE.sub(_expand, value)


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader with env var expansion and ``!include``.

    ``include_chain`` holds the files being loaded, outermost first.
    """

    include_chain: tuple[Path, ...] = ()


def _construct_str(loader: ConfigLoader, node: yaml.ScalarNode) -> str:
    return interpolate_env_vars(loader.construct_scalar(node))


def _construct_include(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    target = Path(os.path.expanduser(loader.construct_scalar(node)))
    current = loader.include_chain[-1]
    if not target.is_absolute():
        target = current.parent / target
    target = target.resolve()

    if target in loader.include_chain:
        chain = " -> ".join(str(p) for p in loader.include_chain + (target,))
        raise ValueError(f"Circular include detected: {chain}")
    if not target.is_file():
        raise FileNotFoundError(
            f"Include file not found: {target} (referenced from {current})"
        )
    return load_yaml_file(target, loader.include_chain)


ConfigLoader.add_constructor("tag:yaml.org,2002:str", _construct_str)
ConfigLoader.add_constructor("!include", _construct_include)


def load_yaml_file(path: Path, include_chain: tuple[Path, ...] = ()) -> Any:
    """Parse one YAML file, following its ``!include`` directives."""
    path = Path(path).resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader.include_chain = include_chain + (path,)
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def project_config_path() -> Path:
    return Path.cwd() / PROJECT_CONFIG_DIR / "config.yml"


def discover_config_files(explicit: Path | str | None = None) -> list[Path]:
    """Return existing config files, highest precedence first.

    Looks at *explicit* (``--config``), then ``$DB_SCHEMA_SYNC_CONFIG``,
    then ``./.db_schema_sync/config.yml`` (or ``.yaml``), then
    ``~/.config/db_schema_sync/config.yml``.

    Raises:
        FileNotFoundError: *explicit* was given but does not exist.
    """
    found: list[Path] = []

    if explicit:
        explicit_path = Path(explicit).expanduser().resolve()
        if not explicit_path.is_file():
            raise FileNotFoundError(f"Config file not found: {explicit_path}")
        found.append(explicit_path)

    from_env = os.environ.get(CONFIG_ENV_VAR)
    project = project_config_path()
    for candidate in (
        Path(from_env).expanduser().resolve() if from_env else None,
        project,
        project.with_suffix(".yaml"),
        Path.home() / ".config" / "db_schema_sync" / "config.yml",
    ):
        if candidate is not None and candidate.is_file():
            found.append(candidate)

    return found


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def _checked_mapping(value: Any, where: str, path: Path) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(
            f"{path}: '{where}' must be a mapping, got {type(value).__name__}"
        )
    return value


def merge_config(
    base: dict[str, Any], layer: dict[str, Any], path: Path
) -> None:
    """Merge one file's sections (*layer*) over *base* in place."""
    for section, value in layer.items():
        if section not in KNOWN_SECTIONS:
            logger.warning("%s: ignoring unknown section '%s'", path, section)
            continue

        values = _checked_mapping(value, section, path)
        merged = base.setdefault(section, {})
        if section == REPOS_SECTION:
            for kind, overrides in values.items():
                tool = _checked_mapping(overrides, f"repos.{kind}", path)
                merged.setdefault(kind, {}).update(tool)
        else:
            merged.update(values)


def load_hierarchical_config(
    explicit: Path | str | None = None,
) -> dict[str, Any]:
    """Load every discovered config file and merge them.

    Lower-precedence files are applied first, so for each ``sync`` or
    ``logging`` key and each ``repos.<kind>`` key the highest-precedence
    file that sets it wins.

    Args:
        explicit: Extra file (``--config``) with the highest precedence.

    Returns:
        The merged raw sections, ``{}`` when no file exists.

    Raises:
        FileNotFoundError: *explicit* or an included file is missing.
        ValueError: A section is not a mapping, or includes are circular.
        yaml.YAMLError: A file is not valid YAML.
    """
    merged: dict[str, Any] = {}
    for path in reversed(discover_config_files(explicit)):
        logger.debug("Loading config: %s", path)
        data = load_yaml_file(path)
        if data is None:
            continue
        merge_config(merged, _checked_mapping(data, "root", path), path)
    return merged


# ---------------------------------------------------------------------------
# Starter file
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# db-schema-sync configuration
#
# Sync settings can also be set via environment variables:
#   SCHEMA_SYNC_DIR, SCHEMA_SYNC_COMMIT,
#   SCHEMA_SYNC_SVN, SCHEMA_SYNC_HG, SCHEMA_SYNC_GIT
#
# sync:
#   destination: ${SCHEMA_REPO_ROOT:-/srv/schema-repos}
#   create_directory_for_each_db: true
#   database_subdirectory_prefix: DBSchema__
#   commit: false
#   git: true
#   exclude_prefixes: [x_, t_tmp_, t_CandidateModsSeqWork_, t_CandidateSeqWork_]
#
# Client locations and commands (only the keys you set are overridden):
#
# repos:
#   git:
#     executable: /usr/local/bin/git
#     push_commands: [[push, origin]]
#   svn:
#     executable: svn
#
# logging:
#   level: INFO
#   file: null
"""


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a starter one if none exists.

    The starter file goes to *target*, or ``./.db_schema_sync/config.yml``.
    All of its sections are commented out.
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or project_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)
    return config_path
