"""Effective settings for a sync run.

Resolves sync settings from CLI args, environment variables and the YAML
config.  A .env file in the working directory only fills in variables that
are not already set in the environment.

Precedence (highest to lowest):
    CLI args > Environment variables (incl. .env) > YAML config > Built-in defaults

Environment variables:
    SCHEMA_SYNC_DIR: Root of the synchronized working trees
    SCHEMA_SYNC_COMMIT: Commit and push changes (default: false)
    SCHEMA_SYNC_SVN: Update SVN working trees (default: false)
    SCHEMA_SYNC_HG: Update Hg working trees (default: false)
    SCHEMA_SYNC_GIT: Update Git working trees (default: false)
"""

import logging
import os

from .config_schema import SyncConfig, UnifiedConfig
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off", "")


def get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset.

    Raises:
        ConfigurationError: The value is not a recognised boolean.
    """
    val = os.getenv(key)
    if val is None:
        return None
    normalized = val.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigurationError(
        f"Invalid {key} '{val}': expected one of true/false/1/0/yes/no/on/off"
    )


def _resolve_flag(cli_value: bool | None, env_key: str, yaml_value: bool) -> bool:
    if cli_value is not None:
        return cli_value
    env_value = get_bool_env(env_key)
    if env_value is not None:
        return env_value
    return yaml_value


def load_settings(
    destination: str | None = None,
    commit: bool | None = None,
    svn: bool | None = None,
    hg: bool | None = None,
    git: bool | None = None,
    create_directory_for_each_db: bool | None = None,
    show_stats: bool | None = None,
    unified: UnifiedConfig | None = None,
) -> UnifiedConfig:
    """Resolve the sync section with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > YAML config > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.
    ``None`` arguments mean "not given on the command line".

    Args:
        destination: Override sync directory.
        commit: Commit and push instead of a dry run.
        svn: Update SVN working trees.
        hg: Update Hg working trees.
        git: Update Git working trees.
        create_directory_for_each_db: Nest each database in a subdirectory.
        show_stats: Log elapsed time.
        unified: Config built from YAML files (zero-config when omitted).

    Returns:
        A new ``UnifiedConfig`` whose ``sync`` section holds the result.

    Raises:
        ConfigurationError: No sync directory could be found, or an env
            var holds an invalid value.
    """
    unified = unified or UnifiedConfig()
    base = unified.sync

    final_destination = (
        destination or os.getenv("SCHEMA_SYNC_DIR") or base.destination
    )
    if not final_destination or not final_destination.strip():
        raise ConfigurationError(
            "Sync directory not found. Set SCHEMA_SYNC_DIR environment "
            "variable, pass --sync-dir, or add 'sync.destination' to "
            "config.yml."
        )

    sync = SyncConfig(
        **{
            **base.model_dump(),
            "destination": final_destination.strip(),
            "enabled": True,
            "commit": _resolve_flag(commit, "SCHEMA_SYNC_COMMIT", base.commit),
            "svn": _resolve_flag(svn, "SCHEMA_SYNC_SVN", base.svn),
            "hg": _resolve_flag(hg, "SCHEMA_SYNC_HG", base.hg),
            "git": _resolve_flag(git, "SCHEMA_SYNC_GIT", base.git),
            "create_directory_for_each_db": (
                base.create_directory_for_each_db
                if create_directory_for_each_db is None
                else create_directory_for_each_db
            ),
            "show_stats": base.show_stats if show_stats is None else show_stats,
        }
    )

    if not sync.enabled_repos:
        logger.warning(
            "No version control system enabled; files will be copied only"
        )

    return unified.model_copy(update={"sync": sync})
