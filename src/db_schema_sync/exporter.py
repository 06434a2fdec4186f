"""Boundary with the schema exporter and the export-then-sync workflow.

The exporter that scripts database objects to files is an external
collaborator, described here by the ``SchemaExporter`` protocol.
``SchemaExportTool`` configures it, records which directory each
database was written to, and hands those directories to the
``SyncOrchestrator`` when synchronization is enabled.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Mapping, Protocol

from pydantic import BaseModel, Field

from .errors import ConfigurationError, format_error
from .tables import auto_select_tables, load_table_names

if TYPE_CHECKING:
    from .config_schema import UnifiedConfig
    from .sync.engine import SyncOrchestrator
    from .sync.models import SyncReport

logger = logging.getLogger(__name__)


class ExportOptions(BaseModel):
    """Settings handed to the schema exporter for one export run."""

    output_directory: Path
    server_name: str
    use_integrated_authentication: bool = True
    username: str = ""
    password: str = ""
    directory_name_prefix: str = "DBSchema__"
    create_directory_for_each_db: bool = True
    auto_select_table_names: list[str] = Field(default_factory=list)
    auto_select_table_patterns: list[str] = Field(default_factory=list)
    preview: bool = False
    show_stats: bool = False

    model_config = {"frozen": True}


class SchemaExporter(Protocol):
    """Scripts database objects and data into per-database directories."""

    @property
    def schema_output_directories(self) -> Mapping[str, str | Path]:
        """Database name (exporter's capitalisation) to output directory."""
        ...

    def script_server_and_db_objects(
        self,
        options: ExportOptions,
        database_names: list[str],
        table_names_for_data: list[str],
    ) -> bool: ...


class ExportOutcome(BaseModel):
    """Result of an export run.

    Attributes:
        success: Whether the exporter reported success.
        output_directories: Database name to output directory; ``None``
            for requested databases the exporter did not write.
    """

    success: bool
    output_directories: dict[str, Path | None] = Field(default_factory=dict)

    model_config = {"frozen": True}


def build_output_directory_map(
    requested: Iterable[str],
    exported: Mapping[str, str | Path],
) -> dict[str, Path | None]:
    """Map every database to the directory it was exported to.

    Names reported by the exporter keep its capitalisation.  Requested
    databases it did not report (for example, ones missing on the server)
    map to ``None``; matching is case-insensitive.

    Returns:
        A new dict; neither argument is modified.
    """
    result: dict[str, Path | None] = {
        name: Path(directory) if directory else None
        for name, directory in exported.items()
    }
    known = {name.lower() for name in result}
    for name in requested:
        if name.lower() not in known:
            result[name] = None
            known.add(name.lower())
    return result


class SchemaExportTool:
    """Export database schemas and optionally synchronize them.

    Args:
        exporter: The schema exporter collaborator.
        config: Unified configuration (defaults to zero-config).
        orchestrator: Sync orchestrator; built from *config* when needed.
        table_data_file: Optional table-selection file.
        auto_select_table_data: Add the built-in lookup tables and patterns.
    """

    def __init__(
        self,
        exporter: SchemaExporter,
        config: UnifiedConfig | None = None,
        orchestrator: SyncOrchestrator | None = None,
        table_data_file: Path | str | None = None,
        auto_select_table_data: bool = True,
    ) -> None:
        if config is None:
            from .config_schema import UnifiedConfig

            config = UnifiedConfig()
        self.exporter = exporter
        self.config = config
        self._orchestrator = orchestrator
        self.table_data_file = table_data_file
        self.auto_select_table_data = auto_select_table_data
        self.last_sync_report: SyncReport | None = None

    @property
    def orchestrator(self) -> SyncOrchestrator:
        if self._orchestrator is None:
            from .sync.engine import SyncOrchestrator
            from .sync.planner import CommitPlanner
            from .sync.progress import ProgressReporter

            progress = ProgressReporter()
            self._orchestrator = SyncOrchestrator(
                self.config.sync,
                planner=CommitPlanner(
                    self.config.repos,
                    commit_enabled=self.config.sync.commit,
                    progress=progress,
                ),
                progress=progress,
            )
        return self._orchestrator

    def export_schema(
        self,
        output_directory: Path | str,
        server_name: str,
        database_names: list[str],
        use_integrated_authentication: bool = True,
        username: str = "",
        password: str = "",
    ) -> ExportOutcome:
        """Export *database_names* below *output_directory*.

        Each database goes to its own subdirectory when more than one is
        requested or the per-database policy is set.

        Returns:
            An ``ExportOutcome``; ``success`` is False on any error.
        """
        try:
            _require(output_directory, "Output directory cannot be empty")

            output_path = Path(output_directory)
            if not output_path.exists():
                logger.info("Creating %s", output_path)
                output_path.mkdir(parents=True, exist_ok=True)

            names, patterns = auto_select_tables(self.auto_select_table_data)
            sync = self.config.sync
            options = ExportOptions(
                output_directory=output_path,
                server_name=server_name,
                use_integrated_authentication=use_integrated_authentication,
                username=username,
                password=password,
                directory_name_prefix=sync.database_subdirectory_prefix,
                create_directory_for_each_db=(
                    sync.create_directory_for_each_db
                    or len(database_names) > 1
                ),
                auto_select_table_names=names,
                auto_select_table_patterns=patterns,
                show_stats=sync.show_stats,
            )
        except ConfigurationError as exc:
            logger.error(format_error("configuration", str(exc)))
            return ExportOutcome(success=False)
        except Exception:
            logger.exception("Error in export_schema configuring the options")
            return ExportOutcome(success=False)

        try:
            start = time.monotonic()
            table_names = load_table_names(self.table_data_file)

            success = self.exporter.script_server_and_db_objects(
                options, list(database_names), table_names
            )
            directories = build_output_directory_map(
                database_names, self.exporter.schema_output_directories
            )

            if options.show_stats:
                logger.info(
                    "Exported database schema in %.1f seconds",
                    time.monotonic() - start,
                )
            return ExportOutcome(
                success=bool(success), output_directories=directories
            )
        except Exception:
            logger.exception("Error in export_schema running the exporter")
            return ExportOutcome(success=False)

    def process_databases(
        self,
        output_directory: Path | str,
        server_name: str,
        database_names: Iterable[str],
    ) -> bool:
        """Export the databases, then synchronize them when sync is enabled.

        Returns:
            True on success.  An empty output directory, server name, or
            database list is a configuration error and returns False.
        """
        databases = list(database_names)
        try:
            _require(output_directory, "Output directory path must be defined")
            _require(server_name, "Server name must be defined")
            if not databases:
                raise ConfigurationError("Database list cannot be empty")
        except ConfigurationError as exc:
            logger.error(format_error("configuration", str(exc)))
            return False

        outcome = self.export_schema(output_directory, server_name, databases)
        if not outcome.success or not self.config.sync.enabled:
            return outcome.success

        destination = self.config.sync.destination
        if not destination:
            logger.error(
                format_error(
                    "configuration",
                    "Sync is enabled but no sync directory is configured",
                    "Set sync.destination or SCHEMA_SYNC_DIR",
                )
            )
            return False

        report = self.orchestrator.synchronize(
            outcome.output_directories, destination
        )
        self.last_sync_report = report
        return report.success


def _require(value: Path | str | None, message: str) -> None:
    if not value or not str(value).strip():
        raise ConfigurationError(message)
