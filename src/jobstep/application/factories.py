"""Factories for tool plugins and the collaborators of a job step."""

from typing import Dict, List, Optional, Type

from jobstep.application.plugins import (
    CommandPlugin,
    PeakDetectorPlugin,
    PeakExporterPlugin,
    ToolPlugin,
)
from jobstep.domain.exceptions import PluginNotAvailableError
from jobstep.domain.protocols import ITransfer
from jobstep.infrastructure.config.loader import ManagerConfig
from jobstep.infrastructure.results import (
    DirectoryTransfer,
    FailedResultsArchiver,
    ResultPackager,
    S3Transfer,
)
from jobstep.infrastructure.status import StatusFile
from jobstep.shared.logging import get_logger

logger = get_logger(__name__)


class PluginFactory:
    """
    Resolves tool names to plugin instances.

    Built-in plugins are registered on construction; hosts may register more.
    ``CallablePlugin`` needs a function, so hosts register it themselves and
    pass ``func`` to ``create``.
    Lookups are case-insensitive.
    """

    BUILTIN: List[Type[ToolPlugin]] = [
        PeakExporterPlugin,
        PeakDetectorPlugin,
        CommandPlugin,
    ]

    def __init__(self):
        self._logger = get_logger(__name__)
        self._registry: Dict[str, Type[ToolPlugin]] = {}
        for plugin_cls in self.BUILTIN:
            self.register(plugin_cls)

    def register(self, plugin_cls: Type[ToolPlugin], name: Optional[str] = None) -> None:
        key = (name or plugin_cls.name).lower()
        if not key:
            raise ValueError(f"Plugin {plugin_cls.__name__} has no name")
        self._registry[key] = plugin_cls

    def names(self) -> List[str]:
        return sorted(self._registry)

    def create(self, name: str, **kwargs) -> ToolPlugin:
        """
        Create the plugin registered under ``name``.

        Raises:
            PluginNotAvailableError: If the name is unknown or the plugin cannot run here
        """
        plugin_cls = self._registry.get(name.lower())
        if plugin_cls is None:
            raise PluginNotAvailableError(
                f"Unknown tool: {name} (available: {', '.join(self.names())})"
            )
        if not plugin_cls.is_available():
            raise PluginNotAvailableError(f"Tool {name} is not available in this environment")

        self._logger.debug(f"Using plugin {plugin_cls.__name__} for {name}")
        return plugin_cls(**kwargs)


def create_transfer(config: ManagerConfig) -> Optional[ITransfer]:
    """Transfer collaborator for the configured backend, or None when none is set up."""
    if config.transfer_backend == "s3":
        return S3Transfer(
            bucket=config.s3_bucket,
            endpoint=config.s3_endpoint,
            access_key=config.s3_key,
            secret_key=config.s3_secret,
            prefix=config.s3_prefix,
        )
    if config.transfer_dir is None:
        logger.warning("transfer_dir is not configured; results will stay in the working directory")
        return None
    return DirectoryTransfer(config.transfer_dir)


def create_packager(config: ManagerConfig) -> ResultPackager:
    archiver = FailedResultsArchiver(
        config.failed_results_dir,
        retain_days=config.failed_results_retain_days,
    )
    return ResultPackager(archiver, create_transfer(config))


def create_status_sink(config: ManagerConfig) -> Optional[StatusFile]:
    if config.status_file is None:
        return None
    return StatusFile(config.status_file)
