"""Configuration loading and validation."""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from jobstep.domain.exceptions import ConfigurationError
from jobstep.shared.logging import get_logger
from jobstep.shared.remote_config import download_remote_config, deep_merge

logger = get_logger(__name__)

ENV_PREFIX = "JOBSTEP_"


@dataclass
class ManagerConfig:
    """Settings shared by every job step run on this manager."""

    # Directories
    work_dir: Path = Path("work")
    failed_results_dir: Path = Path("failed_results")
    transfer_dir: Optional[Path] = None
    status_file: Optional[Path] = None

    # Timing
    poll_interval_seconds: float = 15.0
    status_interval_seconds: float = 10.0
    max_runtime_seconds: int = 0

    # Diagnostics
    debug_level: int = 1
    failed_results_retain_days: int = 31

    # Transfer
    transfer_backend: str = "directory"  # 'directory', 's3'
    s3_bucket: Optional[str] = None
    s3_endpoint: Optional[str] = None
    s3_prefix: str = ""
    s3_key: Optional[str] = None
    s3_secret: Optional[str] = None

    # Tools
    tool_paths: Dict[str, str] = field(default_factory=dict)
    progress_band: Optional[Tuple[float, float]] = None

    config_url: Optional[str] = None

    def __post_init__(self):
        """Coerce loosely typed values and validate."""
        self.work_dir = Path(self.work_dir)
        self.failed_results_dir = Path(self.failed_results_dir)
        if self.transfer_dir is not None:
            self.transfer_dir = Path(self.transfer_dir)
        if self.status_file is not None:
            self.status_file = Path(self.status_file)
        self.tool_paths = {str(k).lower(): str(v) for k, v in (self.tool_paths or {}).items()}
        if self.progress_band is not None:
            try:
                self.progress_band = tuple(float(v) for v in self.progress_band)
            except (TypeError, ValueError):
                raise ConfigurationError(f"Invalid progress_band: {self.progress_band}")
        self._validate()

    def _validate(self):
        """Validate configuration values."""
        if self.poll_interval_seconds <= 0:
            raise ConfigurationError(
                f"poll_interval_seconds must be positive, got: {self.poll_interval_seconds}"
            )

        if self.status_interval_seconds < 0:
            raise ConfigurationError(
                f"status_interval_seconds must not be negative, got: {self.status_interval_seconds}"
            )

        if self.max_runtime_seconds < 0:
            raise ConfigurationError(
                f"max_runtime_seconds must not be negative, got: {self.max_runtime_seconds}"
            )

        if not 0 <= self.debug_level <= 5:
            raise ConfigurationError(f"debug_level must be between 0 and 5, got: {self.debug_level}")

        if self.failed_results_retain_days < 1:
            raise ConfigurationError(
                f"failed_results_retain_days must be at least 1, got: {self.failed_results_retain_days}"
            )

        if self.transfer_backend not in ("directory", "s3"):
            raise ConfigurationError(f"Invalid transfer_backend: {self.transfer_backend}")

        if self.transfer_backend == "s3" and not self.s3_bucket:
            raise ConfigurationError("s3_bucket is required when transfer_backend is 's3'")

        if self.progress_band is not None:
            if len(self.progress_band) != 2:
                raise ConfigurationError(f"progress_band needs two values, got: {self.progress_band}")
            start, end = self.progress_band
            if not 0 <= start <= end <= 100:
                raise ConfigurationError(f"Invalid progress_band: {self.progress_band}")

    def tool_path(self, tool_name: str) -> Optional[Path]:
        """Configured executable for a tool, or None."""
        value = self.tool_paths.get(tool_name.lower())
        return Path(value) if value else None


class ConfigLoader:
    """Loads manager configuration from YAML, remote settings and environment variables."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize config loader.

        Args:
            config_path: Optional path to YAML config file
        """
        self.config_path = config_path or Path("jobstep.yaml")
        self._logger = get_logger(__name__)

    def load(self, overrides: Optional[Dict[str, Any]] = None) -> ManagerConfig:
        """
        Load configuration.

        Precedence, lowest first: remote config (``config_url``), YAML file,
        environment variables, ``overrides``.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        config_dict: Dict[str, Any] = {}

        if self.config_path.exists():
            self._logger.info(f"Loading config from {self.config_path}")
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    yaml_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}")
            if not isinstance(yaml_config, dict):
                raise ConfigurationError(f"Config file must contain a mapping: {self.config_path}")
            config_dict.update(yaml_config)
        else:
            self._logger.warning(f"Config file not found: {self.config_path}")

        config_dict.update(self._load_from_env())

        if overrides:
            for k, v in overrides.items():
                if v is None:
                    continue
                config_dict[k] = v

        config_url = str(config_dict.get("config_url") or "").strip()
        if config_url:
            remote_config = download_remote_config(config_url, logger_instance=self._logger)
            if remote_config:
                config_dict = deep_merge(remote_config, config_dict)
            else:
                self._logger.warning("Continuing with local config only")

        valid_fields = {f.name for f in fields(ManagerConfig)}
        unknown = sorted(k for k in config_dict if k not in valid_fields)
        if unknown:
            self._logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")

        filtered_config = {k: v for k, v in config_dict.items() if k in valid_fields}

        try:
            return ManagerConfig(**filtered_config)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from JOBSTEP_* environment variables."""
        env_config: Dict[str, Any] = {}

        for name in ("work_dir", "failed_results_dir", "transfer_dir", "status_file"):
            if value := os.getenv(ENV_PREFIX + name.upper()):
                env_config[name] = Path(value)

        for name, cast in (
            ("poll_interval_seconds", float),
            ("status_interval_seconds", float),
            ("max_runtime_seconds", int),
            ("debug_level", int),
            ("failed_results_retain_days", int),
        ):
            if value := os.getenv(ENV_PREFIX + name.upper()):
                try:
                    env_config[name] = cast(value)
                except ValueError:
                    self._logger.warning(f"Invalid {ENV_PREFIX}{name.upper()} value: {value}")

        if backend := os.getenv(ENV_PREFIX + "TRANSFER_BACKEND"):
            env_config["transfer_backend"] = backend.lower()

        for name in ("s3_bucket", "s3_endpoint", "s3_prefix", "s3_key", "s3_secret", "config_url"):
            if value := os.getenv(ENV_PREFIX + name.upper()):
                env_config[name] = value

        return env_config
