"""Configuration infrastructure."""

from jobstep.infrastructure.config.loader import ManagerConfig, ConfigLoader

__all__ = ["ManagerConfig", "ConfigLoader"]
