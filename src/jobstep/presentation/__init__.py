"""Presentation layer package."""

from jobstep.presentation.cli import main, build_executor

__all__ = ["main", "build_executor"]
