"""Tool plugins."""

from jobstep.application.plugins.base import ToolPlugin, CONSOLE_OUTPUT_SUFFIX
from jobstep.application.plugins.in_process import CallablePlugin
from jobstep.application.plugins.command import CommandPlugin
from jobstep.application.plugins.peak_detector import PeakDetectorPlugin
from jobstep.application.plugins.peak_exporter import PeakExporterPlugin

__all__ = [
    "ToolPlugin",
    "CONSOLE_OUTPUT_SUFFIX",
    "CallablePlugin",
    "CommandPlugin",
    "PeakDetectorPlugin",
    "PeakExporterPlugin",
]
