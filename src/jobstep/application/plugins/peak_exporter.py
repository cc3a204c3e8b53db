"""Plugin exporting centroided peaks from Thermo .raw files to a tab-delimited file."""

from pathlib import Path
from typing import Optional, Sequence

from jobstep.domain.models import FileRules, JobStepContext, ProcessInvocation
from jobstep.infrastructure.parsing.console_parser import PERCENT_FINISHED_PATTERN

from .base import ToolPlugin

RAW_EXTENSION = ".raw"


class PeakExporterPlugin(ToolPlugin):
    """
    Runs ThermoPeakDataExporter::

        <dataset>.raw /O:<work_dir>/<dataset>.tsv /minSN:<MinimumSignalToNoiseRatio>

    Console output looks like ``31.2% finished: Processing scan 5600``.
    """

    name = "peak_exporter"
    program_name = "ThermoPeakDataExporter"
    executable_name = "ThermoPeakDataExporter.exe"
    progress_pattern = PERCENT_FINISHED_PATTERN

    def input_files(self, context: JobStepContext) -> Sequence[str]:
        return (context.job_step.dataset + RAW_EXTENSION,)

    def console_output_path(self, context: JobStepContext) -> Path:
        return context.work_dir / "ThermoDataExporter_ConsoleOutput.txt"

    def primary_output(self, context: JobStepContext) -> Optional[Path]:
        return context.work_dir / f"{context.job_step.dataset}.tsv"

    def build_invocation(self, context: JobStepContext) -> ProcessInvocation:
        dataset = context.job_step.dataset
        min_sn = context.job_step.get_param("MinimumSignalToNoiseRatio", 0)
        return self.make_invocation(context, (
            dataset + RAW_EXTENSION,
            f"/O:{self.primary_output(context)}",
            f"/minSN:{min_sn}",
        ))

    def file_rules(self, context: JobStepContext) -> FileRules:
        rules = FileRules()
        rules.add_skip_extension(RAW_EXTENSION)
        return rules
