"""Plugin running the Decon peak detector on Thermo .raw files."""

from pathlib import Path
from typing import Optional, Sequence

from jobstep.domain.models import CloseoutCode, FileRules, JobStepContext, ProcessInvocation
from jobstep.infrastructure.parsing.console_parser import PEAK_CREATION_PATTERN

from .base import CONSOLE_OUTPUT_SUFFIX, ToolPlugin

RAW_EXTENSION = ".raw"
UIMF_EXTENSION = ".uimf"


class PeakDetectorPlugin(ToolPlugin):
    """
    Runs the peak detector::

        <dataset>.raw /P:<param file> /O:<work_dir>

    Progress lines read ``Peak creation progress: 42%``. The results file is
    ``<dataset>_peaks.txt``. A partially written ``<dataset>.uimf`` is deleted
    before a failed run is archived.
    """

    name = "peak_detector"
    program_name = "DeconPeakDetector"
    executable_name = "HammerOrDeconSimplePeakDetector.exe"
    progress_pattern = PEAK_CREATION_PATTERN

    def input_files(self, context: JobStepContext) -> Sequence[str]:
        return (context.job_step.dataset + RAW_EXTENSION,)

    def param_file(self, context: JobStepContext) -> Optional[str]:
        return context.job_step.get_param("PeakDetectorParamFile")

    def primary_output(self, context: JobStepContext) -> Optional[Path]:
        return context.work_dir / f"{context.job_step.dataset}_peaks.txt"

    def stage_resources(self, context: JobStepContext) -> CloseoutCode:
        if not self.param_file(context):
            self._logger.error("Job parameter PeakDetectorParamFile is not defined")
            return CloseoutCode.NO_PARAM_FILE
        return super().stage_resources(context)

    def build_invocation(self, context: JobStepContext) -> ProcessInvocation:
        param_file = self.param_file(context)
        return self.make_invocation(context, (
            context.job_step.dataset + RAW_EXTENSION,
            f"/P:{context.work_dir / param_file}",
            f"/O:{context.work_dir}",
        ))

    def file_rules(self, context: JobStepContext) -> FileRules:
        rules = FileRules()
        rules.add_skip_extension(RAW_EXTENSION)
        rules.add_skip_extension(CONSOLE_OUTPUT_SUFFIX)
        rules.add_delete_before_archive(context.job_step.dataset + UIMF_EXTENSION)
        return rules
