import sys
import textwrap
from pathlib import Path

import pytest

# Make the src layout importable without an editable install
SRC = Path(__file__).resolve().parent.parent / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from jobstep.domain.models import JobStep, JobStepContext  # noqa: E402
from jobstep.infrastructure.config.loader import ManagerConfig  # noqa: E402


@pytest.fixture
def work_dir(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def manager_config(tmp_path, work_dir):
    """Config with a fast poll cadence and local archive/transfer folders."""
    return ManagerConfig(
        work_dir=work_dir,
        failed_results_dir=tmp_path / "failed",
        transfer_dir=tmp_path / "transfer",
        status_file=tmp_path / "status" / "JobStatus.json",
        poll_interval_seconds=0.25,
        status_interval_seconds=0,
    )


@pytest.fixture
def make_context(work_dir, manager_config):
    def _make(tool_name="FakeTool", dataset="input", parameters=None, debug_level=1, config=manager_config):
        job_step = JobStep(
            job=1,
            step=1,
            tool_name=tool_name,
            work_dir=work_dir,
            debug_level=debug_level,
            dataset=dataset,
            parameters=parameters or {},
        )
        return JobStepContext.for_step(job_step, config=config)
    return _make


@pytest.fixture
def write_script(tmp_path):
    """Write a Python script outside the working directory and return its path."""
    scripts = tmp_path / "scripts"
    scripts.mkdir(exist_ok=True)

    def _write(name, body):
        path = scripts / name
        path.write_text(textwrap.dedent(body), encoding="utf-8")
        return path
    return _write
