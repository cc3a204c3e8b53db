"""CLI host running one job step per process."""
import sys
import argparse
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from jobstep.application.executor import JobStepExecutor
from jobstep.application.factories import PluginFactory, create_packager, create_status_sink
from jobstep.domain.exceptions import ConfigurationError, DomainException
from jobstep.domain.models import JobStep, JobStepContext
from jobstep.infrastructure.config import ConfigLoader, ManagerConfig
from jobstep.shared.logging import setup_logger, get_logger, level_for_debug


def parse_params(items: Optional[List[str]]) -> Dict[str, Any]:
    """Parse ``key=value`` pairs; values are read as YAML scalars or lists."""
    params: Dict[str, Any] = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ConfigurationError(f"Invalid --param (expected key=value): {item}")
        try:
            params[key.strip()] = yaml.safe_load(value) if value else ""
        except yaml.YAMLError:
            params[key.strip()] = value
    return params


def build_executor(args: argparse.Namespace, config: ManagerConfig,
                   factory: Optional[PluginFactory] = None) -> JobStepExecutor:
    """Create the executor for the job step described on the command line."""
    factory = factory or PluginFactory()
    debug_level = args.debug_level if args.debug_level is not None else config.debug_level

    job_step = JobStep(
        job=args.job,
        step=args.step,
        tool_name=args.tool,
        work_dir=Path(args.work_dir) if args.work_dir else config.work_dir,
        debug_level=debug_level,
        dataset=args.dataset or "",
        parameters=parse_params(args.param),
    )
    context = JobStepContext.for_step(job_step, config=config)
    plugin = factory.create(args.tool)

    return JobStepExecutor(
        plugin,
        context,
        packager=create_packager(config),
        status_sink=create_status_sink(config),
    )


def _run(args: argparse.Namespace) -> int:
    logger = get_logger(__name__)

    config = ConfigLoader(config_path=args.config).load()
    debug_level = args.debug_level if args.debug_level is not None else config.debug_level
    level = logging.DEBUG if args.verbose else level_for_debug(debug_level)
    setup_logger('jobstep', level=level, log_file=args.log_file)

    executor = build_executor(args, config)
    job_step = executor.context.job_step

    logger.info("=" * 60)
    logger.info(f"Tool: {job_step.tool_name}")
    logger.info(f"Job {job_step.job}, step {job_step.step}; dataset {job_step.dataset or '(none)'}")
    logger.info(f"Working directory: {job_step.work_dir}")
    logger.info("=" * 60)

    outcome = executor.run()

    if outcome.success_or_no_data:
        logger.info(f"Job step {outcome.kind.value}")
        if outcome.final_location:
            logger.info(f"Results: {outcome.final_location}")
        return 0

    logger.error(f"Job step failed: {outcome.reason}")
    if outcome.final_location:
        logger.error(f"Failed results archived to {outcome.final_location}")
    return 1


def _tools(args: argparse.Namespace) -> int:
    for name in PluginFactory().names():
        print(name)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jobstep", description="Run analysis tools as supervised job steps")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run one job step")
    run.add_argument('--config', type=Path, help='Config YAML file')
    run.add_argument('--job', type=int, required=True, help='Job number')
    run.add_argument('--step', type=int, default=1, help='Step number (default: 1)')
    run.add_argument('--tool', required=True, help='Tool plugin name (see "jobstep tools")')
    run.add_argument('--dataset', help='Dataset name')
    run.add_argument('--work-dir', type=Path, help='Working directory (default: work_dir from config)')
    run.add_argument('--param', action='append', metavar='KEY=VALUE', help='Job parameter (repeatable)')
    run.add_argument('--debug-level', type=int, choices=range(0, 6), help='Debug level 0-5')
    run.add_argument('--log-file', type=Path, help='Also write the log to this file')
    run.add_argument('--verbose', '-v', action='store_true', help='Verbose')
    run.set_defaults(handler=_run)

    tools = subparsers.add_parser("tools", help="List available tool plugins")
    tools.set_defaults(handler=_tools)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    logger = get_logger(__name__)

    try:
        return args.handler(args)
    except DomainException as e:
        logger.error(f"Job step error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    except Exception as e:
        logger.exception(f"Error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
