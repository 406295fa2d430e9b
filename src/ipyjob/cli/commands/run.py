"""Commands that execute jobs and inspect the kernel registry."""

import logging
from pathlib import Path

import click
from pydantic import ValidationError

from ipyjob.cli.commands.shared import LOG_LEVELS, setup_logging

logger = logging.getLogger(__name__)


def _load_config():
    from ipyjob.infrastructure.config import get_config

    try:
        return get_config(reload=True)
    except ValidationError as e:
        click.echo(f"Invalid configuration: {e}", err=True)
        raise SystemExit(2) from e


@click.command()
@click.option("--code", help="Code to execute.")
@click.option(
    "--file",
    "file_path",
    help="File to execute, relative to the workspace.",
)
@click.option(
    "--format",
    "source_format",
    help="Source format (text, ipynb, zeppelin-json, plain-file). "
    "Derived from the file extension if not given.",
)
@click.option("--task", required=True, help="Task label for output and artifacts.")
@click.option("--kernel", help="Kernel to execute on (default: the configured default).")
@click.option(
    "--workspace",
    type=click.Path(file_okay=False, path_type=Path),
    help="Workspace directory (default: configured workspace or current directory).",
)
@click.option(
    "--report",
    "report_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the execution report as JSON to this file.",
)
@click.option(
    "--artifact-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Save images and HTML output to this directory.",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Log level for the ipyjob log file.",
)
@click.option(
    "--console-logging",
    is_flag=True,
    help="Also write log messages to the console.",
)
def run(
    code,
    file_path,
    source_format,
    task,
    kernel,
    workspace,
    report_file,
    artifact_dir,
    log_level,
    console_logging,
):
    """Execute code or a notebook file on a Jupyter kernel.

    The job log is written to stdout. The exit code is 0 if every code unit
    ran without an error and 1 otherwise.

    Examples:

        ipyjob run --code 'print(1 + 1)' --task smoke
        ipyjob run --file notebooks/train.ipynb --task train --kernel python3
        ipyjob run --file note.json --task report --report report.json
    """
    from ipyjob.job.adapter import (
        FILE_PARSER,
        TEXT_PARSER,
        JobAdapter,
        JobSettings,
        JobStatus,
        write_report,
    )

    if (code is None) == (file_path is None):
        raise click.UsageError("Exactly one of --code and --file is required.")

    cfg = _load_config()
    setup_logging(
        log_level or cfg.logging.log_level,
        console_logging or cfg.logging.console_logging,
    )

    settings = JobSettings(
        code=code or "",
        file_path=file_path,
        parser_type=source_format or (TEXT_PARSER if code is not None else FILE_PARSER),
        task=task,
        kernel_name=kernel,
    )
    workspace = workspace or Path(cfg.paths.workspace_path or Path.cwd())
    artifact_dir = artifact_dir or (Path(cfg.paths.artifact_dir) if cfg.paths.artifact_dir else None)

    adapter = JobAdapter(cfg.registry(), artifact_dir=artifact_dir)
    report = adapter.perform(settings, workspace, sink=click.echo)

    report_file = report_file or (Path(cfg.paths.report_file) if cfg.paths.report_file else None)
    if report_file is not None:
        try:
            write_report(report, report_file)
        except OSError as e:
            click.echo(f"Error writing report to {report_file}: {e}", err=True)
            logger.error(f"Error writing report: {e}", exc_info=True)

    status = JobStatus.from_report(report)
    logger.info(f"{task}:Exiting with status {status}")
    raise SystemExit(0 if status == JobStatus.SUCCESS else 1)


@click.command()
def kernels():
    """List the kernels that jobs can run on."""
    from ipyjob.job.adapter import kernel_name_items

    registry = _load_config().registry()
    if not len(registry):
        click.echo("No kernels are registered.")
        return

    default = registry.find(None)
    click.echo(f"{'KERNEL':<20} {'SERVER':<20} {'LAUNCH TIMEOUT':>14} {'MAX RESULTS':>12}")
    for name in kernel_name_items(registry):
        server = registry.get(name)
        marker = " (default)" if server is default else ""
        click.echo(
            f"{server.kernel:<20} {server.server_name:<20} "
            f"{server.launch_timeout:>14g} {server.max_results:>12}{marker}"
        )
