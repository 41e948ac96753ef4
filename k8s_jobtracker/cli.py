"""Command line interface for k8s_jobtracker."""

from __future__ import annotations

import functools
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import click

from k8s_jobtracker.config.evaluator import evaluate
from k8s_jobtracker.config.loader import (
    ConfigLoaderError,
    default_config,
    load_config_reference,
    load_job_template,
)
from k8s_jobtracker.jobtracker.errors import JobTrackerError
from k8s_jobtracker.jobtracker.protocol import JobTracker
from k8s_jobtracker.jobtracker.states import JobState
from k8s_jobtracker.k8s.control import JobAction
from k8s_jobtracker.utils.logging_config import configure_logging


@dataclass
class CliContext:
    config_ref: str | None
    config_dir: Path
    overrides: tuple[str, ...]
    session: str | None
    _tracker: JobTracker | None = None

    def tracker(self) -> JobTracker:
        if self._tracker is None:
            if self.config_ref:
                root = load_config_reference(self.config_ref, self.config_dir, self.overrides)
            else:
                root = default_config()
            self._tracker = evaluate(root).new_job_tracker(self.session)
        return self._tracker


def _reporting_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (JobTrackerError, ConfigLoaderError) as exc:
            raise click.ClickException(str(exc)) from exc

    return wrapper


@click.group()
@click.option("--config-ref", default=None, help="Config file or Hydra config name")
@click.option("--config-dir", type=click.Path(path_type=Path), default=Path("config"))
@click.option("--override", multiple=True, help="Hydra-style overrides")
@click.option("--session", default=None, help="Job session name (defaults to session_name from config)")
@click.option("--verbose", is_flag=True)
@click.option("--debug", is_flag=True)
@click.pass_context
def cli(
    ctx: click.Context,
    config_ref: str | None,
    config_dir: Path,
    override: tuple[str, ...],
    session: str | None,
    verbose: bool,
    debug: bool,
) -> None:
    """Submit and control DRMAA2 style jobs on Kubernetes."""
    configure_logging(verbose=verbose, debug=debug)
    ctx.obj = CliContext(config_ref=config_ref, config_dir=config_dir, overrides=override, session=session)


@cli.command()
@click.pass_obj
@_reporting_errors
def categories(obj: CliContext) -> None:
    """List the job categories offered by the backend."""
    for category in obj.tracker().list_job_categories():
        click.echo(category)


@cli.command(name="list")
@click.pass_obj
@_reporting_errors
def list_jobs(obj: CliContext) -> None:
    """List the jobs of the session."""
    for job_id in obj.tracker().list_jobs():
        click.echo(job_id)


@cli.command()
@click.argument("template", type=click.Path(path_type=Path))
@click.pass_obj
@_reporting_errors
def submit(obj: CliContext, template: Path) -> None:
    """Submit the job described by a YAML job template."""
    job_id = obj.tracker().add_job(load_job_template(template))
    click.echo(job_id)


@cli.command(name="submit-array")
@click.argument("template", type=click.Path(path_type=Path))
@click.option("--begin", type=int, default=1, show_default=True)
@click.option("--end", type=int, required=True)
@click.option("--step", type=int, default=1, show_default=True)
@click.option("--max-parallel", type=int, default=0, show_default=True)
@click.pass_obj
@_reporting_errors
def submit_array(obj: CliContext, template: Path, begin: int, end: int, step: int, max_parallel: int) -> None:
    """Submit one job per array index; prints the array job id."""
    array_job_id = obj.tracker().add_array_job(load_job_template(template), begin, end, step, max_parallel)
    click.echo(array_job_id)


@cli.command(name="array-jobs")
@click.argument("array_job_id")
@click.pass_obj
@_reporting_errors
def array_jobs(obj: CliContext, array_job_id: str) -> None:
    """List the job ids contained in an array job id."""
    for job_id in obj.tracker().list_array_jobs(array_job_id):
        click.echo(job_id)


@cli.command()
@click.argument("job_id")
@click.pass_obj
@_reporting_errors
def state(obj: CliContext, job_id: str) -> None:
    job_state, sub_state = obj.tracker().job_state(job_id)
    click.echo(f"{job_state.value} ({sub_state})" if sub_state else job_state.value)


@cli.command()
@click.argument("job_id")
@click.pass_obj
@_reporting_errors
def info(obj: CliContext, job_id: str) -> None:
    """Print job information as JSON."""
    click.echo(json.dumps(obj.tracker().job_info(job_id).to_dict(), indent=2))


@cli.command()
@click.argument("job_id")
@click.argument("action", type=click.Choice([action.value for action in JobAction], case_sensitive=False))
@click.pass_obj
@_reporting_errors
def control(obj: CliContext, job_id: str, action: str) -> None:
    """Suspend, resume, hold, release or terminate a job."""
    obj.tracker().job_control(job_id, action)
    click.echo(f"{action} {job_id}")


@cli.command()
@click.argument("job_id")
@click.option("--timeout", type=float, default=-1.0, show_default=True, help="Seconds; negative waits forever")
@click.option(
    "--state",
    "states",
    multiple=True,
    type=click.Choice([job_state.value for job_state in JobState], case_sensitive=False),
    help="Target state (repeatable); defaults to done and failed",
)
@click.pass_obj
@_reporting_errors
def wait(obj: CliContext, job_id: str, timeout: float, states: tuple[str, ...]) -> None:
    """Block until the job reaches one of the target states."""
    targets = [JobState.parse(value.lower()) for value in states] or [JobState.DONE, JobState.FAILED]
    tracker = obj.tracker()
    tracker.wait(job_id, timeout, *targets)
    job_state, _ = tracker.job_state(job_id)
    click.echo(job_state.value)


@cli.command()
@click.argument("job_id")
@click.pass_obj
@_reporting_errors
def delete(obj: CliContext, job_id: str) -> None:
    """Delete a job from the cluster."""
    obj.tracker().delete_job(job_id)
    click.echo(f"deleted {job_id}")


if __name__ == "__main__":
    cli()
