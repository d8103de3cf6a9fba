"""
EaaS CLI

Command-line interface for running evaluation jobs and inspecting their
results and event logs.

Usage:
    # Write a sample config, then run it
    python -m eaas sample-config --path job.yaml
    python -m eaas run --config job.yaml --output ./results

    # Check a config without running it
    python -m eaas validate --config job.yaml

    # Inspect past jobs
    python -m eaas list-jobs --output ./results
    python -m eaas logs --job-id <id> --output ./results
    python -m eaas verify --results ./results/results/<id>.json
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from config import DEBUG, LOG_DIR, LOG_LEVEL, RESULTS_DIR
from utils.exceptions import EaasError
from utils.logging_config import setup_logging

console = Console()

# Job-config logging levels -> stdlib names
_LEVELS = {
    "error": "ERROR",
    "warn": "WARNING",
    "info": "INFO",
    "debug": "DEBUG",
    "trace": "DEBUG",
}


async def cmd_run(args: argparse.Namespace) -> int:
    """Run an evaluation job from a config file."""
    from .evaluation import EvalConfig
    from .evaluation.runner import EvaluationRunner
    from .reporting import ResultExporter, print_summary
    from .storage import FileSystemStorage

    config = EvalConfig.load(Path(args.config))
    if args.log_level is None:
        logging.getLogger("eaas").setLevel(_LEVELS.get(config.settings.logging_level, "INFO"))

    output_dir = Path(args.output)
    storage = FileSystemStorage(output_dir)

    console.print(f"[cyan]Evaluation: {config.job_name}[/cyan]")
    console.print(
        f"[dim]{len(config.prompts)} prompts x {len(config.models)} models, "
        f"{len(config.metrics)} metrics, {config.settings.parallel_requests} in parallel[/dim]"
    )

    runner = EvaluationRunner(config, storage)
    results = await runner.run()

    print_summary(results, output_dir=output_dir, console=console)

    output_format = args.format or config.settings.output_format
    report_path = ResultExporter(output_format).export(results, output_dir / "reports")
    console.print(f"[green]Report saved:[/green] {report_path}")
    return 0


async def cmd_validate(args: argparse.Namespace) -> int:
    """Load and validate a config file without running it."""
    from .evaluation import EvalConfig
    from .providers import ProviderRegistry

    config = EvalConfig.load(Path(args.config))
    registry = ProviderRegistry.default(timeout=float(config.settings.timeout_seconds))
    try:
        for model in config.models.values():
            registry.validate_model_config(model)
    finally:
        await registry.aclose()

    console.print(f"[green]Config is valid:[/green] {config.job_name}")
    console.print(f"  Prompts: {len(config.prompts)}")
    console.print(f"  Models:  {', '.join(config.models)}")
    console.print(f"  Metrics: {', '.join(config.metrics)}")
    return 0


async def cmd_list_metrics(args: argparse.Namespace) -> int:
    """List built-in metrics."""
    from .metrics import MetricRegistry

    registry = MetricRegistry.default()
    table = Table(title="Metrics")
    table.add_column("Name", style="cyan")
    table.add_column("Direction")
    for name in registry.list_metrics():
        metric = registry.get(name)
        table.add_row(name, "higher is better" if metric.higher_is_better else "lower is better")
    console.print(table)
    return 0


async def cmd_list_providers(args: argparse.Namespace) -> int:
    """List providers and whether their API keys are configured."""
    from .providers import ProviderRegistry

    registry = ProviderRegistry.default()
    try:
        table = Table(title="Providers")
        table.add_column("Provider", style="cyan")
        table.add_column("API key")
        table.add_column("Known models", justify="right")
        for name in registry.list_providers():
            provider = registry.get(name)
            if not provider.requires_api_key:
                key_status = "[dim]not required[/dim]"
            elif provider.api_key_env and os.getenv(provider.api_key_env):
                key_status = f"[green]{provider.api_key_env} set[/green]"
            else:
                key_status = f"[red]{provider.api_key_env} missing[/red]"
            table.add_row(name, key_status, str(len(provider.cost_per_1k)) if provider.cost_per_1k else "-")
        console.print(table)
    finally:
        await registry.aclose()
    return 0


async def cmd_list_jobs(args: argparse.Namespace) -> int:
    """List stored jobs, newest first."""
    from .storage import FileSystemStorage

    jobs = FileSystemStorage(Path(args.output)).list_jobs()
    if not jobs:
        console.print("[yellow]No jobs found[/yellow]")
        return 0

    table = Table(title="Evaluation Jobs")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Created")
    table.add_column("Models", justify="right")
    table.add_column("Prompts", justify="right")
    table.add_column("Metrics", justify="right")
    for job in jobs:
        table.add_row(
            job.id,
            job.name,
            job.status,
            job.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            str(job.model_count),
            str(job.prompt_count),
            str(job.metric_count),
        )
    console.print(table)
    return 0


async def cmd_verify(args: argparse.Namespace) -> int:
    """Recompute the verification hash of a stored result file."""
    from .evaluation import EvaluationResults, verify_results

    path = Path(args.results)
    try:
        with open(path, encoding="utf-8") as f:
            results = EvaluationResults.from_dict(json.load(f))
    except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        console.print(f"[red]Error: could not read results from {path}: {e}[/red]")
        return 1

    if not results.verification_hash:
        console.print(f"[yellow]Job {results.job_id} has no verification hash[/yellow]")
        return 1
    if verify_results(results):
        console.print(f"[green]Verified:[/green] job {results.job_id} is intact")
        return 0
    console.print(f"[red]Verification FAILED:[/red] job {results.job_id} has been modified")
    return 1


async def cmd_logs(args: argparse.Namespace) -> int:
    """Replay a job's event log."""
    from .storage import FileSystemStorage

    entries = FileSystemStorage(Path(args.output)).event_log(args.job_id).read()
    if not entries:
        console.print(f"[yellow]No events for job {args.job_id}[/yellow]")
        return 0

    table = Table(title=f"Events: {args.job_id}")
    table.add_column("Timestamp")
    table.add_column("Event", style="cyan")
    table.add_column("Details")
    for entry in entries:
        payload = entry.event.to_dict()
        payload.pop("type", None)
        table.add_row(
            entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            entry.event.type,
            json.dumps(payload, default=str),
        )
    console.print(table)
    return 0


async def cmd_sample_config(args: argparse.Namespace) -> int:
    """Write a sample job config."""
    from .evaluation import EvalConfig

    path = Path(args.path)
    EvalConfig.sample().save(path)
    console.print(f"[green]Sample config written to {path}[/green]")
    return 0


COMMANDS = {
    "run": cmd_run,
    "validate": cmd_validate,
    "list-metrics": cmd_list_metrics,
    "list-providers": cmd_list_providers,
    "list-jobs": cmd_list_jobs,
    "verify": cmd_verify,
    "logs": cmd_logs,
    "sample-config": cmd_sample_config,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="eaas",
        description="Batch LLM evaluation jobs",
    )
    parser.add_argument("--log-level", default=None, help=f"Log level (default: job config, else {LOG_LEVEL})")
    parser.add_argument("--verbose", "-v", action="store_true", help="Also log to stderr")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run
    run_parser = subparsers.add_parser("run", help="Run an evaluation job")
    run_parser.add_argument("--config", "-c", required=True, help="Path to job config (YAML or JSON)")
    run_parser.add_argument("--output", "-o", default=str(RESULTS_DIR), help="Results directory")
    run_parser.add_argument(
        "--format", "-f", choices=["json", "yaml", "csv", "html"], help="Report format override"
    )

    # validate
    validate_parser = subparsers.add_parser("validate", help="Validate a job config")
    validate_parser.add_argument("--config", "-c", required=True, help="Path to job config")

    subparsers.add_parser("list-metrics", help="List available metrics")
    subparsers.add_parser("list-providers", help="List providers and API key status")

    # list-jobs
    jobs_parser = subparsers.add_parser("list-jobs", help="List stored jobs")
    jobs_parser.add_argument("--output", "-o", default=str(RESULTS_DIR), help="Results directory")

    # verify
    verify_parser = subparsers.add_parser("verify", help="Verify a stored result file")
    verify_parser.add_argument("--results", "-r", required=True, help="Path to results JSON")

    # logs
    logs_parser = subparsers.add_parser("logs", help="Show a job's event log")
    logs_parser.add_argument("--job-id", "-j", required=True, help="Job ID")
    logs_parser.add_argument("--output", "-o", default=str(RESULTS_DIR), help="Results directory")

    # sample-config
    sample_parser = subparsers.add_parser("sample-config", help="Write a sample job config")
    sample_parser.add_argument("--path", "-p", default="sample_config.yaml", help="Destination file")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    level = args.log_level or ("DEBUG" if DEBUG else LOG_LEVEL)
    setup_logging(level=level, log_dir=LOG_DIR, console=args.verbose or DEBUG)

    try:
        return asyncio.run(COMMANDS[args.command](args))
    except EaasError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
