"""
Console summary of an evaluation result set, rendered with rich.
"""

from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from ..evaluation.types import EvaluationResults


def print_summary(
    results: EvaluationResults,
    output_dir: Optional[Path] = None,
    console: Optional[Console] = None,
) -> None:
    """Print statistics, rankings, metric averages and per-model cost/performance."""
    console = console or Console()
    summary = results.summary

    console.print("\n[bold]Evaluation Results Summary[/bold]")
    console.print(f"[dim]Job {results.job_id}[/dim]\n")

    console.print("[bold]Overall Statistics[/bold]")
    console.print(f"  Total Prompts: {summary.total_prompts}")
    console.print(f"  Successful Completions: [green]{summary.successful_completions}[/green]")
    console.print(f"  Failed Completions: [red]{summary.failed_completions}[/red]")
    if summary.best_performing_model:
        console.print(f"  Best Model: [cyan]{summary.best_performing_model}[/cyan]")

    if summary.ranking:
        table = Table(title="Model Rankings")
        table.add_column("Rank", justify="right")
        table.add_column("Model", style="cyan")
        table.add_column("Score", justify="right")
        table.add_column("Strengths")
        table.add_column("Weaknesses")
        for ranking in summary.ranking:
            table.add_row(
                str(ranking.rank),
                ranking.model_id,
                f"{ranking.overall_score:.3f}",
                ", ".join(ranking.strengths) or "-",
                ", ".join(ranking.weaknesses) or "-",
            )
        console.print(table)

    if results.aggregate_scores:
        table = Table(title="Average Metric Scores")
        table.add_column("Metric")
        table.add_column("Score", justify="right")
        for metric_name, score in sorted(results.aggregate_scores.items()):
            table.add_row(metric_name, f"{score:.3f}")
        console.print(table)

    if results.model_results:
        table = Table(title="Cost & Performance")
        table.add_column("Model", style="cyan")
        table.add_column("Cost (USD)", justify="right")
        table.add_column("Avg Latency", justify="right")
        table.add_column("Success", justify="right")
        table.add_column("Throughput", justify="right")
        for model_id, model_result in results.model_results.items():
            perf = model_result.performance
            table.add_row(
                model_id,
                f"${perf.total_cost_usd:.4f}",
                f"{perf.average_latency_ms:.0f}ms",
                f"{perf.success_rate * 100:.1f}%",
                f"{perf.throughput_per_second:.2f}/s",
            )
        console.print(table)

    if output_dir is not None:
        console.print(f"\nResults saved to: {output_dir}")
    if results.verification_hash:
        console.print(f"Verification hash: [dim]{results.verification_hash[:16]}[/dim]")
    else:
        console.print("[yellow]Verification disabled for this job[/yellow]")
