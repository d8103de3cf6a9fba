"""
Result set export.

Writes an EvaluationResults as JSON, YAML, CSV (one row per model) or a
standalone HTML report rendered from a Jinja2 template.
"""

import csv
import io
import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import yaml
from jinja2 import Environment, FileSystemLoader, select_autoescape

from utils.exceptions import ReportingError

from .. import __version__
from ..evaluation.types import EvaluationResults

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
EXTENSIONS = {"json": "json", "yaml": "yaml", "csv": "csv", "html": "html"}


def csv_rows(results: EvaluationResults) -> List[Dict[str, Any]]:
    """One row per ranked model, metric columns sorted by name."""
    metric_names = sorted(results.aggregate_scores)
    ranks = {r.model_id: r for r in results.summary.ranking}
    rows = []
    for model_id, model_result in results.model_results.items():
        ranking = ranks.get(model_id)
        row: Dict[str, Any] = {
            "model_id": model_id,
            "rank": ranking.rank if ranking else "",
            "overall_score": f"{ranking.overall_score:.6f}" if ranking else "",
        }
        for name in metric_names:
            metric = model_result.metrics.get(name)
            row[name] = f"{metric.score:.6f}" if metric else ""
        perf = model_result.performance
        row["success_rate"] = f"{perf.success_rate:.4f}"
        row["average_latency_ms"] = f"{perf.average_latency_ms:.1f}"
        row["total_cost_usd"] = f"{perf.total_cost_usd:.6f}"
        rows.append(row)
    rows.sort(key=lambda r: (r["rank"] == "", r["rank"] or 0, r["model_id"]))
    return rows


class ResultExporter:
    """Renders result sets in one output format."""

    def __init__(self, output_format: str = "json"):
        fmt = output_format.lower()
        if fmt not in EXTENSIONS:
            raise ReportingError(f"Unsupported output format: {output_format}")
        self.output_format = fmt
        self._env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=select_autoescape(["html", "html.j2"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, results: EvaluationResults) -> str:
        """Render the result set as text in the configured format."""
        if self.output_format == "json":
            return json.dumps(results.to_dict(), indent=2)
        if self.output_format == "yaml":
            return yaml.safe_dump(results.to_dict(), sort_keys=False, allow_unicode=True)
        if self.output_format == "csv":
            return self._render_csv(results)
        return self._render_html(results)

    def export(self, results: EvaluationResults, output_dir: Path) -> Path:
        """
        Write ``<job_id>_report.<ext>`` under output_dir.

        Returns:
            Path to the written file.

        Raises:
            ReportingError: If rendering or writing fails.
        """
        output_dir = Path(output_dir)
        path = output_dir / f"{results.job_id}_report.{EXTENSIONS[self.output_format]}"
        try:
            content = self.render(results)
            output_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except ReportingError:
            raise
        except Exception as e:
            raise ReportingError(f"Failed to export results: {e}") from e

        logger.info("%s report saved to %s", self.output_format.upper(), path)
        return path

    def _render_csv(self, results: EvaluationResults) -> str:
        rows = csv_rows(results)
        fieldnames = ["model_id", "rank", "overall_score", *sorted(results.aggregate_scores)]
        fieldnames += ["success_rate", "average_latency_ms", "total_cost_usd"]
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)
        return buffer.getvalue()

    def _render_html(self, results: EvaluationResults) -> str:
        template = self._env.get_template("results_report.html.j2")
        return template.render(
            results=results,
            summary=results.summary,
            metric_names=sorted(results.aggregate_scores),
            rows=csv_rows(results),
            completed_at=results.completed_at.strftime("%Y-%m-%d %H:%M:%S %Z"),
            version=__version__,
        )
