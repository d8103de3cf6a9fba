"""
Metric Protocol and Registry

A metric scores one (output, prompt) pair, folds per-prompt scores into an
aggregate, and describes a sample output. The registry runs every
configured metric over one model's successful outputs.

Usage:
    registry = MetricRegistry.default()
    metrics = registry.calculate_all(outputs, {p.id: p for p in prompts}, job.metrics)
    print(metrics["bleu"].score, metrics["bleu"].per_prompt_scores)
"""

import logging
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Protocol, Sequence, runtime_checkable

from ..evaluation.types import MetricConfig, MetricResult, MetricType, ModelOutput, Prompt
from .builtin import BleuMetric, CostMetric, ExactMatchMetric, LatencyMetric, RougeMetric

logger = logging.getLogger(__name__)

# Fallback lookup when a metric config's name is not registered
_TYPE_TO_NAME = {
    MetricType.BLEU: "bleu",
    MetricType.ROUGE: "rouge",
    MetricType.EXACT_MATCH: "exact_match",
    MetricType.LATENCY: "latency",
    MetricType.COST: "cost",
}


@runtime_checkable
class Metric(Protocol):
    """Protocol for metrics."""

    name: str
    higher_is_better: bool

    def calculate(self, output: ModelOutput, prompt: Prompt) -> float:
        """Score one output.

        Raises:
            MetricCalculationError: (or any Exception) when the output cannot be scored.
        """
        ...

    def aggregate(self, scores: Sequence[float]) -> float:
        ...

    def details(self, output: ModelOutput, prompt: Prompt) -> Dict[str, Any]:
        ...


class MetricRegistry:
    """Name -> metric mapping, read-only once a job starts."""

    def __init__(self, metrics: Optional[Iterable[Metric]] = None) -> None:
        self._metrics: Dict[str, Metric] = {}
        for metric in metrics or []:
            self.register(metric)

    @classmethod
    def default(cls) -> "MetricRegistry":
        """Registry with the built-in metrics."""
        return cls([BleuMetric(), RougeMetric(), ExactMatchMetric(), LatencyMetric(), CostMetric()])

    def register(self, metric: Metric) -> None:
        self._metrics[metric.name] = metric

    def get(self, name: str) -> Optional[Metric]:
        return self._metrics.get(name)

    def list_metrics(self) -> List[str]:
        return sorted(self._metrics)

    def resolve(self, config: MetricConfig) -> Optional[Metric]:
        """Metric for a config, by name first, then by metric type."""
        metric = self.get(config.name)
        if metric is None and config.metric_type in _TYPE_TO_NAME:
            metric = self.get(_TYPE_TO_NAME[config.metric_type])
        return metric

    def lower_is_better(self, metric_configs: Iterable[MetricConfig]) -> FrozenSet[str]:
        """Result names (config names) whose metric prefers smaller values."""
        names = set()
        for config in metric_configs:
            metric = self.resolve(config)
            if metric is not None and not metric.higher_is_better:
                names.add(config.name)
        return frozenset(names)

    def calculate_all(
        self,
        outputs: List[ModelOutput],
        prompts_by_id: Dict[str, Prompt],
        metric_configs: Iterable[MetricConfig],
    ) -> Dict[str, MetricResult]:
        """Run every configured metric over one model's outputs.

        Unregistered metrics are skipped. An output whose score cannot be
        computed is left out of that metric's per-prompt scores and
        aggregate.
        """
        results: Dict[str, MetricResult] = {}

        for config in metric_configs:
            metric = self.resolve(config)
            if metric is None:
                logger.warning("Metric '%s' is not registered; skipping", config.name)
                continue

            per_prompt: Dict[str, float] = {}
            scores: List[float] = []
            for output in outputs:
                prompt = prompts_by_id.get(output.prompt_id)
                if prompt is None:
                    continue
                try:
                    score = float(metric.calculate(output, prompt))
                except Exception as e:
                    logger.warning(
                        "Failed to calculate %s for prompt %s: %s",
                        config.name,
                        output.prompt_id,
                        e,
                    )
                    continue
                per_prompt[output.prompt_id] = score
                scores.append(score)

            details: Dict[str, Any] = {}
            if outputs and outputs[0].prompt_id in prompts_by_id:
                try:
                    details = dict(metric.details(outputs[0], prompts_by_id[outputs[0].prompt_id]))
                except Exception as e:
                    logger.debug("No details for %s: %s", config.name, e)

            results[config.name] = MetricResult(
                metric_name=config.name,
                score=float(metric.aggregate(scores)),
                details=details,
                per_prompt_scores=per_prompt,
            )

        return results
