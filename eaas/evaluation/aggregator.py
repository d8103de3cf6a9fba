"""
Score Aggregation and Ranking

Turns the per-model result set into cross-model averages and a ranked
leaderboard. Pure functions over ModelResults; no I/O.
"""

import logging
from typing import Dict, Iterable, List

import numpy as np

from .types import ModelRanking, ModelResults, ResultSummary

logger = logging.getLogger(__name__)


def calculate_aggregate_scores(model_results: Dict[str, ModelResults]) -> Dict[str, float]:
    """Mean aggregate score per metric across the models that report it.

    A model without a given metric is left out of that metric's mean
    rather than counted as zero.
    """
    scores_by_metric: Dict[str, List[float]] = {}
    for results in model_results.values():
        for metric_name, metric_result in results.metrics.items():
            scores_by_metric.setdefault(metric_name, []).append(metric_result.score)

    return {
        metric_name: float(np.mean(scores))
        for metric_name, scores in scores_by_metric.items()
        if scores
    }


def composite_score(results: ModelResults) -> float:
    """Unweighted mean of a model's own metric scores (0.0 with no metrics)."""
    if not results.metrics:
        return 0.0
    return float(np.mean([m.score for m in results.metrics.values()]))


def _strengths_and_weaknesses(
    results: ModelResults,
    aggregate_scores: Dict[str, float],
    metric_counts: Dict[str, int],
    lower_is_better: frozenset,
) -> tuple:
    strengths: List[str] = []
    weaknesses: List[str] = []
    for metric_name in sorted(results.metrics):
        # Nothing to compare against with a single reporting model
        if metric_counts.get(metric_name, 0) < 2 or metric_name not in aggregate_scores:
            continue
        delta = results.metrics[metric_name].score - aggregate_scores[metric_name]
        if metric_name in lower_is_better:
            delta = -delta
        if delta > 0:
            strengths.append(metric_name)
        elif delta < 0:
            weaknesses.append(metric_name)
    return strengths, weaknesses


def rank_models(
    model_results: Dict[str, ModelResults],
    aggregate_scores: Dict[str, float],
    lower_is_better: Iterable[str] = (),
) -> List[ModelRanking]:
    """Sort models by composite score, highest first, and number them 1..N.

    Equal composite scores are ordered by model id so the ranking is
    reproducible across runs.
    """
    lower = frozenset(lower_is_better)
    metric_counts: Dict[str, int] = {}
    for results in model_results.values():
        for metric_name in results.metrics:
            metric_counts[metric_name] = metric_counts.get(metric_name, 0) + 1

    rankings: List[ModelRanking] = []
    for model_id, results in model_results.items():
        strengths, weaknesses = _strengths_and_weaknesses(
            results, aggregate_scores, metric_counts, lower
        )
        rankings.append(
            ModelRanking(
                model_id=model_id,
                overall_score=composite_score(results),
                strengths=strengths,
                weaknesses=weaknesses,
            )
        )

    rankings.sort(key=lambda r: (-r.overall_score, r.model_id))
    for position, ranking in enumerate(rankings, start=1):
        ranking.rank = position
    return rankings


def create_summary(
    model_results: Dict[str, ModelResults],
    aggregate_scores: Dict[str, float],
    lower_is_better: Iterable[str] = (),
) -> ResultSummary:
    """Build the ResultSummary for a finished set of model results.

    ``total_prompts`` is the largest number of prompts any single model
    attempted (outputs + errors).
    """
    total_prompts = max((r.attempted for r in model_results.values()), default=0)
    successful = sum(len(r.outputs) for r in model_results.values())
    failed = sum(len(r.errors) for r in model_results.values())

    ranking = rank_models(model_results, aggregate_scores, lower_is_better)

    summary = ResultSummary(
        total_prompts=total_prompts,
        successful_completions=successful,
        failed_completions=failed,
        best_performing_model=ranking[0].model_id if ranking else None,
        worst_performing_model=ranking[-1].model_id if ranking else None,
        average_scores=dict(aggregate_scores),
        ranking=ranking,
    )
    logger.debug(
        "Summary: %d models, %d outputs, %d errors, best=%s",
        len(model_results),
        successful,
        failed,
        summary.best_performing_model,
    )
    return summary
