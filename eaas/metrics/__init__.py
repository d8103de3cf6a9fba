"""
Scoring functions applied to each model's successful outputs.
"""

from .builtin import (
    BleuMetric,
    CostMetric,
    ExactMatchMetric,
    LatencyMetric,
    RougeMetric,
    bleu_score,
    lcs_length,
    rouge_l_score,
)
from .registry import Metric, MetricRegistry

__all__ = [
    "Metric",
    "MetricRegistry",
    "BleuMetric",
    "RougeMetric",
    "ExactMatchMetric",
    "LatencyMetric",
    "CostMetric",
    "bleu_score",
    "rouge_l_score",
    "lcs_length",
]
