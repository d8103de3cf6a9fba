"""
Built-in Metrics

Reference-based text metrics (BLEU, ROUGE-L, exact match) and the two
operational metrics taken from output metadata (latency, cost). The text
metrics are word-level approximations, not the full corpus algorithms.
"""

import math
from typing import Any, Dict, List, Sequence

import numpy as np

from ..evaluation.types import ModelOutput, Prompt


def _mean(scores: Sequence[float]) -> float:
    return float(np.mean(scores)) if len(scores) else 0.0


def bleu_score(candidate: str, reference: str) -> float:
    """Unigram precision with a brevity penalty."""
    candidate_words = candidate.split()
    reference_words = reference.split()
    if not candidate_words or not reference_words:
        return 0.0

    reference_set = set(reference_words)
    matches = sum(1 for word in candidate_words if word in reference_set)
    precision = matches / len(candidate_words)

    if len(candidate_words) < len(reference_words):
        brevity_penalty = math.exp(1.0 - len(reference_words) / len(candidate_words))
    else:
        brevity_penalty = 1.0
    return precision * brevity_penalty


def lcs_length(a: List[str], b: List[str]) -> int:
    """Length of the longest common subsequence of two token lists."""
    if not a or not b:
        return 0
    previous = [0] * (len(b) + 1)
    for token_a in a:
        current = [0] * (len(b) + 1)
        for j, token_b in enumerate(b, start=1):
            if token_a == token_b:
                current[j] = previous[j - 1] + 1
            else:
                current[j] = max(previous[j], current[j - 1])
        previous = current
    return previous[-1]


def rouge_l_score(candidate: str, reference: str) -> float:
    """ROUGE-L F1 over whitespace-separated words."""
    candidate_words = candidate.split()
    reference_words = reference.split()
    if not candidate_words or not reference_words:
        return 0.0

    lcs = lcs_length(candidate_words, reference_words)
    precision = lcs / len(candidate_words)
    recall = lcs / len(reference_words)
    if precision + recall == 0:
        return 0.0
    return 2 * precision * recall / (precision + recall)


class BleuMetric:
    """Word-overlap precision against the prompt's expected output."""

    name = "bleu"
    higher_is_better = True

    def calculate(self, output: ModelOutput, prompt: Prompt) -> float:
        if prompt.expected_output is None:
            return 0.0
        return bleu_score(output.output, prompt.expected_output)

    def aggregate(self, scores: Sequence[float]) -> float:
        return _mean(scores)

    def details(self, output: ModelOutput, prompt: Prompt) -> Dict[str, Any]:
        details: Dict[str, Any] = {"output_length": len(output.output)}
        if prompt.expected_output is not None:
            details["reference_length"] = len(prompt.expected_output)
        return details


class RougeMetric:
    """ROUGE-L F1 against the prompt's expected output."""

    name = "rouge"
    higher_is_better = True

    def calculate(self, output: ModelOutput, prompt: Prompt) -> float:
        if prompt.expected_output is None:
            return 0.0
        return rouge_l_score(output.output, prompt.expected_output)

    def aggregate(self, scores: Sequence[float]) -> float:
        return _mean(scores)

    def details(self, output: ModelOutput, prompt: Prompt) -> Dict[str, Any]:
        return {"word_count": len(output.output.split())}


class ExactMatchMetric:
    """1.0 when output equals expected output ignoring case and outer whitespace."""

    name = "exact_match"
    higher_is_better = True

    def calculate(self, output: ModelOutput, prompt: Prompt) -> float:
        if prompt.expected_output is None:
            return 0.0
        matched = output.output.strip().lower() == prompt.expected_output.strip().lower()
        return 1.0 if matched else 0.0

    def aggregate(self, scores: Sequence[float]) -> float:
        return _mean(scores)

    def details(self, output: ModelOutput, prompt: Prompt) -> Dict[str, Any]:
        if prompt.expected_output is None:
            return {}
        return {"exact_match": output.output.strip() == prompt.expected_output.strip()}


class LatencyMetric:
    """Mean response latency in milliseconds."""

    name = "latency"
    higher_is_better = False

    def calculate(self, output: ModelOutput, prompt: Prompt) -> float:
        return float(output.metadata.latency_ms)

    def aggregate(self, scores: Sequence[float]) -> float:
        return _mean(scores)

    def details(self, output: ModelOutput, prompt: Prompt) -> Dict[str, Any]:
        return {"latency_ms": output.metadata.latency_ms}


class CostMetric:
    """Total USD cost across outputs."""

    name = "cost"
    higher_is_better = False

    def calculate(self, output: ModelOutput, prompt: Prompt) -> float:
        return float(output.metadata.cost_usd or 0.0)

    def aggregate(self, scores: Sequence[float]) -> float:
        return float(np.sum(scores)) if len(scores) else 0.0

    def details(self, output: ModelOutput, prompt: Prompt) -> Dict[str, Any]:
        details: Dict[str, Any] = {"cost_usd": output.metadata.cost_usd or 0.0}
        if output.metadata.token_count is not None:
            details["tokens"] = output.metadata.token_count
        return details
