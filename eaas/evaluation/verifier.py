"""
Result Verification

Tamper-evident digest over a result set. The digest covers the job id,
completion time, model ids, raw output text and per-model aggregate metric
scores. Performance metrics, error lists, cross-model averages and the
summary/ranking are NOT covered; edits to those fields go undetected.

Usage:
    results.verification_hash = calculate_hash(results)
    assert verify_results(results)
"""

import base64
import hashlib
import logging
import struct

from .types import EvaluationResults

logger = logging.getLogger(__name__)


def calculate_hash(results: EvaluationResults) -> str:
    """Compute the base64 SHA-256 digest of a result set.

    Absorbs, in order: job id, completion timestamp (ISO-8601), then per
    model id in sorted order: the model id, each output's prompt id and
    text in list order, and each metric name (sorted) with its aggregate
    score as big-endian IEEE-754 double.

    The stored ``verification_hash`` is never part of the input.
    """
    hasher = hashlib.sha256()

    hasher.update(results.job_id.encode("utf-8"))
    hasher.update(results.completed_at.isoformat().encode("utf-8"))

    for model_id in sorted(results.model_results):
        model_result = results.model_results[model_id]
        hasher.update(model_id.encode("utf-8"))

        for output in model_result.outputs:
            hasher.update(output.prompt_id.encode("utf-8"))
            hasher.update(output.output.encode("utf-8"))

        for metric_name in sorted(model_result.metrics):
            hasher.update(metric_name.encode("utf-8"))
            hasher.update(struct.pack(">d", float(model_result.metrics[metric_name].score)))

    return base64.b64encode(hasher.digest()).decode("ascii")


def verify_results(results: EvaluationResults) -> bool:
    """Recompute the digest and compare it with the stored value."""
    calculated = calculate_hash(results)
    if calculated != results.verification_hash:
        logger.warning("Verification hash mismatch for job %s", results.job_id)
        return False
    return True
