"""
Evaluation Job Engine

Job data model, config loading, aggregation, verification and the per-job
event log. The runner lives in ``eaas.evaluation.runner`` and is imported
from there; it depends on the providers, metrics and storage packages,
which in turn import the types defined here.

Usage:
    from eaas.evaluation import EvalConfig
    from eaas.evaluation.runner import EvaluationRunner

    config = EvalConfig.load(Path("job.yaml"))
    results = await EvaluationRunner(config, storage).run()
"""

from .aggregator import calculate_aggregate_scores, composite_score, create_summary, rank_models
from .config import EvalConfig, EvalSettings
from .event_log import (
    ErrorEvent,
    EventLog,
    JobCompleted,
    JobStarted,
    LogEntry,
    LogEvent,
    MetricCalculated,
    ModelCompleted,
    ModelStarted,
)
from .types import (
    ErrorType,
    EvaluationError,
    EvaluationJob,
    EvaluationResults,
    JobMetadata,
    JobStatus,
    MetricConfig,
    MetricResult,
    MetricType,
    ModelConfig,
    ModelOutput,
    ModelParameters,
    ModelRanking,
    ModelResults,
    OutputMetadata,
    PerformanceMetrics,
    Prompt,
    ResultSummary,
)
from .verifier import calculate_hash, verify_results

__all__ = [
    # Config
    "EvalConfig",
    "EvalSettings",
    # Types
    "JobStatus",
    "ErrorType",
    "MetricType",
    "Prompt",
    "ModelParameters",
    "ModelConfig",
    "MetricConfig",
    "OutputMetadata",
    "ModelOutput",
    "EvaluationError",
    "MetricResult",
    "PerformanceMetrics",
    "ModelResults",
    "ModelRanking",
    "ResultSummary",
    "EvaluationResults",
    "JobMetadata",
    "EvaluationJob",
    # Aggregation
    "calculate_aggregate_scores",
    "composite_score",
    "rank_models",
    "create_summary",
    # Verification
    "calculate_hash",
    "verify_results",
    # Event log
    "EventLog",
    "LogEntry",
    "LogEvent",
    "JobStarted",
    "ModelStarted",
    "ModelCompleted",
    "MetricCalculated",
    "JobCompleted",
    "ErrorEvent",
]
