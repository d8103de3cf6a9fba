"""
Evaluation Data Model

Dataclasses for jobs, prompts, model/metric configuration and the result
set produced by a run. Every record round-trips through plain dicts
(to_dict / from_dict) so jobs and results persist as JSON or YAML.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .. import __version__


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    return str(uuid.uuid4())


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _normalize(name: str) -> str:
    return name.replace("_", "").replace("-", "").lower()


class JobStatus(Enum):
    """Lifecycle state of an evaluation job."""

    PENDING = "Pending"
    RUNNING = "Running"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"  # Reserved; nothing transitions here yet

    @classmethod
    def parse(cls, value: str) -> "JobStatus":
        for status in cls:
            if _normalize(value) in (_normalize(status.value), _normalize(status.name)):
                return status
        raise ValueError(f"Unknown job status: {value!r}")


class ErrorType(Enum):
    """Classification of a per-prompt evaluation failure."""

    NETWORK_ERROR = "NetworkError"
    AUTHENTICATION_ERROR = "AuthenticationError"
    RATE_LIMIT_ERROR = "RateLimitError"
    INVALID_RESPONSE = "InvalidResponse"
    METRIC_CALCULATION_ERROR = "MetricCalculationError"
    CONFIGURATION_ERROR = "ConfigurationError"
    UNKNOWN_ERROR = "UnknownError"

    @classmethod
    def parse(cls, value: str) -> "ErrorType":
        for kind in cls:
            if _normalize(value) in (_normalize(kind.value), _normalize(kind.name)):
                return kind
        return cls.UNKNOWN_ERROR


class MetricType(Enum):
    """Kind of scoring function a metric config refers to."""

    BLEU = "Bleu"
    ROUGE = "Rouge"
    EXACT_MATCH = "ExactMatch"
    EMBEDDING_SIMILARITY = "EmbeddingSimilarity"
    LATENCY = "Latency"
    COST = "Cost"
    TOXICITY = "Toxicity"
    CUSTOM = "Custom"

    @classmethod
    def parse(cls, value: Any) -> "MetricType":
        if isinstance(value, dict):
            # {"Custom": "my_metric"}
            return cls.CUSTOM
        for kind in cls:
            if _normalize(str(value)) in (_normalize(kind.value), _normalize(kind.name)):
                return kind
        return cls.CUSTOM


@dataclass
class Prompt:
    """A single prompt sent to every model in a job."""

    id: str
    text: str
    expected_output: Optional[str] = None
    category: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "expected_output": self.expected_output,
            "category": self.category,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_id: str = "") -> "Prompt":
        return cls(
            id=data.get("id") or default_id,
            text=data.get("text", ""),
            expected_output=data.get("expected_output"),
            category=data.get("category"),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class ModelParameters:
    """Generation parameters forwarded to the backend."""

    temperature: Optional[float] = 0.7
    max_tokens: Optional[int] = 1024
    top_p: Optional[float] = 1.0
    frequency_penalty: Optional[float] = 0.0
    presence_penalty: Optional[float] = 0.0
    stop_sequences: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": self.top_p,
            "frequency_penalty": self.frequency_penalty,
            "presence_penalty": self.presence_penalty,
            "stop_sequences": self.stop_sequences,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ModelParameters":
        if not data:
            return cls()
        defaults = cls()
        return cls(
            temperature=data.get("temperature", defaults.temperature),
            max_tokens=data.get("max_tokens", defaults.max_tokens),
            top_p=data.get("top_p", defaults.top_p),
            frequency_penalty=data.get("frequency_penalty", defaults.frequency_penalty),
            presence_penalty=data.get("presence_penalty", defaults.presence_penalty),
            stop_sequences=data.get("stop_sequences"),
        )


@dataclass
class ModelConfig:
    """A (provider, backend model, parameters) unit to evaluate."""

    id: str
    provider: str
    model_name: str
    parameters: ModelParameters = field(default_factory=ModelParameters)
    api_key: Optional[str] = None
    endpoint: Optional[str] = None

    def to_dict(self, include_secrets: bool = False) -> Dict[str, Any]:
        return {
            "id": self.id,
            "provider": self.provider,
            "model_name": self.model_name,
            "parameters": self.parameters.to_dict(),
            "api_key": self.api_key if include_secrets else None,
            "endpoint": self.endpoint,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_id: str = "") -> "ModelConfig":
        return cls(
            id=data.get("id") or default_id,
            provider=data.get("provider", ""),
            model_name=data.get("model_name", ""),
            parameters=ModelParameters.from_dict(data.get("parameters")),
            api_key=data.get("api_key"),
            endpoint=data.get("endpoint"),
        )


@dataclass
class MetricConfig:
    """A metric to compute for every model. Weight is stored but not applied."""

    name: str
    metric_type: MetricType
    parameters: Dict[str, Any] = field(default_factory=dict)
    weight: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "metric_type": self.metric_type.value,
            "parameters": dict(self.parameters),
            "weight": self.weight,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_name: str = "") -> "MetricConfig":
        name = data.get("name") or default_name
        return cls(
            name=name,
            metric_type=MetricType.parse(data.get("metric_type", name)),
            parameters=dict(data.get("parameters") or {}),
            weight=data.get("weight"),
        )


@dataclass
class OutputMetadata:
    """Per-generation measurements reported by the backend."""

    latency_ms: int = 0
    token_count: Optional[int] = None
    cost_usd: Optional[float] = None
    timestamp: datetime = field(default_factory=utc_now)
    provider_metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "latency_ms": self.latency_ms,
            "token_count": self.token_count,
            "cost_usd": self.cost_usd,
            "timestamp": self.timestamp.isoformat(),
            "provider_metadata": dict(self.provider_metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OutputMetadata":
        return cls(
            latency_ms=int(data.get("latency_ms", 0)),
            token_count=data.get("token_count"),
            cost_usd=data.get("cost_usd"),
            timestamp=parse_timestamp(data["timestamp"]) if data.get("timestamp") else utc_now(),
            provider_metadata=dict(data.get("provider_metadata") or {}),
        )


@dataclass
class ModelOutput:
    """One successful generation for a (model, prompt) pair."""

    prompt_id: str
    output: str
    metadata: OutputMetadata = field(default_factory=OutputMetadata)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prompt_id": self.prompt_id,
            "output": self.output,
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelOutput":
        return cls(
            prompt_id=data["prompt_id"],
            output=data.get("output", ""),
            metadata=OutputMetadata.from_dict(data.get("metadata") or {}),
        )


@dataclass
class EvaluationError:
    """One failed (model, prompt) pair, kept as data in the results."""

    error_type: ErrorType
    message: str
    prompt_id: Optional[str] = None
    timestamp: datetime = field(default_factory=utc_now)
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.error_type.value,
            "message": self.message,
            "prompt_id": self.prompt_id,
            "timestamp": self.timestamp.isoformat(),
            "context": dict(self.context),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EvaluationError":
        return cls(
            error_type=ErrorType.parse(data.get("error_type", "UnknownError")),
            message=data.get("message", ""),
            prompt_id=data.get("prompt_id"),
            timestamp=parse_timestamp(data["timestamp"]) if data.get("timestamp") else utc_now(),
            context=dict(data.get("context") or {}),
        )


@dataclass
class MetricResult:
    """Aggregate and per-prompt scores of one metric for one model."""

    metric_name: str
    score: float
    details: Dict[str, Any] = field(default_factory=dict)
    per_prompt_scores: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric_name": self.metric_name,
            "score": self.score,
            "details": dict(self.details),
            "per_prompt_scores": dict(self.per_prompt_scores),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetricResult":
        return cls(
            metric_name=data["metric_name"],
            score=float(data["score"]),
            details=dict(data.get("details") or {}),
            per_prompt_scores={k: float(v) for k, v in (data.get("per_prompt_scores") or {}).items()},
        )


@dataclass
class PerformanceMetrics:
    """Latency, token, cost and throughput totals for one model."""

    total_latency_ms: int = 0
    average_latency_ms: float = 0.0
    total_tokens: int = 0
    total_cost_usd: float = 0.0
    success_rate: float = 0.0
    throughput_per_second: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_latency_ms": self.total_latency_ms,
            "average_latency_ms": self.average_latency_ms,
            "total_tokens": self.total_tokens,
            "total_cost_usd": self.total_cost_usd,
            "success_rate": self.success_rate,
            "throughput_per_second": self.throughput_per_second,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PerformanceMetrics":
        return cls(
            total_latency_ms=int(data.get("total_latency_ms", 0)),
            average_latency_ms=float(data.get("average_latency_ms", 0.0)),
            total_tokens=int(data.get("total_tokens", 0)),
            total_cost_usd=float(data.get("total_cost_usd", 0.0)),
            success_rate=float(data.get("success_rate", 0.0)),
            throughput_per_second=float(data.get("throughput_per_second", 0.0)),
        )


@dataclass
class ModelResults:
    """Everything one model produced during a job."""

    model_id: str
    outputs: List[ModelOutput] = field(default_factory=list)
    metrics: Dict[str, MetricResult] = field(default_factory=dict)
    performance: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    errors: List[EvaluationError] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.outputs) + len(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model_id": self.model_id,
            "outputs": [o.to_dict() for o in self.outputs],
            "metrics": {name: m.to_dict() for name, m in self.metrics.items()},
            "performance": self.performance.to_dict(),
            "errors": [e.to_dict() for e in self.errors],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelResults":
        return cls(
            model_id=data["model_id"],
            outputs=[ModelOutput.from_dict(o) for o in data.get("outputs", [])],
            metrics={
                name: MetricResult.from_dict(m) for name, m in (data.get("metrics") or {}).items()
            },
            performance=PerformanceMetrics.from_dict(data.get("performance") or {}),
            errors=[EvaluationError.from_dict(e) for e in data.get("errors", [])],
        )


@dataclass
class ModelRanking:
    """Position of one model in the leaderboard."""

    model_id: str
    overall_score: float
    rank: int = 0
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model_id": self.model_id,
            "overall_score": self.overall_score,
            "rank": self.rank,
            "strengths": list(self.strengths),
            "weaknesses": list(self.weaknesses),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelRanking":
        return cls(
            model_id=data["model_id"],
            overall_score=float(data.get("overall_score", 0.0)),
            rank=int(data.get("rank", 0)),
            strengths=list(data.get("strengths") or []),
            weaknesses=list(data.get("weaknesses") or []),
        )


@dataclass
class ResultSummary:
    """Cross-model statistics derived from the per-model results."""

    total_prompts: int = 0
    successful_completions: int = 0
    failed_completions: int = 0
    best_performing_model: Optional[str] = None
    worst_performing_model: Optional[str] = None
    average_scores: Dict[str, float] = field(default_factory=dict)
    ranking: List[ModelRanking] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_prompts": self.total_prompts,
            "successful_completions": self.successful_completions,
            "failed_completions": self.failed_completions,
            "best_performing_model": self.best_performing_model,
            "worst_performing_model": self.worst_performing_model,
            "average_scores": dict(self.average_scores),
            "ranking": [r.to_dict() for r in self.ranking],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResultSummary":
        return cls(
            total_prompts=int(data.get("total_prompts", 0)),
            successful_completions=int(data.get("successful_completions", 0)),
            failed_completions=int(data.get("failed_completions", 0)),
            best_performing_model=data.get("best_performing_model"),
            worst_performing_model=data.get("worst_performing_model"),
            average_scores={k: float(v) for k, v in (data.get("average_scores") or {}).items()},
            ranking=[ModelRanking.from_dict(r) for r in data.get("ranking", [])],
        )


@dataclass
class EvaluationResults:
    """Final result set of a completed job.

    ``verification_hash`` is computed last, over the other fields
    (see eaas.evaluation.verifier).
    """

    job_id: str
    completed_at: datetime
    model_results: Dict[str, ModelResults] = field(default_factory=dict)
    aggregate_scores: Dict[str, float] = field(default_factory=dict)
    summary: ResultSummary = field(default_factory=ResultSummary)
    verification_hash: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "completed_at": self.completed_at.isoformat(),
            "model_results": {mid: r.to_dict() for mid, r in self.model_results.items()},
            "aggregate_scores": dict(self.aggregate_scores),
            "summary": self.summary.to_dict(),
            "verification_hash": self.verification_hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EvaluationResults":
        return cls(
            job_id=str(data["job_id"]),
            completed_at=parse_timestamp(data["completed_at"]),
            model_results={
                mid: ModelResults.from_dict(r) for mid, r in (data.get("model_results") or {}).items()
            },
            aggregate_scores={k: float(v) for k, v in (data.get("aggregate_scores") or {}).items()},
            summary=ResultSummary.from_dict(data.get("summary") or {}),
            verification_hash=data.get("verification_hash", ""),
        )


@dataclass
class JobMetadata:
    """Free-form job metadata."""

    user_id: Optional[str] = None
    project: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    description: Optional[str] = None
    environment: str = "development"
    version: str = __version__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "project": self.project,
            "tags": list(self.tags),
            "description": self.description,
            "environment": self.environment,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "JobMetadata":
        data = data or {}
        return cls(
            user_id=data.get("user_id"),
            project=data.get("project"),
            tags=list(data.get("tags") or []),
            description=data.get("description"),
            environment=data.get("environment", "development"),
            version=data.get("version", __version__),
        )


@dataclass
class EvaluationJob:
    """One evaluation run over a fixed prompt/model/metric snapshot.

    ``results`` is set only once the job is Completed.
    """

    id: str
    name: str
    created_at: datetime
    status: JobStatus = JobStatus.PENDING
    prompts: List[Prompt] = field(default_factory=list)
    models: List[ModelConfig] = field(default_factory=list)
    metrics: List[MetricConfig] = field(default_factory=list)
    results: Optional[EvaluationResults] = None
    metadata: JobMetadata = field(default_factory=JobMetadata)

    @classmethod
    def create(
        cls,
        name: str,
        prompts: List[Prompt],
        models: List[ModelConfig],
        metrics: List[MetricConfig],
        id_factory: Callable[[], str] = new_job_id,
        clock: Callable[[], datetime] = utc_now,
    ) -> "EvaluationJob":
        """Build a Pending job with a fresh id."""
        return cls(
            id=id_factory(),
            name=name,
            created_at=clock(),
            status=JobStatus.PENDING,
            prompts=list(prompts),
            models=list(models),
            metrics=list(metrics),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat(),
            "status": self.status.value,
            "prompts": [p.to_dict() for p in self.prompts],
            "models": [m.to_dict() for m in self.models],
            "metrics": [m.to_dict() for m in self.metrics],
            "results": self.results.to_dict() if self.results else None,
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EvaluationJob":
        results = data.get("results")
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            created_at=parse_timestamp(data["created_at"]),
            status=JobStatus.parse(data.get("status", "Pending")),
            prompts=[Prompt.from_dict(p) for p in data.get("prompts", [])],
            models=[ModelConfig.from_dict(m) for m in data.get("models", [])],
            metrics=[MetricConfig.from_dict(m) for m in data.get("metrics", [])],
            results=EvaluationResults.from_dict(results) if results else None,
            metadata=JobMetadata.from_dict(data.get("metadata")),
        )
