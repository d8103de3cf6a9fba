"""
Evaluation Job Configuration

Dataclasses for a job config file and YAML/JSON loading. A config names
the job and lists prompts, models and metrics keyed by id; mapping order
is the order prompts are sent and models are reported.

Example (YAML):
    job_name: Support answers
    prompts:
      p1: {text: "What is 2+2?", expected_output: "4"}
    models:
      llama: {provider: groq, model_name: llama3-8b-8192}
    metrics:
      exact_match: {metric_type: ExactMatch}
    settings:
      parallel_requests: 4
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml

from utils.exceptions import ConfigError

from .types import EvaluationJob, MetricConfig, MetricType, ModelConfig, ModelParameters, Prompt

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("json", "yaml", "csv", "html")
LOGGING_LEVELS = ("error", "warn", "info", "debug", "trace")


@dataclass
class EvalSettings:
    """Run-wide knobs. ``retry_attempts`` is recorded but no retries are made."""

    parallel_requests: int = 5
    timeout_seconds: int = 30
    retry_attempts: int = 3
    output_format: str = "json"
    logging_level: str = "info"
    verification_enabled: bool = True
    cost_tracking_enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parallel_requests": self.parallel_requests,
            "timeout_seconds": self.timeout_seconds,
            "retry_attempts": self.retry_attempts,
            "output_format": self.output_format,
            "logging_level": self.logging_level,
            "verification_enabled": self.verification_enabled,
            "cost_tracking_enabled": self.cost_tracking_enabled,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EvalSettings":
        defaults = cls()
        try:
            return cls(
                parallel_requests=int(data.get("parallel_requests", defaults.parallel_requests)),
                timeout_seconds=int(data.get("timeout_seconds", defaults.timeout_seconds)),
                retry_attempts=int(data.get("retry_attempts", defaults.retry_attempts)),
                output_format=str(data.get("output_format", defaults.output_format)).lower(),
                logging_level=str(data.get("logging_level", defaults.logging_level)).lower(),
                verification_enabled=bool(data.get("verification_enabled", defaults.verification_enabled)),
                cost_tracking_enabled=bool(data.get("cost_tracking_enabled", defaults.cost_tracking_enabled)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid settings: {e}") from e


def _entries(data: Dict[str, Any], key: str) -> List[tuple]:
    """(id, body) pairs from a mapping keyed by id or a list of bodies with ids."""
    section = data.get(key) or {}
    if isinstance(section, dict):
        return [(entry_id, body or {}) for entry_id, body in section.items()]
    if isinstance(section, list):
        pairs = []
        for index, body in enumerate(section):
            if not isinstance(body, dict):
                raise ConfigError(f"Entry {index} in '{key}' is not a mapping")
            pairs.append((body.get("id") or body.get("name") or f"{key}_{index + 1}", body))
        return pairs
    raise ConfigError(f"'{key}' must be a mapping or a list")


@dataclass
class EvalConfig:
    """Complete job configuration, loaded from YAML or JSON."""

    job_name: str
    prompts: Dict[str, Prompt] = field(default_factory=dict)
    models: Dict[str, ModelConfig] = field(default_factory=dict)
    metrics: Dict[str, MetricConfig] = field(default_factory=dict)
    settings: EvalSettings = field(default_factory=EvalSettings)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EvalConfig":
        if not isinstance(data, dict):
            raise ConfigError("Config root must be a mapping")

        prompts = {}
        for prompt_id, body in _entries(data, "prompts"):
            prompt = Prompt.from_dict(body, default_id=str(prompt_id))
            prompts[prompt.id] = prompt

        models = {}
        for model_id, body in _entries(data, "models"):
            model = ModelConfig.from_dict(body, default_id=str(model_id))
            models[model.id] = model

        metrics = {}
        for metric_name, body in _entries(data, "metrics"):
            metric = MetricConfig.from_dict(body, default_name=str(metric_name))
            metrics[metric.name] = metric

        return cls(
            job_name=str(data.get("job_name") or ""),
            prompts=prompts,
            models=models,
            metrics=metrics,
            settings=EvalSettings.from_dict(data.get("settings") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_name": self.job_name,
            "prompts": {pid: p.to_dict() for pid, p in self.prompts.items()},
            "models": {mid: m.to_dict(include_secrets=True) for mid, m in self.models.items()},
            "metrics": {name: m.to_dict() for name, m in self.metrics.items()},
            "settings": self.settings.to_dict(),
        }

    @classmethod
    def load(cls, path: Path) -> "EvalConfig":
        """Load and validate a config file.

        ``.yaml``/``.yml`` files are parsed as YAML, everything else as JSON.

        Raises:
            ConfigError: Unreadable, unparseable or invalid config.
        """
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Failed to read config file {path}: {e}") from e

        try:
            if path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(content)
            else:
                data = json.loads(content)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigError(f"Failed to parse config file {path}: {e}") from e

        config = cls.from_dict(data)
        config.validate()
        logger.debug(
            "Loaded config '%s': %d prompts, %d models, %d metrics",
            config.job_name,
            len(config.prompts),
            len(config.models),
            len(config.metrics),
        )
        return config

    def save(self, path: Path) -> None:
        path = Path(path)
        try:
            if path.suffix.lower() in (".yaml", ".yml"):
                content = yaml.safe_dump(self.to_dict(), sort_keys=False, allow_unicode=True)
            else:
                content = json.dumps(self.to_dict(), indent=2)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Failed to write config file {path}: {e}") from e

    def validate(self) -> None:
        """Raise ConfigError on the first problem found."""
        if not self.job_name:
            raise ConfigError("Job name cannot be empty")
        if not self.prompts:
            raise ConfigError("At least one prompt must be specified")
        if not self.models:
            raise ConfigError("At least one model must be specified")
        if not self.metrics:
            raise ConfigError("At least one metric must be specified")

        for model_id, model in self.models.items():
            if not model.model_name:
                raise ConfigError(f"Model '{model_id}' has empty model_name")
            if not model.provider:
                raise ConfigError(f"Model '{model_id}' has empty provider")

        for prompt_id, prompt in self.prompts.items():
            if not prompt.text:
                raise ConfigError(f"Prompt '{prompt_id}' has empty text")

        if self.settings.parallel_requests < 1:
            raise ConfigError("parallel_requests must be at least 1")
        if self.settings.output_format not in OUTPUT_FORMATS:
            raise ConfigError(
                f"Unknown output_format '{self.settings.output_format}' "
                f"(expected one of {', '.join(OUTPUT_FORMATS)})"
            )
        if self.settings.logging_level not in LOGGING_LEVELS:
            raise ConfigError(f"Unknown logging_level '{self.settings.logging_level}'")

    def to_job(self, **kwargs: Any) -> EvaluationJob:
        """Snapshot this config into a new Pending job.

        Keyword arguments (``id_factory``, ``clock``) pass through to
        EvaluationJob.create.
        """
        return EvaluationJob.create(
            name=self.job_name,
            prompts=list(self.prompts.values()),
            models=list(self.models.values()),
            metrics=list(self.metrics.values()),
            **kwargs,
        )

    @classmethod
    def sample(cls) -> "EvalConfig":
        """A small two-prompt, two-model, two-metric config."""
        prompts = {
            "test_prompt_1": Prompt(
                id="test_prompt_1",
                text="Explain the concept of machine learning in simple terms.",
                expected_output=(
                    "Machine learning is a type of artificial intelligence that enables "
                    "computers to learn and make decisions from data without being "
                    "explicitly programmed for every task."
                ),
                category="explanation",
            ),
            "test_prompt_2": Prompt(
                id="test_prompt_2",
                text="Write a short story about a robot learning to paint.",
                category="creative_writing",
            ),
        }
        models = {
            "together-llama": ModelConfig(
                id="together-llama",
                provider="together",
                model_name="meta-llama/Meta-Llama-3-8B-Instruct",
                parameters=ModelParameters(),
            ),
            "groq-llama": ModelConfig(
                id="groq-llama",
                provider="groq",
                model_name="llama3-8b-8192",
                parameters=ModelParameters(),
            ),
        }
        metrics = {
            "bleu": MetricConfig(name="bleu", metric_type=MetricType.BLEU, weight=1.0),
            "latency": MetricConfig(name="latency", metric_type=MetricType.LATENCY, weight=0.5),
        }
        return cls(
            job_name="Sample Evaluation Job",
            prompts=prompts,
            models=models,
            metrics=metrics,
            settings=EvalSettings(),
        )
