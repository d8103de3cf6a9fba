"""Tests for evaluation job configuration loading and validation."""

import json
from pathlib import Path

import pytest
import yaml

from eaas.evaluation.config import EvalConfig, EvalSettings
from eaas.evaluation.types import JobStatus, MetricType
from utils.exceptions import ConfigError


def _make_config_data() -> dict:
    """Create minimal valid config data for testing."""
    return {
        "job_name": "Support answers",
        "prompts": {
            "p1": {"text": "What is 2+2?", "expected_output": "4"},
            "p2": {"text": "Capital of France?", "expected_output": "Paris", "category": "geo"},
        },
        "models": {
            "llama": {
                "provider": "groq",
                "model_name": "llama3-8b-8192",
                "parameters": {"temperature": 0.2, "max_tokens": 256},
            },
            "local": {"provider": "ollama", "model_name": "qwen2.5:7b"},
        },
        "metrics": {
            "exact_match": {"metric_type": "ExactMatch"},
            "latency": {"metric_type": "Latency", "weight": 0.5},
        },
        "settings": {"parallel_requests": 3, "output_format": "html"},
    }


class TestEvalSettings:
    def test_defaults(self) -> None:
        settings = EvalSettings()
        assert settings.parallel_requests == 5
        assert settings.timeout_seconds == 30
        assert settings.retry_attempts == 3
        assert settings.output_format == "json"
        assert settings.logging_level == "info"
        assert settings.verification_enabled is True
        assert settings.cost_tracking_enabled is True

    def test_partial_dict_keeps_defaults(self) -> None:
        settings = EvalSettings.from_dict({"parallel_requests": 2, "output_format": "CSV"})
        assert settings.parallel_requests == 2
        assert settings.output_format == "csv"
        assert settings.timeout_seconds == 30

    def test_non_numeric_rejected(self) -> None:
        with pytest.raises(ConfigError):
            EvalSettings.from_dict({"parallel_requests": "many"})


class TestEvalConfigLoad:
    def test_loads_from_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "job.yaml"
        config_file.write_text(yaml.dump(_make_config_data(), sort_keys=False))

        config = EvalConfig.load(config_file)

        assert config.job_name == "Support answers"
        assert list(config.prompts) == ["p1", "p2"]
        assert config.prompts["p2"].category == "geo"
        assert list(config.models) == ["llama", "local"]
        assert config.models["llama"].id == "llama"
        assert config.models["llama"].parameters.temperature == 0.2
        assert config.models["llama"].parameters.top_p == 1.0
        assert config.metrics["exact_match"].metric_type == MetricType.EXACT_MATCH
        assert config.metrics["latency"].weight == 0.5
        assert config.settings.parallel_requests == 3
        assert config.settings.output_format == "html"

    def test_loads_from_json(self, tmp_path: Path) -> None:
        config_file = tmp_path / "job.json"
        config_file.write_text(json.dumps(_make_config_data()))

        config = EvalConfig.load(config_file)

        assert config.job_name == "Support answers"
        assert len(config.models) == 2

    def test_accepts_lists_with_ids(self, tmp_path: Path) -> None:
        data = _make_config_data()
        data["prompts"] = [{"id": "q1", "text": "Hello"}, {"id": "q2", "text": "Bye"}]
        data["metrics"] = [{"name": "bleu", "metric_type": "Bleu"}]
        config_file = tmp_path / "job.yaml"
        config_file.write_text(yaml.dump(data))

        config = EvalConfig.load(config_file)

        assert list(config.prompts) == ["q1", "q2"]
        assert list(config.metrics) == ["bleu"]

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            EvalConfig.load(tmp_path / "missing.yaml")

    def test_unparseable_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "job.json"
        config_file.write_text("{not json")
        with pytest.raises(ConfigError, match="parse"):
            EvalConfig.load(config_file)


class TestEvalConfigValidate:
    def _config(self, **overrides) -> EvalConfig:
        data = _make_config_data()
        data.update(overrides)
        return EvalConfig.from_dict(data)

    def test_valid_config_passes(self) -> None:
        self._config().validate()

    def test_empty_job_name(self) -> None:
        with pytest.raises(ConfigError, match="Job name"):
            self._config(job_name="").validate()

    def test_no_prompts(self) -> None:
        with pytest.raises(ConfigError, match="prompt"):
            self._config(prompts={}).validate()

    def test_no_models(self) -> None:
        with pytest.raises(ConfigError, match="model"):
            self._config(models={}).validate()

    def test_no_metrics(self) -> None:
        with pytest.raises(ConfigError, match="metric"):
            self._config(metrics={}).validate()

    def test_model_without_model_name(self) -> None:
        config = self._config(models={"bad": {"provider": "groq"}})
        with pytest.raises(ConfigError, match="'bad' has empty model_name"):
            config.validate()

    def test_model_without_provider(self) -> None:
        config = self._config(models={"bad": {"model_name": "x"}})
        with pytest.raises(ConfigError, match="'bad' has empty provider"):
            config.validate()

    def test_prompt_without_text(self) -> None:
        config = self._config(prompts={"blank": {"text": ""}})
        with pytest.raises(ConfigError, match="'blank' has empty text"):
            config.validate()

    def test_zero_parallel_requests(self) -> None:
        config = self._config(settings={"parallel_requests": 0})
        with pytest.raises(ConfigError, match="parallel_requests"):
            config.validate()

    def test_unknown_output_format(self) -> None:
        config = self._config(settings={"output_format": "pdf"})
        with pytest.raises(ConfigError, match="output_format"):
            config.validate()


class TestEvalConfigConversions:
    def test_save_and_reload_yaml(self, tmp_path: Path) -> None:
        original = EvalConfig.sample()
        path = tmp_path / "sample.yaml"
        original.save(path)

        loaded = EvalConfig.load(path)

        assert loaded.to_dict() == original.to_dict()

    def test_save_json(self, tmp_path: Path) -> None:
        path = tmp_path / "sample.json"
        EvalConfig.sample().save(path)

        data = json.loads(path.read_text())
        assert data["job_name"] == "Sample Evaluation Job"
        assert set(data["models"]) == {"together-llama", "groq-llama"}

    def test_sample_is_valid(self) -> None:
        sample = EvalConfig.sample()
        sample.validate()
        assert len(sample.prompts) == 2
        assert len(sample.models) == 2
        assert len(sample.metrics) == 2

    def test_to_job_snapshots_config(self, fixed_clock) -> None:
        config = EvalConfig.from_dict(_make_config_data())

        job = config.to_job(id_factory=lambda: "job-42", clock=fixed_clock)

        assert job.id == "job-42"
        assert job.name == "Support answers"
        assert job.status == JobStatus.PENDING
        assert job.created_at == fixed_clock()
        assert [p.id for p in job.prompts] == ["p1", "p2"]
        assert [m.id for m in job.models] == ["llama", "local"]
        assert [m.name for m in job.metrics] == ["exact_match", "latency"]
        assert job.results is None
