"""
Shared test fixtures for EaaS.

Provides common setup: temporary storage, a fixed clock, and test data
factories for prompts, models and metrics.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

import pytest

from eaas.evaluation.types import MetricConfig, MetricType, ModelConfig, Prompt
from eaas.storage import FileSystemStorage

FIXED_TIME = datetime(2024, 1, 15, 12, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Create a temporary project directory with standard structure."""
    dirs = ["results", "logs", "config"]
    for d in dirs:
        (tmp_path / d).mkdir()
    return tmp_path


@pytest.fixture
def mock_env(monkeypatch: pytest.MonkeyPatch, tmp_project_dir: Path) -> Path:
    """Set environment variables pointing to temporary directories."""
    monkeypatch.setenv("EAAS_STATE_DIR", str(tmp_project_dir))
    monkeypatch.setenv("EAAS_RESULTS_DIR", str(tmp_project_dir / "results"))
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("DEBUG", "true")
    return tmp_project_dir


@pytest.fixture
def storage(tmp_path: Path) -> FileSystemStorage:
    return FileSystemStorage(tmp_path / "store")


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_TIME


@pytest.fixture
def sample_prompts() -> list[Prompt]:
    return [
        Prompt(id="p1", text="What is 2+2?", expected_output="4"),
        Prompt(id="p2", text="Capital of France?", expected_output="Paris"),
    ]


@pytest.fixture
def sample_models() -> list[ModelConfig]:
    return [
        ModelConfig(id="alpha", provider="fake", model_name="alpha-1"),
        ModelConfig(id="beta", provider="fake", model_name="beta-1"),
    ]


@pytest.fixture
def sample_metrics() -> list[MetricConfig]:
    return [
        MetricConfig(name="exact_match", metric_type=MetricType.EXACT_MATCH),
        MetricConfig(name="latency", metric_type=MetricType.LATENCY),
    ]
