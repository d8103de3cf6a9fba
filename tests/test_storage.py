"""Tests for file system job/result storage and the job event log."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from eaas.evaluation.event_log import (
    ErrorEvent,
    EventLog,
    JobCompleted,
    JobStarted,
    MetricCalculated,
    ModelCompleted,
    ModelStarted,
    event_from_dict,
)
from eaas.evaluation.types import (
    EvaluationJob,
    EvaluationResults,
    JobStatus,
    MetricResult,
    ModelOutput,
    ModelResults,
)
from eaas.storage import FileSystemStorage
from utils.exceptions import StorageError


def _make_job(job_id: str, created_at: datetime, sample_prompts, sample_models, sample_metrics) -> EvaluationJob:
    return EvaluationJob.create(
        name=f"job {job_id}",
        prompts=sample_prompts,
        models=sample_models,
        metrics=sample_metrics,
        id_factory=lambda: job_id,
        clock=lambda: created_at,
    )


def _make_results(job_id: str, completed_at: datetime) -> EvaluationResults:
    return EvaluationResults(
        job_id=job_id,
        completed_at=completed_at,
        model_results={
            "alpha": ModelResults(
                model_id="alpha",
                outputs=[ModelOutput(prompt_id="p1", output="4")],
                metrics={"exact_match": MetricResult(metric_name="exact_match", score=1.0)},
            )
        },
        aggregate_scores={"exact_match": 1.0},
        verification_hash="abc=",
    )


class TestFileSystemStorage:
    def test_creates_layout(self, tmp_path: Path) -> None:
        storage = FileSystemStorage(tmp_path / "store")
        for sub in ("jobs", "results", "logs"):
            assert (tmp_path / "store" / sub).is_dir()
        assert storage.job_path("j1") == tmp_path / "store" / "jobs" / "j1.json"

    def test_save_and_load_job(self, storage, fixed_clock, sample_prompts, sample_models, sample_metrics) -> None:
        job = _make_job("j1", fixed_clock(), sample_prompts, sample_models, sample_metrics)
        storage.save_job(job)

        loaded = storage.load_job("j1")

        assert loaded.id == "j1"
        assert loaded.status == JobStatus.PENDING
        assert loaded.created_at == fixed_clock()
        assert [p.id for p in loaded.prompts] == ["p1", "p2"]
        assert loaded.models[0].model_name == "alpha-1"
        assert loaded.results is None

    def test_api_key_not_persisted(self, storage, fixed_clock, sample_prompts, sample_models, sample_metrics) -> None:
        sample_models[0].api_key = "secret"
        storage.save_job(_make_job("j1", fixed_clock(), sample_prompts, sample_models, sample_metrics))

        assert "secret" not in storage.job_path("j1").read_text()

    def test_load_missing_job(self, storage) -> None:
        with pytest.raises(StorageError, match="not found"):
            storage.load_job("nope")

    def test_load_corrupt_job(self, storage) -> None:
        storage.job_path("bad").write_text("{broken")
        with pytest.raises(StorageError):
            storage.load_job("bad")

    def test_results_round_trip(self, storage, fixed_clock) -> None:
        storage.save_results(_make_results("j1", fixed_clock()))

        loaded = storage.load_results("j1")

        assert loaded is not None
        assert loaded.completed_at == fixed_clock()
        assert loaded.model_results["alpha"].outputs[0].output == "4"
        assert loaded.verification_hash == "abc="
        data = json.loads(storage.results_path("j1").read_text())
        assert data["aggregate_scores"] == {"exact_match": 1.0}

    def test_missing_results_is_none(self, storage) -> None:
        assert storage.load_results("nope") is None

    def test_list_jobs_newest_first(self, storage, fixed_clock, sample_prompts, sample_models, sample_metrics) -> None:
        older = fixed_clock()
        newer = older + timedelta(hours=1)
        storage.save_job(_make_job("old", older, sample_prompts, sample_models, sample_metrics))
        storage.save_job(_make_job("new", newer, sample_prompts, sample_models, sample_metrics))
        storage.save_results(_make_results("old", older + timedelta(minutes=5)))

        summaries = storage.list_jobs()

        assert [s.id for s in summaries] == ["new", "old"]
        assert summaries[0].completed_at is None
        assert summaries[1].completed_at == older + timedelta(minutes=5)
        assert summaries[1].model_count == 2
        assert summaries[1].prompt_count == 2
        assert summaries[1].metric_count == 2
        assert summaries[1].to_dict()["status"] == "Pending"

    def test_list_jobs_skips_unreadable(self, storage, fixed_clock, sample_prompts, sample_models, sample_metrics) -> None:
        storage.save_job(_make_job("good", fixed_clock(), sample_prompts, sample_models, sample_metrics))
        storage.job_path("junk").write_text("not json")

        assert [s.id for s in storage.list_jobs()] == ["good"]

    def test_list_jobs_empty(self, storage) -> None:
        assert storage.list_jobs() == []


class TestEventLog:
    def test_append_and_read(self, storage, fixed_clock) -> None:
        log = storage.event_log("j1", clock=fixed_clock)
        log.log_event(JobStarted(models=["alpha"], prompts=2, metrics=["bleu"]))
        log.log_event(ModelStarted(model_id="alpha", provider="fake"))
        log.log_event(MetricCalculated(metric_name="bleu", model_id="alpha", score=0.5))
        log.log_event(ModelCompleted(model_id="alpha", success=True, outputs=2, errors=0, duration_ms=10))
        log.log_event(JobCompleted(duration_ms=12, total_outputs=2, total_errors=0))

        entries = storage.event_log("j1").read()

        assert [e.event.type for e in entries] == [
            "JobStarted",
            "ModelStarted",
            "MetricCalculated",
            "ModelCompleted",
            "JobCompleted",
        ]
        assert all(e.job_id == "j1" for e in entries)
        assert entries[0].timestamp == fixed_clock()
        assert entries[0].event.models == ["alpha"]
        assert entries[2].event.score == 0.5

    def test_one_json_object_per_line(self, tmp_path: Path, fixed_clock) -> None:
        path = tmp_path / "j1.log"
        log = EventLog("j1", path, clock=fixed_clock)
        log.log_event(ErrorEvent(message="boom", context={"exception": "ValueError"}))

        lines = path.read_text().splitlines()
        assert len(lines) == 1
        record = json.loads(lines[0])
        assert record["job_id"] == "j1"
        assert record["event"] == {"type": "Error", "message": "boom", "context": {"exception": "ValueError"}}

    def test_bad_lines_skipped(self, tmp_path: Path) -> None:
        path = tmp_path / "j1.log"
        log = EventLog("j1", path)
        log.log_event(JobStarted(models=["a"], prompts=1, metrics=[]))
        with open(path, "a", encoding="utf-8") as f:
            f.write('{"timestamp": "2024-01-15T12:30:00+00:00", "job_id": "j1", "event": {"type": "Mystery"}}\n')
            f.write("{truncated\n")
        log.log_event(JobCompleted(duration_ms=1))

        assert [e.event.type for e in log.read()] == ["JobStarted", "JobCompleted"]

    def test_missing_log_is_empty(self, tmp_path: Path) -> None:
        assert EventLog("j1", tmp_path / "none.log").read() == []

    def test_unwritable_path(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("x")
        log = EventLog("j1", blocker / "sub" / "j1.log")
        with pytest.raises(StorageError):
            log.log_event(JobStarted())

    def test_event_from_dict(self) -> None:
        event = event_from_dict({"type": "ModelStarted", "model_id": "m", "provider": "groq"})
        assert isinstance(event, ModelStarted)
        assert event.provider == "groq"
        with pytest.raises(ValueError):
            event_from_dict({"type": "Unknown"})

    def test_naive_timestamp_read_as_utc(self, tmp_path: Path) -> None:
        path = tmp_path / "j1.log"
        path.write_text(
            '{"timestamp": "2024-01-15T12:30:00", "job_id": "j1", "event": {"type": "JobCompleted"}}\n'
        )
        entries = EventLog("j1", path).read()
        assert entries[0].timestamp == datetime(2024, 1, 15, 12, 30, tzinfo=timezone.utc)
