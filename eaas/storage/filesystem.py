"""
File System Storage

Persists jobs and result sets as pretty-printed JSON keyed by job id, and
hands out the per-job event log. Layout under ``base_path``:

    jobs/<job_id>.json
    results/<job_id>.json
    logs/<job_id>.log

No locking: concurrent runs against the same directory are not supported.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from utils.exceptions import StorageError
from utils.logging_config import log_performance

from ..evaluation.event_log import EventLog
from ..evaluation.types import EvaluationJob, EvaluationResults, utc_now

logger = logging.getLogger(__name__)


@dataclass
class JobSummary:
    """One row of the job listing."""

    id: str
    name: str
    status: str
    created_at: datetime
    completed_at: Optional[datetime]
    model_count: int
    prompt_count: int
    metric_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "model_count": self.model_count,
            "prompt_count": self.prompt_count,
            "metric_count": self.metric_count,
        }


class Storage(ABC):
    """Persistence capability used by the evaluation runner."""

    @abstractmethod
    def save_job(self, job: EvaluationJob) -> None:
        ...

    @abstractmethod
    def load_job(self, job_id: str) -> EvaluationJob:
        ...

    @abstractmethod
    def save_results(self, results: EvaluationResults) -> None:
        ...

    @abstractmethod
    def load_results(self, job_id: str) -> Optional[EvaluationResults]:
        ...

    @abstractmethod
    def list_jobs(self) -> List[JobSummary]:
        ...

    @abstractmethod
    def event_log(self, job_id: str, clock: Callable[[], datetime] = utc_now) -> EventLog:
        ...


class FileSystemStorage(Storage):
    """JSON-file storage rooted at a directory."""

    def __init__(self, base_path: Path) -> None:
        self.base_path = Path(base_path)
        try:
            for sub in ("jobs", "results", "logs"):
                (self.base_path / sub).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to initialize storage at {self.base_path}: {e}") from e

    def job_path(self, job_id: str) -> Path:
        return self.base_path / "jobs" / f"{job_id}.json"

    def results_path(self, job_id: str) -> Path:
        return self.base_path / "results" / f"{job_id}.json"

    def log_path(self, job_id: str) -> Path:
        return self.base_path / "logs" / f"{job_id}.log"

    def event_log(self, job_id: str, clock: Callable[[], datetime] = utc_now) -> EventLog:
        return EventLog(job_id, self.log_path(job_id), clock=clock)

    def _write_json(self, path: Path, data: Dict[str, Any]) -> None:
        try:
            content = json.dumps(data, indent=2, default=str)
            path.write_text(content, encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to write {path}: {e}") from e

    def _read_json(self, path: Path) -> Dict[str, Any]:
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError as e:
            raise StorageError(f"File not found: {path}") from e
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    def save_job(self, job: EvaluationJob) -> None:
        self._write_json(self.job_path(job.id), job.to_dict())
        logger.debug("Saved job %s (%s)", job.id, job.status.value)

    def load_job(self, job_id: str) -> EvaluationJob:
        data = self._read_json(self.job_path(job_id))
        try:
            return EvaluationJob.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to deserialize job {job_id}: {e}") from e

    @log_performance(logger)
    def save_results(self, results: EvaluationResults) -> None:
        self._write_json(self.results_path(results.job_id), results.to_dict())
        logger.info("Results for job %s saved to %s", results.job_id, self.results_path(results.job_id))

    def load_results(self, job_id: str) -> Optional[EvaluationResults]:
        path = self.results_path(job_id)
        if not path.exists():
            return None
        data = self._read_json(path)
        try:
            return EvaluationResults.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to deserialize results {job_id}: {e}") from e

    def list_jobs(self) -> List[JobSummary]:
        """Summaries of every readable job, newest first."""
        summaries: List[JobSummary] = []
        jobs_dir = self.base_path / "jobs"
        if not jobs_dir.exists():
            return summaries

        for path in jobs_dir.glob("*.json"):
            try:
                job = self.load_job(path.stem)
                results = self.load_results(job.id)
            except StorageError as e:
                logger.warning("Skipping unreadable job file %s: %s", path, e)
                continue

            summaries.append(
                JobSummary(
                    id=job.id,
                    name=job.name,
                    status=job.status.value,
                    created_at=job.created_at,
                    completed_at=results.completed_at if results else None,
                    model_count=len(job.models),
                    prompt_count=len(job.prompts),
                    metric_count=len(job.metrics),
                )
            )

        summaries.sort(key=lambda s: s.created_at, reverse=True)
        return summaries
