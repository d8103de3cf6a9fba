"""
Job Event Log

Append-only, per-job audit trail written as JSON lines. Each line is one
record: ``{"timestamp": ..., "job_id": ..., "event": {"type": ..., ...}}``.
Writers only append; readers replay line by line and skip lines that do
not parse, so a write torn by an interrupted process does not hide the
events before it.

Usage:
    log = EventLog(job_id, Path("results/logs") / f"{job_id}.log")
    log.log_event(JobStarted(models=["gpt"], prompts=2, metrics=["bleu"]))
    for entry in log.read():
        print(entry.event.type, entry.timestamp)
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, ClassVar, Dict, List, Type

from utils.exceptions import StorageError

from .types import parse_timestamp, utc_now

logger = logging.getLogger(__name__)


@dataclass
class LogEvent:
    """Base class for event payloads; subclasses set ``type``."""

    type: ClassVar[str] = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, **asdict(self)}


@dataclass
class JobStarted(LogEvent):
    type: ClassVar[str] = "JobStarted"
    models: List[str] = field(default_factory=list)
    prompts: int = 0
    metrics: List[str] = field(default_factory=list)


@dataclass
class ModelStarted(LogEvent):
    type: ClassVar[str] = "ModelStarted"
    model_id: str = ""
    provider: str = ""


@dataclass
class ModelCompleted(LogEvent):
    type: ClassVar[str] = "ModelCompleted"
    model_id: str = ""
    success: bool = True
    outputs: int = 0
    errors: int = 0
    duration_ms: int = 0


@dataclass
class MetricCalculated(LogEvent):
    type: ClassVar[str] = "MetricCalculated"
    metric_name: str = ""
    model_id: str = ""
    score: float = 0.0


@dataclass
class JobCompleted(LogEvent):
    type: ClassVar[str] = "JobCompleted"
    duration_ms: int = 0
    total_outputs: int = 0
    total_errors: int = 0


@dataclass
class ErrorEvent(LogEvent):
    type: ClassVar[str] = "Error"
    message: str = ""
    context: Dict[str, Any] = field(default_factory=dict)


EVENT_TYPES: Dict[str, Type[LogEvent]] = {
    cls.type: cls
    for cls in (JobStarted, ModelStarted, ModelCompleted, MetricCalculated, JobCompleted, ErrorEvent)
}


def event_from_dict(data: Dict[str, Any]) -> LogEvent:
    """Rebuild a typed event from its tagged dict form.

    Raises:
        ValueError: If the tag is missing or unknown.
        TypeError: If the payload fields do not match the event type.
    """
    payload = dict(data)
    tag = payload.pop("type", None)
    event_cls = EVENT_TYPES.get(tag) if tag else None
    if event_cls is None:
        raise ValueError(f"Unknown event type: {tag!r}")
    return event_cls(**payload)


@dataclass
class LogEntry:
    """One line of the event log."""

    timestamp: datetime
    job_id: str
    event: LogEvent

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "job_id": self.job_id,
            "event": self.event.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogEntry":
        return cls(
            timestamp=parse_timestamp(data["timestamp"]),
            job_id=str(data["job_id"]),
            event=event_from_dict(data["event"]),
        )


class EventLog:
    """Append-only JSON-lines event stream for one job."""

    def __init__(
        self,
        job_id: str,
        path: Path,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.job_id = job_id
        self.path = Path(path)
        self._clock = clock

    def log_event(self, event: LogEvent) -> LogEntry:
        """Serialize one event and append it as a single line.

        Raises:
            StorageError: If the log file cannot be written.
        """
        entry = LogEntry(timestamp=self._clock(), job_id=self.job_id, event=event)
        line = json.dumps(entry.to_dict(), default=str) + "\n"
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            raise StorageError(f"Failed to append to event log {self.path}: {e}") from e
        logger.debug("Event %s logged for job %s", event.type, self.job_id)
        return entry

    def read(self) -> List[LogEntry]:
        """Replay the log in append order, skipping unparseable lines."""
        if not self.path.exists():
            return []

        try:
            content = self.path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise StorageError(f"Failed to read event log {self.path}: {e}") from e

        entries: List[LogEntry] = []
        for line_number, line in enumerate(content.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                entries.append(LogEntry.from_dict(json.loads(line)))
            except (ValueError, TypeError, KeyError) as e:
                logger.debug("Skipping event log line %d in %s: %s", line_number, self.path, e)
        return entries
