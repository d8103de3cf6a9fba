"""
Evaluation Runner

Runs one evaluation job end to end: fans the prompt set out to every
configured model under a concurrency cap, scores each model's outputs,
aggregates and ranks, signs the result set and persists it.

A prompt that fails on one model is recorded as an error in that model's
results and the job continues. Only infrastructure failures (aggregation,
persistence) fail the job.

Usage:
    config = EvalConfig.load(Path("job.yaml"))
    runner = EvaluationRunner(config, FileSystemStorage(Path("results")))
    results = await runner.run()
    print(results.summary.best_performing_model)
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional

from utils.exceptions import EvaluationRunError, StorageError
from utils.logging_config import LogContext
from utils.state_machine import StateMachine

from ..metrics import MetricRegistry
from ..providers import ProviderRegistry
from ..storage import Storage
from .aggregator import calculate_aggregate_scores, create_summary
from .config import EvalConfig
from .event_log import (
    ErrorEvent,
    EventLog,
    JobCompleted,
    JobStarted,
    MetricCalculated,
    ModelCompleted,
    ModelStarted,
)
from .types import (
    ErrorType,
    EvaluationError,
    EvaluationJob,
    EvaluationResults,
    JobStatus,
    ModelConfig,
    ModelOutput,
    ModelResults,
    PerformanceMetrics,
    Prompt,
    new_job_id,
    utc_now,
)
from .verifier import calculate_hash

logger = logging.getLogger(__name__)

JOB_TRANSITIONS = {
    JobStatus.PENDING: [JobStatus.RUNNING],
    JobStatus.RUNNING: [JobStatus.COMPLETED, JobStatus.FAILED],
}
TERMINAL_STATES = (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def build_performance(
    outputs: List[ModelOutput],
    prompt_count: int,
    elapsed_seconds: float,
) -> PerformanceMetrics:
    """Latency, token, cost and throughput totals for one model's outputs."""
    total_latency = sum(o.metadata.latency_ms for o in outputs)
    total_tokens = sum(o.metadata.token_count or 0 for o in outputs)
    total_cost = sum(o.metadata.cost_usd or 0.0 for o in outputs)

    return PerformanceMetrics(
        total_latency_ms=total_latency,
        average_latency_ms=total_latency / len(outputs) if outputs else 0.0,
        total_tokens=total_tokens,
        total_cost_usd=total_cost,
        success_rate=len(outputs) / prompt_count if prompt_count else 0.0,
        throughput_per_second=(
            len(outputs) / elapsed_seconds if outputs and elapsed_seconds > 0 else 0.0
        ),
    )


class EvaluationRunner:
    """Executes an EvalConfig as a single evaluation job.

    Providers, metrics, storage, job ids and the clock are all injected so
    tests can run without network access and with fixed timestamps.
    """

    def __init__(
        self,
        config: EvalConfig,
        storage: Storage,
        provider_registry: Optional[ProviderRegistry] = None,
        metric_registry: Optional[MetricRegistry] = None,
        id_factory: Callable[[], str] = new_job_id,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config
        self.storage = storage
        self._owns_providers = provider_registry is None
        self.provider_registry = provider_registry or ProviderRegistry.default(
            timeout=float(config.settings.timeout_seconds)
        )
        self.metric_registry = metric_registry or MetricRegistry.default()
        self._id_factory = id_factory
        self._clock = clock
        self.job: Optional[EvaluationJob] = None

    async def run(self) -> EvaluationResults:
        """Run the job and return its signed results.

        Raises:
            ConfigError: A model config was rejected; nothing was persisted.
            EvaluationRunError: Aggregation failed; the job is Failed.
            StorageError: Persisting the job or results failed.
        """
        try:
            with LogContext(logger, job_name=self.config.job_name):
                return await self._run()
        finally:
            if self._owns_providers:
                await self.provider_registry.aclose()

    async def _run(self) -> EvaluationResults:
        job = self.config.to_job(id_factory=self._id_factory, clock=self._clock)
        self.job = job

        # Fail fast before anything is written
        for model in job.models:
            self.provider_registry.validate_model_config(model)

        event_log = self.storage.event_log(job.id, clock=self._clock)
        machine: StateMachine[JobStatus] = StateMachine(
            initial_state=JobStatus.PENDING,
            allowed_transitions=JOB_TRANSITIONS,
            terminal_states=TERMINAL_STATES,
        )

        async def persist(old: JobStatus, new: JobStatus, reason: str) -> None:
            job.status = new
            try:
                self.storage.save_job(job)
            except StorageError:
                job.status = old
                raise

        machine.on_transition(persist)

        start = time.perf_counter()
        event_log.log_event(
            JobStarted(
                models=[m.id for m in job.models],
                prompts=len(job.prompts),
                metrics=[m.name for m in job.metrics],
            )
        )
        logger.info("Starting evaluation job: %s (ID: %s)", job.name, job.id)

        try:
            await machine.transition_to(JobStatus.RUNNING, reason="evaluation started")
            model_results = await self._run_models(job, event_log)
            results = self._build_results(job, model_results)
            self.storage.save_results(results)
            job.results = results
            await machine.transition_to(JobStatus.COMPLETED, reason="evaluation finished")
        except (EvaluationRunError, StorageError) as e:
            # Only a Completed job carries results
            job.results = None
            await self._fail(job, machine, event_log, e)
            raise

        total_outputs = sum(len(r.outputs) for r in results.model_results.values())
        total_errors = sum(len(r.errors) for r in results.model_results.values())
        duration_ms = _elapsed_ms(start)
        event_log.log_event(
            JobCompleted(
                duration_ms=duration_ms,
                total_outputs=total_outputs,
                total_errors=total_errors,
            )
        )
        logger.info(
            "Evaluation job %s completed in %d ms: %d outputs, %d errors",
            job.id,
            duration_ms,
            total_outputs,
            total_errors,
        )
        return results

    async def _fail(
        self,
        job: EvaluationJob,
        machine: StateMachine,
        event_log: EventLog,
        error: Exception,
    ) -> None:
        logger.error("Evaluation job %s failed: %s", job.id, error)
        try:
            event_log.log_event(
                ErrorEvent(message=str(error), context={"exception": type(error).__name__})
            )
        except StorageError as log_error:
            logger.error("Could not record failure of job %s: %s", job.id, log_error)

        if not machine.can_transition(JobStatus.FAILED):
            return
        try:
            await machine.transition_to(JobStatus.FAILED, reason=str(error))
        except StorageError as save_error:
            job.status = JobStatus.FAILED
            logger.error("Could not persist Failed status of job %s: %s", job.id, save_error)

    async def _run_models(self, job: EvaluationJob, event_log: EventLog) -> Dict[str, ModelResults]:
        semaphore = asyncio.Semaphore(self.config.settings.parallel_requests)
        prompts_by_id = {p.id: p for p in job.prompts}

        tasks = [
            self._evaluate_model(model, job, prompts_by_id, event_log, semaphore)
            for model in job.models
        ]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        model_results: Dict[str, ModelResults] = {}
        for model, outcome in zip(job.models, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("Model evaluation failed for %s: %s", model.id, outcome)
                continue
            model_results[model.id] = outcome
        return model_results

    async def _evaluate_model(
        self,
        model: ModelConfig,
        job: EvaluationJob,
        prompts_by_id: Dict[str, Prompt],
        event_log: EventLog,
        semaphore: asyncio.Semaphore,
    ) -> ModelResults:
        # One token per model, held for the whole prompt loop
        async with semaphore:
            start = time.perf_counter()
            event_log.log_event(ModelStarted(model_id=model.id, provider=model.provider))
            logger.info("Evaluating model: %s (%s)", model.id, model.provider)

            outputs: List[ModelOutput] = []
            errors: List[EvaluationError] = []

            for prompt in job.prompts:
                try:
                    output = await self.provider_registry.generate(prompt, model)
                except Exception as e:
                    logger.warning("Model %s failed on prompt %s: %s", model.id, prompt.id, e)
                    errors.append(
                        EvaluationError(
                            error_type=ErrorType.UNKNOWN_ERROR,
                            message=f"Failed to generate output for prompt '{prompt.id}': {e}",
                            prompt_id=prompt.id,
                            timestamp=self._clock(),
                            context={
                                "exception": type(e).__name__,
                                "error_kind": getattr(e, "error_kind", ErrorType.UNKNOWN_ERROR.value),
                            },
                        )
                    )
                    continue

                if not self.config.settings.cost_tracking_enabled:
                    output.metadata.cost_usd = 0.0
                outputs.append(output)

            metrics = self.metric_registry.calculate_all(outputs, prompts_by_id, job.metrics)
            for metric_name, metric_result in metrics.items():
                event_log.log_event(
                    MetricCalculated(metric_name=metric_name, model_id=model.id, score=metric_result.score)
                )

            elapsed = time.perf_counter() - start
            performance = build_performance(outputs, len(job.prompts), elapsed)

            duration_ms = int(elapsed * 1000)
            event_log.log_event(
                ModelCompleted(
                    model_id=model.id,
                    success=not errors,
                    outputs=len(outputs),
                    errors=len(errors),
                    duration_ms=duration_ms,
                )
            )
            logger.info(
                "Model %s done in %d ms: %d/%d prompts succeeded",
                model.id,
                duration_ms,
                len(outputs),
                len(job.prompts),
            )

            return ModelResults(
                model_id=model.id,
                outputs=outputs,
                metrics=metrics,
                performance=performance,
                errors=errors,
            )

    def _build_results(self, job: EvaluationJob, model_results: Dict[str, ModelResults]) -> EvaluationResults:
        try:
            aggregate_scores = calculate_aggregate_scores(model_results)
            summary = create_summary(
                model_results,
                aggregate_scores,
                lower_is_better=self.metric_registry.lower_is_better(job.metrics),
            )
            results = EvaluationResults(
                job_id=job.id,
                completed_at=self._clock(),
                model_results=model_results,
                aggregate_scores=aggregate_scores,
                summary=summary,
            )
            if self.config.settings.verification_enabled:
                results.verification_hash = calculate_hash(results)
        except Exception as e:
            raise EvaluationRunError(f"Failed to aggregate results for job {job.id}: {e}") from e
        return results
