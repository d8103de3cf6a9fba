"""
Custom exception hierarchy for EaaS.

All project-specific exceptions inherit from EaasError. Provider failures
carry the error kind they map to in evaluation results.
"""


class EaasError(Exception):
    """Base exception for EaaS."""

    pass


class ConfigError(EaasError):
    """Invalid or missing configuration."""

    pass


class ProviderError(EaasError):
    """A model backend failed to produce an output."""

    error_kind = "UnknownError"


class NetworkError(ProviderError):
    """Transport failure or timeout talking to a backend."""

    error_kind = "NetworkError"


class AuthenticationError(ProviderError):
    """Backend rejected the credentials."""

    error_kind = "AuthenticationError"


class RateLimitError(ProviderError):
    """Backend refused the request because of rate limiting."""

    error_kind = "RateLimitError"


class InvalidResponseError(ProviderError):
    """Backend answered with a body that could not be parsed."""

    error_kind = "InvalidResponse"


class MetricCalculationError(EaasError):
    """A metric could not score an output."""

    pass


class StorageError(EaasError):
    """Error reading or writing persisted jobs, results or logs."""

    pass


class EvaluationRunError(EaasError):
    """Infrastructure failure while running an evaluation job."""

    pass


class InvalidTransitionError(EaasError):
    """A lifecycle transition that the state machine does not allow."""

    pass


class ReportingError(EaasError):
    """Error during report generation or export."""

    pass
