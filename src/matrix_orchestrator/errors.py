"""
Exception types raised by the orchestrator.

ConfigError and ValidationError abort a run before anything is started.
RequestBuildError and DispatchError are scoped to one matrix cell and end up
in that cell's ExecutionResult instead of propagating.
"""


class OrchestratorError(Exception):
    """Base class for all orchestrator errors."""


class ConfigError(OrchestratorError):
    """A required setting is missing or a structured setting is malformed."""


class ValidationError(OrchestratorError):
    """Externally supplied input (e.g. a custom matrix) is invalid."""


class RequestBuildError(OrchestratorError):
    """An execution request could not be built for one matrix cell."""


class DispatchError(OrchestratorError):
    """The control plane rejected or failed a start request."""
