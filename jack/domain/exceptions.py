"""Exception hierarchy for the JACK pipeline.

Per-intent failures are never raised: the executors record them as failed
results. Only misuse of the registry or the memory store, and plan-level
failures in the plan executor, surface as exceptions.

    JackError (base)
    ├── PluginRegistrationError
    ├── MemoryStoreError
    └── PlanExecutionError
        ├── StepTimeoutError
        ├── StepFailedError
        └── PermissionDeniedError
"""
from datetime import datetime
from typing import Any, Dict, Optional


class JackError(Exception):
    """Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code
        details: Additional context
        timestamp: When the error occurred
    """

    default_code = "JACK_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class PluginRegistrationError(JackError):
    """A plugin name or action collides with an existing registration."""

    default_code = "PLUGIN_REGISTRATION"


class MemoryStoreError(JackError):
    """The long-term memory store was used incorrectly."""

    default_code = "MEMORY_STORE"


class PlanExecutionError(JackError):
    """A multi-step plan could not run to completion."""

    default_code = "PLAN_EXECUTION"


class StepTimeoutError(PlanExecutionError):
    default_code = "STEP_TIMEOUT"


class StepFailedError(PlanExecutionError):
    """The plugin reported failure for a plan step."""

    default_code = "STEP_FAILED"


class PermissionDeniedError(PlanExecutionError):
    default_code = "PERMISSION_DENIED"
