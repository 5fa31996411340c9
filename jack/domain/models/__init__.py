from .intent import (
    ParsedIntent,
    ClarificationRequest,
    IntentParseResult,
    ExecutionResult,
    PluginResult,
    ProgressStatus,
)
from .context import (
    MemoryValue,
    ResourceType,
    RecentIntent,
    ActiveResource,
    MemoryEntry,
    ContextSnapshot,
    now_ms,
)
from .task_state import TaskState, TaskStatus, UserInput

__all__ = [
    "ParsedIntent",
    "ClarificationRequest",
    "IntentParseResult",
    "ExecutionResult",
    "PluginResult",
    "ProgressStatus",
    "MemoryValue",
    "ResourceType",
    "RecentIntent",
    "ActiveResource",
    "MemoryEntry",
    "ContextSnapshot",
    "now_ms",
    "TaskState",
    "TaskStatus",
    "UserInput",
]
