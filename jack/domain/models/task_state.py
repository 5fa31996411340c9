from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field
from enum import Enum
import uuid

from .intent import ParsedIntent, ExecutionResult
from .context import now_ms


class TaskState(str, Enum):
    """Orchestrator task lifecycle"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    INTERRUPTED = "interrupted"


TERMINAL_STATES = frozenset({TaskState.COMPLETED, TaskState.FAILED, TaskState.INTERRUPTED})


class UserInput(BaseModel):
    """Text delivered by the transport for one client"""
    client_id: str
    text: str
    timestamp: int = Field(default_factory=now_ms)


class TaskStatus(BaseModel):
    """Tracks the latest request handled for a client"""
    task_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    state: TaskState = Field(default=TaskState.PENDING)
    intents: List[ParsedIntent] = Field(default_factory=list)
    results: List[ExecutionResult] = Field(default_factory=list)
    started_at: int = Field(default_factory=now_ms)
    completed_at: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def transition(self, state: TaskState):
        """Move to a new state, stamping completion on terminal states"""
        self.state = state
        if state in TERMINAL_STATES:
            self.completed_at = now_ms()

    def get_state_summary(self) -> Dict[str, Any]:
        """Get a summary of the task"""
        return {
            "task_id": self.task_id,
            "state": self.state.value,
            "intents": len(self.intents),
            "results": len(self.results),
            "failed_results": len([r for r in self.results if not r.success]),
            "started_at": self.started_at,
            "completed_at": self.completed_at
        }
