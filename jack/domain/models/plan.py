from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum


class StepStatus(str, Enum):
    """Plan step lifecycle"""
    PENDING = "pending"
    RUNNING = "running"
    AWAITING_PERMISSION = "awaiting_permission"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ExecutionStep(BaseModel):
    """One step of a multi-step plan"""
    id: str
    action: str = Field(description="Action name, resolved to a plugin")
    description: str = ""
    parameters: Dict[str, Any] = Field(default_factory=dict)
    dependencies: List[str] = Field(default_factory=list, description="Step IDs this step depends on")
    parallelizable: bool = True
    requires_permission: bool = False


class ExecutionPlan(BaseModel):
    """A multi-step plan produced by a planner"""
    id: str
    original_query: str = ""
    steps: List[ExecutionStep] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class PermissionResponse(BaseModel):
    approved: bool
    reason: Optional[str] = None


class StepExecution(BaseModel):
    """Runtime tracking for one plan step"""
    step: ExecutionStep
    status: StepStatus = Field(default=StepStatus.PENDING)
    retry_count: int = 0
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class ProgressUpdate(BaseModel):
    """Progress message for a running plan"""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    message: str
    step_id: Optional[str] = None
    percentage: float = 0.0


class PlanExecution(BaseModel):
    """Runtime tracking for a whole plan"""
    plan_id: str
    client_id: str
    status: StepStatus = Field(default=StepStatus.RUNNING)
    step_executions: Dict[str, StepExecution] = Field(default_factory=dict)
    results: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    progress_updates: List[ProgressUpdate] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None


class PlanExecutionResult(BaseModel):
    """Final outcome of a plan"""
    success: bool
    final_answer: str
    step_results: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    duration_ms: float = 0.0
    tools_used: List[str] = Field(default_factory=list)
    error: Optional[str] = None
