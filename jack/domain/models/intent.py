from typing import Dict, Any, List, Optional, Literal
from pydantic import BaseModel, ConfigDict, Field


class ParsedIntent(BaseModel):
    """A single structured action derived from user text"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(description="Unique within a parse result")
    action: str = Field(description="Action name, resolved to a plugin")
    parameters: Dict[str, Any] = Field(default_factory=dict)
    dependencies: List[str] = Field(default_factory=list, description="Intent IDs this intent depends on")
    conditional: bool = Field(default=False, description="Only execute if condition_expr holds")
    condition_expr: Optional[str] = Field(None, alias="conditionExpr")


class ClarificationRequest(BaseModel):
    """Question sent back instead of executing anything"""
    question: str
    options: Optional[List[str]] = None


class IntentParseResult(BaseModel):
    """Output of the intent parser"""
    model_config = ConfigDict(populate_by_name=True)

    intents: List[ParsedIntent] = Field(default_factory=list)
    execution_order: List[List[str]] = Field(
        default_factory=list,
        alias="executionOrder",
        description="Groups run sequentially, intents within a group run concurrently"
    )
    requires_acknowledgment: bool = Field(default=False, alias="requiresAcknowledgment")
    clarification_needed: Optional[ClarificationRequest] = Field(None, alias="clarificationNeeded")


class ExecutionResult(BaseModel):
    """Outcome of one intent in one execution pass"""
    model_config = ConfigDict(frozen=True)

    intent_id: str
    action: str
    success: bool
    data: Any = None
    error: Optional[str] = None


class PluginResult(BaseModel):
    """What a plugin returns for an action"""
    success: bool
    data: Any = None
    error: Optional[str] = None


class ProgressStatus(BaseModel):
    """Per-intent progress event emitted by the executor"""
    type: Literal["started", "progress", "completed", "failed", "skipped"]
    message: Optional[str] = None
    result: Any = None
    error: Optional[str] = None
    reason: Optional[str] = None
