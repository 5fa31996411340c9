from typing import Dict, Any, List, Optional, Union
from pydantic import BaseModel, Field
from enum import Enum
import time

from .intent import ParsedIntent


MemoryValue = Union[str, int, float, bool, None]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds"""
    return int(time.time() * 1000)


class ResourceType(str, Enum):
    """Kinds of resource a client can focus on"""
    FILE = "file"
    PROJECT = "project"
    URL = "url"
    CONVERSATION = "conversation"


class RecentIntent(BaseModel):
    """Short-term record of an executed intent"""
    intent: ParsedIntent
    result: Any = None
    timestamp: int = Field(default_factory=now_ms, description="Epoch ms at recording time")


class ActiveResource(BaseModel):
    """The file, project, url or conversation a client is working on"""
    type: ResourceType
    path: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    activated_at: int = Field(default_factory=now_ms)


class MemoryEntry(BaseModel):
    """A long-term memory row"""
    key: str
    value: MemoryValue = None
    updated_at: int


class ContextSnapshot(BaseModel):
    """Read-only view of all three context tiers for one client"""
    recent_intents: List[RecentIntent] = Field(default_factory=list)
    active_resource: Optional[ActiveResource] = None
    relevant_memory: Dict[str, MemoryValue] = Field(default_factory=dict)
