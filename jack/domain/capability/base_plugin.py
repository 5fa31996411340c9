from abc import ABC, abstractmethod
from typing import Dict, Any, List, Mapping, Union
from datetime import datetime

from jack.domain.models import PluginResult


class BasePlugin(ABC):
    """Base class for capability providers.

    A plugin declares the action names it serves and executes them on
    demand. Each action name maps to exactly one registered plugin.
    """

    def __init__(self, name: str, actions: List[str], description: str = ""):
        self.name = name
        self.actions = list(actions)
        self.description = description
        self.created_at = datetime.utcnow()
        self.last_active = datetime.utcnow()

    @abstractmethod
    async def execute(
        self, action: str, params: Dict[str, Any]
    ) -> Union[PluginResult, Mapping[str, Any]]:
        """Execute an action and return success/data or failure/error"""
        pass

    def update_activity(self):
        """Update last activity timestamp"""
        self.last_active = datetime.utcnow()

    def get_info(self) -> Dict[str, Any]:
        """Get plugin information"""
        return {
            "name": self.name,
            "actions": list(self.actions),
            "description": self.description,
            "created_at": self.created_at.isoformat(),
            "last_active": self.last_active.isoformat()
        }


def to_plugin_result(raw: Union[PluginResult, Mapping[str, Any]]) -> PluginResult:
    """Coerce whatever a plugin returned into a PluginResult"""
    if isinstance(raw, PluginResult):
        return raw
    return PluginResult.model_validate(raw)
