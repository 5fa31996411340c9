from typing import Dict, List, Any, Iterable, Optional
import structlog

from jack.domain.exceptions import PluginRegistrationError
from .base_plugin import BasePlugin

logger = structlog.get_logger(__name__)


class PluginRegistry:
    """Registry mapping action names to the plugin that serves them"""

    def __init__(self):
        self.plugins: Dict[str, BasePlugin] = {}
        self.action_to_plugin: Dict[str, BasePlugin] = {}

    def register(self, plugin: BasePlugin):
        """Register a plugin.

        Raises PluginRegistrationError if the plugin name or any of its
        actions is already registered. Nothing is registered in that case.
        """

        if plugin.name in self.plugins:
            raise PluginRegistrationError(
                f"Plugin '{plugin.name}' is already registered",
                details={"plugin": plugin.name}
            )

        for action in plugin.actions:
            existing = self.action_to_plugin.get(action)
            if existing is not None:
                raise PluginRegistrationError(
                    f"Action '{action}' is already registered by plugin '{existing.name}'",
                    details={"plugin": plugin.name, "action": action, "existing_plugin": existing.name}
                )

        self.plugins[plugin.name] = plugin
        for action in plugin.actions:
            self.action_to_plugin[action] = plugin

        logger.info("Plugin registered", plugin=plugin.name, actions=plugin.actions)

    def register_all(self, plugins: Iterable[BasePlugin]):
        """Register several plugins, stopping at the first error"""

        for plugin in plugins:
            self.register(plugin)

    def unregister(self, name: str):
        """Unregister a plugin by name; no-op if unknown"""

        plugin = self.plugins.pop(name, None)
        if plugin is None:
            return

        for action in plugin.actions:
            self.action_to_plugin.pop(action, None)

        logger.info("Plugin unregistered", plugin=name)

    def clear(self):
        self.plugins.clear()
        self.action_to_plugin.clear()

    def get_plugin(self, name: str) -> Optional[BasePlugin]:
        return self.plugins.get(name)

    def get_plugin_for_action(self, action: str) -> Optional[BasePlugin]:
        return self.action_to_plugin.get(action)

    def has_plugin(self, name: str) -> bool:
        return name in self.plugins

    def has_action(self, action: str) -> bool:
        return action in self.action_to_plugin

    def list_plugins(self) -> List[BasePlugin]:
        return list(self.plugins.values())

    def list_actions(self) -> List[str]:
        return list(self.action_to_plugin.keys())

    def get_action_mapping(self) -> Dict[str, str]:
        """Get a mapping of action names to plugin names"""

        return {action: plugin.name for action, plugin in self.action_to_plugin.items()}

    def get_plugin_info(self, name: str) -> Optional[Dict[str, Any]]:
        plugin = self.plugins.get(name)
        if plugin is None:
            return None
        return plugin.get_info()

    def get_all_plugin_info(self) -> List[Dict[str, Any]]:
        return [p.get_info() for p in self.plugins.values()]
