"""
Application layer - pipeline factory.

Wires the domain pieces (parser, executor, context manager, modality engine,
orchestrator) together from Settings. Transports call the factory once at
startup and hand the orchestrator to their connection handlers.
"""
from typing import Iterable, Optional, Union

import structlog

from jack.domain.capability.action_executor import ActionExecutor
from jack.domain.capability.base_plugin import BasePlugin
from jack.domain.capability.plan_executor import PlanExecutor, PermissionHandler
from jack.domain.capability.plugin_registry import PluginRegistry
from jack.domain.context.context_manager import ContextManager
from jack.domain.modality.modality_engine import ModalityEngine
from jack.domain.orchestration.core.orchestrator import Orchestrator
from jack.domain.parsing.intent_parser import IntentClient, IntentParser
from jack.infrastructure.config.settings import Settings, get_settings


class PipelineFactory:
    """Factory for creating pipeline components from settings"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.logger = structlog.get_logger().bind(component="pipeline_factory")

    async def create_context_manager(self) -> ContextManager:
        """Create and initialize the three-tier context manager"""

        context_manager = ContextManager(
            db_path=self.settings.memory_db_path,
            max_recent_intents=self.settings.max_recent_intents,
            intent_expiry_ms=self.settings.intent_expiry_ms
        )
        await context_manager.initialize()

        self.logger.info("context_manager_created", db_path=self.settings.memory_db_path)
        return context_manager

    def create_registry(self, plugins: Iterable[BasePlugin]) -> PluginRegistry:
        registry = PluginRegistry()
        registry.register_all(plugins)
        return registry

    def create_action_executor(
        self, plugins: Union[PluginRegistry, Iterable[BasePlugin]]
    ) -> ActionExecutor:
        return ActionExecutor(plugins)

    def create_plan_executor(
        self,
        registry: PluginRegistry,
        permission_handler: Optional[PermissionHandler] = None
    ) -> PlanExecutor:
        return PlanExecutor(
            registry,
            permission_handler=permission_handler,
            max_retries=self.settings.plan_max_retries,
            step_timeout=self.settings.plan_step_timeout_seconds
        )

    async def create_orchestrator(
        self,
        intent_client: IntentClient,
        plugins: Union[PluginRegistry, Iterable[BasePlugin]],
        context_manager: Optional[ContextManager] = None,
        modality_engine: Optional[ModalityEngine] = None
    ) -> Orchestrator:
        """
        Create an orchestrator with all its collaborators.

        Args:
            intent_client: NLP client that turns text into intents
            plugins: Registry or plugins serving the actions
            context_manager: Existing context manager; one is created from
                settings when omitted
            modality_engine: Presentation engine; defaults to the user's home

        Returns:
            Orchestrator ready to handle user input

        Raises:
            PluginRegistrationError: If two plugins claim the same name or action
        """
        executor = self.create_action_executor(plugins)
        if context_manager is None:
            context_manager = await self.create_context_manager()

        orchestrator = Orchestrator(
            parser=IntentParser(intent_client),
            modality_engine=modality_engine or ModalityEngine(),
            executor=executor,
            context_manager=context_manager,
            memory_namespaces=self.settings.memory_namespaces
        )

        self.logger.info(
            "orchestrator_created",
            plugins=[plugin.name for plugin in executor.registry.list_plugins()],
            actions=len(executor.registry.list_actions())
        )
        return orchestrator
