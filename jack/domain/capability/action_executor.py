from typing import Dict, Any, List, Optional, Callable, Iterable, Mapping, Union
import asyncio
import time
import structlog

from jack.domain.models import ParsedIntent, ExecutionResult, ProgressStatus
from jack.infrastructure.observability.logging import pipeline_logger
from .base_plugin import BasePlugin, to_plugin_result
from .plugin_registry import PluginRegistry
from .condition_evaluator import evaluate_condition

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[str, ProgressStatus], None]

PRIOR_RESULTS_PARAM = "_priorResults"


class ActionExecutor:
    """Executes parsed intents through plugins, respecting the execution order.

    Groups run strictly in sequence; the intents of a group run concurrently.
    A failing intent never raises out of the executor: it is recorded as a
    failed result, its dependents are skipped, and independent siblings
    still run to completion. There is no retry and no timeout here.
    """

    def __init__(self, plugins: Union[PluginRegistry, Iterable[BasePlugin]]):
        if isinstance(plugins, PluginRegistry):
            self.registry = plugins
        else:
            self.registry = PluginRegistry()
            self.registry.register_all(plugins)

    async def execute(
        self,
        intent: ParsedIntent,
        prior_results: Optional[Mapping[str, ExecutionResult]] = None
    ) -> ExecutionResult:
        """Execute a single intent"""

        plugin = self.registry.get_plugin_for_action(intent.action)
        if plugin is None:
            return ExecutionResult(
                intent_id=intent.id,
                action=intent.action,
                success=False,
                error=f"No plugin found for action: {intent.action}"
            )

        params: Dict[str, Any] = dict(intent.parameters)
        if prior_results:
            params[PRIOR_RESULTS_PARAM] = dict(prior_results)

        start = time.perf_counter()
        try:
            outcome = to_plugin_result(await plugin.execute(intent.action, params))
            plugin.update_activity()
            result = ExecutionResult(
                intent_id=intent.id,
                action=intent.action,
                success=outcome.success,
                data=outcome.data,
                error=outcome.error
            )
        except Exception as e:
            logger.error("Plugin raised", intent_id=intent.id, action=intent.action, error=str(e))
            result = ExecutionResult(
                intent_id=intent.id,
                action=intent.action,
                success=False,
                error=str(e) or "Unknown error"
            )

        pipeline_logger.log_intent_execution(
            intent_id=intent.id,
            action=intent.action,
            success=result.success,
            duration_ms=(time.perf_counter() - start) * 1000,
            error=result.error
        )
        return result

    async def execute_group(
        self,
        intent_map: Mapping[str, ParsedIntent],
        group: List[str],
        results: Dict[str, ExecutionResult],
        on_progress: Optional[ProgressCallback] = None
    ) -> List[ExecutionResult]:
        """Execute one group of intents concurrently.

        Each result is stored in ``results`` as it completes. Returns the
        group's results in group order.
        """

        # Everything a group may depend on was produced by earlier groups
        prior_results = dict(results)

        group_results = await asyncio.gather(*[
            self._execute_in_group(intent_id, intent_map, prior_results, results, on_progress)
            for intent_id in group
        ])
        return list(group_results)

    async def execute_all(
        self,
        intents: List[ParsedIntent],
        execution_order: List[List[str]],
        on_progress: Optional[ProgressCallback] = None
    ) -> Dict[str, ExecutionResult]:
        """Execute all intents according to the execution order"""

        intent_map = {intent.id: intent for intent in intents}
        results: Dict[str, ExecutionResult] = {}

        for group in execution_order:
            await self.execute_group(intent_map, group, results, on_progress)

        return results

    async def _execute_in_group(
        self,
        intent_id: str,
        intent_map: Mapping[str, ParsedIntent],
        prior_results: Mapping[str, ExecutionResult],
        results: Dict[str, ExecutionResult],
        on_progress: Optional[ProgressCallback]
    ) -> ExecutionResult:
        intent = intent_map.get(intent_id)
        if intent is None:
            result = ExecutionResult(
                intent_id=intent_id,
                action="unknown",
                success=False,
                error="Intent not found"
            )
            results[intent_id] = result
            return result

        failed_dependency = self._find_failed_dependency(intent, prior_results)
        if failed_dependency is not None:
            reason = f"dependency '{failed_dependency}' failed"
            return self._skip(intent, reason, results, on_progress)

        if intent.conditional and intent.condition_expr:
            if not evaluate_condition(intent.condition_expr, prior_results):
                return self._skip(intent, "condition not met", results, on_progress)

        self._notify(on_progress, intent_id, ProgressStatus(type="started"))

        result = await self.execute(intent, prior_results)
        results[intent_id] = result

        if result.success:
            self._notify(on_progress, intent_id, ProgressStatus(type="completed", result=result.data))
        else:
            self._notify(on_progress, intent_id, ProgressStatus(type="failed", error=result.error or "Unknown error"))

        return result

    def _skip(
        self,
        intent: ParsedIntent,
        reason: str,
        results: Dict[str, ExecutionResult],
        on_progress: Optional[ProgressCallback]
    ) -> ExecutionResult:
        logger.info("Skipping intent", intent_id=intent.id, action=intent.action, reason=reason)

        result = ExecutionResult(
            intent_id=intent.id,
            action=intent.action,
            success=False,
            error=f"Skipped: {reason}"
        )
        results[intent.id] = result
        self._notify(on_progress, intent.id, ProgressStatus(type="skipped", reason=reason))
        return result

    @staticmethod
    def _find_failed_dependency(
        intent: ParsedIntent, results: Mapping[str, ExecutionResult]
    ) -> Optional[str]:
        """First dependency whose recorded result failed"""

        for dep_id in intent.dependencies:
            dep_result = results.get(dep_id)
            if dep_result is not None and not dep_result.success:
                return dep_id
        return None

    @staticmethod
    def _notify(on_progress: Optional[ProgressCallback], intent_id: str, status: ProgressStatus):
        if on_progress is None:
            return
        try:
            on_progress(intent_id, status)
        except Exception as e:
            logger.error("Error in progress callback", intent_id=intent_id, status=status.type, error=str(e))
