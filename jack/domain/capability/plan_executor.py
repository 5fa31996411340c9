from typing import Dict, Any, List, Optional, Callable, Awaitable, Protocol, Set
from datetime import datetime
import asyncio
import time
import uuid
import structlog

from jack.domain.exceptions import (
    PlanExecutionError, StepTimeoutError, StepFailedError, PermissionDeniedError
)
from jack.domain.models.plan import (
    ExecutionPlan, ExecutionStep, PlanExecution, StepExecution, StepStatus,
    ProgressUpdate, PermissionResponse, PlanExecutionResult
)
from .base_plugin import to_plugin_result
from .plugin_registry import PluginRegistry
from .action_executor import PRIOR_RESULTS_PARAM

logger = structlog.get_logger(__name__)

ProgressListener = Callable[[str, ProgressUpdate], None]


class PermissionHandler(Protocol):
    """Asks the user whether a step may run"""

    async def request_permission(
        self, client_id: str, step: ExecutionStep
    ) -> PermissionResponse:
        ...


class PlanExecutor:
    """Executes multi-step plans with retries, backoff and per-step timeouts.

    This is the heavier alternate to ActionExecutor, meant for plan-based
    agents. Steps become ready once all their dependencies completed;
    parallelizable ready steps run together, the rest one at a time. A
    failed step is retried up to ``max_retries`` times, waiting
    ``2 ** retry_count`` seconds before each retry. A step that still fails
    fails the whole plan.

    Step lifecycle: PENDING -> RUNNING -> (AWAITING_PERMISSION) -> COMPLETED | FAILED
    """

    def __init__(
        self,
        registry: PluginRegistry,
        permission_handler: Optional[PermissionHandler] = None,
        max_retries: int = 2,
        step_timeout: float = 30.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.registry = registry
        self.permission_handler = permission_handler
        self.max_retries = max_retries
        self.step_timeout = step_timeout
        self._sleep = sleep
        self._listeners: List[ProgressListener] = []
        self._cancelled: Set[str] = set()

        logger.info("Plan executor initialized", max_retries=max_retries, step_timeout=step_timeout)

    def add_progress_listener(self, listener: ProgressListener):
        self._listeners.append(listener)

    def cancel(self, plan_id: str):
        """Request cancellation; honoured before the next wave of steps"""
        self._cancelled.add(plan_id)

    async def execute(
        self,
        plan: ExecutionPlan,
        client_id: str,
        correlation_id: Optional[str] = None
    ) -> PlanExecutionResult:
        """Execute a plan"""

        correlation_id = correlation_id or str(uuid.uuid4())
        start = time.perf_counter()
        log = logger.bind(plan_id=plan.id, client_id=client_id, correlation_id=correlation_id)
        log.info("Executing plan", steps=len(plan.steps))

        execution = PlanExecution(
            plan_id=plan.id,
            client_id=client_id,
            step_executions={step.id: StepExecution(step=step) for step in plan.steps}
        )

        self._emit_progress(execution, f"Starting execution of {len(plan.steps)}-step plan...", 0)

        try:
            await self._execute_steps(plan.steps, execution)
        except PlanExecutionError as e:
            return self._finish_failed(execution, e.message, start, log)
        except Exception as e:
            return self._finish_failed(execution, str(e), start, log)
        finally:
            self._cancelled.discard(plan.id)

        duration_ms = (time.perf_counter() - start) * 1000
        tools_used = list(dict.fromkeys(step.action for step in plan.steps))

        if execution.status == StepStatus.CANCELLED:
            execution.completed_at = datetime.utcnow()
            log.info("Plan cancelled")
            self._emit_progress(execution, "Execution cancelled.", 100)
            return PlanExecutionResult(
                success=False,
                final_answer="Execution cancelled.",
                step_results=execution.results,
                duration_ms=duration_ms,
                tools_used=tools_used,
                error="cancelled"
            )

        execution.status = StepStatus.COMPLETED
        execution.completed_at = datetime.utcnow()

        log.info("Plan completed", duration_ms=duration_ms, tools_used=tools_used)
        self._emit_progress(execution, "Execution completed successfully!", 100)

        return PlanExecutionResult(
            success=True,
            final_answer=self._generate_final_answer(execution),
            step_results=execution.results,
            duration_ms=duration_ms,
            tools_used=tools_used
        )

    async def _execute_steps(self, steps: List[ExecutionStep], execution: PlanExecution):
        """Execute steps in dependency waves"""

        completed: Set[str] = set()
        remaining = [step.id for step in steps]

        while remaining:
            if execution.plan_id in self._cancelled:
                execution.status = StepStatus.CANCELLED
                for step_id in remaining:
                    execution.step_executions[step_id].status = StepStatus.CANCELLED
                return

            ready = [
                step for step in steps
                if step.id in remaining and all(dep in completed for dep in step.dependencies)
            ]
            if not ready:
                raise PlanExecutionError(
                    "Circular dependency detected or no steps can execute",
                    details={"remaining": remaining}
                )

            parallel_steps = [s for s in ready if s.parallelizable]
            sequential_steps = [s for s in ready if not s.parallelizable]

            if parallel_steps:
                await self._execute_parallel(parallel_steps, execution)
            for step in sequential_steps:
                await self._execute_step(step, execution)

            for step in ready:
                completed.add(step.id)
                remaining.remove(step.id)

            self._emit_progress(
                execution,
                f"Completed {len(completed)}/{len(steps)} steps",
                len(completed) / len(steps) * 100
            )

    async def _execute_parallel(self, steps: List[ExecutionStep], execution: PlanExecution):
        """Run a wave concurrently; the first failure cancels the siblings still running"""

        tasks = {asyncio.ensure_future(self._execute_step(s, execution)): s for s in steps}
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task, step in tasks.items():
                if not task.done():
                    task.cancel()
                    execution.step_executions[step.id].status = StepStatus.CANCELLED
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _execute_step(self, step: ExecutionStep, execution: PlanExecution):
        """Execute a single step, retrying with exponential backoff"""

        step_execution = execution.step_executions[step.id]

        while True:
            step_execution.status = StepStatus.RUNNING
            step_execution.started_at = datetime.utcnow()
            self._emit_progress(execution, step.description or step.action, step_id=step.id)

            try:
                await self._check_permission(step, step_execution, execution.client_id)
                result = await self._run_with_timeout(step, execution)
            except PermissionDeniedError as e:
                self._fail_step(step_execution, e)
                raise
            except Exception as e:
                logger.error("Step failed", step_id=step.id, action=step.action, error=str(e),
                             attempt=step_execution.retry_count + 1)

                if step_execution.retry_count < self.max_retries:
                    step_execution.retry_count += 1
                    logger.info("Retrying step", step_id=step.id, attempt=step_execution.retry_count + 1)
                    await self._sleep(2 ** step_execution.retry_count)
                    continue

                self._fail_step(step_execution, e)
                if isinstance(e, PlanExecutionError):
                    raise
                raise StepFailedError(str(e), details={"step_id": step.id}) from e

            execution.results[step.id] = result
            step_execution.result = result
            step_execution.status = StepStatus.COMPLETED
            step_execution.completed_at = datetime.utcnow()
            logger.info("Step completed", step_id=step.id, action=step.action)
            return

    async def _check_permission(self, step: ExecutionStep, step_execution: StepExecution, client_id: str):
        if not step.requires_permission:
            return

        step_execution.status = StepStatus.AWAITING_PERMISSION
        if self.permission_handler is None:
            raise PermissionDeniedError(
                "Permission denied: no permission handler configured",
                details={"step_id": step.id}
            )

        response = await self.permission_handler.request_permission(client_id, step)
        logger.info("Permission response", step_id=step.id, approved=response.approved, reason=response.reason)

        if not response.approved:
            raise PermissionDeniedError(
                f"Permission denied: {response.reason or 'User declined'}",
                details={"step_id": step.id}
            )
        step_execution.status = StepStatus.RUNNING

    async def _run_with_timeout(self, step: ExecutionStep, execution: PlanExecution) -> Dict[str, Any]:
        plugin = self.registry.get_plugin_for_action(step.action)
        if plugin is None:
            raise StepFailedError(f"Tool not found: {step.action}", details={"step_id": step.id})

        params = dict(step.parameters)
        if execution.results:
            params[PRIOR_RESULTS_PARAM] = dict(execution.results)

        try:
            raw = await asyncio.wait_for(plugin.execute(step.action, params), timeout=self.step_timeout)
        except asyncio.TimeoutError:
            raise StepTimeoutError("Step execution timeout", details={"step_id": step.id})

        outcome = to_plugin_result(raw)
        if not outcome.success:
            raise StepFailedError(outcome.error or "Step failed", details={"step_id": step.id})

        return outcome.model_dump()

    @staticmethod
    def _fail_step(step_execution: StepExecution, error: Exception):
        step_execution.status = StepStatus.FAILED
        step_execution.error = str(error)
        step_execution.completed_at = datetime.utcnow()

    def _finish_failed(self, execution: PlanExecution, message: str, start: float, log) -> PlanExecutionResult:
        execution.status = StepStatus.FAILED
        execution.completed_at = datetime.utcnow()
        log.error("Plan execution failed", error=message)
        self._emit_progress(execution, f"Execution failed: {message}", 100)

        return PlanExecutionResult(
            success=False,
            final_answer=f"I encountered an error: {message}",
            step_results=execution.results,
            duration_ms=(time.perf_counter() - start) * 1000,
            error=message
        )

    def _emit_progress(
        self,
        execution: PlanExecution,
        message: str,
        percentage: Optional[float] = None,
        step_id: Optional[str] = None
    ):
        update = ProgressUpdate(message=message, step_id=step_id, percentage=percentage or 0.0)
        execution.progress_updates.append(update)

        for listener in self._listeners:
            try:
                listener(execution.plan_id, update)
            except Exception as e:
                logger.error("Error in progress listener", plan_id=execution.plan_id, error=str(e))

    @staticmethod
    def _generate_final_answer(execution: PlanExecution) -> str:
        """Join the readable parts of the step outputs"""

        parts: List[str] = []
        for result in execution.results.values():
            data = result.get("data")
            if not data:
                continue
            if isinstance(data, str):
                parts.append(data)
            elif isinstance(data, dict):
                if isinstance(data.get("formatted"), str):
                    parts.append(data["formatted"])
                elif isinstance(data.get("message"), str):
                    parts.append(data["message"])

        return "\n\n".join(parts) if parts else "Task completed successfully!"
