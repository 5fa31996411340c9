from typing import Dict, Any, List, Optional, Protocol, Set, Sequence
import asyncio
import inspect
import structlog

from jack.domain.models import (
    UserInput, ParsedIntent, ExecutionResult, IntentParseResult,
    TaskState, TaskStatus, ResourceType, ContextSnapshot
)
from jack.domain.parsing.intent_parser import IntentParser
from jack.domain.modality.modality_engine import (
    ModalityEngine, ModalityContext, infer_content_type
)
from jack.domain.capability.action_executor import ActionExecutor
from jack.domain.context.context_manager import ContextManager
from jack.infrastructure.observability.logging import pipeline_logger

logger = structlog.get_logger(__name__)


ACK_TEXT = "On it."
EMPTY_CLARIFICATION = "What would you like me to do?"
DEFAULT_MEMORY_NAMESPACES = ("user", "preference", "project", "person", "tool")


class OrchestratorCallbacks(Protocol):
    """Outbound channel to the client.

    Callbacks may be plain functions or coroutine functions. Coroutines are
    scheduled in the background and never awaited by the orchestrator.
    An optional ``on_progress(intent_id, status)`` is forwarded to the executor.
    """

    def on_ack(self, text: str) -> Any: ...

    def on_speech(self, text: str) -> Any: ...

    def on_document(self, path: str, document_type: str) -> Any: ...

    def on_clarify(self, question: str, options: Optional[List[str]] = None) -> Any: ...

    def on_error(self, code: str, message: str) -> Any: ...


class Orchestrator:
    """Routes a request through parse, acknowledge, execute, present.

    One task per ``handle`` call, tracked per client; a new call replaces
    the client's previous task record. Interruption is coarse: the flag is
    checked before each execution group, never mid-group.
    """

    def __init__(
        self,
        parser: IntentParser,
        modality_engine: ModalityEngine,
        executor: ActionExecutor,
        context_manager: Optional[ContextManager] = None,
        memory_namespaces: Sequence[str] = DEFAULT_MEMORY_NAMESPACES
    ):
        self.parser = parser
        self.modality_engine = modality_engine
        self.executor = executor
        self.context_manager = context_manager
        self.memory_namespaces = list(memory_namespaces)
        self.tasks: Dict[str, TaskStatus] = {}
        self.interrupted_clients: Set[str] = set()
        self._background: Set[asyncio.Task] = set()

    async def handle(self, user_input: UserInput, callbacks: OrchestratorCallbacks) -> TaskStatus:
        """Handle user input from start to finish"""

        client_id = user_input.client_id
        task = TaskStatus()
        self.tasks[client_id] = task
        # A stale interrupt must not cancel a fresh request
        self.interrupted_clients.discard(client_id)

        with structlog.contextvars.bound_contextvars(client_id=client_id, task_id=task.task_id):
            return await self._run(user_input, task, callbacks)

    async def _run(self, user_input: UserInput, task: TaskStatus, callbacks: OrchestratorCallbacks) -> TaskStatus:
        client_id = user_input.client_id
        logger.info("Handling input", text_length=len(user_input.text))

        try:
            context = await self._build_context(client_id)
            parse_result = await self.parser.parse_input(user_input.text, context)
        except Exception as e:
            logger.error("Intent parsing failed", error=str(e))
            self._transition(client_id, task, TaskState.FAILED, "parse_error")
            self._dispatch(callbacks.on_error, "INTERNAL_ERROR", str(e) or "Unknown error")
            return task

        if parse_result.clarification_needed is not None:
            clarification = parse_result.clarification_needed
            self._dispatch(callbacks.on_clarify, clarification.question, clarification.options)
            self._transition(client_id, task, TaskState.COMPLETED, "clarification")
            return task

        if not parse_result.intents:
            self._dispatch(callbacks.on_clarify, EMPTY_CLARIFICATION, None)
            self._transition(client_id, task, TaskState.COMPLETED, "no_intents")
            return task

        task.intents = list(parse_result.intents)
        self._transition(client_id, task, TaskState.RUNNING)

        if parse_result.requires_acknowledgment:
            self._dispatch(callbacks.on_ack, ACK_TEXT)

        try:
            interrupted = await self._execute_groups(client_id, task, parse_result, callbacks)
        except Exception as e:
            logger.error("Execution failed unexpectedly", error=str(e))
            self._transition(client_id, task, TaskState.FAILED, "execution_error")
            self._dispatch(callbacks.on_error, "INTERNAL_ERROR", str(e) or "Unknown error")
            return task

        if interrupted:
            self._transition(client_id, task, TaskState.INTERRUPTED, "interrupted")
            return task

        self._report_results(client_id, task, callbacks)
        return task

    def interrupt(self, client_id: str):
        """Interrupt the client's current task at the next group boundary"""

        logger.info("Interrupt requested", client_id=client_id)
        self.interrupted_clients.add(client_id)

    def get_task_status(self, client_id: str) -> Optional[TaskStatus]:
        """Get the status of the current or last task for a client"""

        return self.tasks.get(client_id)

    async def _build_context(self, client_id: str) -> Optional[ContextSnapshot]:
        if self.context_manager is None:
            return None
        return await self.context_manager.get_snapshot(client_id, self.memory_namespaces)

    async def _execute_groups(
        self,
        client_id: str,
        task: TaskStatus,
        parse_result: IntentParseResult,
        callbacks: OrchestratorCallbacks
    ) -> bool:
        """Run groups in order; returns True if interrupted before a group"""

        intent_map = {intent.id: intent for intent in parse_result.intents}
        results: Dict[str, ExecutionResult] = {}
        on_progress = getattr(callbacks, "on_progress", None)

        for group in parse_result.execution_order:
            if client_id in self.interrupted_clients:
                self.interrupted_clients.discard(client_id)
                logger.info("Task interrupted", client_id=client_id, task_id=task.task_id,
                            completed_results=len(task.results))
                return True

            group_results = await self.executor.execute_group(intent_map, group, results, on_progress)
            task.results.extend(group_results)

        return False

    def _report_results(self, client_id: str, task: TaskStatus, callbacks: OrchestratorCallbacks):
        intent_map = {intent.id: intent for intent in task.intents}
        modality_context = self._modality_context(client_id)

        for result in task.results:
            if not result.success:
                # First failure wins; later results are not reported
                self._dispatch(callbacks.on_error, "EXECUTION_FAILED", result.error or "Unknown error")
                self._transition(client_id, task, TaskState.FAILED, "execution_failed")
                return

            context = modality_context.model_copy(update={"is_log": result.action == "generate_logs"})
            decision = self.modality_engine.decide(result, infer_content_type(result.action), context)

            if decision.document and decision.document_location and decision.document_type:
                self._dispatch(callbacks.on_document, decision.document_location, decision.document_type)

            if decision.voice:
                self._dispatch(callbacks.on_speech, decision.highlights or self.format_result(result))

            self._remember(client_id, intent_map.get(result.intent_id), result)

        self._transition(client_id, task, TaskState.COMPLETED)

    def _modality_context(self, client_id: str) -> ModalityContext:
        if self.context_manager is None:
            return ModalityContext()
        resource = self.context_manager.get_active_resource(client_id)
        if resource is not None and resource.type == ResourceType.PROJECT:
            return ModalityContext(project_path=resource.path)
        return ModalityContext()

    def _remember(self, client_id: str, intent: Optional[ParsedIntent], result: ExecutionResult):
        if self.context_manager is None or intent is None:
            return
        self.context_manager.record_intent(client_id, intent, result.data)

    def _transition(self, client_id: str, task: TaskStatus, state: TaskState, reason: Optional[str] = None):
        previous = task.state
        task.transition(state)
        pipeline_logger.log_task_transition(
            client_id=client_id,
            task_id=task.task_id,
            from_state=previous.value,
            to_state=state.value,
            reason=reason
        )

    def _dispatch(self, callback, *args):
        """Invoke a callback without blocking on it"""

        try:
            outcome = callback(*args)
        except Exception as e:
            logger.error("Callback raised", callback=getattr(callback, "__name__", repr(callback)), error=str(e))
            return

        if inspect.isawaitable(outcome):
            background = asyncio.ensure_future(outcome)
            self._background.add(background)
            background.add_done_callback(self._on_background_done)

    def _on_background_done(self, background: asyncio.Task):
        self._background.discard(background)
        if background.cancelled():
            return
        error = background.exception()
        if error is not None:
            logger.error("Background callback failed", error=str(error))

    @staticmethod
    def format_result(result: ExecutionResult) -> str:
        """Format a result for speech when no highlights are available"""

        data = result.data
        if not isinstance(data, dict):
            return "Done."

        if isinstance(data.get("time"), str):
            return data["time"]

        temp, conditions = data.get("temp"), data.get("conditions")
        if isinstance(temp, (int, float)) and not isinstance(temp, bool) and isinstance(conditions, str):
            return f"{temp} degrees and {conditions}"

        value = data.get("result")
        if isinstance(value, str) or (isinstance(value, (int, float)) and not isinstance(value, bool)):
            return str(value)

        return "Done."
