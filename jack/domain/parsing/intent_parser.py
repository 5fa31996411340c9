"""Intent parser: natural language in, structured intents out.

The NLP step (text to intents with a dependency graph and execution order)
is delegated to an external language-model client. Behavior decisions such
as whether to acknowledge are hardcoded rules applied on top, so they stay
fast, predictable and testable without a model in the loop.
"""
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, Union
import structlog

from jack.domain.models import ContextSnapshot, IntentParseResult

logger = structlog.get_logger(__name__)


# Actions cheap enough to answer without acknowledging first
FAST_ACTIONS = frozenset({
    "get_time",
    "get_date",
    "get_weather",
    "simple_math",
})


class IntentClient(Protocol):
    """External NLP collaborator.

    Returns ``{intents, executionOrder, clarificationNeeded?}``. The client
    owns the dependency graph and must return a valid topological layering.
    """

    async def parse_intent(
        self, text: str, context: Optional[ContextSnapshot] = None
    ) -> Union[Mapping[str, Any], IntentParseResult]:
        ...


class IntentParser:
    """Wraps the NLP client and applies the acknowledgment policy"""

    def __init__(self, client: IntentClient, fast_actions: Iterable[str] = FAST_ACTIONS):
        self.client = client
        self.fast_actions = frozenset(fast_actions)

    async def parse_input(
        self, text: str, context: Optional[ContextSnapshot] = None
    ) -> IntentParseResult:
        """Parse user input into intents with an acknowledgment decision.

        Errors raised by the NLP client propagate to the caller.
        """

        raw = await self.client.parse_intent(text, context)
        parsed = self._coerce(raw)

        requires_ack = self.should_acknowledge(parsed, self.fast_actions)
        result = parsed.model_copy(update={"requires_acknowledgment": requires_ack})

        logger.debug(
            "Parsed input",
            intents=[i.action for i in result.intents],
            groups=len(result.execution_order),
            requires_acknowledgment=requires_ack,
            clarification=result.clarification_needed is not None
        )
        return result

    @staticmethod
    def should_acknowledge(
        parsed: IntentParseResult, fast_actions: Iterable[str] = FAST_ACTIONS
    ) -> bool:
        """Decide whether to acknowledge before executing.

        - Clarification needed: no, the question itself is the response
        - No intents: no, nothing to acknowledge
        - Multiple intents: yes, this will take a while
        - Single fast action: no, the answer comes quickly
        - Single other action: yes, the user should know we're working
        """

        if parsed.clarification_needed is not None:
            return False
        if not parsed.intents:
            return False
        if len(parsed.intents) > 1:
            return True
        return parsed.intents[0].action not in frozenset(fast_actions)

    @staticmethod
    def _coerce(raw: Union[Mapping[str, Any], IntentParseResult]) -> IntentParseResult:
        if isinstance(raw, IntentParseResult):
            return raw
        payload: Dict[str, Any] = dict(raw)
        # The acknowledgment decision is ours, never the model's
        payload.pop("requiresAcknowledgment", None)
        payload.pop("requires_acknowledgment", None)
        return IntentParseResult.model_validate(payload)
