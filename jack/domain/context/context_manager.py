from typing import Dict, List, Any, Optional
import structlog

from jack.domain.models import (
    ParsedIntent, RecentIntent, ActiveResource, ContextSnapshot, MemoryValue
)
from jack.infrastructure.observability.logging import pipeline_logger
from .memory.runtime_memory import RuntimeMemory, MAX_RECENT_INTENTS, INTENT_EXPIRY_MS
from .memory.persistent_memory_store import PersistentMemoryStore
from .state.state_manager import StateManager

logger = structlog.get_logger(__name__)


class ContextManager:
    """Three-tier context for the intent pipeline.

    1. Short-term: recent intents (3 turns or 60 seconds), per client,
       used for follow-up resolution.
    2. Session: the active resource, per client, until disconnect.
    3. Long-term: persisted namespaced key-value memory, global, survives
       restarts. Namespaces: user.*, preference.*, project.*, person.*, tool.*
    """

    def __init__(
        self,
        db_path: str,
        max_recent_intents: int = MAX_RECENT_INTENTS,
        intent_expiry_ms: int = INTENT_EXPIRY_MS
    ):
        self.runtime_memory = RuntimeMemory(
            max_recent_intents=max_recent_intents,
            intent_expiry_ms=intent_expiry_ms
        )
        self.state_manager = StateManager()
        self.memory = PersistentMemoryStore(db_path)

    async def initialize(self):
        """Open the long-term memory store"""

        self.memory.initialize()

    async def close(self):
        """Close the long-term memory store"""

        self.memory.close()

    # Short-term context

    def record_intent(self, client_id: str, intent: ParsedIntent, result: Any) -> RecentIntent:
        """Record an executed intent and its result for a client"""

        pipeline_logger.log_context_update(
            client_id, "short_term", "record", {"intent_id": intent.id, "action": intent.action}
        )
        return self.runtime_memory.record_intent(client_id, intent, result)

    def get_recent_intents(self, client_id: str) -> List[RecentIntent]:
        return self.runtime_memory.get_recent_intents(client_id)

    def clear_recent_intents(self, client_id: str):
        self.runtime_memory.clear_recent_intents(client_id)

    # Session context

    def set_active_resource(self, client_id: str, resource: ActiveResource):
        """Set the active resource for a client"""

        pipeline_logger.log_context_update(
            client_id, "session", "set", {"type": resource.type.value, "path": resource.path}
        )
        self.state_manager.set_active_resource(client_id, resource)

    def get_active_resource(self, client_id: str) -> Optional[ActiveResource]:
        return self.state_manager.get_active_resource(client_id)

    def clear_active_resource(self, client_id: str):
        self.state_manager.clear_active_resource(client_id)

    # Combined

    async def get_snapshot(self, client_id: str, namespaces: List[str]) -> ContextSnapshot:
        """Merge all three tiers into one view for the intent parser"""

        relevant_memory: Dict[str, MemoryValue] = {}
        for namespace in namespaces:
            relevant_memory.update(await self.memory.get_namespace(namespace))

        return ContextSnapshot(
            recent_intents=self.get_recent_intents(client_id),
            active_resource=self.get_active_resource(client_id),
            relevant_memory=relevant_memory
        )

    def clear_client(self, client_id: str):
        """Clear short-term and session context on disconnect.

        Long-term memory is user profile data, not session state, and is kept.
        """

        logger.info("Clearing client context", client_id=client_id)

        self.clear_recent_intents(client_id)
        self.clear_active_resource(client_id)
