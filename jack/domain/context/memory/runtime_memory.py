from typing import Dict, List, Any, Callable
from collections import defaultdict

from jack.domain.models import ParsedIntent, RecentIntent, now_ms


MAX_RECENT_INTENTS = 3
INTENT_EXPIRY_MS = 60_000


class RuntimeMemory:
    """Short-term memory of recently executed intents, per client.

    Entries are kept newest first and capped at ``max_recent_intents``.
    Expiry is lazy: stale entries are dropped whenever a client's list is read.
    """

    def __init__(
        self,
        max_recent_intents: int = MAX_RECENT_INTENTS,
        intent_expiry_ms: int = INTENT_EXPIRY_MS,
        clock: Callable[[], int] = now_ms
    ):
        self.max_recent_intents = max_recent_intents
        self.intent_expiry_ms = intent_expiry_ms
        self._clock = clock
        self.recent_intents: Dict[str, List[RecentIntent]] = defaultdict(list)

    def record_intent(self, client_id: str, intent: ParsedIntent, result: Any) -> RecentIntent:
        """Record an intent and its result, evicting the oldest beyond the cap"""

        entry = RecentIntent(intent=intent, result=result, timestamp=self._clock())
        intents = self.recent_intents[client_id]
        intents.insert(0, entry)
        del intents[self.max_recent_intents:]
        return entry

    def get_recent_intents(self, client_id: str) -> List[RecentIntent]:
        """Get unexpired recent intents for a client, newest first"""

        intents = self.recent_intents.get(client_id)
        if not intents:
            return []

        now = self._clock()
        valid = [i for i in intents if now - i.timestamp < self.intent_expiry_ms]

        if len(valid) != len(intents):
            if valid:
                self.recent_intents[client_id] = valid
            else:
                self.recent_intents.pop(client_id, None)

        return list(valid)

    def clear_recent_intents(self, client_id: str):
        """Clear recent intents for a client"""

        self.recent_intents.pop(client_id, None)
