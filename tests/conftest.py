"""
Shared fakes for pipeline tests.

Plugins, the NLP client and the client callbacks are all external
collaborators; these fakes record what they were asked to do.
"""
import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from jack.domain.capability.base_plugin import BasePlugin
from jack.domain.models import PluginResult


class FakePlugin(BasePlugin):
    """Plugin whose actions are served by per-action handlers.

    A handler is either a plain value returned as-is, or a callable taking
    ``params`` that may be a coroutine function or may raise.
    """

    def __init__(self, name: str, handlers: Dict[str, Any], delay: float = 0.0):
        super().__init__(name, list(handlers.keys()), description=f"{name} test plugin")
        self.handlers = handlers
        self.delay = delay
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    async def execute(self, action: str, params: Dict[str, Any]):
        self.calls.append((action, params))
        if self.delay:
            await asyncio.sleep(self.delay)

        handler = self.handlers[action]
        if callable(handler):
            outcome = handler(params)
            if asyncio.iscoroutine(outcome):
                outcome = await outcome
            return outcome
        return handler

    def call_count(self, action: Optional[str] = None) -> int:
        return len([c for c in self.calls if action is None or c[0] == action])


class FakeIntentClient:
    """NLP client returning a canned response, or raising"""

    def __init__(self, response: Any = None, error: Optional[Exception] = None):
        self.response = response
        self.error = error
        self.calls: List[Tuple[str, Any]] = []

    async def parse_intent(self, text, context=None):
        self.calls.append((text, context))
        if self.error is not None:
            raise self.error
        return self.response


class RecordingCallbacks:
    """Orchestrator callbacks recording every event in order"""

    def __init__(self):
        self.events: List[Tuple[str, tuple]] = []
        self.progress: List[Tuple[str, Any]] = []

    def on_ack(self, text):
        self.events.append(("ack", (text,)))

    def on_speech(self, text):
        self.events.append(("speech", (text,)))

    def on_document(self, path, document_type):
        self.events.append(("document", (path, document_type)))

    def on_clarify(self, question, options=None):
        self.events.append(("clarify", (question, options)))

    def on_error(self, code, message):
        self.events.append(("error", (code, message)))

    def on_progress(self, intent_id, status):
        self.progress.append((intent_id, status))

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def of(self, name: str) -> List[tuple]:
        return [args for event, args in self.events if event == name]


def ok(data: Any = None) -> PluginResult:
    return PluginResult(success=True, data=data)


def intent(intent_id: str, action: str, dependencies=None, condition: Optional[str] = None, **parameters):
    """Raw NLP-shaped intent dict"""
    raw: Dict[str, Any] = {
        "id": intent_id,
        "action": action,
        "parameters": parameters,
        "dependencies": dependencies or [],
    }
    if condition is not None:
        raw["conditional"] = True
        raw["conditionExpr"] = condition
    return raw


@pytest.fixture
def callbacks():
    return RecordingCallbacks()


@pytest.fixture
def time_plugin():
    return FakePlugin("clock", {
        "get_time": ok({"time": "3:45 PM"}),
        "get_date": ok({"date": "Monday"}),
    })


@pytest.fixture
def weather_plugin():
    return FakePlugin("weather", {
        "get_weather": ok({"temp": 72, "conditions": "sunny"}),
    })


@pytest.fixture
def memory_db(tmp_path):
    return str(tmp_path / "memory.db")
