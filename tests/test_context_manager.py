"""
Tests for the three-tier context manager.

Tests cover:
    - Short-term: newest first, cap of 3, 60 second lazy expiry, per client
    - Session: one active resource per client, last write wins
    - Long-term: typed values, namespaces, persistence across instances
    - Disconnect keeps long-term memory
    - Snapshot assembly
"""
import pytest
import pytest_asyncio

from jack.domain.context.context_manager import ContextManager
from jack.domain.context.memory.persistent_memory_store import (
    PersistentMemoryStore, serialize_value, deserialize_value
)
from jack.domain.context.memory.runtime_memory import RuntimeMemory
from jack.domain.exceptions import MemoryStoreError
from jack.domain.models import ActiveResource, ParsedIntent, ResourceType


def _intent(n):
    return ParsedIntent(id=f"i{n}", action=f"action_{n}")


@pytest_asyncio.fixture
async def context_manager(memory_db):
    manager = ContextManager(memory_db)
    await manager.initialize()
    yield manager
    await manager.close()


class TestShortTermContext:
    """Recent intents."""

    def test_cap_keeps_newest_three(self):
        memory = RuntimeMemory()
        for n in range(5):
            memory.record_intent("c1", _intent(n), {"n": n})

        recent = memory.get_recent_intents("c1")

        assert [r.intent.id for r in recent] == ["i4", "i3", "i2"]
        assert recent[0].result == {"n": 4}

    def test_expiry_after_sixty_seconds(self):
        memory = RuntimeMemory()
        entry = memory.record_intent("c1", _intent(1), None)

        entry.timestamp -= 60_000

        assert memory.get_recent_intents("c1") == []

    def test_expiry_boundary(self):
        """Should keep an entry 59,999 ms old and drop one 60,000 ms old."""
        now = [1_000_000]
        memory = RuntimeMemory(clock=lambda: now[0])
        memory.record_intent("c1", _intent(1), None)

        now[0] += 59_999
        assert len(memory.get_recent_intents("c1")) == 1

        now[0] += 1
        assert memory.get_recent_intents("c1") == []

    def test_per_client_isolation(self):
        memory = RuntimeMemory()
        memory.record_intent("c1", _intent(1), None)

        assert memory.get_recent_intents("c2") == []

    def test_returned_list_is_a_copy(self):
        memory = RuntimeMemory()
        memory.record_intent("c1", _intent(1), None)

        memory.get_recent_intents("c1").clear()

        assert len(memory.get_recent_intents("c1")) == 1

    def test_configured_limits(self):
        memory = RuntimeMemory(max_recent_intents=1, intent_expiry_ms=10)
        memory.record_intent("c1", _intent(1), None)
        memory.record_intent("c1", _intent(2), None)

        assert [r.intent.id for r in memory.get_recent_intents("c1")] == ["i2"]


class TestSessionContext:
    """Active resource slot."""

    @pytest.mark.asyncio
    async def test_last_write_wins(self, context_manager):
        context_manager.set_active_resource("c1", ActiveResource(type=ResourceType.FILE, path="/a.txt"))
        context_manager.set_active_resource("c1", ActiveResource(type=ResourceType.PROJECT, path="/proj"))

        resource = context_manager.get_active_resource("c1")

        assert resource.type == ResourceType.PROJECT
        assert resource.path == "/proj"
        assert context_manager.get_active_resource("c2") is None

    @pytest.mark.asyncio
    async def test_all_active_resources(self, context_manager):
        context_manager.set_active_resource("c1", ActiveResource(type=ResourceType.FILE, path="/a"))
        context_manager.set_active_resource("c2", ActiveResource(type=ResourceType.URL, path="https://b"))

        resources = context_manager.state_manager.get_all_active_resources()

        assert sorted(resources) == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_clear(self, context_manager):
        context_manager.set_active_resource("c1", ActiveResource(type=ResourceType.URL, path="https://x"))

        context_manager.clear_active_resource("c1")

        assert context_manager.get_active_resource("c1") is None


class TestSerialization:

    @pytest.mark.parametrize("value, tag", [
        ("hello", "string"), ("", "string"), (42, "number"), (3.25, "number"),
        (True, "boolean"), (False, "boolean"), (None, "null"),
    ])
    def test_round_trip_keeps_type(self, value, tag):
        serialized, value_type = serialize_value(value)

        restored = deserialize_value(serialized, value_type)

        assert value_type == tag
        assert restored == value
        assert type(restored) is type(value)

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            serialize_value([1, 2])


class TestLongTermMemory:
    """SQLite-backed key-value memory."""

    @pytest.mark.asyncio
    async def test_typed_values(self, context_manager):
        memory = context_manager.memory
        await memory.set("user.name", "Ada")
        await memory.set("user.age", 36)
        await memory.set("preference.volume", 0.8)
        await memory.set("preference.dark_mode", True)
        await memory.set("tool.last", None)

        assert await memory.get("user.name") == "Ada"
        assert await memory.get("user.age") == 36
        assert await memory.get("preference.volume") == 0.8
        assert await memory.get("preference.dark_mode") is True
        assert await memory.get("tool.last") is None
        assert await memory.get("missing.key") is None

    @pytest.mark.asyncio
    async def test_overwrite_and_delete(self, context_manager):
        memory = context_manager.memory
        await memory.set("user.name", "Ada")
        await memory.set("user.name", "Grace")

        entry = await memory.get_entry("user.name")
        assert entry.value == "Grace"
        assert entry.updated_at > 0

        await memory.delete("user.name")
        assert await memory.get_entry("user.name") is None

    @pytest.mark.asyncio
    async def test_namespace(self, context_manager):
        memory = context_manager.memory
        await memory.set("project.api.path", "/src/api")
        await memory.set("project.web.path", "/src/web")
        await memory.set("projects.other", "x")
        await memory.set("user.name", "Ada")

        assert await memory.get_namespace("project") == {
            "project.api.path": "/src/api",
            "project.web.path": "/src/web",
        }

    @pytest.mark.asyncio
    async def test_namespace_is_not_a_pattern(self, context_manager):
        memory = context_manager.memory
        await memory.set("user.name", "Ada")

        assert await memory.get_namespace("us_r") == {}
        assert await memory.get_namespace("%") == {}

    @pytest.mark.asyncio
    async def test_keys_and_clear(self, context_manager):
        memory = context_manager.memory
        await memory.set("b.key", 1)
        await memory.set("a.key", 2)

        assert await memory.keys() == ["a.key", "b.key"]

        await memory.clear()
        assert await memory.keys() == []

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, memory_db):
        first = ContextManager(memory_db)
        await first.initialize()
        await first.memory.set("user.name", "Ada")
        await first.memory.set("preference.units", 1.5)
        await first.memory.set("user.age", 36)
        await first.memory.set("preference.dark_mode", True)
        await first.memory.set("preference.muted", False)
        await first.memory.set("tool.last", None)
        await first.close()

        second = ContextManager(memory_db)
        await second.initialize()
        try:
            memory = second.memory
            assert await memory.get("user.name") == "Ada"
            assert await memory.get("preference.units") == 1.5

            age = await memory.get("user.age")
            assert age == 36
            assert type(age) is int
            assert await memory.get("preference.dark_mode") is True
            assert await memory.get("preference.muted") is False

            last = await memory.get_entry("tool.last")
            assert last is not None
            assert last.value is None
        finally:
            await second.close()

    @pytest.mark.asyncio
    async def test_use_before_initialize(self, memory_db):
        store = PersistentMemoryStore(memory_db)

        with pytest.raises(MemoryStoreError, match="Database not initialized"):
            await store.get("user.name")

        assert store.is_initialized is False


class TestClientLifecycle:

    @pytest.mark.asyncio
    async def test_clear_client_keeps_long_term(self, context_manager):
        context_manager.record_intent("c1", _intent(1), "done")
        context_manager.set_active_resource("c1", ActiveResource(type=ResourceType.FILE, path="/a"))
        await context_manager.memory.set("user.name", "Ada")

        context_manager.clear_client("c1")

        assert context_manager.get_recent_intents("c1") == []
        assert context_manager.get_active_resource("c1") is None
        assert await context_manager.memory.get("user.name") == "Ada"

    @pytest.mark.asyncio
    async def test_snapshot(self, context_manager):
        context_manager.record_intent("c1", _intent(1), {"ok": True})
        context_manager.set_active_resource("c1", ActiveResource(type=ResourceType.PROJECT, path="/proj"))
        await context_manager.memory.set("user.name", "Ada")
        await context_manager.memory.set("preference.voice", "calm")
        await context_manager.memory.set("project.proj.lang", "python")

        snapshot = await context_manager.get_snapshot("c1", ["user", "preference"])

        assert [r.intent.id for r in snapshot.recent_intents] == ["i1"]
        assert snapshot.active_resource.path == "/proj"
        assert snapshot.relevant_memory == {"user.name": "Ada", "preference.voice": "calm"}
