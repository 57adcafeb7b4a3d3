"""Tests for the tick orchestrator, the event channel and the async flows."""

import asyncio
import json
import threading

import pytest

from mindbody.core.learning import GENERAL_CATEGORY
from mindbody.core.llm_clients import LLMClient, MockLLMClient, NarrativeHTTPError
from mindbody.core.narrate import IDLE_NARRATION
from mindbody.core.narrative import NarrativeService
from mindbody.core.orchestrator import (
    ChatReplyReceived,
    ImpactReactionReceived,
    Orchestrator,
    OrchestratorConfig,
    ThoughtReceived,
)
from mindbody.core.state import Action, Stimulus


# ── Helpers ──────────────────────────────────────────────────────────────────


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class FailingClient(LLMClient):
    def complete(self, messages, temperature=0.8, max_tokens=300):
        raise NarrativeHTTPError("service down", status_code=503)


class GatedClient(LLMClient):
    """First call answers immediately; later calls wait for the gate."""

    def __init__(self):
        self.gate = threading.Event()
        self.calls = 0

    def complete(self, messages, temperature=0.8, max_tokens=300):
        self.calls += 1
        if self.calls == 1:
            return "Hello."
        self.gate.wait(timeout=5)
        return "They seem friendly."


def make_orch(client=None, clock=None, **config):
    service = NarrativeService(client) if client is not None else None
    return Orchestrator(service, OrchestratorConfig(**config), clock=clock or FakeClock())


async def wait_for(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


# ── Entry points ─────────────────────────────────────────────────────────────


def test_initial_snapshot_is_idle():
    """A fresh orchestrator has an idle snapshot ready."""
    orch = make_orch()
    assert orch.snapshot.action is Action.OBSERVE
    assert orch.snapshot.narration == IDLE_NARRATION
    assert len(orch.snapshot.body_state) == 22


def test_set_state_ticks():
    """Every entry point leaves a fresh snapshot."""
    orch = make_orch()
    orch.set_state(threat=0.9)
    assert orch.snapshot.interpretation.perceived_threat == pytest.approx(0.27)


def test_introduce_stimulus():
    """Each exposure counts and adds a little familiarity."""
    orch = make_orch()
    orch.introduce_stimulus(Stimulus("b", "object", 0.5, "ball"))
    assert orch.store.exposure_count == 1
    assert orch.store.isv.familiarity == pytest.approx(0.15)
    assert orch.snapshot.narration != IDLE_NARRATION


def test_clear_stimulus():
    orch = make_orch()
    orch.introduce_stimulus(Stimulus("b", "object", 0.5, "ball"))
    orch.clear_stimulus()
    assert orch.store.stimulus is None
    assert orch.snapshot.narration == IDLE_NARRATION


def test_proximity_pulls_threat():
    """Proximity blends into threat only while a stimulus is active."""
    orch = make_orch()
    orch.set_proximity(1.0)
    assert orch.store.isv.threat == pytest.approx(0.2)

    orch.introduce_stimulus(Stimulus("b", "object", 0.5, "ball"))
    orch.set_proximity(1.0)
    assert orch.store.proximity == 1.0
    assert orch.store.isv.threat == pytest.approx(0.2 * 0.7 + 0.3)


def test_activate_scenario():
    """Scenarios add their delta and bring their stimulus."""
    orch = make_orch()
    orch.activate_scenario("dark-alley")
    isv = orch.store.isv
    assert isv.threat == pytest.approx(0.55)
    assert isv.energy == pytest.approx(0.75)
    assert orch.store.active_scenario == "dark-alley"
    assert orch.store.stimulus.label == "footsteps in the dark"


def test_scenario_deltas_clamp():
    """Repeated scenarios saturate at the bounds."""
    orch = make_orch()
    orch.activate_scenario("exhaustion")
    orch.activate_scenario("exhaustion")
    assert orch.store.isv.energy == 0.0


def test_unknown_scenario():
    with pytest.raises(KeyError):
        make_orch().activate_scenario("moon-landing")


def test_register_impact_spikes_threat():
    """Threat rises by 0.15 x mass on a first hit."""
    orch = make_orch()
    orch.register_impact("bowling")
    assert orch.store.isv.threat == pytest.approx(0.2 + 0.45)
    assert orch.store.ledger.patterns["bowling"].exposure_count == 1
    assert orch.store.brain_context.recent_impact.intensity == pytest.approx(0.6)


def test_learned_bias_amplifies_spike():
    """Later hits are amplified by what has been learned."""
    orch = make_orch()
    orch.register_impact("baseball")
    before = orch.store.isv.threat
    orch.register_impact("baseball")
    assert orch.store.isv.threat - before == pytest.approx(0.15 * (1 + 0.1 * 0.5))


def test_unknown_projectile_uses_default_mass():
    orch = make_orch()
    orch.register_impact("teapot")
    assert orch.store.isv.threat == pytest.approx(0.35)


def test_combo_window():
    """Hits within two seconds extend the combo."""
    clock = FakeClock()
    orch = make_orch(clock=clock)
    orch.register_impact("fish")
    clock.now = 1.0
    orch.register_impact("fish")
    assert orch.combo == 2
    clock.now = 10.0
    orch.register_impact("fish")
    assert orch.combo == 1
    assert orch.hits == 3


def test_learning_reaches_interpretation():
    """After impacts, the same stimulus reads as more threatening."""
    orch = make_orch()
    stim = Stimulus("b", "object", 0.4, "ball")
    orch.introduce_stimulus(stim)
    naive = orch.snapshot.interpretation.perceived_threat
    orch.set_state(threat=0.2)
    for _ in range(3):
        orch.register_impact("baseball")
    orch.set_state(threat=0.2)
    assert orch.snapshot.interpretation.perceived_threat > naive


def test_five_impacts_condition_the_agent():
    """Five baseball hits through the orchestrator reach the recognition tier."""
    orch = make_orch()
    for _ in range(5):
        orch.register_impact("baseball")
    pattern = orch.store.ledger.patterns["baseball"]
    assert pattern.exposure_count == 5
    assert pattern.learned_response.startswith("Recognizes baseball")
    associations = list(orch.store.ledger.associations)
    assert len(associations) == 5
    assert associations[-1].interpretation.startswith("Pattern recognized")


def test_register_chat_activity():
    orch = make_orch()
    orch.register_chat_activity(0.8)
    assert orch.store.brain_context.chat_boost(0.0) == pytest.approx(0.8)


def test_reset():
    """reset() forgets state, learning and pending events."""
    orch = make_orch()
    orch.register_impact("anvil")
    orch.post(ThoughtReceived("x", 0.0))
    orch.reset()
    assert orch.store.isv.threat == pytest.approx(0.2)
    assert GENERAL_CATEGORY not in orch.store.ledger.patterns
    assert orch.hits == 0
    assert orch.process_pending() == 0


def test_get_state_is_json():
    """get_state() serializes to JSON."""
    orch = make_orch()
    orch.register_impact("fish")
    orch.introduce_stimulus(Stimulus("b", "social", 0.5, "someone"))
    json.dumps(orch.get_state())


# ── Event channel ────────────────────────────────────────────────────────────


def test_events_apply_on_process_pending():
    """Posted events are not visible until applied."""
    orch = make_orch()
    orch.post(ChatReplyReceived("hi", 1.0))
    orch.post(ThoughtReceived("hmm", 1.0, "autonomous"))
    assert len(orch.store.chat_messages) == 0
    assert orch.process_pending() == 2
    assert orch.store.chat_messages[-1].role == "assistant"
    assert orch.store.thoughts[-1].text == "hmm"


def test_run_consumes_events():
    """The run() consumer applies events as they arrive."""
    async def scenario():
        orch = make_orch()
        consumer = asyncio.ensure_future(orch.run())
        orch.post(ThoughtReceived("drift", 0.0))
        await wait_for(lambda: len(orch.store.thoughts) == 1)
        consumer.cancel()

    asyncio.run(scenario())


def test_ticker_applies_events():
    """The ticker drains events and re-ticks on its interval."""
    async def scenario():
        orch = make_orch(tick_interval=0.01)
        orch.start_ticker()
        orch.post(ThoughtReceived("tick", 0.0))
        await wait_for(lambda: len(orch.store.thoughts) == 1)
        orch.stop_ticker()

    asyncio.run(scenario())


# ── Chat ─────────────────────────────────────────────────────────────────────


def test_send_message_with_service():
    """Replies and reactive thoughts arrive as events."""
    async def scenario():
        orch = make_orch(MockLLMClient(responses=["I'm here.", "They seem kind."]))
        reply = await orch.send_message("hello")
        assert reply == "I'm here."
        assert [m.role for m in orch.store.chat_messages] == ["user"]
        orch.process_pending()
        assert [m.role for m in orch.store.chat_messages] == ["user", "assistant"]
        assert not orch.store.chat_messages[-1].fallback
        assert orch.store.thoughts[-1].source == "reactive"
        assert orch.store.thoughts[-1].text == "They seem kind."
        assert "conversation" in orch.store.ledger.patterns

    asyncio.run(scenario())


def test_send_message_falls_back_when_service_fails():
    """Any client failure yields a local reply and a local thought."""
    async def scenario():
        orch = make_orch(FailingClient())
        orch.set_state(threat=0.9)
        reply = await orch.send_message("are you ok?")
        assert reply.startswith("Can't")
        orch.process_pending()
        assert orch.store.chat_messages[-1].fallback
        assert len(orch.store.thoughts) == 1
        assert not orch.is_chatting

    asyncio.run(scenario())


def test_send_message_offline():
    """With no service configured, chat still answers."""
    async def scenario():
        orch = make_orch()
        reply = await orch.send_message("hello")
        assert reply
        assert orch.process_pending() == 2

    asyncio.run(scenario())


def test_send_message_busy_returns_none():
    """A second message while one is in flight is rejected."""
    async def scenario():
        client = GatedClient()
        orch = make_orch(client)
        first = asyncio.ensure_future(orch.send_message("hello"))
        await wait_for(lambda: client.calls >= 2)
        assert orch.is_chatting
        assert await orch.send_message("again") is None
        client.gate.set()
        assert await first == "Hello."
        assert not orch.is_chatting
        user_messages = [m for m in orch.store.chat_messages if m.role == "user"]
        assert len(user_messages) == 1

    asyncio.run(scenario())


def test_tick_between_events_sees_partial_progress():
    """A tick after the reply but before the thought shows only the reply."""
    async def scenario():
        client = GatedClient()
        orch = make_orch(client)
        flow = asyncio.ensure_future(orch.send_message("hello"))
        await wait_for(lambda: orch.events.qsize() == 1)

        orch.process_pending()
        assert orch.store.chat_messages[-1].content == "Hello."
        assert len(orch.store.thoughts) == 0

        client.gate.set()
        await flow
        orch.process_pending()
        assert orch.store.thoughts[-1].text == "They seem friendly."

    asyncio.run(scenario())


# ── Thoughts ─────────────────────────────────────────────────────────────────


def test_thought_interval_in_range():
    """Thought spacing is drawn from the configured range."""
    orch = make_orch(seed=7)
    for _ in range(20):
        assert 8.0 <= orch.next_thought_delay() <= 15.0


def test_generate_thought_posts_event():
    async def scenario():
        orch = make_orch(MockLLMClient(responses=["Edges. Watching."]))
        assert await orch.generate_thought() == "Edges. Watching."
        orch.process_pending()
        assert orch.store.thoughts[-1].source == "autonomous"

    asyncio.run(scenario())


def test_stop_thought_loop():
    """Stopping the loop prevents further thoughts."""
    async def scenario():
        orch = make_orch(thought_interval_min=0.01, thought_interval_max=0.02)
        orch.start_thought_loop()
        assert orch.is_thinking
        await wait_for(lambda: orch.events.qsize() >= 2)
        orch.stop_thought_loop()
        assert not orch.is_thinking
        count = orch.events.qsize()
        await asyncio.sleep(0.1)
        assert orch.events.qsize() == count

    asyncio.run(scenario())


# ── Impact reactions ─────────────────────────────────────────────────────────


def test_react_to_impact_with_service():
    async def scenario():
        client = MockLLMClient(responses=[
            '```json\n{"thought": "Ow!", "dangerLevel": 0.4, "bodyDirective": "FREEZE"}\n```'
        ])
        orch = make_orch(client)
        orch.register_impact("baseball")
        reaction = await orch.react_to_impact("baseball")
        assert reaction.body_directive == "FREEZE"
        orch.process_pending()
        assert orch.store.last_impact_reaction == reaction
        assert orch.store.thoughts[-1].text == "Ow!"

    asyncio.run(scenario())


def test_react_to_impact_offline():
    """Offline impact reactions use the mass heuristic."""
    async def scenario():
        orch = make_orch()
        orch.register_impact("anvil")
        reaction = await orch.react_to_impact("anvil")
        assert reaction.danger_level == pytest.approx(0.96)
        event = orch.events.get_nowait()
        assert isinstance(event, ImpactReactionReceived)
        assert event.fallback

    asyncio.run(scenario())
