"""Tests for the narrative bridge: call shapes, parsing and fallbacks."""

import pytest

from mindbody.core.learning import LearningAccumulator
from mindbody.core.llm_clients import MockLLMClient
from mindbody.core.narrate import CognitionFragment
from mindbody.core.narrative import (
    NarrativeConfig,
    NarrativeService,
    build_state_context,
    describe_mass,
    fallback_chat_reply,
    fallback_impact_reaction,
    fallback_thought,
    parse_impact_reaction,
)
from mindbody.core.state import InternalState


def make_history(n):
    return [
        {"role": "user" if i % 2 == 0 else "assistant", "content": f"m{i}"}
        for i in range(n)
    ]


# ── Call shapes ──────────────────────────────────────────────────────────────


def test_chat_message_layout():
    """System prompt with state, last ten history messages, then the user turn."""
    client = MockLLMClient(responses=["reply"])
    service = NarrativeService(client)
    result = service.chat("how are you?", make_history(15), "Threat: 0.20")

    assert result == "reply"
    call = client.call_log[0]
    messages = call["messages"]
    assert len(messages) == 12
    assert messages[0]["role"] == "system"
    assert "Threat: 0.20" in messages[0]["content"]
    assert messages[1]["content"] == "m5"
    assert messages[-1] == {"role": "user", "content": "how are you?"}
    assert call["temperature"] == 0.8
    assert call["max_tokens"] == 300


def test_config_controls_sampling():
    """Temperature, token limit and history window come from config."""
    client = MockLLMClient(responses=["x"])
    config = NarrativeConfig(temperature=0.2, max_tokens=50, history_window=2)
    NarrativeService(client, config).chat("hi", make_history(6), "ctx")
    call = client.call_log[0]
    assert call["temperature"] == 0.2
    assert call["max_tokens"] == 50
    assert len(call["messages"]) == 4


def test_think_layout():
    """Thoughts are a system prompt plus a fixed instruction."""
    client = MockLLMClient(responses=["quiet"])
    assert NarrativeService(client).think("ctx") == "quiet"
    messages = client.call_log[0]["messages"]
    assert [m["role"] for m in messages] == ["system", "user"]
    assert "internal monologue" in messages[0]["content"]


def test_react_to_chat_includes_exchange():
    """The reactive thought sees both sides of the exchange."""
    client = MockLLMClient(responses=["hm"])
    NarrativeService(client).react_to_chat("are you ok?", "I'm fine.", "ctx")
    system = client.call_log[0]["messages"][0]["content"]
    assert '"are you ok?"' in system
    assert '"I\'m fine."' in system


def test_react_to_impact_parses_reply():
    """The impact call returns a parsed reaction."""
    client = MockLLMClient(responses=[
        '{"thought": "Heavy!", "dangerLevel": 0.65, "bodyDirective": "DUCK"}'
    ])
    reaction = NarrativeService(client).react_to_impact("bowling", 2, 3.0, "ctx")
    assert reaction.thought == "Heavy!"
    assert reaction.danger_level == pytest.approx(0.65)
    assert reaction.body_directive == "DUCK"
    user = client.call_log[0]["messages"][-1]["content"]
    assert "bowling" in user and "heavy" in user


# ── Impact parsing ───────────────────────────────────────────────────────────


def test_parse_strips_code_fences():
    """Fenced JSON is accepted."""
    raw = '```json\n{"thought": "Ow", "dangerLevel": 0.7, "bodyDirective": "BRACE"}\n```'
    reaction = parse_impact_reaction(raw, hit_count=1, mass=1.0)
    assert reaction.thought == "Ow"
    assert reaction.danger_level == pytest.approx(0.7)


def test_parse_clamps_and_defaults():
    """Danger is clamped; missing fields get defaults."""
    assert parse_impact_reaction('{"dangerLevel": 3}', 1, 1.0).danger_level == 1.0
    reaction = parse_impact_reaction('{"thought": "hm"}', 1, 1.0)
    assert reaction.danger_level == pytest.approx(0.5)
    assert reaction.body_directive == "BRACE"


def test_parse_failure_uses_mass_heuristic():
    """Non-JSON replies become the thought; danger comes from mass."""
    reaction = parse_impact_reaction("I can't think", hit_count=5, mass=3.0)
    assert reaction.thought == "I can't think"
    assert reaction.danger_level == pytest.approx(0.36)
    assert reaction.body_directive == "DODGE_LEFT"


def test_parse_failure_unknown_mass():
    """Without a mass the fallback danger is 0.5."""
    reaction = parse_impact_reaction("[1, 2]", hit_count=2, mass=None)
    assert reaction.danger_level == pytest.approx(0.5)
    assert reaction.body_directive == "BRACE"


def test_parse_failure_truncates_thought():
    """Raw thoughts are capped at 200 characters."""
    reaction = parse_impact_reaction("x" * 500, hit_count=1, mass=1.0)
    assert len(reaction.thought) == 200


@pytest.mark.parametrize("mass,word", [
    (8.0, "extremely heavy"),
    (3.0, "heavy"),
    (1.5, "moderate"),
    (0.5, "light"),
    (None, "unknown"),
])
def test_describe_mass(mass, word):
    assert describe_mass(mass).startswith(word)


# ── Fallbacks ────────────────────────────────────────────────────────────────


def test_fallback_reply_tracks_state():
    """Local replies follow the ISV."""
    assert fallback_chat_reply(InternalState(threat=0.9)).startswith("Can't")
    assert fallback_chat_reply(InternalState(threat=0.1, energy=0.1)).startswith("So tired")
    assert fallback_chat_reply(InternalState(threat=0.1, familiarity=0.9)).startswith("I know")
    assert fallback_chat_reply(InternalState(threat=0.1)).startswith("I'm here")


def test_fallback_reply_mentions_learning():
    """Local replies mention the most familiar projectile."""
    ledger = LearningAccumulator()
    ledger.register_hit("baseball", 1.0, now=0.0)
    assert "baseball" in fallback_chat_reply(InternalState(), ledger)


def test_fallback_thought_from_fragments():
    """Local thoughts string together the strongest fragments."""
    fragments = [
        CognitionFragment("a", "move", 0.9, 0.0),
        CognitionFragment("b", "DANGER", 1.0, 0.0),
    ]
    assert fallback_thought(InternalState(), fragments) == "DANGER... move."


def test_fallback_thought_idle():
    """With nothing going on the thought is quiet."""
    assert fallback_thought(InternalState()).startswith("Quiet")
    assert fallback_thought(InternalState(energy=0.1)).startswith("Heavy")


def test_fallback_impact_reaction():
    """Local impact reactions escalate with hit count."""
    first = fallback_impact_reaction("anvil", 1, 8.0)
    assert first.danger_level == pytest.approx(0.96)
    assert first.body_directive == "BRACE"
    later = fallback_impact_reaction("anvil", 6, 8.0)
    assert later.body_directive == "DODGE_LEFT"
    assert "again" in later.thought


def test_fallback_danger_stays_in_range():
    """Mass heuristics never leave [0, 1]."""
    assert fallback_impact_reaction("rock", 1, -5.0).danger_level == 0.0
    assert parse_impact_reaction("ow", hit_count=1, mass=-5.0).danger_level == 0.0
    assert fallback_impact_reaction("anvil", 1, 50.0).danger_level == 1.0


def test_state_context():
    """State context carries the ISV, the scene and learned patterns."""
    ledger = LearningAccumulator()
    ledger.register_hit("fish", 0.5, now=0.0)
    text = build_state_context(
        InternalState(), ledger, narration="Systems idle.", action="observe",
        stimulus_label="a fish",
    )
    assert "Threat: 0.20" in text
    assert "Stimulus: a fish" in text
    assert "Current action: observe" in text
    assert "fish: 1 exposures" in text
