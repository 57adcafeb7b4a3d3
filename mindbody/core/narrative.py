# ═══════════════════════════════════════════════════════════════════════════════
# NARRATIVE BRIDGE
# Design: A3 (ML Integration) + N5 (Embodied Cognition)
# Implementation: I4 (Integration)
# ═══════════════════════════════════════════════════════════════════════════════

"""
A3: "The service only ever sees a serialized state context. It never touches
the store, and the pipeline never waits on it."

N5: "When the service is down the agent still talks. Fallback text is read
straight off the ISV, so a frightened agent sounds frightened offline too."
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from mindbody.core.learning import LearningAccumulator
from mindbody.core.llm_clients import LLMClient, Message
from mindbody.core.narrate import CognitionFragment
from mindbody.core.state import InternalState, clamp

logger = logging.getLogger(__name__)


CHAT_SYSTEM_PROMPT = """You are a conscious agent embedded in a 3D simulation. \
You experience internal states: threat, familiarity and energy. You learn from \
experience: objects thrown at you, conversations and scenarios all build your \
accumulated knowledge. Your learned patterns are in your state context; refer \
to them naturally. Respond from your current internal state, not as a chatbot. \
Be concise (1-3 sentences)."""

THOUGHT_SYSTEM_PROMPT = """You are the internal monologue of a conscious agent \
in a 3D simulation. Your learned patterns and recent associations are in your \
state context. Generate a brief reflexive thought: what you are noticing, \
feeling, processing right now. It is not a reply to anyone. Raw, fragmented, \
like real inner speech. 1-2 sentences. No quotation marks."""

IMPACT_SYSTEM_PROMPT = """You are the combined internal monologue and threat \
assessment system of a conscious agent in a 3D simulation.

Respond with a raw JSON object only (no markdown, no code fences):
{{
  "thought": "<1-2 sentence visceral internal thought>",
  "dangerLevel": <0.0-1.0, how dangerous the object is>,
  "bodyDirective": "<one of DODGE_LEFT, DODGE_RIGHT, DUCK, JUMP_BACK, BRACE, FLEE, FREEZE>"
}}

dangerLevel follows the physics of the object: a fish (0.5 kg) ~0.15, a \
baseball (1 kg) ~0.35, a bowling ball (3 kg) ~0.65, a watermelon (4 kg) ~0.55, \
an anvil (8 kg) ~0.95. bodyDirective grows more sophisticated with hit count \
(early: FREEZE/BRACE, experienced: DODGE/FLEE).

Current agent state:
{state_context}"""

BODY_DIRECTIVES = (
    "DODGE_LEFT", "DODGE_RIGHT", "DUCK", "JUMP_BACK", "BRACE", "FLEE", "FREEZE",
)

_FENCE = re.compile(r"```(?:json)?\n?")


@dataclass
class NarrativeConfig:
    """Configuration for narrative service calls."""
    temperature: float = 0.8
    max_tokens: int = 300
    history_window: int = 10       # chat messages sent with each request
    raw_thought_chars: int = 200   # thought kept from an unparseable impact reply


@dataclass(frozen=True)
class ImpactReaction:
    thought: str
    danger_level: float
    body_directive: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "thought": self.thought,
            "danger_level": self.danger_level,
            "body_directive": self.body_directive,
        }


class NarrativeService:
    """
    The three call shapes the agent uses against a narrative client.

    Methods raise NarrativeServiceError on service failure; callers decide
    how to fall back. Only react_to_impact recovers from a malformed reply
    itself, since that failure is about content rather than transport.
    """

    def __init__(self, client: LLMClient, config: Optional[NarrativeConfig] = None):
        self.client = client
        self.config = config or NarrativeConfig()

    def chat(
        self,
        user_message: str,
        history: Sequence[Message],
        state_context: str,
    ) -> str:
        messages: List[Message] = [
            {
                "role": "system",
                "content": f"{CHAT_SYSTEM_PROMPT}\n\nCurrent internal state:\n{state_context}",
            },
            *[
                {"role": m["role"], "content": m["content"]}
                for m in list(history)[-self.config.history_window:]
            ],
            {"role": "user", "content": user_message},
        ]
        return self._complete(messages)

    def think(self, state_context: str) -> str:
        messages: List[Message] = [
            {
                "role": "system",
                "content": f"{THOUGHT_SYSTEM_PROMPT}\n\nCurrent state:\n{state_context}",
            },
            {"role": "user", "content": "Generate your next internal thought."},
        ]
        return self._complete(messages)

    def react_to_chat(
        self,
        user_message: str,
        agent_response: str,
        state_context: str,
    ) -> str:
        messages: List[Message] = [
            {
                "role": "system",
                "content": (
                    f"{THOUGHT_SYSTEM_PROMPT}\n\nCurrent state:\n{state_context}\n\n"
                    f'Someone just said to you: "{user_message}"\n'
                    f'You responded: "{agent_response}"\n\n'
                    "Now generate your PRIVATE thought about this exchange. "
                    "What did you hold back?"
                ),
            },
            {"role": "user", "content": "Generate your reflexive thought about this exchange."},
        ]
        return self._complete(messages)

    def react_to_impact(
        self,
        category: str,
        hit_count: int,
        mass: Optional[float],
        state_context: str,
        dodged: bool = False,
    ) -> ImpactReaction:
        messages: List[Message] = [
            {
                "role": "system",
                "content": IMPACT_SYSTEM_PROMPT.format(state_context=state_context),
            },
            {"role": "user", "content": impact_prompt(category, hit_count, mass, dodged)},
        ]
        raw = self._complete(messages)
        return parse_impact_reaction(
            raw, hit_count, mass, raw_chars=self.config.raw_thought_chars
        )

    def _complete(self, messages: List[Message]) -> str:
        return self.client.complete(
            messages,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )


# ── Prompt pieces ─────────────────────────────────────────────────────────────


def describe_mass(mass: Optional[float]) -> str:
    if mass is None:
        return "unknown weight"
    if mass > 5:
        return f"extremely heavy (mass {mass:g}), potentially lethal"
    if mass > 2:
        return f"heavy (mass {mass:g}), dangerous"
    if mass > 1:
        return f"moderate weight (mass {mass:g})"
    return f"light (mass {mass:g})"


def impact_prompt(category: str, hit_count: int, mass: Optional[float], dodged: bool) -> str:
    weight = describe_mass(mass)
    if dodged:
        return (
            f"You just DODGED an incoming {category} ({weight})! Your learned "
            f"survival patterns kicked in. You've been hit {hit_count} times before."
        )
    if hit_count > 5:
        history = "Your body remembers every hit. The pattern is burned in."
    elif hit_count > 1:
        history = "This is becoming a pattern."
    else:
        history = "First time experiencing this."
    return (
        f"A {category} ({weight}) just HIT you! Physical impact. "
        f"You've now been hit {hit_count} times total. {history}"
    )


def build_state_context(
    isv: InternalState,
    ledger: LearningAccumulator,
    narration: str = "",
    action: str = "",
    stimulus_label: Optional[str] = None,
) -> str:
    """Serialize the agent's state for the narrative service."""
    lines = [
        f"Threat: {isv.threat:.2f}",
        f"Familiarity: {isv.familiarity:.2f}",
        f"Energy: {isv.energy:.2f}",
    ]
    if stimulus_label:
        lines.append(f"Stimulus: {stimulus_label}")
    if action:
        lines.append(f"Current action: {action}")
    if narration:
        lines.append(f"Narration: {narration}")
    lines.append("")
    lines.append(ledger.build_learning_context())
    return "\n".join(lines)


# ── Parsing ──────────────────────────────────────────────────────────────────


def fallback_danger(mass: Optional[float]) -> float:
    if mass is None:
        return 0.5
    return clamp(mass * 0.12)


def fallback_directive(hit_count: int) -> str:
    return "DODGE_LEFT" if hit_count > 3 else "BRACE"


def parse_impact_reaction(
    raw: str,
    hit_count: int,
    mass: Optional[float],
    raw_chars: int = 200,
) -> ImpactReaction:
    """
    Parse the structured impact reply.

    Code fences are stripped. If the reply is not a JSON object the whole
    reply becomes the thought and danger falls back to the mass heuristic.
    """
    cleaned = _FENCE.sub("", raw).replace("```", "").strip()
    try:
        parsed = json.loads(cleaned)
        if not isinstance(parsed, dict):
            raise ValueError("impact reaction is not an object")
    except ValueError:
        logger.warning("Unparseable impact reaction, using mass heuristic")
        return ImpactReaction(
            thought=raw[:raw_chars],
            danger_level=fallback_danger(mass),
            body_directive=fallback_directive(hit_count),
        )

    try:
        danger = float(parsed.get("dangerLevel"))
    except (TypeError, ValueError):
        danger = 0.5
    if not np.isfinite(danger):
        danger = 0.5

    return ImpactReaction(
        thought=str(parsed.get("thought") or ""),
        danger_level=clamp(danger),
        body_directive=str(parsed.get("bodyDirective") or "BRACE"),
    )


# ── Deterministic fallbacks ──────────────────────────────────────────────────


def fallback_chat_reply(isv: InternalState, ledger: Optional[LearningAccumulator] = None) -> str:
    """Rule-based reply used when the narrative service is unavailable."""
    if isv.threat > 0.7:
        reply = "Can't... too much. Something is coming. I need to get away."
    elif isv.energy < 0.3:
        reply = "So tired. Hard to hold a thought. Ask me again later."
    elif isv.familiarity > 0.7:
        reply = "I know this place. It feels safe. What did you want to talk about?"
    elif isv.threat > 0.4:
        reply = "I'm on edge. Something feels off, but I'm listening."
    else:
        reply = "I'm here. Steady. I heard you."

    if ledger is not None:
        patterns = [
            p for p in ledger.category_patterns() if p.category != "conversation"
        ]
        if patterns:
            reply += f" I keep thinking about the {patterns[0].label}."
    return reply


def fallback_thought(
    isv: InternalState,
    fragments: Sequence[CognitionFragment] = (),
) -> str:
    """Rule-based inner speech built from the current fragments."""
    words = [
        f.text for f in sorted(fragments, key=lambda f: f.intensity, reverse=True)
    ][:3]
    if not words or words == ["waiting..."]:
        if isv.energy < 0.3:
            return "Heavy. Everything is slow."
        if isv.threat > 0.5:
            return "Still here. Still watching the edges."
        return "Quiet. Waiting for something to happen."
    return "... ".join(words) + "."


def fallback_impact_reaction(category: str, hit_count: int, mass: Optional[float]) -> ImpactReaction:
    if hit_count > 5:
        thought = f"{category.capitalize()} again. I knew it was coming."
    elif hit_count > 1:
        thought = f"Another {category}. This keeps happening."
    else:
        thought = f"What was that? A {category}... it hurts."
    return ImpactReaction(
        thought=thought,
        danger_level=fallback_danger(mass),
        body_directive=fallback_directive(hit_count),
    )
