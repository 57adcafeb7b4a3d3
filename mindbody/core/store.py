# ═══════════════════════════════════════════════════════════════════════════════
# PART 9: STATE STORE + PIPELINE
# Design: I1 (Systems Architect) + I3 (State Management)
# Implementation: I3 (State Management)
# ═══════════════════════════════════════════════════════════════════════════════

"""
I1: "No hidden globals. The store is an object you hold, and the pipeline is
a function of it. Whoever owns the store owns the agent."

I3: "A snapshot is computed whole or not at all. Consumers never see a body
with missing parts or half a brain."

Data flow per cycle:
    Stimulus x ISV x LearnedContext -> Interpretation -> Action
      -> {Narration, CognitionFragments, SomaticSignals}
      -> BrainRegions -> BodyState
"""

from __future__ import annotations

import itertools
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

from mindbody.core.actions import ActionAvailability, get_action_availability, select_action
from mindbody.core.body import BodyState, compute_body_state
from mindbody.core.brain import BrainContext, BrainRegion, ImpactEvent, generate_brain_regions
from mindbody.core.cognition import CognitionState, summarize_cognition
from mindbody.core.interpret import idle_interpretation, interpret
from mindbody.core.learning import LearningAccumulator
from mindbody.core.narrate import (
    CognitionFragment,
    SomaticSignal,
    explain,
    generate_cognition_fragments,
    generate_somatic_signals,
)
from mindbody.core.state import Action, InternalState, Interpretation, Stimulus

MAX_THOUGHTS = 30
MAX_CHAT_MESSAGES = 100


@dataclass(frozen=True)
class ThoughtEntry:
    id: str
    text: str
    source: str  # autonomous | reactive
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "source": self.source,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ChatMessage:
    id: str
    role: str  # user | assistant
    content: str
    timestamp: float
    fallback: bool = False  # generated locally while the service was unavailable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
            "fallback": self.fallback,
        }


@dataclass
class Snapshot:
    """Read-only output of one pipeline cycle."""
    interpretation: Interpretation
    action: Action
    action_availability: List[ActionAvailability]
    narration: str
    cognition_fragments: List[CognitionFragment]
    somatic_signals: List[SomaticSignal]
    brain_regions: List[BrainRegion]
    body_state: BodyState
    cognition: CognitionState
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "interpretation": self.interpretation.to_dict(),
            "action": self.action.value,
            "action_availability": [a.to_dict() for a in self.action_availability],
            "narration": self.narration,
            "cognition_fragments": [f.to_dict() for f in self.cognition_fragments],
            "somatic_signals": [s.to_dict() for s in self.somatic_signals],
            "brain_regions": [r.to_dict() for r in self.brain_regions],
            "body_state": self.body_state.to_dict(),
            "cognition": self.cognition.to_dict(),
            "timestamp": self.timestamp,
        }


@dataclass
class StateStore:
    """
    Everything the agent holds between cycles.

    Mutated only by the orchestrator's entry points and by events applied
    from the narrative flows.
    """
    isv: InternalState = field(default_factory=InternalState)
    stimulus: Optional[Stimulus] = None
    proximity: float = 0.0
    exposure_count: int = 0
    active_scenario: Optional[str] = None
    ledger: LearningAccumulator = field(default_factory=LearningAccumulator)
    brain_context: BrainContext = field(default_factory=BrainContext)
    thoughts: Deque[ThoughtEntry] = field(
        default_factory=lambda: deque(maxlen=MAX_THOUGHTS)
    )
    chat_messages: Deque[ChatMessage] = field(
        default_factory=lambda: deque(maxlen=MAX_CHAT_MESSAGES)
    )
    last_impact_reaction: Optional[Any] = None

    def __post_init__(self) -> None:
        self._ids = itertools.count(1)

    @property
    def stimulus_active(self) -> bool:
        return self.stimulus is not None

    def next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def record_impact(self, intensity: float, now: float, source: str = "projectile") -> None:
        self.brain_context.recent_impact = ImpactEvent(intensity, now, source)

    def record_chat_activity(self, level: float, now: float) -> None:
        self.brain_context.chat_activity = max(0.0, min(1.0, level))
        self.brain_context.chat_timestamp = now

    def add_thought(self, text: str, source: str, now: float) -> ThoughtEntry:
        entry = ThoughtEntry(self.next_id("thought"), text, source, now)
        self.thoughts.append(entry)
        return entry

    def add_chat_message(
        self, role: str, content: str, now: float, fallback: bool = False
    ) -> ChatMessage:
        message = ChatMessage(self.next_id("msg"), role, content, now, fallback)
        self.chat_messages.append(message)
        return message

    def reset(self) -> None:
        self.isv.reset()
        self.stimulus = None
        self.proximity = 0.0
        self.exposure_count = 0
        self.active_scenario = None
        self.ledger.reset()
        self.brain_context = BrainContext()
        self.thoughts.clear()
        self.chat_messages.clear()
        self.last_impact_reaction = None


def run_pipeline(store: StateStore, now: float) -> Snapshot:
    """
    Run one full cycle over the store. Reads the store, never writes it.
    """
    isv = store.isv
    stimulus = store.stimulus

    if stimulus is None:
        interp = idle_interpretation(isv)
        action = Action.OBSERVE
    else:
        learned = store.ledger.get_learned_context(now)
        interp = interpret(stimulus, isv, learned)
        action = select_action(interp)

    somatic = generate_somatic_signals(isv, interp)
    regions = generate_brain_regions(isv, interp, store.brain_context, now)

    return Snapshot(
        interpretation=interp,
        action=action,
        action_availability=get_action_availability(interp, isv),
        narration=explain(isv, stimulus, action),
        cognition_fragments=generate_cognition_fragments(isv, interp, stimulus, now),
        somatic_signals=somatic,
        brain_regions=regions,
        body_state=compute_body_state(isv, interp, action, somatic, regions),
        cognition=summarize_cognition(store.ledger),
        timestamp=now,
    )
