# ═══════════════════════════════════════════════════════════════════════════════
# PART 5: COGNITION SUMMARY
# Design: N7 (Developmental Neuro) + H3 (Enactivism)
# Implementation: I3 (State Management)
# ═══════════════════════════════════════════════════════════════════════════════

"""
N7: "Phases are read off what has been learned, never declared. An agent that
has been hit once is reactive; one with many familiar categories and a history
of conversation is integrated."
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from mindbody.core.learning import (
    CONVERSATION_CATEGORY,
    GENERAL_CATEGORY,
    LearningAccumulator,
)
from mindbody.core.state import clamp


class CognitionPhase(Enum):
    DORMANT = "dormant"
    REACTIVE = "reactive"
    ADAPTIVE = "adaptive"
    PREDICTIVE = "predictive"
    INTEGRATED = "integrated"
    CONSCIOUS = "conscious"


class StrategyType(Enum):
    DEFENSIVE = "defensive"
    EXPLORATORY = "exploratory"
    INTEGRATIVE = "integrative"
    PREDICTIVE = "predictive"


# Lower awareness bound of each phase
PHASE_THRESHOLDS = [
    (0.8, CognitionPhase.CONSCIOUS),
    (0.6, CognitionPhase.INTEGRATED),
    (0.4, CognitionPhase.PREDICTIVE),
    (0.2, CognitionPhase.ADAPTIVE),
    (0.05, CognitionPhase.REACTIVE),
    (0.0, CognitionPhase.DORMANT),
]

PHASE_DESCRIPTIONS = {
    CognitionPhase.DORMANT: "No accumulated experience. Pure stimulus-response.",
    CognitionPhase.REACTIVE: "Raw reactions to events. Associations starting to form.",
    CognitionPhase.ADAPTIVE: "Responses shift with experience. Patterns are being learned.",
    CognitionPhase.PREDICTIVE: "Familiar events are anticipated before they arrive.",
    CognitionPhase.INTEGRATED: "Experience across categories informs a single stance.",
    CognitionPhase.CONSCIOUS: "The agent models its own learning and adjusts it.",
}

STRATEGY_MIN_STRENGTH = 0.1


@dataclass(frozen=True)
class CognitiveStrategy:
    type: StrategyType
    strength: float
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "strength": self.strength,
            "description": self.description,
        }


@dataclass(frozen=True)
class CognitionState:
    phase: CognitionPhase
    phase_description: str
    awareness_level: float
    integration_capacity: float
    predictive_accuracy: float
    self_model_depth: float
    active_strategies: List[CognitiveStrategy] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "phase_description": self.phase_description,
            "awareness_level": self.awareness_level,
            "integration_capacity": self.integration_capacity,
            "predictive_accuracy": self.predictive_accuracy,
            "self_model_depth": self.self_model_depth,
            "active_strategies": [s.to_dict() for s in self.active_strategies],
        }


def phase_for(awareness: float) -> CognitionPhase:
    for bound, phase in PHASE_THRESHOLDS:
        if awareness >= bound:
            return phase
    return CognitionPhase.DORMANT


def summarize_cognition(ledger: LearningAccumulator) -> CognitionState:
    """Derive the cognition summary from the learning ledger."""
    patterns = ledger.category_patterns()
    impact_patterns = [p for p in patterns if p.category != CONVERSATION_CATEGORY]
    general = ledger.patterns.get(GENERAL_CATEGORY)
    conversation = ledger.patterns.get(CONVERSATION_CATEGORY)

    integration = clamp(len(patterns) / 5)
    if impact_patterns:
        prediction = sum(p.familiarity for p in impact_patterns) / len(impact_patterns)
    else:
        prediction = 0.0
    self_model = clamp(conversation.exposure_count / 10) if conversation else 0.0

    awareness = clamp(
        ledger.total_exposures / 30
        + len(ledger.associations) / 100
        + integration * 0.2
        + self_model * 0.2
    )
    phase = phase_for(awareness)

    strategies: List[CognitiveStrategy] = []
    if general is not None:
        strategies.append(CognitiveStrategy(
            StrategyType.DEFENSIVE,
            general.survival_relevance,
            "Brace and evade when objects approach.",
        ))
    if impact_patterns:
        strategies.append(CognitiveStrategy(
            StrategyType.EXPLORATORY,
            clamp(len(impact_patterns) / 5),
            "Catalogue each new kind of object separately.",
        ))
    if conversation is not None:
        strategies.append(CognitiveStrategy(
            StrategyType.INTEGRATIVE,
            conversation.familiarity,
            "Use conversation to make sense of what happens.",
        ))
    seasoned = [p for p in impact_patterns if p.exposure_count >= 5]
    if seasoned:
        strategies.append(CognitiveStrategy(
            StrategyType.PREDICTIVE,
            max(p.familiarity for p in seasoned),
            f"Anticipate {seasoned[0].label} before contact.",
        ))

    return CognitionState(
        phase=phase,
        phase_description=PHASE_DESCRIPTIONS[phase],
        awareness_level=awareness,
        integration_capacity=integration,
        predictive_accuracy=prediction,
        self_model_depth=self_model,
        active_strategies=[
            s for s in strategies if s.strength >= STRATEGY_MIN_STRENGTH
        ],
    )
