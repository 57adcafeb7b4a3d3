# ═══════════════════════════════════════════════════════════════════════════════
# PART 6: NARRATION, COGNITION FRAGMENTS, SOMATIC SIGNALS
# Design: H3 (Enactivism)
# Implementation: I4 (Integration)
# ═══════════════════════════════════════════════════════════════════════════════

"""
H3: "Narration is a readout, not a story. Fragments are what inner speech
looks like under pressure: one word, maybe two."
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from mindbody.core.state import Action, InternalState, Interpretation, MotorBias, Stimulus

IDLE_NARRATION = "Awaiting stimulus. Systems idle."


class SomaticRegion(Enum):
    CHEST = "chest"
    GUT = "gut"
    LIMBS = "limbs"
    HEAD = "head"


class SomaticType(Enum):
    TENSION = "tension"
    WARMTH = "warmth"
    COLD = "cold"
    PULSE = "pulse"


@dataclass(frozen=True)
class CognitionFragment:
    id: str
    text: str
    intensity: float
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "intensity": self.intensity,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class SomaticSignal:
    """A region-localized bodily sensation."""
    region: SomaticRegion
    intensity: float
    type: SomaticType

    def to_dict(self) -> Dict[str, Any]:
        return {
            "region": self.region.value,
            "intensity": self.intensity,
            "type": self.type.value,
        }


def explain(state: InternalState, stimulus: Optional[Stimulus], action: Action) -> str:
    """One-line narration of the current state and chosen action."""
    if stimulus is None:
        return IDLE_NARRATION

    if state.threat > 0.7:
        tail = (
            "Reflexive withdrawal triggered."
            if action is Action.FLINCH
            else "Motor override engaged."
        )
        return f"Threat dominant. Cognition bypassed. {tail}"

    if state.energy < 0.3:
        tail = (
            "Passive observation only."
            if action is Action.OBSERVE
            else "Forced action under fatigue."
        )
        return f"Energy depleted. Cognitive access restricted. {tail}"

    if state.familiarity > 0.7:
        tail = "Exploration safe." if action is Action.APPROACH else "Monitoring continues."
        return f"Stimulus recognized. Threat suppressed. {tail}"

    if state.threat > 0.4:
        tail = "Retreat initiated." if action is Action.WITHDRAW else "Assessing options."
        return f"Elevated threat. Attention narrowed. {tail}"

    return f"Systems nominal. Stimulus processed. Action: {action.value}."


def generate_cognition_fragments(
    state: InternalState,
    interp: Interpretation,
    stimulus: Optional[Stimulus],
    now: float,
    ids: Optional[Iterator[int]] = None,
) -> List[CognitionFragment]:
    """
    Short symbolic thought fragments for the current cycle.

    Ids are numbered from 1 within the cycle unless a shared counter is
    passed in.
    """
    ids = ids if ids is not None else itertools.count(1)
    texts = []

    if stimulus is None:
        texts.append(("waiting...", 0.2))
    else:
        if interp.perceived_threat > 0.7:
            texts.append(("DANGER", 1.0))
            texts.append(("move", 0.9))
        elif interp.perceived_threat > 0.4:
            texts.append(("uncertain", 0.6))
            texts.append(("assess", 0.5))

        if state.familiarity > 0.6:
            texts.append(("recognized", 0.4))
        elif state.familiarity < 0.3:
            texts.append(("unknown", 0.7))

        if state.energy < 0.3:
            texts.append(("exhausted", 0.8))
        elif state.energy > 0.7 and interp.perceived_threat < 0.3:
            texts.append(("safe enough", 0.3))

        if interp.cognitive_access < 0.3:
            texts.append(("overload", 0.9))

    return [
        CognitionFragment(
            id=f"cf-{next(ids)}",
            text=text,
            intensity=intensity,
            timestamp=now,
        )
        for text, intensity in texts
    ]


def generate_somatic_signals(
    state: InternalState,
    interp: Interpretation,
) -> List[SomaticSignal]:
    signals = []

    # Chest tightness from threat
    if interp.perceived_threat > 0.4:
        signals.append(SomaticSignal(
            SomaticRegion.CHEST, interp.perceived_threat, SomaticType.TENSION
        ))

    # Gut tension from uncertainty
    if state.familiarity < 0.4 and interp.salience > 0.5:
        signals.append(SomaticSignal(
            SomaticRegion.GUT, 1 - state.familiarity, SomaticType.TENSION
        ))

    # Limb readiness from motor bias
    if interp.motor_bias is MotorBias.APPROACH:
        signals.append(SomaticSignal(SomaticRegion.LIMBS, 0.6, SomaticType.WARMTH))
    elif interp.motor_bias is MotorBias.WITHDRAW:
        signals.append(SomaticSignal(SomaticRegion.LIMBS, 0.8, SomaticType.COLD))

    if interp.salience > 0.6:
        signals.append(SomaticSignal(
            SomaticRegion.HEAD, interp.salience, SomaticType.PULSE
        ))

    return signals
