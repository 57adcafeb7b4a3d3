# ═══════════════════════════════════════════════════════════════════════════════
# PART 3: ACTION SELECTION
# Design: H3 (Enactivism)
# Implementation: I2 (Numerics)
# ═══════════════════════════════════════════════════════════════════════════════

"""
H3: "One action wins, but the others don't vanish. Each candidate keeps its
own strength so the near-misses stay visible."
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from mindbody.core.state import Action, InternalState, Interpretation, MotorBias


@dataclass(frozen=True)
class ActionAvailability:
    action: Action
    available: bool
    strength: float  # 0-1, how strongly this action is suggested

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "available": self.available,
            "strength": self.strength,
        }


def select_action(interp: Interpretation) -> Action:
    """Deterministic priority table over the interpretation vector."""
    if interp.perceived_threat > 0.8:
        return Action.FLINCH
    if interp.perceived_threat > 0.6:
        return Action.WITHDRAW
    if interp.cognitive_access < 0.2:
        return Action.OBSERVE
    if interp.motor_bias is MotorBias.FREEZE:
        return Action.OBSERVE
    if interp.cognitive_access > 0.7 and interp.perceived_threat < 0.3:
        return Action.APPROACH
    if interp.cognitive_access > 0.5:
        return Action.OVERRIDE
    return Action.OBSERVE


def get_action_availability(
    interp: Interpretation,
    state: InternalState,
) -> List[ActionAvailability]:
    """
    Score every action independently.

    These are not a softmax over select_action(): each action has its own
    enable condition and strength formula.
    """
    threat = interp.perceived_threat
    cognitive = interp.cognitive_access

    return [
        ActionAvailability(
            action=Action.OBSERVE,
            available=True,
            strength=cognitive * 0.5,
        ),
        ActionAvailability(
            action=Action.APPROACH,
            available=threat < 0.5 and cognitive > 0.4,
            strength=(1 - threat) * cognitive,
        ),
        ActionAvailability(
            action=Action.FLINCH,
            available=threat > 0.5,
            strength=threat,
        ),
        ActionAvailability(
            action=Action.WITHDRAW,
            available=threat > 0.3,
            strength=threat * 0.8,
        ),
        ActionAvailability(
            action=Action.OVERRIDE,
            available=cognitive > 0.6 and state.energy > 0.5,
            strength=cognitive * state.energy * (1 - threat * 0.5),
        ),
    ]
