# ═══════════════════════════════════════════════════════════════════════════════
# PART 2: INTERPRETATION ENGINE
# Design: N5 (Embodied Cognition) + A5 (Continual Learning)
# Implementation: I2 (Numerics)
# ═══════════════════════════════════════════════════════════════════════════════

"""
A5: "Experience has to reach perception or it isn't learning. Past hits make
the same stimulus read as more dangerous, and practice buys back some of the
reasoning capacity fear takes away."
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from mindbody.core.state import (
    InternalState,
    Interpretation,
    MotorBias,
    Stimulus,
    clamp,
)


@dataclass(frozen=True)
class LearnedContext:
    """Aggregate of accumulated experience that biases interpretation."""
    threat_bias: float = 0.0          # -1 to 1
    learned_familiarity: float = 0.0  # 0 to 1
    total_exposures: int = 0
    survival_relevance: float = 0.0   # 0 to 1


# Withdraw threshold drops once the agent has been conditioned
WITHDRAW_THRESHOLD = 0.7
CONDITIONED_WITHDRAW_THRESHOLD = 0.5
CONDITIONING_EXPOSURES = 3


def interpret(
    stimulus: Stimulus,
    state: InternalState,
    learned: Optional[LearnedContext] = None,
) -> Interpretation:
    """
    Interpret a stimulus given the current ISV and learned context.

    Pure: identical inputs always give an identical Interpretation. Each step
    is clamped before the next one reads it.
    """
    perceived_threat = clamp(
        stimulus.intensity * (1 + state.threat) * (1 - state.familiarity * 0.8)
    )

    if learned is not None:
        perceived_threat = clamp(perceived_threat + learned.threat_bias * 0.3)
        perceived_threat = clamp(perceived_threat + learned.survival_relevance * 0.15)

        # Competence counterbalances raw threat
        if learned.learned_familiarity > 0.3 and learned.total_exposures > 5:
            perceived_threat = clamp(
                perceived_threat * (1 - learned.learned_familiarity * 0.2)
            )

    salience = clamp(
        stimulus.intensity * (1 - state.familiarity * 0.5) + state.threat * 0.3
    )
    if learned is not None and learned.total_exposures > 0:
        salience = clamp(salience + learned.survival_relevance * 0.2)

    cognitive_access = clamp(state.energy * (1 - state.threat * 0.7))
    if learned is not None and learned.learned_familiarity > 0.3:
        cognitive_access = clamp(cognitive_access + learned.learned_familiarity * 0.15)

    if learned is not None and learned.total_exposures > CONDITIONING_EXPOSURES:
        withdraw_threshold = CONDITIONED_WITHDRAW_THRESHOLD
    else:
        withdraw_threshold = WITHDRAW_THRESHOLD

    if perceived_threat > withdraw_threshold:
        motor_bias = MotorBias.WITHDRAW
    elif cognitive_access < 0.3:
        motor_bias = MotorBias.FREEZE
    else:
        motor_bias = MotorBias.APPROACH

    return Interpretation(
        perceived_threat=perceived_threat,
        salience=salience,
        cognitive_access=cognitive_access,
        motor_bias=motor_bias,
    )


def idle_interpretation(state: InternalState) -> Interpretation:
    """Interpretation used when no stimulus is active."""
    return Interpretation(
        perceived_threat=clamp(state.threat * 0.3),
        salience=0.1,
        cognitive_access=clamp(state.energy * (1 - state.threat * 0.3)),
        motor_bias=MotorBias.APPROACH,
    )
