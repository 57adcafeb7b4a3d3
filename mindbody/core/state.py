# ═══════════════════════════════════════════════════════════════════════════════
# PART 1: INTERNAL STATE VECTOR
# Design: N5 (Embodied Cognition) + I3 (State Management)
# Implementation: I2 (Numerics)
# ═══════════════════════════════════════════════════════════════════════════════

"""
N5: "Three numbers are enough to carry a disposition: how threatened, how
familiar, how much energy is left. Everything downstream is derived."

I3: "Clamp at the write boundary. Nothing outside [0, 1] ever gets in, so
nothing downstream has to check."
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np

logger = logging.getLogger(__name__)


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    """Clamp a scalar into [lo, hi]."""
    return float(np.clip(value, lo, hi))


class StimulusType(Enum):
    OBJECT = "object"
    SOUND = "sound"
    SOCIAL = "social"


class MotorBias(Enum):
    """Categorical behavioral lean."""
    APPROACH = "approach"
    FREEZE = "freeze"
    WITHDRAW = "withdraw"


class Action(Enum):
    OBSERVE = "observe"
    APPROACH = "approach"
    FLINCH = "flinch"
    WITHDRAW = "withdraw"
    OVERRIDE = "override"


ISV_FIELDS = ("threat", "familiarity", "energy")


@dataclass
class InternalState:
    """
    The internal state vector (ISV).

    Each component lives in [0, 1]. Writes go through update(), which clamps
    out-of-range values and ignores values that are not finite numbers.
    """
    threat: float = 0.2
    familiarity: float = 0.1
    energy: float = 0.8

    def __post_init__(self) -> None:
        defaults = InternalState.__dataclass_fields__
        for name in ISV_FIELDS:
            coerced = _coerce(getattr(self, name), name)
            if coerced is None:
                coerced = defaults[name].default
            setattr(self, name, clamp(coerced))

    def update(self, **fields: Any) -> None:
        """Write one or more components, clamping each to [0, 1]."""
        for name, value in fields.items():
            if name not in ISV_FIELDS:
                raise KeyError(f"Unknown state field: {name}")
            if value is None:
                continue
            coerced = _coerce(value, name)
            if coerced is None:
                continue
            setattr(self, name, clamp(coerced))

    def reset(self) -> None:
        """Return every component to its default."""
        self.threat = 0.2
        self.familiarity = 0.1
        self.energy = 0.8

    def copy(self) -> InternalState:
        return InternalState(self.threat, self.familiarity, self.energy)

    def to_dict(self) -> Dict[str, float]:
        return {
            "threat": self.threat,
            "familiarity": self.familiarity,
            "energy": self.energy,
        }


def _coerce(value: Any, name: str) -> Optional[float]:
    """Convert to float, or None (with a warning) for NaN/inf/non-numeric."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric value for %s: %r", name, value)
        return None
    if not math.isfinite(number):
        logger.warning("Ignoring non-finite value for %s: %r", name, value)
        return None
    return number


DEFAULT_INTENSITY = 0.5  # stands in for unusable stimulus intensities


@dataclass
class Stimulus:
    """An external event the agent is asked to interpret."""
    id: str
    type: StimulusType
    intensity: float
    label: str

    def __post_init__(self) -> None:
        self.type = StimulusType(self.type)
        intensity = _coerce(self.intensity, "intensity")
        self.intensity = DEFAULT_INTENSITY if intensity is None else clamp(intensity)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "intensity": self.intensity,
            "label": self.label,
        }


@dataclass(frozen=True)
class Interpretation:
    """Derived perception of a stimulus. Recomputed every cycle."""
    perceived_threat: float
    salience: float
    cognitive_access: float
    motor_bias: MotorBias

    def to_dict(self) -> Dict[str, Any]:
        return {
            "perceived_threat": self.perceived_threat,
            "salience": self.salience,
            "cognitive_access": self.cognitive_access,
            "motor_bias": self.motor_bias.value,
        }
