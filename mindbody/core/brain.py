# ═══════════════════════════════════════════════════════════════════════════════
# PART 7: BRAIN ACTIVATION MAP
# Design: N5 (Embodied Cognition) + I2 (Numerics)
# Implementation: I2 (Numerics)
# ═══════════════════════════════════════════════════════════════════════════════

"""
N5: "Every region is a fixed linear readout of the same handful of signals.
The weights are the regions: amygdala follows threat and impacts, prefrontal
follows cognitive access and conversation."

I2: "One weight matrix, one feature vector, one clip. Regions can't drift out
of [0, 1] and none can go missing."
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from mindbody.core.color import rgb, to_hex
from mindbody.core.state import InternalState, Interpretation, MotorBias

IMPACT_DECAY = 3.0  # seconds for an impact boost to fade to zero
CHAT_DECAY = 5.0    # seconds for chat activity to fade to zero

MOTOR_ACTIVITY = {
    MotorBias.APPROACH: 0.8,
    MotorBias.WITHDRAW: 0.9,
    MotorBias.FREEZE: 0.2,
}

FEATURES = (
    "bias",         # constant 1.0
    "threat",       # perceived threat
    "salience",
    "cognitive",    # cognitive access
    "familiarity",
    "energy",
    "fatigue",      # 1 - energy
    "calm",         # 1 - perceived threat
    "strain",       # 1 - cognitive access
    "motor",
    "arousal",
    "impact",       # decayed impact boost
    "chat",         # decayed chat boost
)


@dataclass(frozen=True)
class RegionSpec:
    id: str
    label: str
    color: str
    position: Tuple[float, float, float]
    weights: Dict[str, float]


# Reference catalogue. Weights are per region and must not be shared.
REGION_CATALOGUE: List[RegionSpec] = [
    # ── Frontal lobe ──
    RegionSpec("prefrontal", "Prefrontal Cortex", "#3388ff", (0, 0.5, 0.3),
               {"cognitive": 1.0, "chat": 0.3}),
    RegionSpec("orbitofrontal", "Orbitofrontal", "#4499ee", (-0.1, 0.45, 0.35),
               {"cognitive": 0.7, "familiarity": 0.3, "chat": 0.2}),
    RegionSpec("dlpfc", "Dorsolateral PFC", "#2277dd", (0.12, 0.52, 0.25),
               {"cognitive": 0.8, "calm": 0.2, "chat": 0.25}),
    RegionSpec("broca", "Broca's Area", "#55aaff", (-0.25, 0.4, 0.2),
               {"cognitive": 0.4, "chat": 0.55, "salience": 0.1}),
    RegionSpec("motor-cortex", "Primary Motor", "#ff8833", (0, 0.55, -0.05),
               {"motor": 1.0, "impact": 0.6}),
    RegionSpec("premotor", "Premotor Cortex", "#ee7722", (0.1, 0.52, 0.05),
               {"motor": 0.7, "threat": 0.3, "impact": 0.4}),
    RegionSpec("sma", "Supplementary Motor", "#dd6611", (-0.05, 0.56, -0.02),
               {"motor": 0.5, "arousal": 0.3, "impact": 0.3}),
    RegionSpec("acc", "Anterior Cingulate", "#ff6688", (0, 0.4, 0.1),
               {"salience": 0.5, "threat": 0.3, "strain": 0.2, "impact": 0.3,
                "chat": 0.2}),

    # ── Parietal lobe ──
    RegionSpec("somatosensory", "Somatosensory", "#ffaa44", (0, 0.5, -0.15),
               {"arousal": 0.4, "threat": 0.3, "impact": 0.7}),
    RegionSpec("posterior-parietal", "Posterior Parietal", "#ddbb33", (0.15, 0.4, -0.25),
               {"salience": 0.5, "cognitive": 0.3, "familiarity": 0.2, "impact": 0.2}),

    # ── Temporal lobe ──
    RegionSpec("auditory-cortex", "Auditory Cortex", "#88cc44", (-0.35, 0.25, 0.1),
               {"salience": 0.3, "familiarity": 0.15, "bias": 0.1, "chat": 0.4,
                "impact": 0.3}),
    RegionSpec("wernicke", "Wernicke's Area", "#66bb55", (-0.3, 0.3, -0.1),
               {"cognitive": 0.35, "familiarity": 0.2, "chat": 0.5}),
    RegionSpec("fusiform", "Fusiform Gyrus", "#44aa66", (-0.25, 0.15, 0.05),
               {"familiarity": 0.6, "salience": 0.3, "impact": 0.15}),

    # ── Occipital lobe ──
    RegionSpec("visual-cortex", "Visual Cortex (V1)", "#33ddaa", (0, 0.25, -0.4),
               {"salience": 0.4, "bias": 0.2, "threat": 0.2, "impact": 0.4}),
    RegionSpec("visual-association", "Visual Association", "#22ccbb", (0.1, 0.3, -0.35),
               {"salience": 0.35, "familiarity": 0.25, "bias": 0.1, "impact": 0.25}),

    # ── Deep structures ──
    RegionSpec("amygdala", "Amygdala", "#ff3333", (0.3, 0.1, 0.2),
               {"threat": 1.0, "impact": 0.8}),
    RegionSpec("hippocampus", "Hippocampus", "#33cc66", (-0.3, 0.1, 0.1),
               {"familiarity": 1.0, "chat": 0.2}),
    RegionSpec("thalamus", "Thalamus", "#bb88ff", (0, 0.25, 0.05),
               {"arousal": 0.4, "salience": 0.25, "bias": 0.15, "impact": 0.5,
                "chat": 0.2}),
    RegionSpec("hypothalamus", "Hypothalamus", "#ff44aa", (0, 0.18, 0.15),
               {"fatigue": 0.4, "threat": 0.3, "bias": 0.1, "impact": 0.4}),
    RegionSpec("basal-ganglia", "Basal Ganglia", "#cc8844", (0.15, 0.22, 0.08),
               {"motor": 0.5, "familiarity": 0.15, "bias": 0.1, "impact": 0.35}),
    RegionSpec("insula", "Insula", "#cc33ff", (0.25, 0.3, 0),
               {"fatigue": 0.3, "threat": 0.35, "arousal": 0.15, "impact": 0.4}),
    RegionSpec("salience-network", "Salience Network", "#ffcc00", (0, 0.35, -0.1),
               {"salience": 1.0, "impact": 0.5, "chat": 0.3}),

    # ── Brainstem & cerebellum ──
    RegionSpec("cerebellum", "Cerebellum", "#aa66dd", (0, 0.05, -0.3),
               {"motor": 0.4, "bias": 0.15, "energy": 0.15, "impact": 0.35}),
    RegionSpec("brainstem", "Brainstem", "#ff6677", (0, -0.05, 0),
               {"arousal": 0.35, "bias": 0.2, "threat": 0.25, "impact": 0.5}),
    RegionSpec("vta", "VTA (Reward)", "#ffdd44", (0.08, 0.05, 0.05),
               {"calm": 0.4, "familiarity": 0.3, "energy": 0.2}),
    RegionSpec("locus-coeruleus", "Locus Coeruleus", "#ff5566", (-0.05, 0, -0.1),
               {"arousal": 0.5, "threat": 0.25, "impact": 0.6}),
    RegionSpec("raphe-nuclei", "Raphe Nuclei", "#44ddff", (0.05, -0.02, -0.05),
               {"calm": 0.3, "energy": 0.3, "bias": 0.1}),
]

REGION_IDS = [entry.id for entry in REGION_CATALOGUE]

# [n_regions, n_features]
WEIGHTS = np.array([
    [entry.weights.get(name, 0.0) for name in FEATURES]
    for entry in REGION_CATALOGUE
])


@dataclass(frozen=True)
class ImpactEvent:
    intensity: float
    timestamp: float
    source: str = "projectile"  # projectile | chat | scenario


@dataclass
class BrainContext:
    """Recent discrete events that boost region activity."""
    recent_impact: Optional[ImpactEvent] = None
    chat_activity: float = 0.0
    chat_timestamp: Optional[float] = None

    def impact_boost(self, now: float) -> float:
        if self.recent_impact is None:
            return 0.0
        age = max(0.0, 1.0 - (now - self.recent_impact.timestamp) / IMPACT_DECAY)
        return self.recent_impact.intensity * age

    def chat_boost(self, now: float) -> float:
        if self.chat_timestamp is None:
            return self.chat_activity
        return self.chat_activity * max(0.0, 1.0 - (now - self.chat_timestamp) / CHAT_DECAY)


@dataclass
class BrainRegion:
    id: str
    label: str
    activation: float
    color: np.ndarray = field(compare=False)
    position: Tuple[float, float, float] = (0.0, 0.0, 0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "activation": self.activation,
            "color": to_hex(self.color),
            "position": list(self.position),
        }


def feature_vector(
    state: InternalState,
    interp: Interpretation,
    impact_boost: float,
    chat_boost: float,
) -> np.ndarray:
    threat = interp.perceived_threat
    salience = interp.salience
    cognitive = interp.cognitive_access
    arousal = threat * 0.4 + salience * 0.3 + (1 - state.energy) * 0.3

    values = {
        "bias": 1.0,
        "threat": threat,
        "salience": salience,
        "cognitive": cognitive,
        "familiarity": state.familiarity,
        "energy": state.energy,
        "fatigue": 1 - state.energy,
        "calm": 1 - threat,
        "strain": 1 - cognitive,
        "motor": MOTOR_ACTIVITY[interp.motor_bias],
        "arousal": arousal,
        "impact": impact_boost,
        "chat": chat_boost,
    }
    return np.array([values[name] for name in FEATURES])


def generate_brain_regions(
    state: InternalState,
    interp: Interpretation,
    context: Optional[BrainContext] = None,
    now: float = 0.0,
) -> List[BrainRegion]:
    """
    Compute the activation of every catalogued region.

    Stateless. Always returns the full catalogue in catalogue order with every
    activation clamped to [0, 1].
    """
    context = context or BrainContext()
    x = feature_vector(
        state, interp, context.impact_boost(now), context.chat_boost(now)
    )
    activations = np.clip(WEIGHTS @ x, 0.0, 1.0)

    return [
        BrainRegion(
            id=entry.id,
            label=entry.label,
            activation=float(activation),
            color=rgb(entry.color),
            position=entry.position,
        )
        for entry, activation in zip(REGION_CATALOGUE, activations)
    ]
