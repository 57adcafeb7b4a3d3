# ═══════════════════════════════════════════════════════════════════════════════
# PART 8: BODY POSE COMPOSER
# Design: N5 (Embodied Cognition) + H3 (Enactivism)
# Implementation: I2 (Numerics)
# ═══════════════════════════════════════════════════════════════════════════════

"""
N5: "The body is where the state becomes visible. Action picks the pose, the
ISV bends it, somatic signals light it, and brain activity shows through as
muscle tone."

H3: "Four layers, always in the same order. Rotation and offset are replaced,
tension, tremor and glow accumulate and clamp, colors blend."

Pipeline:
1. Action pose preset over rest defaults
2. ISV modifiers (threat, energy, familiarity)
3. Somatic overlay + crown baseline glow
4. Brain region -> muscle group mapping
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np

from mindbody.core.brain import BrainRegion
from mindbody.core.color import blend, rgb, to_hex
from mindbody.core.narrate import SomaticRegion, SomaticSignal, SomaticType
from mindbody.core.state import Action, InternalState, Interpretation, clamp

PART_IDS: List[str] = [
    "pelvis", "spine", "chest", "neck", "head", "headCrown",
    "shoulderL", "shoulderR", "upperArmL", "upperArmR",
    "forearmL", "forearmR", "handL", "handR",
    "hipL", "hipR", "thighL", "thighR",
    "shinL", "shinR", "footL", "footR",
]

DEFAULT_TENSION = 0.3
DEFAULT_COLOR = "#8899aa"
DEFAULT_GLOW_COLOR = "#4488ff"


@dataclass
class PartState:
    """Physical state of one body segment."""
    rotation: np.ndarray = field(default_factory=lambda: np.zeros(3))  # radians
    offset: np.ndarray = field(default_factory=lambda: np.zeros(3))
    tension: float = DEFAULT_TENSION
    tremor: float = 0.0
    color: np.ndarray = field(default_factory=lambda: rgb(DEFAULT_COLOR))
    glow: float = 0.0
    glow_color: np.ndarray = field(default_factory=lambda: rgb(DEFAULT_GLOW_COLOR))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rotation": self.rotation.tolist(),
            "offset": self.offset.tolist(),
            "tension": self.tension,
            "tremor": self.tremor,
            "color": to_hex(self.color),
            "glow": self.glow,
            "glow_color": to_hex(self.glow_color),
        }


class BodyState(dict):
    """Mapping of every part id to its PartState."""

    @classmethod
    def default(cls) -> BodyState:
        return cls((part_id, PartState()) for part_id in PART_IDS)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {part_id: part.to_dict() for part_id, part in self.items()}


@dataclass(frozen=True)
class BodyPose:
    """Named pose preset: per-part overrides applied over the rest pose."""
    name: str
    overrides: Dict[str, Dict[str, Any]]


# ── Action poses ─────────────────────────────────────────────────────────────

POSES: Dict[Action, BodyPose] = {
    Action.FLINCH: BodyPose("Defensive Crouch", {
        "pelvis":    {"rotation": (-0.1, 0, 0), "offset": (0, -0.06, 0)},
        "spine":     {"rotation": (-0.15, 0, 0)},
        "chest":     {"rotation": (-0.12, 0, 0), "tension": 0.8},
        "neck":      {"rotation": (-0.2, 0, 0)},
        "head":      {"rotation": (0.15, 0, 0)},      # eyes stay forward
        "shoulderL": {"rotation": (0, 0, 0.3)},       # shoulders raised
        "shoulderR": {"rotation": (0, 0, -0.3)},
        "upperArmL": {"rotation": (0.4, 0, 0.3)},     # arms tucked
        "upperArmR": {"rotation": (0.4, 0, -0.3)},
        "forearmL":  {"rotation": (-0.8, 0, 0)},      # forearms crossed
        "forearmR":  {"rotation": (-0.8, 0, 0)},
        "handL":     {"tension": 0.9},                # clenched
        "handR":     {"tension": 0.9},
        "thighL":    {"rotation": (0.15, 0, 0)},      # knees bent
        "thighR":    {"rotation": (0.15, 0, 0)},
        "shinL":     {"rotation": (0.1, 0, 0)},
        "shinR":     {"rotation": (0.1, 0, 0)},
    }),
    Action.WITHDRAW: BodyPose("Step Back", {
        "pelvis":    {"rotation": (-0.05, 0.1, 0), "offset": (0, 0, 0.08)},
        "spine":     {"rotation": (-0.1, 0.05, 0)},
        "chest":     {"rotation": (-0.08, 0, 0), "tension": 0.5},
        "neck":      {"rotation": (-0.1, -0.1, 0)},
        "head":      {"rotation": (0.05, -0.15, 0)},  # looking away
        "shoulderL": {"rotation": (0, 0, 0.15)},
        "shoulderR": {"rotation": (0, 0, -0.15)},
        "upperArmL": {"rotation": (0.2, 0, 0.15)},
        "upperArmR": {"rotation": (0.2, 0, -0.15)},
        "forearmL":  {"rotation": (-0.3, 0, 0)},
        "forearmR":  {"rotation": (-0.3, 0, 0)},
        "thighL":    {"rotation": (-0.1, 0, 0)},      # stepping back
        "thighR":    {"rotation": (0.08, 0, 0)},
    }),
    Action.APPROACH: BodyPose("Lean Forward / Open", {
        "pelvis":    {"rotation": (0.05, 0, 0)},
        "spine":     {"rotation": (0.08, 0, 0)},
        "chest":     {"rotation": (0.06, 0, 0), "tension": 0.3},
        "neck":      {"rotation": (0.05, 0, 0)},
        "head":      {"rotation": (-0.03, 0, 0)},
        "shoulderL": {"rotation": (0, 0, -0.1)},      # open
        "shoulderR": {"rotation": (0, 0, 0.1)},
        "upperArmL": {"rotation": (-0.15, 0, -0.2)},
        "upperArmR": {"rotation": (-0.15, 0, 0.2)},
        "forearmL":  {"rotation": (-0.2, 0, 0)},
        "forearmR":  {"rotation": (-0.2, 0, 0)},
        "handL":     {"tension": 0.2},
        "handR":     {"tension": 0.2},
    }),
    Action.OBSERVE: BodyPose("Neutral Alert", {
        "chest":     {"tension": 0.35},
        "neck":      {"rotation": (0.02, 0, 0)},
        "head":      {"rotation": (-0.02, 0, 0)},
        "shoulderL": {"rotation": (0, 0, 0.05)},
        "shoulderR": {"rotation": (0, 0, -0.05)},
    }),
    Action.OVERRIDE: BodyPose("Controlled / Deliberate", {
        "pelvis":    {"tension": 0.6},
        "spine":     {"rotation": (0.03, 0, 0), "tension": 0.7},
        "chest":     {"rotation": (0.04, 0, 0), "tension": 0.7},
        "neck":      {"rotation": (0.02, 0, 0), "tension": 0.6},
        "head":      {"rotation": (-0.02, 0, 0), "tension": 0.6},
        "shoulderL": {"tension": 0.5},
        "shoulderR": {"tension": 0.5},
        "upperArmL": {"rotation": (-0.1, 0, -0.1), "tension": 0.5},
        "upperArmR": {"rotation": (-0.1, 0, 0.1), "tension": 0.5},
        "forearmL":  {"rotation": (-0.4, 0, 0), "tension": 0.6},
        "forearmR":  {"rotation": (-0.4, 0, 0), "tension": 0.6},
        "handL":     {"tension": 0.4},
        "handR":     {"tension": 0.4},
    }),
}


# ── Brain region -> muscle groups ────────────────────────────────────────────

@dataclass(frozen=True)
class MuscleMapping:
    parts: Sequence[str]
    glow_color: str
    tension_weight: float
    glow_weight: float


ARMS = ("shoulderL", "shoulderR", "upperArmL", "upperArmR", "forearmL", "forearmR")
LEGS = ("thighL", "thighR", "shinL", "shinR", "footL", "footR")
CORE = ("chest", "spine", "pelvis")

BRAIN_MUSCLE_MAP: Dict[str, MuscleMapping] = {
    # voluntary muscles
    "motor-cortex": MuscleMapping(ARMS + ("handL", "handR") + LEGS, "#ff8833", 0.3, 0.35),
    # movement planning, upper body
    "premotor": MuscleMapping(ARMS + ("chest",), "#ee7722", 0.2, 0.25),
    # posture and sequencing
    "sma": MuscleMapping(("pelvis", "spine", "chest", "neck"), "#dd6611", 0.2, 0.2),
    "somatosensory": MuscleMapping(
        ("chest", "neck", "head", "shoulderL", "shoulderR",
         "forearmL", "forearmR", "handL", "handR", "shinL", "shinR"),
        "#ffaa44", 0.15, 0.3,
    ),
    # defensive groups: shoulders, clenched hands, neck
    "amygdala": MuscleMapping(
        ("neck", "shoulderL", "shoulderR", "handL", "handR", "chest"),
        "#ff3333", 0.5, 0.4,
    ),
    # gait
    "basal-ganglia": MuscleMapping(("hipL", "hipR") + LEGS, "#cc8844", 0.25, 0.25),
    # fine coordination
    "cerebellum": MuscleMapping(
        ("handL", "handR", "footL", "footR", "forearmL", "forearmR", "shinL", "shinR"),
        "#aa66dd", 0.15, 0.2,
    ),
    "brainstem": MuscleMapping(("spine", "chest", "pelvis", "neck"), "#ff6677", 0.2, 0.15),
    "hypothalamus": MuscleMapping(CORE, "#ff44aa", 0.15, 0.2),
    # interoception
    "insula": MuscleMapping(CORE, "#cc33ff", 0.1, 0.25),
    # global arousal
    "locus-coeruleus": MuscleMapping(
        ("chest", "neck", "head", "shoulderL", "shoulderR", "upperArmL", "upperArmR",
         "thighL", "thighR"),
        "#ff5566", 0.1, 0.15,
    ),
    # cognitive strain
    "acc": MuscleMapping(("neck", "head", "headCrown"), "#ff6688", 0.2, 0.3),
    "prefrontal": MuscleMapping(("head", "headCrown"), "#3388ff", 0.05, 0.35),
    # reward
    "vta": MuscleMapping(CORE, "#ffdd44", 0.0, 0.25),
    # speech motor
    "broca": MuscleMapping(("neck", "head"), "#55aaff", 0.1, 0.2),
}

ACTIVATION_FLOOR = 0.15
COLOR_TAKEOVER = 0.3     # contribution share above which a region tints the glow
TREMOR_ACTIVATION = 0.7
TREMOR_TENSION_WEIGHT = 0.2

LIMB_PARTS = ("upperArmL", "upperArmR", "forearmL", "forearmR",
              "thighL", "thighR", "shinL", "shinR")

CHEST_GLOW_COLORS = {
    SomaticType.WARMTH: rgb("#ff8844"),
    SomaticType.COLD: rgb("#4488ff"),
    SomaticType.PULSE: rgb("#ff4466"),
    SomaticType.TENSION: rgb("#ff6644"),
}
LIMB_GLOW_COLORS = {
    SomaticType.WARMTH: rgb("#ffaa44"),
    SomaticType.COLD: rgb("#4466cc"),
}
LIMB_DEFAULT_GLOW = rgb("#6688aa")
GUT_TENSION_GLOW = rgb("#ff8800")
GUT_DEFAULT_GLOW = rgb("#ffaa44")
HEAD_PULSE_GLOW = rgb("#aa44ff")
HEAD_DEFAULT_GLOW = rgb("#6688ff")
CROWN_ALARM = rgb("#ff4444")
CROWN_CLEAR = rgb("#44ddff")
CROWN_IDLE = rgb("#6688aa")


# ── Composition ──────────────────────────────────────────────────────────────


def compute_body_state(
    state: InternalState,
    interp: Optional[Interpretation],
    action: Action,
    somatic: Iterable[SomaticSignal],
    brain_regions: Optional[Sequence[BrainRegion]] = None,
) -> BodyState:
    """
    Compose the full body pose.

    Every part id in PART_IDS is present in the result for any input.
    """
    body = BodyState.default()

    _apply_pose(body, POSES[action])

    threat = interp.perceived_threat if interp is not None else state.threat
    _apply_state_modifiers(body, threat, state.energy, state.familiarity)

    _apply_somatic(body, somatic)

    cognitive = interp.cognitive_access if interp is not None else state.energy * 0.8
    crown = body["headCrown"]
    crown.glow = clamp(crown.glow + cognitive * 0.4)
    if threat > 0.5:
        crown.glow_color = CROWN_ALARM.copy()
    elif cognitive > 0.7:
        crown.glow_color = CROWN_CLEAR.copy()
    else:
        crown.glow_color = CROWN_IDLE.copy()

    if brain_regions:
        apply_brain_muscle_mapping(body, brain_regions)

    return body


def _apply_pose(body: BodyState, pose: BodyPose) -> None:
    for part_id, overrides in pose.overrides.items():
        part = body[part_id]
        for key, value in overrides.items():
            if key in ("rotation", "offset", "color", "glow_color"):
                setattr(part, key, np.array(value, dtype=float))
            else:
                setattr(part, key, float(value))


def _apply_state_modifiers(
    body: BodyState,
    threat: float,
    energy: float,
    familiarity: float,
) -> None:
    # Threat -> raised shoulders, tucked arms, global tension/tremor, red shift
    if threat > 0.2:
        t = (threat - 0.2) / 0.8
        body["shoulderL"].rotation[2] += t * 0.2
        body["shoulderR"].rotation[2] -= t * 0.2
        body["upperArmL"].rotation[2] += t * 0.15
        body["upperArmR"].rotation[2] -= t * 0.15
        for part in body.values():
            part.tension = clamp(part.tension + t * 0.3)
            part.tremor = clamp(part.tremor + t * 0.4)
        red = np.array([0x88 + t * 0x77, 0x66, 0x66], dtype=float)
        body["chest"].color = red.copy()
        body["head"].color = red.copy()

    # Low energy -> drooped posture, sluggish tone
    if energy < 0.5:
        t = (0.5 - energy) / 0.5
        body["spine"].rotation[0] -= t * 0.15
        body["chest"].rotation[0] -= t * 0.1
        body["neck"].rotation[0] -= t * 0.1
        body["head"].rotation[0] += t * 0.08
        body["shoulderL"].rotation[2] += t * 0.15
        body["shoulderR"].rotation[2] -= t * 0.15
        body["upperArmL"].rotation[0] += t * 0.2
        body["upperArmR"].rotation[0] += t * 0.2
        for part in body.values():
            part.tension = clamp(part.tension - t * 0.2)

    # High familiarity -> relaxed joints, slightly open shoulders
    if familiarity > 0.5:
        t = (familiarity - 0.5) / 0.5
        for part in body.values():
            part.tension = clamp(part.tension - t * 0.15)
            part.tremor = clamp(part.tremor - t * 0.1)
        body["shoulderL"].rotation[2] -= t * 0.05
        body["shoulderR"].rotation[2] += t * 0.05


def _apply_somatic(body: BodyState, somatic: Iterable[SomaticSignal]) -> None:
    for signal in somatic:
        intensity = signal.intensity

        if signal.region is SomaticRegion.CHEST:
            chest = body["chest"]
            chest.glow = clamp(chest.glow + intensity * 0.7)
            chest.glow_color = CHEST_GLOW_COLORS[signal.type].copy()

        elif signal.region is SomaticRegion.GUT:
            body["pelvis"].glow = clamp(body["pelvis"].glow + intensity * 0.5)
            body["spine"].glow = clamp(body["spine"].glow + intensity * 0.3)
            if signal.type is SomaticType.TENSION:
                body["pelvis"].glow_color = GUT_TENSION_GLOW.copy()
            else:
                body["pelvis"].glow_color = GUT_DEFAULT_GLOW.copy()

        elif signal.region is SomaticRegion.LIMBS:
            color = LIMB_GLOW_COLORS.get(signal.type, LIMB_DEFAULT_GLOW)
            for part_id in LIMB_PARTS:
                part = body[part_id]
                part.glow = clamp(part.glow + intensity * 0.4)
                part.glow_color = color.copy()

        elif signal.region is SomaticRegion.HEAD:
            head = body["head"]
            crown = body["headCrown"]
            head.glow = clamp(head.glow + intensity * 0.5)
            crown.glow = clamp(crown.glow + intensity * 0.6)
            if signal.type is SomaticType.PULSE:
                head.glow_color = HEAD_PULSE_GLOW.copy()
            else:
                head.glow_color = HEAD_DEFAULT_GLOW.copy()
            crown.glow_color = head.glow_color.copy()


def apply_brain_muscle_mapping(
    body: BodyState,
    regions: Sequence[BrainRegion],
) -> None:
    """Add region activation to tension/glow on each mapped part, in place."""
    for region in regions:
        mapping = BRAIN_MUSCLE_MAP.get(region.id)
        if mapping is None:
            continue

        activation = region.activation
        if activation < ACTIVATION_FLOOR:
            continue

        tension_add = activation * mapping.tension_weight
        glow_add = activation * mapping.glow_weight
        region_color = rgb(mapping.glow_color)

        for part_id in mapping.parts:
            part = body[part_id]
            part.tension = clamp(part.tension + tension_add)

            new_glow = part.glow + glow_add
            if glow_add > part.glow * COLOR_TAKEOVER:
                part.glow_color = blend(
                    part.glow_color, region_color, glow_add / (new_glow + 0.01)
                )
            part.glow = clamp(new_glow)

            if activation > TREMOR_ACTIVATION and mapping.tension_weight > TREMOR_TENSION_WEIGHT:
                part.tremor = clamp(part.tremor + activation * 0.15)
