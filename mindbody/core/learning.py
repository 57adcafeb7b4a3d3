# ═══════════════════════════════════════════════════════════════════════════════
# PART 4: LEARNING ACCUMULATOR
# Design: A5 (Continual Learning) + N7 (Developmental Neuro)
# Implementation: I3 (State Management)
# ═══════════════════════════════════════════════════════════════════════════════

"""
A5: "Each category gets its own record, and a general record watches every
event. The general one is what lets a new object feel dangerous before it has
ever hit you."

N7: "Diminishing returns. The first hits teach the most. Bias growth slows as
familiarity rises, and the learned response moves through tiers rather than
sliding smoothly."
"""

from __future__ import annotations

import bisect
import itertools
import re
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Set, Tuple

from mindbody.core.interpret import LearnedContext
from mindbody.core.state import clamp

GENERAL_CATEGORY = "general"
CONVERSATION_CATEGORY = "conversation"

MAX_ASSOCIATIONS = 50
RECENCY_WINDOW = 60.0  # seconds until a pattern stops counting as recent


class Valence(Enum):
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    POSITIVE = "positive"


@dataclass
class LearnedPattern:
    """Accumulated experience for one stimulus category."""
    category: str
    label: str
    exposure_count: int
    total_intensity: float
    first_seen: float
    last_seen: float
    threat_bias: float        # -1 to 1
    familiarity: float        # 0 to 1
    survival_relevance: float  # 0 to 1
    learned_response: str
    connections: Set[str] = field(default_factory=set)

    def recency(self, now: float) -> float:
        return max(0.0, 1.0 - (now - self.last_seen) / RECENCY_WINDOW)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "label": self.label,
            "exposure_count": self.exposure_count,
            "total_intensity": self.total_intensity,
            "first_seen": self.first_seen,
            "last_seen": self.last_seen,
            "threat_bias": self.threat_bias,
            "familiarity": self.familiarity,
            "survival_relevance": self.survival_relevance,
            "learned_response": self.learned_response,
            "connections": sorted(self.connections),
        }


@dataclass(frozen=True)
class AssociationEntry:
    """One line of the append-only association log."""
    id: str
    timestamp: float
    trigger: str
    interpretation: str
    valence: Valence
    connections: Tuple[str, ...]
    intensity: float
    category: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "trigger": self.trigger,
            "interpretation": self.interpretation,
            "valence": self.valence.value,
            "connections": list(self.connections),
            "intensity": self.intensity,
            "category": self.category,
        }


# ── Tier tables ───────────────────────────────────────────────────────────────

# learned_response advances at exposure counts 5, 10, 20
RESPONSE_TIER_BOUNDS = [5, 10, 20]
RESPONSE_TIERS = [
    "Registering impacts from {label}. No reliable pattern yet.",
    "Recognizes {label} as a threat. Bracing begins earlier.",
    "Anticipates {label}. Defensive posture engages before contact.",
    "Fully conditioned to {label}. Evasion is automatic.",
]

# association interpretation by exposure count: 1 / 2-4 / 5-9 / 10+
ASSOCIATION_TIER_BOUNDS = [2, 5, 10]
ASSOCIATION_TIERS = [
    "First encounter with {label}. Unknown object, sudden pain.",
    "{label} again. This has happened before.",
    "Pattern recognized: {label} means impact.",
    "Conditioned: {label} triggers immediate defense.",
]

GENERAL_RESPONSES = [
    "Things get thrown. Stay alert.",
    "Projectiles are a recurring danger. Watch the edges.",
    "Incoming objects are expected. The body prepares on its own.",
    "Every moving object is a potential impact. Vigilance is constant.",
]

CONVERSATION_RESPONSES = [
    "Voices are new. Listening closely.",
    "Conversation has a rhythm now. Words are expected.",
    "Knows how exchanges go. Tone is read before meaning.",
    "Conversation is familiar ground.",
]

POSITIVE_WORDS = {
    "thank", "thanks", "friend", "safe", "calm", "love", "good", "happy",
    "glad", "relief", "relax", "kind", "help", "okay", "peace", "great",
}
NEGATIVE_WORDS = {
    "scared", "afraid", "fear", "hurt", "danger", "dangerous", "run", "hate",
    "kill", "attack", "threat", "pain", "die", "hit", "angry", "following",
}


def _tier(bounds: List[int], count: int) -> int:
    return bisect.bisect_right(bounds, count)


def _sentence(text: str) -> str:
    return text[:1].upper() + text[1:]


def classify_valence(text: str) -> Valence:
    """Keyword valence of a chat message."""
    words = re.findall(r"[a-z']+", text.lower())
    score = 0
    for word in words:
        forms = {word, word[:-1] if word.endswith("s") else word}
        if forms & POSITIVE_WORDS:
            score += 1
        elif forms & NEGATIVE_WORDS:
            score -= 1
    if score > 0:
        return Valence.POSITIVE
    if score < 0:
        return Valence.NEGATIVE
    return Valence.NEUTRAL


def impact_intensity(mass: float) -> float:
    """Impact intensity of a projectile of the given mass."""
    return clamp(0.3 + mass * 0.1)


# ── Learning Accumulator ──────────────────────────────────────────────────────


class LearningAccumulator:
    """
    Per-category learned patterns plus a bounded association log.

    Patterns are created on first exposure and only ever move toward
    saturation; exposure counts never decrease until reset().
    """

    def __init__(self, max_associations: int = MAX_ASSOCIATIONS) -> None:
        self.patterns: Dict[str, LearnedPattern] = {}
        self.associations: Deque[AssociationEntry] = deque(maxlen=max_associations)
        self._ids = itertools.count(1)

    # ── Events ──────────────────────────────────────────────────────────────

    def register_hit(self, category: str, mass: float, now: float) -> LearnedPattern:
        """
        Fold one impact into the category pattern and the general pattern.

        Returns the updated category pattern.
        """
        intensity = impact_intensity(mass)
        pattern = self._fold_impact(category, category, intensity, now, mass)
        self._fold_impact(GENERAL_CATEGORY, "projectiles", intensity, now, mass)

        tier = _tier(ASSOCIATION_TIER_BOUNDS, pattern.exposure_count)
        self._append(
            timestamp=now,
            trigger=f"{category} impact",
            interpretation=_sentence(ASSOCIATION_TIERS[tier].format(label=category)),
            valence=Valence.NEGATIVE,
            connections=tuple(sorted(pattern.connections)),
            intensity=intensity,
            category=category,
        )
        return pattern

    def register_exchange(self, text: str, now: float) -> Valence:
        """Fold a chat message into the conversation pattern."""
        valence = classify_valence(text)
        pattern = self.patterns.get(CONVERSATION_CATEGORY)

        if pattern is None:
            pattern = LearnedPattern(
                category=CONVERSATION_CATEGORY,
                label="conversation",
                exposure_count=1,
                total_intensity=0.3,
                first_seen=now,
                last_seen=now,
                threat_bias=0.0,
                familiarity=0.1,
                survival_relevance=0.04 if valence is Valence.NEGATIVE else 0.0,
                learned_response=CONVERSATION_RESPONSES[0],
                connections={"social", "language"},
            )
            self.patterns[CONVERSATION_CATEGORY] = pattern
        else:
            pattern.exposure_count += 1
            pattern.total_intensity += 0.3
            pattern.last_seen = now
            pattern.familiarity = min(1.0, pattern.familiarity + 0.1)
            step = 0.05 * (1 - pattern.familiarity)
            if valence is Valence.NEGATIVE:
                pattern.threat_bias = min(1.0, pattern.threat_bias + step)
                pattern.survival_relevance = min(1.0, pattern.survival_relevance + 0.04)
            elif valence is Valence.POSITIVE:
                pattern.threat_bias = max(-1.0, pattern.threat_bias - step)
            pattern.learned_response = CONVERSATION_RESPONSES[
                _tier(RESPONSE_TIER_BOUNDS, pattern.exposure_count)
            ]

        pattern.connections.add(f"tone:{valence.value}")

        snippet = text.strip()
        if len(snippet) > 40:
            snippet = snippet[:37] + "..."
        self._append(
            timestamp=now,
            trigger=f'said: "{snippet}"',
            interpretation={
                Valence.NEGATIVE: "Words carry alarm. Guard rises.",
                Valence.NEUTRAL: "Words registered. Meaning weighed.",
                Valence.POSITIVE: "Warm words. Guard lowers slightly.",
            }[valence],
            valence=valence,
            connections=("social", f"tone:{valence.value}"),
            intensity=0.3,
            category=CONVERSATION_CATEGORY,
        )
        return valence

    # ── Metrics ─────────────────────────────────────────────────────────────

    def get_learned_threat_bias(self, now: float) -> float:
        """
        Weighted mean of pattern threat biases.

        weight = exposure_count * (0.3 + 0.7 * recency) * survival_relevance.
        Returns 0 when there are no patterns or no weight at all.
        """
        total_weight = 0.0
        weighted = 0.0
        for pattern in self.patterns.values():
            weight = (
                pattern.exposure_count
                * (0.3 + 0.7 * pattern.recency(now))
                * pattern.survival_relevance
            )
            total_weight += weight
            weighted += pattern.threat_bias * weight
        if total_weight <= 0.0:
            return 0.0
        return weighted / total_weight

    def get_learned_context(self, now: float) -> Optional[LearnedContext]:
        """Learned context for interpretation, or None before the first impact."""
        general = self.patterns.get(GENERAL_CATEGORY)
        if general is None:
            return None
        return LearnedContext(
            threat_bias=self.get_learned_threat_bias(now),
            learned_familiarity=general.familiarity,
            total_exposures=general.exposure_count,
            survival_relevance=general.survival_relevance,
        )

    @property
    def total_exposures(self) -> int:
        general = self.patterns.get(GENERAL_CATEGORY)
        return general.exposure_count if general else 0

    def category_patterns(self) -> List[LearnedPattern]:
        """Per-category patterns (the general aggregate excluded), most exposed first."""
        patterns = [
            p for p in self.patterns.values() if p.category != GENERAL_CATEGORY
        ]
        return sorted(patterns, key=lambda p: p.exposure_count, reverse=True)

    def build_learning_context(self, limit: int = 5) -> str:
        """Human-readable summary of what has been learned, for prompts."""
        if not self.patterns:
            return "No learned patterns yet. Everything is new."

        lines = ["[Learned Patterns]"]
        for pattern in self.category_patterns()[:limit]:
            lines.append(
                f"- {pattern.label}: {pattern.exposure_count} exposures, "
                f"threat bias {pattern.threat_bias:+.2f}, "
                f"familiarity {pattern.familiarity:.2f}. {pattern.learned_response}"
            )
        general = self.patterns.get(GENERAL_CATEGORY)
        if general is not None:
            lines.append(
                f"- overall: {general.exposure_count} impacts. {general.learned_response}"
            )

        recent = list(self.associations)[-3:]
        if recent:
            lines.append("[Recent Associations]")
            for entry in recent:
                lines.append(f"- {entry.trigger}: {entry.interpretation}")
        return "\n".join(lines)

    def reset(self) -> None:
        self.patterns.clear()
        self.associations.clear()

    # ── Internal ────────────────────────────────────────────────────────────

    def _fold_impact(
        self,
        category: str,
        label: str,
        intensity: float,
        now: float,
        mass: float,
    ) -> LearnedPattern:
        pattern = self.patterns.get(category)
        responses = GENERAL_RESPONSES if category == GENERAL_CATEGORY else RESPONSE_TIERS

        if pattern is None:
            pattern = LearnedPattern(
                category=category,
                label=label,
                exposure_count=1,
                total_intensity=intensity,
                first_seen=now,
                last_seen=now,
                threat_bias=0.1,
                familiarity=0.1,
                survival_relevance=0.1,
                learned_response="",
                connections={"impact", "projectile"},
            )
            self.patterns[category] = pattern
        else:
            pattern.exposure_count += 1
            pattern.total_intensity += intensity
            pattern.last_seen = now
            pattern.familiarity = min(1.0, pattern.familiarity + 0.1)
            pattern.threat_bias = min(
                1.0, pattern.threat_bias + 0.05 * (1 - pattern.familiarity)
            )
            pattern.survival_relevance = min(1.0, pattern.survival_relevance + 0.08)

        pattern.learned_response = responses[
            _tier(RESPONSE_TIER_BOUNDS, pattern.exposure_count)
        ].format(label=label)

        if category != GENERAL_CATEGORY:
            pattern.connections.add(category)
        pattern.connections.add("heavy" if mass > 2 else "light")
        if pattern.survival_relevance > 0.5:
            pattern.connections.add("danger")
        return pattern

    def _append(self, **fields: Any) -> AssociationEntry:
        entry = AssociationEntry(id=f"assoc-{next(self._ids)}", **fields)
        self.associations.append(entry)
        return entry
