"""Tests for the learning accumulator."""

import pytest

from mindbody.core.learning import (
    CONVERSATION_CATEGORY,
    GENERAL_CATEGORY,
    LearningAccumulator,
    Valence,
    classify_valence,
    impact_intensity,
)


def hit_n(ledger, category, n, mass=1.0, start=0.0):
    pattern = None
    for i in range(n):
        pattern = ledger.register_hit(category, mass, now=start + i)
    return pattern


# ── Patterns ─────────────────────────────────────────────────────────────────


def test_first_hit_creates_pattern():
    """First exposure seeds the pattern at 0.1 everywhere."""
    ledger = LearningAccumulator()
    pattern = ledger.register_hit("baseball", 1.0, now=0.0)
    assert pattern.exposure_count == 1
    assert pattern.threat_bias == pytest.approx(0.1)
    assert pattern.familiarity == pytest.approx(0.1)
    assert pattern.survival_relevance == pytest.approx(0.1)
    assert {"impact", "projectile", "baseball", "light"} <= pattern.connections


def test_repeat_hit_diminishing_bias():
    """Bias growth shrinks as familiarity rises."""
    ledger = LearningAccumulator()
    pattern = hit_n(ledger, "baseball", 2)
    assert pattern.familiarity == pytest.approx(0.2)
    assert pattern.threat_bias == pytest.approx(0.1 + 0.05 * 0.8)
    assert pattern.survival_relevance == pytest.approx(0.18)


def test_five_hits_reach_recognition_tier():
    """Five hits advance the learned response to the recognition tier."""
    ledger = LearningAccumulator()
    pattern = hit_n(ledger, "baseball", 5)
    assert pattern.exposure_count == 5
    assert pattern.learned_response.startswith("Recognizes baseball")


def test_general_pattern_tracks_all_categories():
    """The general pattern counts every impact regardless of category."""
    ledger = LearningAccumulator()
    hit_n(ledger, "baseball", 3)
    ledger.register_hit("fish", 0.5, now=10.0)
    assert ledger.patterns[GENERAL_CATEGORY].exposure_count == 4
    assert ledger.total_exposures == 4
    assert ledger.patterns["fish"].exposure_count == 1


def test_exposure_counts_never_decrease():
    """Counts only move up across a run of mixed events."""
    ledger = LearningAccumulator()
    last = 0
    for i, category in enumerate(["baseball", "anvil", "baseball", "fish", "anvil"]):
        ledger.register_hit(category, 1.0, now=float(i))
        ledger.register_exchange("hello", now=float(i))
        total = sum(p.exposure_count for p in ledger.patterns.values())
        assert total > last
        last = total


def test_heavy_and_danger_connections():
    """Heavy objects are tagged heavy; survival above 0.5 adds danger."""
    ledger = LearningAccumulator()
    pattern = hit_n(ledger, "anvil", 5, mass=8.0)
    assert "heavy" in pattern.connections
    assert "danger" not in pattern.connections
    hit_n(ledger, "anvil", 2, mass=8.0, start=10.0)
    assert "danger" in pattern.connections


def test_values_saturate():
    """Many hits never push values past their bounds."""
    ledger = LearningAccumulator()
    pattern = hit_n(ledger, "anvil", 40, mass=8.0)
    assert pattern.familiarity == 1.0
    assert pattern.survival_relevance == 1.0
    assert pattern.threat_bias <= 1.0


# ── Associations ─────────────────────────────────────────────────────────────


def test_association_tiers():
    """Association text escalates with exposure count."""
    ledger = LearningAccumulator()
    hit_n(ledger, "baseball", 2)
    first, second = list(ledger.associations)
    assert first.interpretation.startswith("First encounter with baseball")
    assert second.interpretation.startswith("Baseball again")
    assert first.valence is Valence.NEGATIVE


def test_association_log_is_bounded():
    """The log keeps only the newest entries."""
    ledger = LearningAccumulator(max_associations=50)
    hit_n(ledger, "baseball", 60)
    assert len(ledger.associations) == 50
    assert ledger.associations[-1].timestamp == pytest.approx(59.0)


def test_associations_record_event_time():
    """Hits and exchanges both log an association stamped with their time."""
    ledger = LearningAccumulator()
    ledger.register_hit("baseball", 1.0, now=3.5)
    ledger.register_exchange("hello there", now=7.25)
    hit, exchange = list(ledger.associations)
    assert hit.timestamp == pytest.approx(3.5)
    assert hit.trigger == "baseball impact"
    assert exchange.timestamp == pytest.approx(7.25)
    assert exchange.to_dict()["timestamp"] == pytest.approx(7.25)


# ── Conversation ─────────────────────────────────────────────────────────────


@pytest.mark.parametrize("text,expected", [
    ("Thank you, friend.", Valence.POSITIVE),
    ("I'm scared, something is following me", Valence.NEGATIVE),
    ("What time is it?", Valence.NEUTRAL),
    ("Thanks, that helps", Valence.POSITIVE),
])
def test_classify_valence(text, expected):
    """Keyword valence of chat messages."""
    assert classify_valence(text) is expected


def test_exchange_updates_conversation_pattern():
    """Warm words lower conversational threat bias."""
    ledger = LearningAccumulator()
    ledger.register_exchange("hello", now=0.0)
    ledger.register_exchange("thank you, friend", now=1.0)
    pattern = ledger.patterns[CONVERSATION_CATEGORY]
    assert pattern.exposure_count == 2
    assert pattern.familiarity == pytest.approx(0.2)
    assert pattern.threat_bias < 0.0
    assert "tone:positive" in pattern.connections
    assert ledger.associations[-1].category == CONVERSATION_CATEGORY


def test_exchange_alone_gives_no_learned_context():
    """Learned context needs at least one impact."""
    ledger = LearningAccumulator()
    ledger.register_exchange("hello", now=0.0)
    assert ledger.get_learned_context(now=0.0) is None


# ── Metrics ──────────────────────────────────────────────────────────────────


def test_threat_bias_zero_without_patterns():
    """No patterns means no learned bias."""
    assert LearningAccumulator().get_learned_threat_bias(now=0.0) == 0.0


def test_threat_bias_weighted_mean():
    """With identical patterns the weighted mean is their shared bias."""
    ledger = LearningAccumulator()
    ledger.register_hit("baseball", 1.0, now=0.0)
    assert ledger.get_learned_threat_bias(now=0.0) == pytest.approx(0.1)


def test_recency_decays_over_window():
    """Recency falls linearly to zero over sixty seconds."""
    ledger = LearningAccumulator()
    pattern = ledger.register_hit("baseball", 1.0, now=0.0)
    assert pattern.recency(0.0) == pytest.approx(1.0)
    assert pattern.recency(30.0) == pytest.approx(0.5)
    assert pattern.recency(120.0) == 0.0


def test_learned_context_from_general_pattern():
    """Learned context summarizes the general pattern."""
    ledger = LearningAccumulator()
    hit_n(ledger, "baseball", 4)
    ctx = ledger.get_learned_context(now=4.0)
    general = ledger.patterns[GENERAL_CATEGORY]
    assert ctx.total_exposures == 4
    assert ctx.learned_familiarity == pytest.approx(general.familiarity)
    assert ctx.survival_relevance == pytest.approx(general.survival_relevance)
    assert ctx.threat_bias > 0.0


def test_impact_intensity():
    """Heavier objects hit harder, kept within [0, 1]."""
    assert impact_intensity(1.0) == pytest.approx(0.4)
    assert impact_intensity(8.0) == 1.0
    assert impact_intensity(-5.0) == 0.0


def test_learning_context_text():
    """Prompt context lists patterns and recent associations."""
    ledger = LearningAccumulator()
    assert "No learned patterns" in ledger.build_learning_context()
    hit_n(ledger, "baseball", 2)
    text = ledger.build_learning_context()
    assert "baseball: 2 exposures" in text
    assert "[Recent Associations]" in text


def test_reset():
    """reset() forgets everything."""
    ledger = LearningAccumulator()
    hit_n(ledger, "baseball", 3)
    ledger.reset()
    assert ledger.patterns == {}
    assert len(ledger.associations) == 0
    assert ledger.total_exposures == 0
