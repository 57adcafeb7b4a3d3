"""Tests for the body pose composer."""

import numpy as np
import pytest

from mindbody.core.body import (
    BRAIN_MUSCLE_MAP,
    CROWN_ALARM,
    PART_IDS,
    BodyState,
    apply_brain_muscle_mapping,
    compute_body_state,
)
from mindbody.core.brain import BrainRegion, generate_brain_regions
from mindbody.core.color import rgb
from mindbody.core.narrate import generate_somatic_signals
from mindbody.core.state import Action, InternalState, Interpretation, MotorBias


def compose(isv, interp, action, with_brain=True):
    somatic = generate_somatic_signals(isv, interp)
    regions = generate_brain_regions(isv, interp) if with_brain else None
    return compute_body_state(isv, interp, action, somatic, regions)


# ── Completeness ─────────────────────────────────────────────────────────────


def test_all_parts_for_every_action_and_extreme():
    """Every part is present and bounded for any action and input."""
    for action in Action:
        for t in (0.0, 1.0):
            for e in (0.0, 1.0):
                isv = InternalState(threat=t, familiarity=1 - t, energy=e)
                interp = Interpretation(t, t, e, MotorBias.WITHDRAW if t else MotorBias.APPROACH)
                body = compose(isv, interp, action)
                assert set(body) == set(PART_IDS)
                assert len(body) == 22
                for part in body.values():
                    assert 0.0 <= part.tension <= 1.0
                    assert 0.0 <= part.tremor <= 1.0
                    assert 0.0 <= part.glow <= 1.0


def test_without_interpretation():
    """Composition falls back to the ISV when there is no interpretation."""
    body = compute_body_state(InternalState(), None, Action.OBSERVE, [])
    assert set(body) == set(PART_IDS)


def test_mapping_targets_known_parts():
    """Every muscle mapping points at real parts."""
    for mapping in BRAIN_MUSCLE_MAP.values():
        assert set(mapping.parts) <= set(PART_IDS)


# ── Layers ───────────────────────────────────────────────────────────────────


def test_flinch_pose():
    """Flinch crouches the pelvis and clenches the hands."""
    isv = InternalState(threat=0.0, familiarity=0.0, energy=1.0)
    interp = Interpretation(0.0, 0.1, 1.0, MotorBias.APPROACH)
    body = compose(isv, interp, Action.FLINCH, with_brain=False)
    np.testing.assert_allclose(body["pelvis"].offset, [0, -0.06, 0])
    assert body["handL"].tension == pytest.approx(0.9)


def test_threat_red_shift_and_tremor():
    """High threat reddens chest and head and adds tremor."""
    isv = InternalState(threat=1.0, familiarity=0.0, energy=1.0)
    interp = Interpretation(1.0, 0.5, 0.3, MotorBias.WITHDRAW)
    body = compose(isv, interp, Action.FLINCH, with_brain=False)
    np.testing.assert_allclose(body["head"].color, rgb("#ff6666"))
    assert body["spine"].tremor == pytest.approx(0.4)
    np.testing.assert_allclose(body["headCrown"].glow_color, CROWN_ALARM)


def test_low_energy_droops():
    """Exhaustion bends the spine forward and loosens muscles."""
    interp = Interpretation(0.0, 0.1, 0.5, MotorBias.APPROACH)
    rested = compose(InternalState(threat=0.0, energy=1.0), interp, Action.OBSERVE, with_brain=False)
    tired = compose(InternalState(threat=0.0, energy=0.0), interp, Action.OBSERVE, with_brain=False)
    assert tired["spine"].rotation[0] < rested["spine"].rotation[0]
    assert tired["pelvis"].tension < rested["pelvis"].tension


def test_somatic_chest_glow():
    """Threat-driven chest tension glows the chest."""
    isv = InternalState(threat=0.5, familiarity=0.8)
    interp = Interpretation(0.6, 0.3, 0.5, MotorBias.APPROACH)
    body = compose(isv, interp, Action.OBSERVE, with_brain=False)
    assert body["chest"].glow == pytest.approx(0.6 * 0.7)


# ── Brain -> muscle mapping ──────────────────────────────────────────────────


def region(region_id, activation):
    return BrainRegion(region_id, region_id, activation, rgb("#ffffff"))


def test_brain_mapping_adds_tension_and_tremor():
    """Strong amygdala activity tenses and shakes the defensive groups."""
    body = BodyState.default()
    apply_brain_muscle_mapping(body, [region("amygdala", 1.0)])
    neck = body["neck"]
    assert neck.tension == pytest.approx(0.8)
    assert neck.glow == pytest.approx(0.4)
    assert neck.tremor == pytest.approx(0.15)
    # glow color pulled toward the region color
    assert neck.glow_color[0] > rgb("#4488ff")[0]


def test_brain_mapping_floor():
    """Activation under the floor leaves the body untouched."""
    body = BodyState.default()
    apply_brain_muscle_mapping(body, [region("amygdala", 0.1)])
    assert body["neck"].tension == pytest.approx(0.3)
    assert body["neck"].glow == 0.0


def test_brain_mapping_ignores_unmapped_regions():
    """Regions with no muscle mapping are skipped."""
    body = BodyState.default()
    apply_brain_muscle_mapping(body, [region("fusiform", 1.0)])
    assert all(p.glow == 0.0 for p in body.values())


def test_weak_tension_regions_do_not_tremor():
    """Tremor needs a tension weight above 0.2."""
    body = BodyState.default()
    apply_brain_muscle_mapping(body, [region("prefrontal", 1.0)])
    assert body["head"].tremor == 0.0


def test_to_dict_hex():
    """Serialized body uses hex colors and plain lists."""
    data = BodyState.default().to_dict()
    assert data["chest"]["color"] == "#8899aa"
    assert data["chest"]["rotation"] == [0.0, 0.0, 0.0]
