"""Tests for the velocity and section envelope model."""
import pytest

from core.config import SectionEnvelope
from core.parser import parse_voice_spec
from core.velocity import base_velocity, calculate_velocity, is_silenced, section_volume

PLAIN = "v/sng_opr/nrm/vbr/ol4/c1/sh1"


def note(spec=PLAIN, group=None):
    built = parse_voice_spec(spec)
    return built.with_group(group) if group else built


def test_base_velocity_without_trajectory():
    assert calculate_velocity(note(group="A1")) == pytest.approx(0.6)


def test_trajectory_raises_velocity():
    # magnitude 1.0 -> 0.6 + 0.2
    assert calculate_velocity(note(PLAIN + "[-0.5:1.0]", "A1")) == pytest.approx(0.8)


def test_clamped_to_max():
    assert calculate_velocity(note(PLAIN + "[5]", "A1")) == 1.0


def test_clamped_to_min():
    quiet = SectionEnvelope(volumes={"A1": 0.05})
    assert calculate_velocity(note(group="A1"), quiet) == pytest.approx(0.1)


@pytest.mark.parametrize("spec", [PLAIN, PLAIN + "[9]", PLAIN + "[-3:3]"])
def test_silenced_group_is_exactly_zero(spec):
    assert calculate_velocity(note(spec, "M2")) == 0.0


def test_lookup_uses_full_group_name():
    # M1 shares M2's section letter but is not silenced
    assert calculate_velocity(note(group="M1")) == pytest.approx(0.6)
    assert is_silenced(note(group="M2"))
    assert not is_silenced(note(group="M1"))


def test_unknown_and_untagged_groups_play_at_full_volume():
    assert section_volume(note(group="X9")) == 1.0
    assert section_volume(note()) == 1.0
    assert calculate_velocity(note()) == pytest.approx(0.6)


def test_custom_envelope():
    envelope = SectionEnvelope(volumes={"A1": 0.5, "U1": 0.0})
    assert calculate_velocity(note(PLAIN + "[1]", "A1"), envelope) == pytest.approx(0.4)
    assert calculate_velocity(note(group="U1"), envelope) == 0.0
    assert calculate_velocity(note(group="M2"), envelope) == pytest.approx(0.6)


def test_base_velocity_ignores_sections():
    assert base_velocity(note(PLAIN + "[1]", "M2")) == pytest.approx(0.8)
