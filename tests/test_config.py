"""Tests for configuration dataclasses."""
import pytest

from core.config import OMConfig, PlaybackDefaults, SectionEnvelope, validate_tuning_offset
from core.constants import SECTION_VOLUMES


def test_defaults():
    config = OMConfig()
    assert config.tuning_offset == 0
    assert config.sample_rate == 44100
    assert config.block_size == 512
    assert config.playback.duration == 6.0
    assert config.playback.overlap_ratio == 1.0
    assert config.playback.default_volume_db == 24.0
    assert config.sections.volume_for("M2") == 0.0
    assert config.sections.volume_for("A1") == 1.0


@pytest.mark.parametrize("offset", [-12, 0, 12])
def test_tuning_in_range(offset):
    assert validate_tuning_offset(offset) == offset
    assert OMConfig(tuning_offset=offset).tuning_offset == offset


@pytest.mark.parametrize("offset", [-13, 13])
def test_tuning_out_of_range(offset):
    with pytest.raises(ValueError):
        OMConfig(tuning_offset=offset)


@pytest.mark.parametrize("kwargs", [{"sample_rate": 0}, {"block_size": -1}])
def test_invalid_audio_settings(kwargs):
    with pytest.raises(ValueError):
        OMConfig(**kwargs)


def test_invalid_playback_defaults():
    with pytest.raises(ValueError):
        PlaybackDefaults(duration=0)
    with pytest.raises(ValueError):
        PlaybackDefaults(overlap_ratio=-1)


def test_invalid_section_volume():
    with pytest.raises(ValueError):
        SectionEnvelope(volumes={"A1": 1.5})


def test_envelope_default_not_shared():
    envelope = SectionEnvelope()
    assert dict(envelope.volumes) == SECTION_VOLUMES
    assert envelope.volumes is not SECTION_VOLUMES


def test_config_dict_round_trip():
    config = OMConfig(
        tuning_offset=-3,
        sample_rate=48000,
        playback=PlaybackDefaults(duration=8.0, overlap_ratio=1.5),
        sections=SectionEnvelope(volumes={"A1": 0.5}),
    )
    assert OMConfig.from_dict(config.to_dict()) == config


def test_config_from_partial_dict():
    config = OMConfig.from_dict({"tuning_offset": 2})
    assert config.tuning_offset == 2
    assert config.playback == PlaybackDefaults()
