"""
OM notation parser.

Turns voice specs like ``v/tlk_nrm/mdl/vbr/ol1/c1/sh8[-0.66]`` into Notes
and multi-line preset text into named groups of Notes.

Spec grammar:
    v/<voiceType>_<mode>/<register>/<articulation>/ol<octave>/<letter><degree>/s<band><degree>[<traj>]

- band is ``l`` (low) or ``h`` (high). Legacy specs written without a band
  letter (``s8``) use the high band.
- traj is optional: a single value (``[-0.66]``) or a start:end pair
  (``[-0.5:1.0]``).
"""
import logging
import re
from typing import Dict, Iterable, List, Optional

from core.config import validate_tuning_offset
from core.constants import (
    SCALE_LOW,
    SCALE_HIGH,
    FALSETTO_REGISTER,
    REFERENCE_OCTAVE,
    TRAJECTORY_SEMITONE_SCALE,
    semitone_to_name,
    semitones_to_frequency,
    white_key_offset,
)
from core.models import Note, VoiceToken

logger = logging.getLogger(__name__)

_NUMBER = r"-?(?:\d+\.?\d*|\.\d+)"

VOICE_SPEC_PATTERN = re.compile(
    r"v/(?P<voice_type>\w+)_(?P<mode>\w+)/(?P<register>\w+)/(?P<articulation>\w+)"
    r"/ol(?P<octave_layer>\d)"
    r"/(?P<pitch_class>\w)(?P<pitch_num>\d)"
    r"/s(?P<band>[lh])?(?P<scale_num>\d)"
    rf"(?:\[(?P<trajectory>{_NUMBER}(?::{_NUMBER})?)\])?"
)

GROUP_LINE_PATTERN = re.compile(r"^(\w+):\s*(.+)$")
SPEC_SEPARATOR = re.compile(r"\s*\+\s*")


def tokenize_voice_spec(spec: str) -> Optional[VoiceToken]:
    """
    Match a voice spec against the OM grammar.

    Args:
        spec: Voice spec text

    Returns:
        VoiceToken, or None if the spec does not match
    """
    match = VOICE_SPEC_PATTERN.search(spec)
    if match is None:
        return None

    band = match.group("band")
    scale_type = SCALE_LOW if band == "l" else SCALE_HIGH

    return VoiceToken(
        raw=spec,
        voice_type=match.group("voice_type"),
        mode=match.group("mode"),
        register=match.group("register"),
        articulation=match.group("articulation"),
        octave_layer=int(match.group("octave_layer")),
        pitch_class=match.group("pitch_class").upper(),
        pitch_num=int(match.group("pitch_num")),
        scale_type=scale_type,
        scale_num=int(match.group("scale_num")),
        trajectory=match.group("trajectory"),
    )


def parse_trajectory(arg: Optional[str]) -> tuple:
    """
    Split a trajectory argument into (start, end).

    Example:
        >>> parse_trajectory("-0.5:1.0")
        (-0.5, 1.0)
        >>> parse_trajectory("0.25")
        (0.25, 0.25)
        >>> parse_trajectory(None)
        (0.0, 0.0)
    """
    if not arg:
        return 0.0, 0.0
    if ":" in arg:
        start, end = arg.split(":", 1)
        return float(start), float(end)
    value = float(arg)
    return value, value


def scale_index_for(scale_type: str, scale_num: int) -> int:
    """
    Combined band/degree index: sl1=0 .. sl8=7, sh1=8 .. sh8=15.

    Degrees outside 1-8 are clamped into their band.
    """
    band_base = 8 if scale_type == SCALE_HIGH else 0
    return band_base + max(0, min(7, scale_num - 1))


def build_note(token: VoiceToken, tuning_offset: int = 0) -> Note:
    """
    Resolve pitch, octave and frequencies for a parsed voice spec.

    Args:
        token: Parsed voice spec
        tuning_offset: Semitones added to every frequency (-12..+12)

    Returns:
        Note with resolved pitch and trajectory frequencies

    Raises:
        ValueError: If tuning_offset is out of range
    """
    validate_tuning_offset(tuning_offset)

    base_octave = token.octave_layer
    diatonic_offset = white_key_offset(token.pitch_num)
    scale_offset = white_key_offset(token.scale_num)
    if token.scale_type == SCALE_HIGH:
        scale_offset += 12

    # Key (octave layer + pitch, before the scale degree)
    key_note = semitone_to_name(diatonic_offset % 12, base_octave + diatonic_offset // 12)

    total_semitones = diatonic_offset + scale_offset
    if token.register == FALSETTO_REGISTER:
        total_semitones += 12

    final_octave = base_octave + total_semitones // 12
    semitone_in_octave = total_semitones % 12

    traj_start, traj_end = parse_trajectory(token.trajectory)
    traj_start_semitones = traj_start * TRAJECTORY_SEMITONE_SCALE
    traj_end_semitones = traj_end * TRAJECTORY_SEMITONE_SCALE

    base_semitones = (final_octave - REFERENCE_OCTAVE) * 12 + semitone_in_octave + tuning_offset

    return Note(
        raw=token.raw,
        voice_type=token.voice_type,
        mode=token.mode,
        register=token.register,
        articulation=token.articulation,
        octave_layer=token.octave_layer,
        pitch_class=token.pitch_class,
        pitch_num=token.pitch_num,
        scale_type=token.scale_type,
        scale_num=token.scale_num,
        key_note=key_note,
        scale_index=scale_index_for(token.scale_type, token.scale_num),
        traj_start=traj_start,
        traj_end=traj_end,
        traj_start_semitones=traj_start_semitones,
        traj_end_semitones=traj_end_semitones,
        note_name=semitone_to_name(semitone_in_octave, final_octave),
        octave=final_octave,
        start_frequency=semitones_to_frequency(base_semitones + traj_start_semitones),
        end_frequency=semitones_to_frequency(base_semitones + traj_end_semitones),
        tuning_offset=tuning_offset,
    )


def parse_voice_spec(spec: str, tuning_offset: int = 0) -> Optional[Note]:
    """
    Parse a voice spec straight into a Note.

    Args:
        spec: Voice spec text
        tuning_offset: Semitones added to every frequency (-12..+12)

    Returns:
        Note, or None if the spec is not valid OM notation
    """
    token = tokenize_voice_spec(spec)
    if token is None:
        return None
    return build_note(token, tuning_offset)


def parse_om_input(text: str, tuning_offset: int = 0) -> Dict[str, List[Note]]:
    """
    Parse OM preset text into groups.

    Each line is ``groupName: spec1 + spec2 + ...``. Lines that are not
    group lines are ignored, specs that do not parse are dropped and groups
    left with no notes are omitted.

    Args:
        text: Preset text
        tuning_offset: Semitones added to every frequency (-12..+12)

    Returns:
        Mapping of group name to notes, in text order
    """
    validate_tuning_offset(tuning_offset)
    groups: Dict[str, List[Note]] = {}

    for line in text.strip().splitlines():
        group_match = GROUP_LINE_PATTERN.match(line)
        if not group_match:
            continue

        group_name, body = group_match.groups()
        specs = [s.strip() for s in SPEC_SEPARATOR.split(body)]

        notes = []
        for spec in specs:
            if not spec:
                continue
            note = parse_voice_spec(spec, tuning_offset)
            if note is None:
                logger.debug("Dropping unparseable spec in %s: %r", group_name, spec)
                continue
            notes.append(note.with_group(group_name))

        if notes:
            groups[group_name] = notes

    return groups


def flatten_groups(groups: Dict[str, List[Note]],
                   names: Optional[Iterable[str]] = None) -> List[Note]:
    """
    Concatenate preset groups into one note sequence.

    Args:
        groups: Parsed preset groups
        names: Group names to include, in play order (default: all, in text order)

    Returns:
        Notes in play order. Unknown group names are skipped.
    """
    if names is None:
        names = groups.keys()
    notes: List[Note] = []
    for name in names:
        notes.extend(groups.get(name, ()))
    return notes
