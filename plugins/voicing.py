"""
Map OM notes to voice plugin parameters.

Voice type, mode, register and articulation pick the FM character; the
section letter picks the vowel formants.

Mode is what makes the big difference:
- Operatic (opr): more modulation, slower attack, more sustain, louder
- Normal: less modulation, faster speech-like attack, thinner filtering
"""
from typing import Dict, Any

from core.constants import FALSETTO_REGISTER
from core.models import Note

FM_VOICE = "FM_VOICE"
SIMPLE_FM_VOICE = "SIMPLE_FM_VOICE"

# Per voice type: (harmonicity, harmonicity falsetto, mod index, mod index falsetto,
#                  attack, decay, sustain, release, mod attack, mod decay, mod release)
VOICE_TYPES = {
    "sng": (3.0, 4.0, 10.0, 5.0, 1.2, 0.3, 0.85, 0.8, 1.0, 0.3, 0.6),
    "ydl": (3.0, 4.0, 8.0, 4.0, 1.0, 0.2, 0.80, 0.7, 0.8, 0.2, 0.5),
    "tlk": (2.0, 2.5, 6.0, 3.0, 0.9, 0.2, 0.75, 0.6, 0.7, 0.15, 0.5),
    "rap": (2.0, 3.0, 5.0, 2.5, 0.8, 0.2, 0.70, 0.5, 0.6, 0.15, 0.4),
}


def _mode_params(operatic: bool, slide: bool) -> Dict[str, Any]:
    # sld kills nearly all FM for a clean tone
    mod_index_mult = 0.05 if slide else 1.0
    if operatic:
        return {
            "mod_boost": 1.1 * mod_index_mult,
            "harm_boost": 1.0,
            "attack_mult": 1.1,
            "sustain_boost": 0.1,
            "volume_boost": 3.0,
        }
    return {
        "mod_boost": 0.4 * mod_index_mult,
        "harm_boost": 0.7,
        "attack_mult": 0.5,
        "sustain_boost": -0.1,
        "volume_boost": 0.0,
    }


def voice_params(note: Note, volume_db: float) -> Dict[str, Any]:
    """
    Full voice parameters for live playback (FM_VOICE).

    Args:
        note: Note to voice
        volume_db: Voice volume in dB

    Returns:
        Parameter dict for the FM_VOICE plugin
    """
    falsetto = note.register == FALSETTO_REGISTER
    operatic = note.mode == "opr"
    vibrato = note.articulation == "vbr"
    slide = note.articulation == "sld"
    mode = _mode_params(operatic, slide)

    mod_env_sustain = 0.0 if slide else 0.05

    profile = VOICE_TYPES.get(note.voice_type)
    if profile is None:
        params = {
            "harmonicity": 2.0 * mode["harm_boost"],
            "modulation_index": 4.0 * mode["mod_boost"],
            "oscillator": "sine",
            "modulation_type": "sine",
            "attack": 0.8 * mode["attack_mult"],
            "decay": 0.3,
            "sustain": 0.8,
            "release": 0.6,
            "mod_attack": 0.01,
            "mod_decay": 0.01,
            "mod_sustain": mod_env_sustain,
            "mod_release": 0.5,
        }
    else:
        (harm, harm_fls, index, index_fls, attack, decay, sustain, release,
         mod_attack, mod_decay, mod_release) = profile
        index_scale = mode["mod_boost"]
        oscillator = "triangle"
        modulation_type = "sine"
        if note.voice_type == "ydl":
            index_scale = 0.1 if slide else mode["mod_boost"]
            oscillator = "sine" if slide else "triangle"
        elif note.voice_type == "tlk":
            modulation_type = "sine" if operatic else "triangle"

        params = {
            "harmonicity": (harm_fls if falsetto else harm) * mode["harm_boost"],
            "modulation_index": (index_fls if falsetto else index) * index_scale,
            "oscillator": oscillator,
            "modulation_type": modulation_type,
            "attack": attack * mode["attack_mult"],
            "decay": decay,
            "sustain": min(0.95, sustain + mode["sustain_boost"]),
            "release": release,
            "mod_attack": mod_attack * mode["attack_mult"],
            "mod_decay": mod_decay,
            "mod_sustain": mod_env_sustain,
            "mod_release": mod_release,
        }

    base_volume = volume_db - 6.0 if falsetto else volume_db
    params.update({
        "volume_db": base_volume + mode["volume_boost"],
        "operatic": operatic,
        "vibrato": vibrato,
        "section": note.section or "",
    })
    return params


def simple_voice_params(note: Note, volume_db: float) -> Dict[str, Any]:
    """
    Simplified voice parameters for offline rendering (SIMPLE_FM_VOICE).

    Only harmonicity and modulation index vary with the note.
    """
    falsetto = note.register == FALSETTO_REGISTER
    return {
        "harmonicity": 3.0 if note.voice_type in ("sng", "ydl") else 2.0,
        "modulation_index": 4.0 if falsetto else 8.0,
        "oscillator": "triangle" if falsetto else "sine",
        "volume_db": volume_db - 6.0 if falsetto else volume_db,
        "vibrato": note.articulation == "vbr",
    }


def plugin_for(simplified: bool) -> str:
    """Voice plugin ID for full or simplified voicing."""
    return SIMPLE_FM_VOICE if simplified else FM_VOICE


def params_for(note: Note, volume_db: float, simplified: bool) -> Dict[str, Any]:
    """Voice parameters matching plugin_for(simplified)."""
    if simplified:
        return simple_voice_params(note, volume_db)
    return voice_params(note, volume_db)
