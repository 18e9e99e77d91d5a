"""
omchant - OM chant player
Main entry point

Reads a preset file (one group per line, "A1: spec + spec + ..."), parses it
and plays the notes in one of three modes:
- offline: render the phrase, then play the buffer (default)
- scheduled: schedule every note as a live voice up front
- step: step sequencer, one live voice at a time
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from audio.clock import EventLoopClock
from audio.engine import NumpySynthesisEngine
from audio.offline_player import OfflinePlayer
from audio.scheduled import ScheduledPlaybackEngine
from audio.scheduler import NoteTimeline
from audio.step_sequencer import StepSequencerPlayer
from core.config import OMConfig, PlaybackDefaults
from core.constants import RELEASE_BUFFER, TUNING_MAX, TUNING_MIN
from core.models import Note
from core.parser import flatten_groups, parse_om_input

logger = logging.getLogger("omchant")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
MODES = ("offline", "scheduled", "step")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    defaults = PlaybackDefaults()
    parser = argparse.ArgumentParser(prog="omchant", description="Play OM chant presets")
    parser.add_argument("preset", type=Path, help="Preset file")
    parser.add_argument("-g", "--group", action="append", dest="groups",
                        help="Group to play (repeatable; default: all)")
    parser.add_argument("-m", "--mode", choices=MODES, default="offline")
    parser.add_argument("-t", "--tuning", type=int, default=0,
                        help=f"Tuning offset in semitones ({TUNING_MIN}..{TUNING_MAX})")
    parser.add_argument("-d", "--duration", type=float, default=defaults.duration,
                        help="Total phrase duration in seconds")
    parser.add_argument("--overlap", type=float, default=defaults.overlap_ratio,
                        help="Note overlap ratio (>1 blends notes)")
    parser.add_argument("--volume", type=float, default=defaults.voice_volume_db,
                        help="Voice volume in dB")
    parser.add_argument("--sample-rate", type=int, default=44100)
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def _wait_callback(loop: asyncio.AbstractEventLoop):
    """Future plus a callback that resolves it."""
    done = loop.create_future()

    def resolve(*_args):
        if not done.done():
            done.set_result(None)

    return done, resolve


def _report_progress(current_time: float, note_index: int, notes: List[Note]):
    logger.debug("%.2fs note %d (%s)", current_time, note_index, notes[note_index].note_name)


async def play_offline(engine, clock, notes: List[Note], args):
    player = OfflinePlayer(engine, clock, engine.config.sections)
    done, resolve = _wait_callback(asyncio.get_running_loop())
    player.on_render_start = lambda: logger.info("Rendering...")
    player.on_render_complete = lambda: logger.info("Render complete")
    player.on_progress = lambda t, i: _report_progress(t, i, notes)
    player.on_playback_end = resolve

    await player.render(notes, args.duration, args.volume, args.overlap)
    player.play()
    try:
        await done
    finally:
        player.dispose()


async def play_scheduled(engine, clock, notes: List[Note], args):
    scheduled = ScheduledPlaybackEngine(engine, clock, engine.config.sections)
    timeline = NoteTimeline(notes, args.duration, args.overlap)
    start = clock.now() + 0.1
    for slot in timeline.slots():
        scheduled.schedule_note(slot.note, slot.duration, start + slot.start, args.volume)
    await asyncio.sleep(args.duration + timeline.sound_duration + RELEASE_BUFFER)


async def play_step(engine, clock, notes: List[Note], args):
    sequencer = StepSequencerPlayer(engine, clock, engine.config.sections)
    done, resolve = _wait_callback(asyncio.get_running_loop())
    sequencer.set_notes(notes)
    sequencer.set_volume(args.volume)
    sequencer.on_note_start = lambda note, i: logger.info("Step %d: %s", i, note.note_name)
    sequencer.on_playback_end = resolve

    sequencer.start(args.duration)
    try:
        await done
    finally:
        sequencer.stop()


PLAYERS = {
    "offline": play_offline,
    "scheduled": play_scheduled,
    "step": play_step,
}


async def run(args: argparse.Namespace, config: OMConfig) -> int:
    text = args.preset.read_text(encoding="utf-8")
    groups = parse_om_input(text, config.tuning_offset)
    if not groups:
        logger.error("No playable groups in %s", args.preset)
        return 1

    missing = [name for name in (args.groups or []) if name not in groups]
    if missing:
        logger.warning("Unknown groups ignored: %s", ", ".join(missing))

    notes = flatten_groups(groups, args.groups)
    if not notes:
        logger.error("Nothing to play")
        return 1

    logger.info("Playing %d notes from %s (%s mode)",
                len(notes), ", ".join(args.groups or groups.keys()), args.mode)

    clock = EventLoopClock()
    engine = NumpySynthesisEngine(clock, config)
    try:
        await PLAYERS[args.mode](engine, clock, notes, args)
    finally:
        engine.close()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Launch omchant."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )

    try:
        config = OMConfig(
            tuning_offset=args.tuning,
            sample_rate=args.sample_rate,
            playback=PlaybackDefaults(
                duration=args.duration,
                overlap_ratio=args.overlap,
                voice_volume_db=args.volume,
            ),
        )
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    try:
        return asyncio.run(run(args, config))
    except FileNotFoundError:
        logger.error("Preset file not found: %s", args.preset)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
