"""Tests for the offline player state machine."""
import asyncio
import threading

import pytest

from audio.offline_player import OfflinePlayer, PlayerState


@pytest.fixture
def player(engine, clock):
    return OfflinePlayer(engine, clock)


@pytest.fixture
def events(player):
    log = []
    player.on_render_start = lambda: log.append("render_start")
    player.on_render_complete = lambda: log.append("render_complete")
    player.on_playback_end = lambda: log.append("end")
    player.on_progress = lambda t, i: log.append(("progress", t, i))
    return log


@pytest.fixture
async def ready(player, phrase):
    await player.render(phrase, 4.0)
    return player


async def test_render_lifecycle(player, engine, events, phrase):
    assert player.state is PlayerState.IDLE
    await player.render(phrase, 4.0)

    assert events == ["render_start", "render_complete"]
    assert player.state is PlayerState.READY
    assert player.duration == 4.0
    assert player.note_duration == 1.0
    assert player.notes == phrase
    assert len(engine.players) == 1


async def test_rerender_replaces_buffer(ready, engine, phrase):
    await ready.render(phrase[:2], 2.0)
    assert engine.players[0].disposed
    assert len(engine.players) == 2
    assert ready.duration == 2.0
    assert ready.state is PlayerState.READY


async def test_render_while_rendering_is_ignored(player, engine, events, phrase):
    first = asyncio.ensure_future(player.render(phrase, 4.0))
    await asyncio.sleep(0)
    assert player.is_rendering

    await player.render(phrase, 8.0)
    await first
    assert events == ["render_start", "render_complete"]
    assert engine.render_durations == [pytest.approx(7.0)]


async def test_dispose_during_render_drops_result(player, engine, events, phrase):
    engine.render_gate = threading.Event()
    first = asyncio.ensure_future(player.render(phrase, 4.0))
    await asyncio.sleep(0)
    assert player.is_rendering

    player.dispose()
    assert player.is_rendering
    # Still guarded: a second render is refused while the first runs
    await player.render(phrase, 8.0)

    engine.render_gate.set()
    await first
    assert player.state is PlayerState.IDLE
    assert events == ["render_start"]
    assert engine.players == []
    assert engine.render_durations == [pytest.approx(7.0)]

    await player.render(phrase, 4.0)
    assert player.state is PlayerState.READY
    assert len(engine.players) == 1


async def test_empty_render_goes_idle(player, engine, events):
    await player.render([], 4.0)
    assert player.state is PlayerState.IDLE
    assert events == ["render_start", "render_complete"]
    assert engine.players == []

    player.play()
    assert player.state is PlayerState.IDLE


async def test_render_failure_clears_rendering(player, engine, events, phrase):
    engine.fail_render = True
    with pytest.raises(RuntimeError):
        await player.render(phrase, 4.0)
    assert player.state is PlayerState.IDLE
    assert events == ["render_start"]

    engine.fail_render = False
    await player.render(phrase, 4.0)
    assert player.state is PlayerState.READY


def test_play_without_buffer_is_noop(player, clock):
    player.play()
    assert player.state is PlayerState.IDLE
    assert clock.pending == 0


async def test_play_reports_progress(ready, engine, clock, events):
    events.clear()
    ready.play()
    assert ready.is_playing
    assert engine.players[0].starts == [(0.0, 0.0)]
    assert events == [("progress", 0.0, 0)]

    clock.advance(1.5)
    assert ready.get_current_time() == pytest.approx(1.5)
    assert ready.get_current_note_index() == 1
    progress = [e for e in events if e[0] == "progress"]
    assert progress[-1][2] == 1


async def test_pause_and_resume(ready, engine, clock, events):
    ready.play()
    clock.advance(1.25)
    ready.pause()
    assert ready.state is PlayerState.PAUSED
    assert ready.get_current_time() == pytest.approx(1.25)
    assert clock.pending == 0

    events.clear()
    clock.advance(5.0)
    assert events == []

    ready.play()
    assert engine.players[0].starts[-1] == (clock.now(), pytest.approx(1.25))
    clock.advance(1.0)
    assert ready.get_current_time() == pytest.approx(2.25)


async def test_stop_rewinds(ready, clock):
    ready.play()
    clock.advance(2.0)
    ready.stop()
    assert ready.state is PlayerState.READY
    assert ready.get_current_time() == 0.0
    assert clock.pending == 0


async def test_playback_end_fires_once(ready, clock, events):
    ready.play()
    clock.advance(4.05)
    assert "end" not in events
    clock.advance(0.1)
    assert events.count("end") == 1
    assert ready.state is PlayerState.PAUSED
    assert ready.is_finished
    assert ready.get_current_time() == 4.0
    assert ready.get_current_note_index() == 3

    clock.advance(10.0)
    assert events.count("end") == 1


async def test_replay_after_finish_via_seek(ready, clock, events):
    ready.play()
    clock.advance(5.0)
    ready.seek(0.0)
    assert ready.state is PlayerState.PAUSED
    ready.play()
    clock.advance(5.0)
    assert events.count("end") == 2


async def test_pause_cancels_end_timer(ready, clock, events):
    ready.play()
    clock.advance(3.0)
    ready.pause()
    clock.advance(10.0)
    assert "end" not in events


async def test_seek_clamps(ready):
    ready.seek(100.0)
    assert ready.get_current_time() == 4.0
    assert ready.get_current_note_index() == 3
    ready.seek(-5.0)
    assert ready.get_current_time() == 0.0


async def test_seek_while_stopped_reports_progress(ready, events):
    events.clear()
    ready.seek(2.5)
    assert events == [("progress", 2.5, 2)]
    assert ready.state is PlayerState.READY


async def test_seek_while_paused_stays_paused(ready, clock):
    ready.play()
    clock.advance(1.0)
    ready.pause()
    ready.seek(3.0)
    assert ready.state is PlayerState.PAUSED
    assert ready.get_current_time() == 3.0


async def test_seek_while_playing_restarts(ready, engine, clock):
    ready.play()
    clock.advance(1.0)
    ready.seek(3.0)
    assert ready.is_playing
    assert engine.players[0].starts[-1] == (clock.now(), 3.0)
    clock.advance(0.5)
    assert ready.get_current_time() == pytest.approx(3.5)


async def test_seek_to_note(ready):
    ready.seek_to_note(2)
    assert ready.get_current_time() == 2.0
    assert ready.get_current_note_index() == 2
    ready.seek_to_note(99)
    assert ready.get_current_note_index() == 3


async def test_dispose(ready, engine, clock):
    ready.play()
    ready.dispose()
    assert ready.state is PlayerState.IDLE
    assert engine.players[0].disposed
    assert clock.pending == 0
    ready.play()
    assert ready.state is PlayerState.IDLE
