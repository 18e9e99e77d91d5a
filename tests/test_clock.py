"""Tests for the clock abstraction."""
import asyncio

from audio.clock import EventLoopClock, ManualClock


def test_manual_clock_fires_in_order():
    clock = ManualClock()
    fired = []
    clock.after(2.0, lambda: fired.append(("b", clock.now())))
    clock.after(1.0, lambda: fired.append(("a", clock.now())))
    clock.after(2.0, lambda: fired.append(("c", clock.now())))

    clock.advance(1.5)
    assert fired == [("a", 1.0)]
    assert clock.now() == 1.5

    clock.advance(1.0)
    assert fired == [("a", 1.0), ("b", 2.0), ("c", 2.0)]
    assert clock.now() == 2.5


def test_manual_clock_cancel():
    clock = ManualClock()
    fired = []
    handle = clock.after(1.0, lambda: fired.append(1))
    assert clock.pending == 1
    clock.cancel(handle)
    clock.cancel(None)
    assert clock.pending == 0
    clock.advance(5.0)
    assert fired == []


def test_callbacks_can_reschedule():
    clock = ManualClock()
    ticks = []

    def tick():
        ticks.append(clock.now())
        if len(ticks) < 3:
            clock.after(0.5, tick)

    clock.after(0.5, tick)
    clock.advance(10.0)
    assert ticks == [0.5, 1.0, 1.5]


def test_request_frame_uses_frame_interval():
    clock = ManualClock(frame_interval=0.25)
    fired = []
    clock.request_frame(lambda: fired.append(clock.now()))
    clock.advance(0.2)
    assert fired == []
    clock.advance(0.1)
    assert fired == [0.25]


async def test_event_loop_clock():
    clock = EventLoopClock()
    loop = asyncio.get_running_loop()
    done = loop.create_future()
    start = clock.now()

    clock.after(0.01, lambda: done.set_result(clock.now()))
    fired_at = await asyncio.wait_for(done, 1.0)
    assert fired_at >= start

    cancelled = []
    handle = clock.after(0.01, lambda: cancelled.append(True))
    clock.cancel(handle)
    await asyncio.sleep(0.03)
    assert cancelled == []
