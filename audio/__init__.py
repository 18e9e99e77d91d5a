"""
Audio playback layer for omchant.

Modules:
- base: Synthesis engine interfaces (voices, buffer players, render sessions)
- clock: Clock/timer abstraction (manual and asyncio)
- scheduler: Shared note timing (slots, velocities, note index at a time)
- scheduled: Live scheduled note playback
- offline: Offline phrase rendering
- offline_player: Pre-rendered phrase player state machine
- step_sequencer: Note-by-note live player state machine
- engine: numpy FM synthesis engine
- voice_manager: Triggered voices and block mixing
- output: sounddevice output streams
- dsp: DSP utilities (filters, envelopes, limiting)
"""
