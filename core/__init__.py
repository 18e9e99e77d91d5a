"""
Core data structures and notation parsing for omchant.

Modules:
- models: Immutable data structures (VoiceToken, Note)
- parser: OM notation grammar, note builder, preset parser
- velocity: Velocity and section envelope model
- config: Tuning, playback defaults and section envelopes
- constants: Musical constants (note names, white-key offsets, formants)
"""
