"""
Plugin system for omchant.

Modules:
- base: Base classes for all plugins
- registry: Plugin discovery and management
- voicing: Note -> voice parameter mapping
- voices: FM voice plugins
- effects: Output effect plugins (limiter)
"""
