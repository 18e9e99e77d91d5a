"""
Plugin lookup by ID.

Plugin modules are imported on first use. Each module exports exactly one
AudioProcessor subclass through ``__all__``.
"""
from typing import Dict, List, Optional, Type
import importlib
import logging

from plugins.base import AudioProcessor, PluginMetadata, PluginCategory

logger = logging.getLogger(__name__)


class PluginRegistry:
    """Maps plugin IDs to module paths and caches the loaded classes."""

    VOICE_PLUGINS = {
        "FM_VOICE": "plugins.voices.fm_voice",
        "SIMPLE_FM_VOICE": "plugins.voices.simple_fm_voice",
    }

    EFFECT_PLUGINS = {
        "LIMITER": "plugins.effects.limiter",
    }

    def __init__(self):
        self._modules: Dict[PluginCategory, Dict[str, str]] = {
            PluginCategory.VOICE: dict(self.VOICE_PLUGINS),
            PluginCategory.EFFECT: dict(self.EFFECT_PLUGINS),
        }
        self._classes: Dict[str, Type[AudioProcessor]] = {}
        self._metadata: Dict[str, PluginMetadata] = {}

    def _module_path(self, plugin_id: str) -> str:
        for modules in self._modules.values():
            if plugin_id in modules:
                return modules[plugin_id]
        raise ValueError(f"Unknown plugin ID: {plugin_id}")

    def _plugin_class(self, plugin_id: str) -> Type[AudioProcessor]:
        cls = self._classes.get(plugin_id)
        if cls is not None:
            return cls

        module_path = self._module_path(plugin_id)
        module = importlib.import_module(module_path)
        exported = [getattr(module, name) for name in getattr(module, "__all__", ())]
        candidates = [
            obj for obj in exported
            if isinstance(obj, type) and issubclass(obj, AudioProcessor)
        ]
        if len(candidates) != 1:
            raise ValueError(
                f"{module_path} must export exactly one AudioProcessor, found {len(candidates)}"
            )

        cls = candidates[0]
        metadata = cls().get_metadata()
        if metadata.id != plugin_id:
            raise ValueError(f"{module_path} declares ID {metadata.id}, registered as {plugin_id}")

        logger.debug("Loaded plugin %s from %s", plugin_id, module_path)
        self._classes[plugin_id] = cls
        self._metadata[plugin_id] = metadata
        return cls

    def get_plugin_metadata(self, plugin_id: str) -> PluginMetadata:
        self._plugin_class(plugin_id)
        return self._metadata[plugin_id]

    def create_instance(self, plugin_id: str) -> AudioProcessor:
        """
        New, independent plugin instance.

        Raises:
            ValueError: unknown ID or a malformed plugin module
        """
        return self._plugin_class(plugin_id)()

    def get_voice_plugin_ids(self) -> List[str]:
        return list(self._modules[PluginCategory.VOICE])

    def get_effect_plugin_ids(self) -> List[str]:
        return list(self._modules[PluginCategory.EFFECT])

    def register_plugin(self, plugin_id: str, module_path: str, category: PluginCategory):
        """Add a plugin to this registry only. IDs are unique across categories."""
        if any(plugin_id in modules for modules in self._modules.values()):
            raise ValueError(f"Plugin ID '{plugin_id}' is already registered")
        self._modules[category][plugin_id] = module_path


_global_registry: Optional[PluginRegistry] = None


def get_global_registry() -> PluginRegistry:
    global _global_registry
    if _global_registry is None:
        _global_registry = PluginRegistry()
    return _global_registry
