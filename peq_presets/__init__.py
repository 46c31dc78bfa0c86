from importlib import import_module

from .errors import PresetError
from .presets import Band, FilterType, Preset, PresetSource, normalize_preset, validate_preset
from .store import JsonFileStore, MemoryStore, PeqStateStore
from .library import PresetLibrary
from .response import ResponseSynthesizer

# Delayed import: formats depends on every converter module
formats = import_module("peq_presets.formats")

import_preset_text = formats.import_preset_text  # type: ignore[attr-defined]
try_import_preset = formats.try_import_preset  # type: ignore[attr-defined]
export_preset = formats.export_preset  # type: ignore[attr-defined]

__all__ = [
    "Band",
    "FilterType",
    "Preset",
    "PresetSource",
    "PresetError",
    "normalize_preset",
    "validate_preset",
    "MemoryStore",
    "JsonFileStore",
    "PeqStateStore",
    "PresetLibrary",
    "ResponseSynthesizer",
    "import_preset_text",
    "try_import_preset",
    "export_preset",
]
