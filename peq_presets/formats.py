"""Import/export entry points tying detection, converters and normalization together."""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from .autoeq import autoeq_to_native, name_from_filename, native_to_autoeq, native_to_autoeq_text
from .autoeq_text import parse_autoeq_text
from .detect import PresetFormat, detect_format
from .errors import PresetError, ValidationError
from .poweramp import poweramp_json_to_native, to_poweramp_xml
from .presets import Preset, PresetSource, normalize_preset
from .qudelix import from_qudelix, optimize_for_qudelix, to_qudelix_json

logger = logging.getLogger(__name__)

EXPORT_FORMATS = {
    "native": {
        "name": "Native JSON",
        "extension": "json",
        "mimeType": "application/json",
        "description": "Native format with full feature support",
    },
    "autoeq": {
        "name": "AutoEq JSON",
        "extension": "json",
        "mimeType": "application/json",
        "description": "AutoEq filters as JSON",
    },
    "autoeq-text": {
        "name": "AutoEq ParametricEQ.txt",
        "extension": "txt",
        "mimeType": "text/plain",
        "description": "AutoEq text format for headphone corrections",
    },
    "poweramp": {
        "name": "PowerAmp XML",
        "extension": "xml",
        "mimeType": "application/xml",
        "description": "PowerAmp equalizer preset format",
    },
    "qudelix": {
        "name": "Qudelix JSON",
        "extension": "json",
        "mimeType": "application/json",
        "description": "Qudelix 5K DAC/Amp preset format",
    },
}


@dataclass(frozen=True)
class ImportResult:
    ok: bool
    preset: Optional[Preset] = None
    error: Optional[PresetError] = None
    message: str = ""


def convert_to_native(document: Any) -> Preset:
    """Detect the dialect of a parsed JSON document and convert it."""
    detection = detect_format(document)
    logger.debug("detected %s preset", detection.format.value)
    doc = detection.document
    if detection.format is PresetFormat.AUTOEQ:
        return autoeq_to_native(doc)
    if detection.format is PresetFormat.POWERAMP:
        return poweramp_json_to_native(doc)
    if detection.format is PresetFormat.NATIVE:
        return normalize_preset(doc)
    return normalize_preset({
        "name": doc.get("name") or "Imported Preset",
        "description": doc.get("description") or "Generic EQ preset",
        "preamp": doc.get("preamp") or 0,
        "bands": doc.get("bands"),
        "source": PresetSource.GENERIC.value,
    })


def is_qudelix(document: Mapping[str, Any]) -> bool:
    eq = document.get("eq")
    return isinstance(eq, Mapping) and isinstance(eq.get("bands"), list)


def import_preset_text(text: str, filename: str = "") -> Preset:
    """Import file content.

    Qudelix payloads and other JSON objects go through their converters;
    anything that is not a JSON object is read as AutoEQ text, named after
    *filename* when one is given.
    """
    try:
        document = json.loads(text)
    except json.JSONDecodeError:
        document = None
    if isinstance(document, Mapping):
        if is_qudelix(document):
            return from_qudelix(document)
        return convert_to_native(document)

    name = name_from_filename(filename) if filename else ""
    parsed = parse_autoeq_text(text, name=name) if name else parse_autoeq_text(text)
    return autoeq_to_native(parsed)


def try_import_preset(text: str, filename: str = "") -> ImportResult:
    """Like ``import_preset_text`` but returns a typed result instead of raising."""
    try:
        preset = import_preset_text(text, filename)
    except PresetError as exc:
        logger.info("import failed for %s: %s", filename or "<text>", exc)
        return ImportResult(ok=False, error=exc, message=f"Import failed: {exc}")
    return ImportResult(ok=True, preset=preset, message=f'Successfully imported preset "{preset.name}"')


def sanitize_filename(name: str) -> str:
    out = re.sub(r"[^a-z0-9_-]", "_", name, flags=re.IGNORECASE)
    out = re.sub(r"_+", "_", out).strip("_").lower()
    return out or "preset"


def sanitize_filename_keep_spaces(name: str) -> str:
    out = re.sub(r'[<>:"/\\|?*]', "", name)
    return re.sub(r"\s+", " ", out).strip() or "preset"


def export_preset(preset: Preset, format_id: str = "native") -> Tuple[str, str, str]:
    """Return ``(content, default_filename, mime_type)`` for *format_id*."""
    if format_id not in EXPORT_FORMATS:
        raise ValidationError("format", format_id, f"expected one of {sorted(EXPORT_FORMATS)}")
    mime = EXPORT_FORMATS[format_id]["mimeType"]

    if format_id == "autoeq":
        content = json.dumps(native_to_autoeq(preset), indent=2)
        filename = f"{sanitize_filename(preset.name)}_autoeq.json"
    elif format_id == "autoeq-text":
        content = native_to_autoeq_text(preset)
        filename = f"{sanitize_filename_keep_spaces(preset.name)} ParametricEQ.txt"
    elif format_id == "poweramp":
        content = to_poweramp_xml(preset)
        filename = f"{sanitize_filename(preset.name)}_poweramp.xml"
    elif format_id == "qudelix":
        content = to_qudelix_json(optimize_for_qudelix(preset))
        filename = f"{sanitize_filename(preset.name)}_qudelix.json"
    else:
        content = json.dumps(preset.to_dict(), indent=2)
        filename = f"{sanitize_filename(preset.name)}.json"
    return content, filename, mime
