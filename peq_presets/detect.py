"""Classify an untyped JSON document into one of the supported preset dialects."""
from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, NamedTuple

from .errors import UnknownFormat
from .presets import is_number

__all__ = ["PresetFormat", "Detection", "detect_format"]


class PresetFormat(str, Enum):
    NATIVE = "native"
    AUTOEQ = "autoeq"
    POWERAMP = "poweramp"
    GENERIC = "generic"


class Detection(NamedTuple):
    format: PresetFormat
    document: Mapping[str, Any]


def _first_item(value: Any) -> Any:
    if isinstance(value, list) and value:
        return value[0]
    return None


def detect_format(document: Any) -> Detection:
    """Return the dialect of *document*.

    Checks run strongest signature first: ``filters[0].fc`` identifies AutoEQ
    before the bare ``bands`` array that every other dialect shares.
    """
    if not isinstance(document, Mapping):
        raise UnknownFormat("Invalid JSON: expected an object")

    first_filter = _first_item(document.get("filters"))
    if is_number(document.get("preamp")) and isinstance(first_filter, Mapping) and "fc" in first_filter:
        return Detection(PresetFormat.AUTOEQ, document)

    first_band = _first_item(document.get("bands"))
    if isinstance(document.get("name"), str) and isinstance(first_band, Mapping) and "frequency" in first_band:
        return Detection(PresetFormat.NATIVE, document)

    settings = document.get("EQSettings")
    if isinstance(settings, Mapping) and isinstance(settings.get("bands"), list):
        return Detection(PresetFormat.POWERAMP, document)

    if isinstance(first_band, Mapping):
        return Detection(PresetFormat.GENERIC, document)

    raise UnknownFormat()
