"""PowerAmp equalizer dialect.

Export targets PowerAmp's fixed 10-band XML. Every filter type collapses to a
peaking band and Q is dropped. The JSON ``EQSettings`` dialect can be read;
XML import is not supported.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Optional, Sequence
from xml.sax.saxutils import escape

from .config import BAND_LAYOUT, POWERAMP_EXTREME_GAIN_DB, POWERAMP_FREQUENCIES
from .errors import ValidationError
from .presets import (
    Band,
    FilterType,
    Preset,
    PresetSource,
    default_q,
    normalize_preset,
    now_iso,
    round_half_away,
    to_float,
)

DEFAULT_POWERAMP_NAME = "Preset"
_XML_ENTITIES = {'"': "&quot;", "'": "&#39;"}


def log_distance(freq: float, target: float) -> float:
    return abs(math.log(freq) - math.log(target))


def find_closest_band(bands: Sequence[Band], target_freq: float) -> Optional[Band]:
    """Band nearest to *target_freq* in log-frequency; the earliest wins ties."""
    closest: Optional[Band] = None
    best = math.inf
    for band in bands:
        if not band.frequency or band.frequency <= 0:
            continue
        distance = log_distance(band.frequency, target_freq)
        if distance < best:
            closest, best = band, distance
    return closest


def _fixed1(value: float) -> str:
    return f"{round_half_away(value, 1):.1f}"


def poweramp_bands(preset: Preset) -> List[Dict[str, Any]]:
    out = []
    for index, target in enumerate(POWERAMP_FREQUENCIES):
        band = find_closest_band(preset.bands, target)
        gain = band.gain if band is not None else 0.0
        out.append({
            "index": index,
            "frequency": target,
            "gain": gain,
            "enabled": band is not None and band.gain != 0,
        })
    return out


def to_poweramp_xml(preset: Preset | Mapping[str, Any]) -> str:
    """Render PowerAmp's equalizer XML for *preset*."""
    if not isinstance(preset, Preset):
        preset = Preset.from_dict(preset)
    name = escape(preset.name or DEFAULT_POWERAMP_NAME, _XML_ENTITIES)
    band_lines = "\n    ".join(
        f'<band index="{b["index"]}" freq="{b["frequency"]}" gain="{_fixed1(b["gain"])}" '
        f'enabled="{"true" if b["enabled"] else "false"}" />'
        for b in poweramp_bands(preset)
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<poweramp_equalizer version="1.0">\n'
        f'  <preset name="{name}">\n'
        f'    <preamp gain="{_fixed1(preset.preamp or 0.0)}" />\n'
        f"    {band_lines}\n"
        "  </preset>\n"
        "</poweramp_equalizer>"
    )


def poweramp_json_to_native(document: Mapping[str, Any]) -> Preset:
    """Read the JSON ``EQSettings`` dialect onto the reference band layout."""
    settings = document.get("EQSettings") if isinstance(document, Mapping) else None
    raw_bands = settings.get("bands") if isinstance(settings, Mapping) else None
    if not isinstance(raw_bands, list):
        raise ValidationError("EQSettings.bands", raw_bands, "expected a list")

    last = len(BAND_LAYOUT) - 1
    bands = []
    for index, raw in enumerate(raw_bands):
        raw = raw if isinstance(raw, Mapping) else {}
        freq = BAND_LAYOUT[index][0] if index <= last else 1000.0
        if index == 0:
            filter_type = FilterType.LOWSHELF
        elif index == last:
            filter_type = FilterType.HIGHSHELF
        else:
            filter_type = FilterType.PEAKING
        gain, q = raw.get("gain"), raw.get("Q")
        bands.append(Band(
            frequency=freq,
            gain=to_float(gain, f"EQSettings.bands[{index}].gain") if gain is not None else 0.0,
            q=to_float(q, f"EQSettings.bands[{index}].Q") if q else default_q(filter_type),
            type=filter_type,
        ))

    preamp = settings.get("preamp")
    return normalize_preset(Preset(
        name=str(document.get("name") or "PowerAmp Preset"),
        description="Imported from PowerAmp",
        preamp=to_float(preamp, "EQSettings.preamp") if preamp is not None else 0.0,
        bands=tuple(bands),
        source=PresetSource.POWERAMP,
        import_date=now_iso(),
    ))


def validate_poweramp_preset(preset: Preset) -> Dict[str, Any]:
    """Non-fatal export checks. Returns ``{"valid", "errors", "warnings"}``."""
    warnings: List[str] = []
    if not preset.name:
        warnings.append("Preset name is missing or invalid, using default")
    if not preset.bands:
        warnings.append("Preset has no bands, will export as flat EQ")
    extreme = [b for b in preset.bands if abs(b.gain) > POWERAMP_EXTREME_GAIN_DB]
    if extreme:
        warnings.append(f"{len(extreme)} bands have extreme gain values (>±{POWERAMP_EXTREME_GAIN_DB:g}dB)")
    if abs(preset.preamp) > POWERAMP_EXTREME_GAIN_DB:
        warnings.append(f"Preamp gain is extreme (>±{POWERAMP_EXTREME_GAIN_DB:g}dB)")
    return {"valid": True, "errors": [], "warnings": warnings}


def format_info() -> Dict[str, Any]:
    return {
        "name": "PowerAmp XML",
        "extension": "xml",
        "mimeType": "application/xml",
        "bands": len(POWERAMP_FREQUENCIES),
        "frequencies": list(POWERAMP_FREQUENCIES),
        "limitations": [
            "Only supports 10 fixed frequencies",
            "All filters are converted to peaking type",
            "Q factor is not preserved",
            "Frequency values are mapped to nearest PowerAmp frequency",
        ],
    }
