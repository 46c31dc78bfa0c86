"""Qudelix 5K JSON dialect (import, export and pre-export optimization)."""
from __future__ import annotations

import json
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional

from .config import (
    DEFAULT_PEAKING_Q,
    QUDELIX_FREQ_RANGE_HZ,
    QUDELIX_GAIN_RANGE_DB,
    QUDELIX_MAX_BANDS,
    QUDELIX_PREAMP_RANGE_DB,
    QUDELIX_Q_RANGE,
)
from .errors import MissingEqData, ValidationError
from .presets import (
    Band,
    FilterType,
    Preset,
    PresetSource,
    clamp,
    normalize_preset,
    now_iso,
    round_half_away,
    round_half_up,
    to_float,
)

EXPORT_SOURCE = "peq-presets"

NATIVE_TO_QUDELIX = {
    FilterType.PEAKING: "bell",
    FilterType.LOWSHELF: "low_shelf",
    FilterType.HIGHSHELF: "high_shelf",
    FilterType.LOWPASS: "low_pass",
    FilterType.HIGHPASS: "high_pass",
}
QUDELIX_TO_NATIVE = {v: k for k, v in NATIVE_TO_QUDELIX.items()}


def map_filter_type(filter_type: Any) -> str:
    return NATIVE_TO_QUDELIX.get(FilterType.coerce(filter_type), "bell")


def to_qudelix(preset: Preset, created: Optional[str] = None) -> Dict[str, Any]:
    lo, hi = QUDELIX_FREQ_RANGE_HZ
    in_range = [b for b in preset.bands if b.frequency and lo <= b.frequency <= hi]
    bands = [
        {
            "id": index,
            "frequency": round_half_up(b.frequency),
            "gain": round_half_away(b.gain, 1),
            "q": round_half_away(b.q or DEFAULT_PEAKING_Q, 2),
            "type": map_filter_type(b.type),
            "enabled": b.gain != 0,
        }
        for index, b in enumerate(in_range)
    ]
    return {
        "name": preset.name or "Preset",
        "description": preset.description or "Exported from peq-presets",
        "version": "1.0",
        "created": created or now_iso(),
        "eq": {
            "enabled": True,
            "preamp": round_half_away(preset.preamp or 0.0, 1),
            "bands": bands,
        },
        "metadata": {
            "source": EXPORT_SOURCE,
            "originalBandCount": len(preset.bands),
            "exportedBandCount": len(bands),
        },
    }


def to_qudelix_json(preset: Preset, created: Optional[str] = None) -> str:
    return json.dumps(to_qudelix(preset, created=created), indent=2)


def from_qudelix(data: str | Mapping[str, Any]) -> Preset:
    """Read a Qudelix payload (JSON text or parsed mapping) into a native preset."""
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as exc:
            raise MissingEqData(f"Invalid Qudelix JSON format: {exc}") from exc
    eq = data.get("eq") if isinstance(data, Mapping) else None
    raw_bands = eq.get("bands") if isinstance(eq, Mapping) else None
    if not isinstance(raw_bands, list):
        raise MissingEqData()

    bands = []
    for index, raw in enumerate(raw_bands):
        if not isinstance(raw, Mapping):
            raise ValidationError(f"eq.bands[{index}]", raw, "expected an object")
        prefix = f"eq.bands[{index}]"
        if raw.get("frequency") is None:
            raise ValidationError(f"{prefix}.frequency", None, "missing")
        gain, q, raw_type = raw.get("gain"), raw.get("q"), raw.get("type")
        filter_type = QUDELIX_TO_NATIVE.get(raw_type) if isinstance(raw_type, str) else None
        bands.append(Band(
            frequency=to_float(raw["frequency"], f"{prefix}.frequency"),
            gain=to_float(gain, f"{prefix}.gain") if gain is not None else 0.0,
            q=to_float(q, f"{prefix}.q") if q else DEFAULT_PEAKING_Q,
            type=filter_type or FilterType.PEAKING,
        ))

    preamp = eq.get("preamp")
    return normalize_preset(Preset(
        name=str(data.get("name") or "Qudelix Preset"),
        description=str(data.get("description") or "Imported from Qudelix"),
        preamp=to_float(preamp, "eq.preamp") if preamp is not None else 0.0,
        bands=tuple(bands),
        source=PresetSource.QUDELIX,
        import_date=now_iso(),
    ))


def optimize_for_qudelix(preset: Preset) -> Preset:
    """Fit *preset* to Qudelix hardware limits.

    More than 10 bands: keep the 10 largest ``|gain|`` then re-sort by
    frequency. Gains and preamp clamp to ±12 dB, Q to 0.1–10.
    """
    bands = list(preset.bands)
    if len(bands) > QUDELIX_MAX_BANDS:
        bands = sorted(bands, key=lambda b: -abs(b.gain))[:QUDELIX_MAX_BANDS]
    bands = sorted(bands, key=lambda b: b.frequency)
    bands = [
        replace(
            b,
            gain=clamp(b.gain, *QUDELIX_GAIN_RANGE_DB),
            q=clamp(b.q or DEFAULT_PEAKING_Q, *QUDELIX_Q_RANGE),
        )
        for b in bands
    ]
    return replace(preset, bands=tuple(bands), preamp=clamp(preset.preamp, *QUDELIX_PREAMP_RANGE_DB))


def validate_qudelix_preset(preset: Preset) -> Dict[str, Any]:
    warnings: List[str] = []
    lo, hi = QUDELIX_FREQ_RANGE_HZ
    out_of_range = [b for b in preset.bands if not lo <= b.frequency <= hi]
    if out_of_range:
        warnings.append(f"{len(out_of_range)} bands have frequencies outside Qudelix range ({lo:g}-{hi:g} Hz)")
    g_hi = QUDELIX_GAIN_RANGE_DB[1]
    extreme = [b for b in preset.bands if abs(b.gain) > g_hi]
    if extreme:
        warnings.append(f"{len(extreme)} bands have extreme gain values (>±{g_hi:g}dB), may cause distortion")
    q_lo, q_hi = QUDELIX_Q_RANGE
    extreme_q = [b for b in preset.bands if not q_lo <= b.q <= q_hi]
    if extreme_q:
        warnings.append(f"{len(extreme_q)} bands have extreme Q values, may cause instability")
    if abs(preset.preamp) > QUDELIX_PREAMP_RANGE_DB[1]:
        warnings.append(f"Preamp gain is extreme (>±{QUDELIX_PREAMP_RANGE_DB[1]:g}dB), may cause clipping")
    return {"valid": True, "errors": [], "warnings": warnings}
