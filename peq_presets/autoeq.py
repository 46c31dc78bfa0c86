"""AutoEQ <-> native conversion.

Import keeps the most significant filters (largest ``|gain|``) when a source
has more filters than the native band count, preserves their exact
frequencies and gains, pads with neutral bands and sorts by frequency.
Export drops flat bands, which carry no signal.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from .autoeq_text import DEFAULT_AUTOEQ_NAME, AutoEqDocument, AutoEqFilter
from .config import (
    BAND_LAYOUT,
    FALLBACK_PAD_BASE_HZ,
    FALLBACK_PAD_STEP_HZ,
    FLAT_GAIN_EPSILON,
    MAX_SIGNIFICANT_FILTERS,
    TARGET_BAND_COUNT,
)
from .errors import EmptyFilterList, ValidationError
from .presets import (
    Band,
    FilterType,
    Preset,
    PresetSource,
    default_q,
    is_number,
    normalize_preset,
    now_iso,
    round_half_away,
    round_half_up,
    sort_bands,
)

logger = logging.getLogger(__name__)

AUTOEQ_TO_NATIVE = {
    "PK": FilterType.PEAKING,
    "PEAKING": FilterType.PEAKING,
    "LSC": FilterType.LOWSHELF,
    "LOWSHELF": FilterType.LOWSHELF,
    "HSC": FilterType.HIGHSHELF,
    "HIGHSHELF": FilterType.HIGHSHELF,
    "NOTCH": FilterType.NOTCH,
}

NATIVE_TO_AUTOEQ = {
    FilterType.PEAKING: "PK",
    FilterType.LOWSHELF: "LSC",
    FilterType.HIGHSHELF: "HSC",
    FilterType.NOTCH: "NOTCH",
}


def map_autoeq_type(code: Any) -> FilterType:
    return AUTOEQ_TO_NATIVE.get(str(code or "").upper(), FilterType.PEAKING)


def map_native_type(filter_type: Any) -> str:
    return NATIVE_TO_AUTOEQ.get(FilterType.coerce(filter_type), "PK")


def _filter_from_dict(data: Any, index: int) -> AutoEqFilter:
    if not isinstance(data, Mapping):
        raise ValidationError(f"filters[{index}]", data, "expected an object")
    try:
        fc = float(data["fc"])
        gain = float(data.get("gain") or 0.0)
        q = data.get("Q", data.get("q"))
        q = float(q) if q is not None else None
    except (KeyError, TypeError, ValueError):
        raise ValidationError(f"filters[{index}]", data, "expected numeric fc/gain/Q") from None
    return AutoEqFilter(type=str(data.get("type") or "PK").upper(), fc=fc, gain=gain, q=q)


def coerce_document(source: AutoEqDocument | Mapping[str, Any]) -> AutoEqDocument:
    """Accept a parsed text document or the AutoEQ JSON dialect."""
    if isinstance(source, AutoEqDocument):
        return source
    raw = source.get("filters") if isinstance(source, Mapping) else None
    if not isinstance(raw, list):
        raise EmptyFilterList("AutoEq preset must have a filters array")
    preamp = source.get("preamp")
    return AutoEqDocument(
        name=str(source.get("name") or DEFAULT_AUTOEQ_NAME),
        preamp=float(preamp) if is_number(preamp) else 0.0,
        filters=[_filter_from_dict(f, i) for i, f in enumerate(raw)],
    )


def select_significant(filters: Sequence[AutoEqFilter], limit: int = MAX_SIGNIFICANT_FILTERS) -> List[AutoEqFilter]:
    """Top *limit* filters by ``|gain|``; ties keep source order."""
    return sorted(filters, key=lambda f: -abs(f.gain))[:limit]


def filter_to_band(flt: AutoEqFilter) -> Band:
    filter_type = map_autoeq_type(flt.type)
    return Band(
        frequency=flt.fc,
        gain=flt.gain,
        q=flt.q if flt.q else default_q(filter_type),
        type=filter_type,
    )


def pad_bands(
    bands: Sequence[Band],
    target: int = TARGET_BAND_COUNT,
    layout: Sequence[Tuple[float, str]] = BAND_LAYOUT,
) -> List[Band]:
    """Fill up to *target* bands with neutral ones.

    Unused reference-layout frequencies come first. Once the layout is
    exhausted, neutral peaking bands start at ``1000 + 100 * len(bands)`` Hz
    and step up by 100 Hz past any frequency already taken.
    """
    out = list(bands)
    used = {b.frequency for b in out}
    for freq, type_name in layout:
        if len(out) >= target:
            break
        if freq in used:
            continue
        filter_type = FilterType.coerce(type_name)
        out.append(Band(frequency=freq, gain=0.0, q=default_q(filter_type), type=filter_type))
        used.add(freq)

    candidate = FALLBACK_PAD_BASE_HZ + FALLBACK_PAD_STEP_HZ * len(out)
    while len(out) < target:
        while candidate in used:
            candidate += FALLBACK_PAD_STEP_HZ
        out.append(Band(frequency=candidate, gain=0.0, q=default_q(FilterType.PEAKING)))
        used.add(candidate)
    return out


def autoeq_to_native(source: AutoEqDocument | Mapping[str, Any], name: str | None = None) -> Preset:
    """Convert an AutoEQ document (text-parsed or JSON) to a normalized native preset."""
    doc = coerce_document(source)
    if not doc.filters:
        raise EmptyFilterList()

    selected = select_significant(doc.filters)
    logger.debug("converting AutoEq preset: %d filters, keeping %d", len(doc.filters), len(selected))
    for flt in selected:
        logger.debug("  %sHz: %+gdB (%s)", flt.fc, flt.gain, flt.type)

    bands = pad_bands([filter_to_band(f) for f in selected])
    preset = Preset(
        name=name or doc.name or DEFAULT_AUTOEQ_NAME,
        description=f"AutoEq preset - {len(doc.filters)} filters, {len(selected)} most significant used",
        preamp=doc.preamp,
        bands=sort_bands(bands),
        source=PresetSource.AUTOEQ,
        import_date=now_iso(),
    )
    return normalize_preset(preset)


def _as_preset(preset: Preset | Mapping[str, Any]) -> Preset:
    return preset if isinstance(preset, Preset) else Preset.from_dict(preset)


def active_bands(preset: Preset) -> List[Band]:
    return [b for b in preset.bands if abs(b.gain) > FLAT_GAIN_EPSILON]


def native_to_autoeq(preset: Preset | Mapping[str, Any]) -> Dict[str, Any]:
    """Export to the AutoEQ JSON dialect, dropping flat bands."""
    preset = _as_preset(preset)
    return {
        "name": preset.name,
        "preamp": preset.preamp or 0.0,
        "filters": [
            {"type": map_native_type(b.type), "fc": b.frequency, "Q": b.q, "gain": b.gain}
            for b in active_bands(preset)
        ],
    }


def _signed(value: float) -> str:
    return f"{round_half_away(value, 1):+.1f}"


def native_to_autoeq_text(preset: Preset | Mapping[str, Any]) -> str:
    """Render ``ParametricEQ.txt`` text that ``parse_autoeq_text`` reads back."""
    preset = _as_preset(preset)
    lines = [f"Preamp: {_signed(preset.preamp)} dB"]
    for i, band in enumerate(active_bands(preset), start=1):
        lines.append(
            f"Filter {i}: ON {map_native_type(band.type)} Fc {round_half_up(band.frequency)} Hz "
            f"Gain {_signed(band.gain)} dB Q {round_half_away(band.q, 2):.2f}"
        )
    return "\n".join(lines) + "\n"


def name_from_filename(filename: str) -> str:
    """``"sennheiser_hd-600 ParametricEQ.txt"`` -> ``"Sennheiser Hd 600"``."""
    stem = re.sub(r"\s*ParametricEQ\.(txt|json)$", "", filename, flags=re.IGNORECASE)
    stem = re.sub(r"\.(txt|json)$", "", stem, flags=re.IGNORECASE)
    stem = re.sub(r"[_-]", " ", stem)
    stem = re.sub(r"\b\w", lambda m: m.group(0).upper(), stem)
    return re.sub(r"\s+", " ", stem).strip()
