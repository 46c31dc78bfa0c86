"""Canonical band/preset model plus validation, normalization and JSON file helpers."""
from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .config import (
    DEFAULT_PEAKING_Q,
    DEFAULT_SHELF_Q,
    FREQ_RANGE_HZ,
    GAIN_RANGE_DB,
    PREAMP_RANGE_DB,
    Q_RANGE,
)
from .errors import ValidationError

PRESET_VERSION = "1.0"
DEFAULT_PRESET_NAME = "Untitled Preset"


class FilterType(str, Enum):
    PEAKING = "peaking"
    LOWSHELF = "lowshelf"
    HIGHSHELF = "highshelf"
    LOWPASS = "lowpass"
    HIGHPASS = "highpass"
    NOTCH = "notch"

    @classmethod
    def coerce(cls, value: Any) -> "FilterType":
        """Map a loose type string to a member, defaulting to peaking."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.PEAKING


class PresetSource(str, Enum):
    NATIVE = "native"
    AUTOEQ = "autoeq"
    POWERAMP = "poweramp"
    QUDELIX = "qudelix"
    GENERIC = "generic"
    USER = "user"

    @classmethod
    def coerce(cls, value: Any) -> "PresetSource":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.USER


def default_q(filter_type: FilterType) -> float:
    return DEFAULT_PEAKING_Q if filter_type is FilterType.PEAKING else DEFAULT_SHELF_Q


def clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def round_half_away(value: float, digits: int) -> float:
    """Round at *digits* decimals with ties away from zero; never returns -0.0."""
    step = Decimal(1).scaleb(-digits)
    return float(Decimal(value).quantize(step, rounding=ROUND_HALF_UP)) + 0.0


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def to_float(value: Any, field_name: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(field_name, value, "expected a number")
    try:
        out = float(value)
    except (TypeError, ValueError):
        raise ValidationError(field_name, value, "expected a number") from None
    if not math.isfinite(out):
        raise ValidationError(field_name, value, "expected a finite number")
    return out


def _first_present(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


@dataclass(frozen=True)
class Band:
    """One filter stage. ``q`` is a rolloff factor for shelf/pass types."""

    frequency: float
    gain: float = 0.0
    q: float = DEFAULT_PEAKING_Q
    type: FilterType = FilterType.PEAKING

    def to_dict(self) -> Dict[str, Any]:
        return {"frequency": self.frequency, "gain": self.gain, "Q": self.q, "type": self.type.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], index: int = 0) -> "Band":
        """Build a band from native or loosely-shaped generic JSON."""
        prefix = f"bands[{index}]"
        if not isinstance(data, Mapping):
            raise ValidationError(prefix, data, "expected an object")
        freq = _first_present(data, "frequency", "freq", "fc")
        if freq is None:
            raise ValidationError(f"{prefix}.frequency", None, "missing")
        filter_type = FilterType.coerce(data.get("type", FilterType.PEAKING))
        q = _first_present(data, "Q", "q")
        gain = _first_present(data, "gain", "gain_db")
        return cls(
            frequency=to_float(freq, f"{prefix}.frequency"),
            gain=to_float(gain, f"{prefix}.gain") if gain is not None else 0.0,
            q=to_float(q, f"{prefix}.Q") if q else default_q(filter_type),
            type=filter_type,
        )


@dataclass(frozen=True)
class Preset:
    """Canonical, format-agnostic preset. Immutable; edit with ``dataclasses.replace``."""

    name: str
    bands: Tuple[Band, ...] = ()
    preamp: float = 0.0
    description: str = ""
    version: str = PRESET_VERSION
    source: PresetSource = PresetSource.USER
    target: Optional[str] = None
    device_type: Optional[str] = None
    import_date: Optional[str] = field(default=None, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "preamp": self.preamp,
            "bands": [b.to_dict() for b in self.bands],
            "source": self.source.value,
            "target": self.target,
            "deviceType": self.device_type,
            "importDate": self.import_date,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Preset":
        if not isinstance(data, Mapping):
            raise ValidationError("preset", data, "expected an object")
        raw_bands = data.get("bands", [])
        if not isinstance(raw_bands, (list, tuple)):
            raise ValidationError("bands", raw_bands, "expected a list")
        preamp = _first_present(data, "preamp", "preampGain")
        return cls(
            name=str(data.get("name") or ""),
            bands=tuple(Band.from_dict(b, i) for i, b in enumerate(raw_bands)),
            preamp=to_float(preamp, "preamp") if preamp is not None else 0.0,
            description=str(data.get("description") or ""),
            version=str(data.get("version") or PRESET_VERSION),
            source=PresetSource.coerce(data.get("source") or PresetSource.USER),
            target=data.get("target"),
            device_type=data.get("deviceType"),
            import_date=data.get("importDate"),
        )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _check_range(field_name: str, value: Any, bounds: Tuple[float, float]) -> None:
    if not is_number(value):
        raise ValidationError(field_name, value, "expected a number")
    lo, hi = bounds
    if not lo <= value <= hi:
        raise ValidationError(field_name, value, f"out of range {lo}..{hi}")


def validate_preset(data: Any) -> None:
    """Raise ValidationError on the first field that breaks the canonical model."""
    if isinstance(data, Preset):
        data = data.to_dict()
    if not isinstance(data, Mapping):
        raise ValidationError("preset", data, "expected an object")
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name", name, "expected a non-empty string")
    preamp = data.get("preamp", 0)
    if not is_number(preamp):
        raise ValidationError("preamp", preamp, "expected a number")
    bands = data.get("bands")
    if not isinstance(bands, (list, tuple)):
        raise ValidationError("bands", bands, "expected a list")
    for i, band in enumerate(bands):
        if not isinstance(band, Mapping):
            raise ValidationError(f"bands[{i}]", band, "expected an object")
        _check_range(f"bands[{i}].frequency", band.get("frequency"), FREQ_RANGE_HZ)
        _check_range(f"bands[{i}].gain", band.get("gain"), GAIN_RANGE_DB)
        _check_range(f"bands[{i}].Q", band.get("Q"), Q_RANGE)
        band_type = band.get("type")
        if not isinstance(band_type, str) or band_type not in {t.value for t in FilterType}:
            raise ValidationError(f"bands[{i}].type", band_type, "unknown filter type")


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

def normalize_band(band: Band) -> Band:
    return Band(
        frequency=clamp(band.frequency, *FREQ_RANGE_HZ),
        gain=clamp(band.gain, *GAIN_RANGE_DB),
        q=clamp(band.q, *Q_RANGE),
        type=FilterType.coerce(band.type),
    )


def sort_bands(bands: Iterable[Band]) -> Tuple[Band, ...]:
    return tuple(sorted(bands, key=lambda b: b.frequency))


def normalize_preset(data: Preset | Mapping[str, Any], *, now: Optional[str] = None) -> Preset:
    """Coerce, clamp and sort a preset into the canonical model.

    Accepts a ``Preset`` or a JSON mapping. Applying it twice yields the same
    value as applying it once.
    """
    preset = data if isinstance(data, Preset) else Preset.from_dict(data)
    return replace(
        preset,
        name=preset.name.strip() or DEFAULT_PRESET_NAME,
        preamp=clamp(preset.preamp, *PREAMP_RANGE_DB),
        bands=sort_bands(normalize_band(b) for b in preset.bands),
        version=preset.version or PRESET_VERSION,
        source=PresetSource.coerce(preset.source),
        import_date=preset.import_date or now or now_iso(),
    )


def recommended_preamp(bands: Iterable[Band]) -> float:
    """Negative headroom matching the largest boost, so boosts cannot clip."""
    peak = max((b.gain for b in bands), default=0.0)
    return -max(0.0, peak)


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

def save_preset(path: str | Path, preset: Preset) -> None:
    """Write a preset as native JSON."""
    Path(path).write_text(json.dumps(preset.to_dict(), indent=2))


def load_preset(path: str | Path) -> Preset:
    """Load native JSON from *path* and return it normalized."""
    obj = json.loads(Path(path).read_text())
    return normalize_preset(obj)
