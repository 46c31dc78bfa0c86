"""Exception types raised by parsers, converters and the persistence layer."""
from __future__ import annotations

from typing import Any, List, Sequence


class PresetError(Exception):
    """Base class for every preset engine error."""


class UnknownFormat(PresetError):
    def __init__(self, message: str = "Unknown preset format. Supported formats: Native, AutoEq, PowerAmp"):
        super().__init__(message)


class NoFiltersFound(PresetError):
    """No AutoEQ filter line matched. Carries the first lines for diagnostics."""

    def __init__(self, line_count: int, sample_lines: Sequence[str]):
        self.line_count = line_count
        self.sample_lines: List[str] = list(sample_lines)
        super().__init__(
            "No valid filters found in AutoEq text. "
            'Expected format: "Filter 1: ON PK Fc 105 Hz Gain -2.1 dB Q 0.70". '
            f"Found {line_count} lines but none matched the filter pattern. "
            f"First few lines: {'; '.join(self.sample_lines)}"
        )


class EmptyFilterList(PresetError):
    def __init__(self, message: str = "AutoEq preset must have a non-empty filters array"):
        super().__init__(message)


class MissingEqData(PresetError):
    def __init__(self, message: str = "Invalid Qudelix preset: missing EQ data"):
        super().__init__(message)


class ValidationError(PresetError):
    """A field holds a value outside the canonical model."""

    def __init__(self, field: str, value: Any, reason: str = "invalid value"):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"{field}: {reason} ({value!r})")


class NotFound(PresetError):
    def __init__(self, preset_id: str):
        self.preset_id = preset_id
        super().__init__(f"Preset not found in library: {preset_id}")


class StorageQuotaExceeded(PresetError):
    def __init__(self, key: str, size: int, quota: int):
        self.key = key
        self.size = size
        self.quota = quota
        super().__init__(f"Storage quota exceeded writing {key!r}: {size} > {quota} bytes")


class CorruptState(PresetError):
    def __init__(self, key: str, reason: str):
        self.key = key
        super().__init__(f"Corrupt stored value for {key!r}: {reason}")
