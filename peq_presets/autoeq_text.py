"""Line grammar for AutoEQ ``ParametricEQ.txt`` files.

Each trimmed, non-blank line is tried against two patterns::

    Preamp: -6.2 dB
    Filter 1: ON LSC Fc 105 Hz Gain 2.9 dB Q 0.70

Anything else (headers, comments, device names) is skipped. The patterns are
kept strict on purpose: a looser match would start reading numbers out of
comment text.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import NoFiltersFound

logger = logging.getLogger(__name__)

DEFAULT_AUTOEQ_NAME = "AutoEq Preset"
SAMPLE_LINE_COUNT = 3

PREAMP_RE = re.compile(r"Preamp:\s*([+-]?\d+\.?\d*)\s*dB", re.IGNORECASE)
FILTER_RE = re.compile(
    r"Filter\s+\d+:\s*ON\s+(\w+)\s+Fc\s+(\d+\.?\d*)\s*Hz\s+Gain\s*([+-]?\d+\.?\d*)\s*dB\s+Q\s+(\d+\.?\d*)",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class AutoEqFilter:
    """Intermediate filter; only lives between parsing and conversion."""

    type: str
    fc: float
    gain: float
    q: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "fc": self.fc, "gain": self.gain, "Q": self.q}


@dataclass(frozen=True)
class AutoEqDocument:
    name: str = DEFAULT_AUTOEQ_NAME
    preamp: float = 0.0
    filters: List[AutoEqFilter] = field(default_factory=list)


def match_preamp(line: str) -> Optional[float]:
    m = PREAMP_RE.search(line)
    return float(m.group(1)) if m else None


def match_filter(line: str) -> Optional[AutoEqFilter]:
    m = FILTER_RE.search(line)
    if not m:
        return None
    filter_type, fc, gain, q = m.groups()
    return AutoEqFilter(type=filter_type.upper(), fc=float(fc), gain=float(gain), q=float(q))


def parse_autoeq_text(text: str, name: str = DEFAULT_AUTOEQ_NAME) -> AutoEqDocument:
    """Parse AutoEQ text into an ``AutoEqDocument``.

    The first preamp line wins. Raises ``NoFiltersFound`` when no filter line
    matched, carrying the first few lines for diagnostics.
    """
    lines = [line.strip() for line in text.splitlines()]
    lines = [line for line in lines if line]

    preamp: Optional[float] = None
    filters: List[AutoEqFilter] = []
    for line in lines:
        value = match_preamp(line)
        if value is not None:
            if preamp is None:
                preamp = value
            continue
        parsed = match_filter(line)
        if parsed is not None:
            filters.append(parsed)
            continue
        logger.debug("skipping line: %s", line)

    if not filters:
        raise NoFiltersFound(len(lines), lines[:SAMPLE_LINE_COUNT])

    logger.debug("parsed %d filters with preamp %s", len(filters), preamp)
    return AutoEqDocument(name=name, preamp=preamp if preamp is not None else 0.0, filters=filters)
