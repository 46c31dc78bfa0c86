"""Key-value stores and EQ state persistence.

The engine never touches a global store: every consumer takes a
``KeyValueStore`` in its constructor. ``MemoryStore`` is the test double,
``JsonFileStore`` keeps one file per key on disk.
"""
from __future__ import annotations

import errno
import json
import logging
import re
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

from .config import (
    FREQ_RANGE_HZ,
    GAIN_RANGE_DB,
    Q_RANGE,
    SAVE_DEBOUNCE_SECONDS,
    STATE_MAX_AGE_DAYS,
    STATE_VERSION,
    STORAGE_KEYS,
)
from .errors import CorruptState, StorageQuotaExceeded
from .presets import is_number

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class KeyValueStore(Protocol):
    """String values by key. ``get`` raises CorruptState for unreadable values."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    """In-process store with an optional byte quota across all keys."""

    def __init__(self, quota: Optional[int] = None):
        self.quota = quota
        self._data: Dict[str, str] = {}
        self.writes = 0

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota is not None:
            used = sum(len(v) for k, v in self._data.items() if k != key)
            if used + len(value) > self.quota:
                raise StorageQuotaExceeded(key, used + len(value), self.quota)
        self._data[key] = value
        self.writes += 1

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data)


class JsonFileStore:
    """One ``<key>.json`` file per key under *root*."""

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.root / f"{re.sub(r'[^A-Za-z0-9_.-]', '_', key)}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise CorruptState(key, f"not UTF-8 text: {exc}") from exc

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        try:
            tmp.write_text(value, encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            tmp.unlink(missing_ok=True)
            if exc.errno in (errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)):
                raise StorageQuotaExceeded(key, len(value), -1) from exc
            raise

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# EQ state
# ---------------------------------------------------------------------------

def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, timezone.utc).isoformat(timespec="milliseconds")


def validate_loaded_state(state: Any) -> bool:
    """True when *state* carries a well-formed ``peqBands`` list."""
    if not isinstance(state, Mapping) or "peqBands" not in state:
        return False
    bands = state["peqBands"]
    if not isinstance(bands, list):
        logger.warning("peqBands is not an array")
        return False
    for i, band in enumerate(bands):
        if not isinstance(band, Mapping):
            logger.warning("invalid band at index %d", i)
            return False
        freq, gain, q = band.get("frequency"), band.get("gain"), band.get("Q")
        if not (is_number(freq) and is_number(gain) and is_number(q) and isinstance(band.get("type"), str)):
            logger.warning("invalid band properties at index %d", i)
            return False
        if not FREQ_RANGE_HZ[0] <= freq <= FREQ_RANGE_HZ[1]:
            logger.warning("invalid frequency at band %d: %s", i, freq)
            return False
        if not GAIN_RANGE_DB[0] <= gain <= GAIN_RANGE_DB[1]:
            logger.warning("invalid gain at band %d: %s", i, gain)
            return False
        if not Q_RANGE[0] <= q <= Q_RANGE[1]:
            logger.warning("invalid Q at band %d: %s", i, q)
            return False
    return True


class PeqStateStore:
    """Save/restore the live EQ state between sessions."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        key: str = STORAGE_KEYS["peq_state"],
        clock: Clock = time.time,
        max_age_days: float = STATE_MAX_AGE_DAYS,
    ):
        self.store = store
        self.key = key
        self.clock = clock
        self.max_age_seconds = max_age_days * 24 * 60 * 60

    def save(self, state: Mapping[str, Any]) -> bool:
        """Write the full state; on quota exhaustion write a minimal one.

        Returns False only when even the minimal write failed.
        """
        payload = {
            "version": STATE_VERSION,
            "timestamp": _iso(self.clock()),
            "peqEnabled": state.get("peqEnabled"),
            "peqBypass": state.get("peqBypass"),
            "peqBands": state.get("peqBands"),
            "preampGain": state.get("preampGain"),
            "preampAuto": state.get("preampAuto"),
            "currentPresetName": state.get("currentPresetName"),
        }
        try:
            self.store.set(self.key, json.dumps(payload))
            logger.debug("PEQ state saved")
            return True
        except StorageQuotaExceeded:
            logger.warning("storage quota exceeded, attempting minimal PEQ state save")

        minimal = {
            "currentPresetName": state.get("currentPresetName"),
            "peqBypass": state.get("peqBypass"),
            "preampGain": state.get("preampGain"),
        }
        try:
            self.store.set(self.key, json.dumps(minimal))
            logger.info("minimal PEQ state saved")
            return True
        except StorageQuotaExceeded as exc:
            logger.error("failed to save even minimal PEQ state: %s", exc)
            return False

    def _decode(self, raw: str) -> Dict[str, Any]:
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CorruptState(self.key, str(exc)) from exc
        if not isinstance(parsed, dict):
            raise CorruptState(self.key, "expected an object")
        if "peqBands" in parsed and not validate_loaded_state(parsed):
            raise CorruptState(self.key, "invalid peqBands")
        return parsed

    def _age_seconds(self, timestamp: Any) -> float:
        try:
            saved = datetime.fromisoformat(str(timestamp).replace("Z", "+00:00"))
        except ValueError as exc:
            raise CorruptState(self.key, f"bad timestamp {timestamp!r}") from exc
        if saved.tzinfo is None:
            saved = saved.replace(tzinfo=timezone.utc)
        return self.clock() - saved.timestamp()

    def load(self) -> Optional[Dict[str, Any]]:
        """Return the saved state, or None when absent, corrupt or expired."""
        try:
            raw = self.store.get(self.key)
            if raw is None:
                logger.debug("no saved PEQ state found")
                return None
            state = self._decode(raw)
            if state.get("timestamp") and self._age_seconds(state["timestamp"]) > self.max_age_seconds:
                logger.info("PEQ state is too old, ignoring")
                self.clear()
                return None
        except CorruptState as exc:
            logger.error("%s; clearing", exc)
            self.clear()
            return None
        logger.debug("PEQ state loaded: %s", state.get("currentPresetName") or "Unknown preset")
        return state

    def clear(self) -> None:
        self.store.remove(self.key)

    def _peek(self, key: str) -> Optional[str]:
        try:
            return self.store.get(key)
        except CorruptState as exc:
            logger.warning("%s", exc)
            return None

    def storage_info(self, library_key: str = STORAGE_KEYS["preset_library"]) -> Dict[str, Any]:
        state = self._peek(self.key)
        library = self._peek(library_key)
        return {
            "available": True,
            "peqStateSize": len(state) if state else 0,
            "presetLibrarySize": len(library) if library else 0,
            "totalSize": len(state or "") + len(library or ""),
            "hasPeqState": bool(state),
            "hasPresetLibrary": bool(library),
        }


_NOTHING = object()


class DebouncedSaver:
    """Coalesce rapid state changes into one write after *delay* seconds.

    Only the most recently scheduled state is ever written. ``close()``
    flushes whatever is pending, so a final state is never dropped.
    """

    def __init__(
        self,
        save: Callable[[Any], Any],
        delay: float = SAVE_DEBOUNCE_SECONDS,
        *,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self._save = save
        self.delay = delay
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._save_lock = threading.Lock()
        self._pending: Any = _NOTHING
        self._timer: Optional[threading.Timer] = None
        self._closed = False

    @property
    def has_pending(self) -> bool:
        return self._pending is not _NOTHING

    def schedule(self, state: Any) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("DebouncedSaver is closed")
            self._pending = state
            if self._timer is not None:
                self._timer.cancel()
            self._timer = self._timer_factory(self.delay, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> bool:
        """Write the pending state now. Returns False when nothing was pending."""
        with self._save_lock:
            with self._lock:
                state, self._pending = self._pending, _NOTHING
                if self._timer is not None:
                    self._timer.cancel()
                    self._timer = None
            if state is _NOTHING:
                return False
            self._save(state)
            return True

    def close(self) -> None:
        with self._lock:
            self._closed = True
        self.flush()

    def __enter__(self) -> "DebouncedSaver":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
