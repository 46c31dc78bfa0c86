"""User preset library persisted as one JSON list in a key-value store."""
from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from .config import STORAGE_KEYS
from .errors import CorruptState, NotFound, PresetError, StorageQuotaExceeded, ValidationError
from .presets import Preset, normalize_preset, validate_preset
from .store import Clock, KeyValueStore

logger = logging.getLogger(__name__)

LIBRARY_EXPORT_VERSION = "1.0"


@dataclass
class LibraryEntry:
    """A stored preset plus library metadata. Only metadata mutates in place."""

    preset: Preset
    id: str
    created_at: str
    last_modified: str
    usage: int = 0
    favorite: bool = False
    last_used: Optional[str] = None

    @property
    def name(self) -> str:
        return self.preset.name

    def to_dict(self) -> Dict[str, Any]:
        data = self.preset.to_dict()
        data.update({
            "id": self.id,
            "createdAt": self.created_at,
            "lastModified": self.last_modified,
            "usage": self.usage,
            "favorite": self.favorite,
            "lastUsed": self.last_used,
        })
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LibraryEntry":
        validate_preset(data)
        entry_id = data.get("id")
        if not isinstance(entry_id, str) or not entry_id:
            raise ValidationError("id", entry_id, "expected a non-empty string")
        usage = data.get("usage", 0)
        if not isinstance(usage, int) or isinstance(usage, bool) or usage < 0:
            raise ValidationError("usage", usage, "expected a non-negative integer")
        return cls(
            preset=normalize_preset(data),
            id=entry_id,
            created_at=str(data.get("createdAt") or ""),
            last_modified=str(data.get("lastModified") or ""),
            usage=usage,
            favorite=bool(data.get("favorite", False)),
            last_used=data.get("lastUsed"),
        )


def slugify(name: str) -> str:
    slug = re.sub(r"\s+", "-", name)
    return re.sub(r"[^a-z0-9-]", "", slug, flags=re.IGNORECASE).lower() or "preset"


class PresetLibrary:
    """CRUD and metadata over a ``KeyValueStore``.

    Every write persists the whole list. Names are unique: adding a preset
    whose name already exists replaces the preset but keeps the entry's id,
    creation date, usage count and favorite flag.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        key: str = STORAGE_KEYS["preset_library"],
        clock: Clock = time.time,
    ):
        self.store = store
        self.key = key
        self.clock = clock

    def _now(self) -> str:
        return datetime.fromtimestamp(self.clock(), timezone.utc).isoformat(timespec="milliseconds")

    # ---- persistence ----
    def load(self) -> List[LibraryEntry]:
        """Read the library, discarding entries that fail validation."""
        try:
            raw = self.store.get(self.key)
        except CorruptState as exc:
            logger.error("%s; clearing", exc)
            self.store.remove(self.key)
            return []
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error("preset library is corrupt (%s); clearing", exc)
            self.store.remove(self.key)
            return []
        if not isinstance(data, list):
            logger.error("preset library is not a list; clearing")
            self.store.remove(self.key)
            return []

        entries = []
        for item in data:
            try:
                entries.append(LibraryEntry.from_dict(item))
            except ValidationError as exc:
                name = item.get("name") if isinstance(item, Mapping) else None
                logger.warning("invalid preset in library, removing: %s (%s)", name, exc)
        return entries

    def _save(self, entries: List[LibraryEntry]) -> bool:
        payload = [e.to_dict() for e in entries]
        try:
            self.store.set(self.key, json.dumps(payload, indent=2))
            logger.debug("saved preset library with %d presets", len(entries))
            return True
        except StorageQuotaExceeded:
            logger.warning("storage quota exceeded, retrying preset library save without indentation")
        try:
            self.store.set(self.key, json.dumps(payload, separators=(",", ":")))
            return True
        except StorageQuotaExceeded as exc:
            logger.error("could not save preset library: %s", exc)
            return False

    def _find(self, entries: List[LibraryEntry], preset_id: str) -> LibraryEntry:
        for entry in entries:
            if entry.id == preset_id:
                return entry
        raise NotFound(preset_id)

    def _new_id(self, name: str, entries: List[LibraryEntry]) -> str:
        base = f"{slugify(name)}-{int(self.clock() * 1000)}"
        taken = {e.id for e in entries}
        candidate, n = base, 1
        while candidate in taken:
            n += 1
            candidate = f"{base}-{n}"
        return candidate

    @staticmethod
    def _sort(entries: List[LibraryEntry]) -> None:
        entries.sort(key=lambda e: (e.name.casefold(), e.name))

    # ---- CRUD ----
    def add(self, preset: Preset | Mapping[str, Any]) -> LibraryEntry:
        """Insert or update by name and return the stored entry."""
        normalized = normalize_preset(preset)
        now = self._now()
        entries = self.load()
        entry = next((e for e in entries if e.name == normalized.name), None)
        if entry is not None:
            entry.preset = normalized
            entry.last_modified = now
        else:
            entry = LibraryEntry(
                preset=normalized,
                id=self._new_id(normalized.name, entries),
                created_at=now,
                last_modified=now,
            )
            entries.append(entry)
        self._sort(entries)
        self._save(entries)
        return entry

    def get(self, preset_id: str) -> Optional[LibraryEntry]:
        return next((e for e in self.load() if e.id == preset_id), None)

    def remove(self, preset_id: str) -> None:
        entries = self.load()
        kept = [e for e in entries if e.id != preset_id]
        if len(kept) == len(entries):
            raise NotFound(preset_id)
        self._save(kept)
        logger.info("removed preset from library: %s", preset_id)

    def increment_usage(self, preset_id: str) -> int:
        entries = self.load()
        entry = self._find(entries, preset_id)
        entry.usage += 1
        entry.last_used = self._now()
        self._save(entries)
        return entry.usage

    def toggle_favorite(self, preset_id: str) -> bool:
        entries = self.load()
        entry = self._find(entries, preset_id)
        entry.favorite = not entry.favorite
        entry.last_modified = self._now()
        self._save(entries)
        return entry.favorite

    def rename(self, preset_id: str, new_name: str) -> LibraryEntry:
        new_name = (new_name or "").strip()
        if not new_name:
            raise ValidationError("name", new_name, "expected a non-empty string")
        entries = self.load()
        entry = self._find(entries, preset_id)
        if any(e.name == new_name and e.id != preset_id for e in entries):
            raise ValidationError("name", new_name, "a preset with this name already exists")
        entry.preset = replace(entry.preset, name=new_name)
        entry.last_modified = self._now()
        self._sort(entries)
        self._save(entries)
        return entry

    # ---- queries ----
    def search(self, query: str) -> List[LibraryEntry]:
        needle = query.casefold()
        return [
            e for e in self.load()
            if needle in e.name.casefold()
            or needle in e.preset.description.casefold()
            or needle in e.preset.source.value.casefold()
        ]

    def most_used(self, limit: int = 5) -> List[LibraryEntry]:
        used = [e for e in self.load() if e.usage > 0]
        return sorted(used, key=lambda e: -e.usage)[:limit]

    def favorites(self) -> List[LibraryEntry]:
        return [e for e in self.load() if e.favorite]

    def stats(self) -> Dict[str, Any]:
        entries = self.load()
        most_used = max(entries, key=lambda e: e.usage, default=None)
        newest = max(entries, key=lambda e: e.created_at, default=None)
        return {
            "total": len(entries),
            "favorites": sum(1 for e in entries if e.favorite),
            "sources": sorted({e.preset.source.value for e in entries}),
            "totalUsage": sum(e.usage for e in entries),
            "mostUsed": most_used.name if most_used is not None and most_used.usage > 0 else None,
            "newest": newest.name if newest is not None else None,
        }

    # ---- bulk ----
    def export_library(self) -> str:
        return json.dumps({
            "version": LIBRARY_EXPORT_VERSION,
            "exportDate": self._now(),
            "presets": [e.to_dict() for e in self.load()],
        }, indent=2)

    def import_library(self, json_text: str) -> int:
        """Merge an exported library; returns how many presets were added or updated."""
        try:
            data = json.loads(json_text)
        except json.JSONDecodeError as exc:
            raise ValidationError("library", json_text[:40], f"invalid JSON: {exc}") from exc
        presets = data.get("presets") if isinstance(data, Mapping) else None
        if not isinstance(presets, list):
            raise ValidationError("presets", presets, "invalid library format, expected presets array")

        count = 0
        for item in presets:
            try:
                self.add(item)
                count += 1
            except PresetError as exc:
                name = item.get("name") if isinstance(item, Mapping) else None
                logger.warning("failed to import preset %s: %s", name, exc)
        return count

    def clear(self, confirmed: bool = False) -> None:
        if not confirmed:
            raise ValidationError("confirmed", confirmed, "library clear must be confirmed")
        self.store.remove(self.key)
        logger.info("cleared preset library")
