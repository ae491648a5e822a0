"""Persistent owner-set cache used to detect ownership changes between runs.

The on-disk document is YAML shaped as::

    version: 1
    updated_at: 2024-05-01T10:00:00+00:00
    owners:
      rails: [dhh, rafaelfranca]

A missing, unreadable or version-mismatched file yields an empty cache.
"""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

from constants import Constants
from analysis.models import OwnerChange

logger = logging.getLogger(__name__)


def _normalize(owners: Iterable[Optional[str]]) -> Tuple[str, ...]:
    return tuple(sorted({str(o) for o in owners if o}))


def default_cache_path(work_dir: Optional[str] = None) -> str:
    return os.path.join(work_dir or os.getcwd(), Constants.CACHE_DIRNAME, Constants.CACHE_FILENAME)


class OwnershipCache:
    """Last observed owner handles per gem, guarded for concurrent writers."""

    def __init__(self, cache_path: Optional[str] = None):
        self._cache_path = cache_path or default_cache_path()
        self._lock = threading.Lock()
        self._data = self._load()

    @property
    def path(self) -> str:
        return self._cache_path

    def owners_for(self, gem_name: str) -> Tuple[str, ...]:
        """Cached owners for ``gem_name``; empty when never seen."""
        with self._lock:
            return tuple(self._data["owners"].get(gem_name) or ())

    def detect_change(self, gem_name: str, current_owners: Iterable[Optional[str]]) -> Optional[OwnerChange]:
        """Compare ``current_owners`` with the cached set without mutating it.

        Returns None on first sighting (no baseline yet) or when unchanged.
        """
        previous = _normalize(self.owners_for(gem_name))
        current = _normalize(current_owners)
        if not previous or previous == current:
            return None
        return OwnerChange(package_name=gem_name, previous_owners=previous, current_owners=current)

    def update_owners(self, gem_name: str, owners: Iterable[Optional[str]]) -> None:
        """Replace the cached set with the sorted, de-duplicated ``owners``."""
        normalized = list(_normalize(owners))
        with self._lock:
            self._data["owners"][gem_name] = normalized

    def save(self) -> None:
        """Write the cache to disk, stamping ``updated_at``."""
        with self._lock:
            self._data["updated_at"] = datetime.now(timezone.utc).isoformat()
            snapshot = {
                "version": Constants.CACHE_VERSION,
                "updated_at": self._data["updated_at"],
                "owners": {k: list(v) for k, v in sorted(self._data["owners"].items())},
            }
        directory = os.path.dirname(self._cache_path)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self._cache_path, "w", encoding="utf-8") as fh:
                yaml.safe_dump(snapshot, fh, default_flow_style=False, sort_keys=False)
        except OSError as exc:
            logger.warning("Could not write owner cache %s: %s", self._cache_path, exc)
            return
        logger.debug("Saved owner cache to %s (%d gems)", self._cache_path, len(snapshot["owners"]))

    def exists(self) -> bool:
        return os.path.exists(self._cache_path)

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self._cache_path):
            return self._default()
        try:
            with open(self._cache_path, "r", encoding="utf-8") as fh:
                loaded = yaml.safe_load(fh)
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            logger.warning("Ignoring unreadable owner cache %s: %s", self._cache_path, exc)
            return self._default()

        if not isinstance(loaded, dict) or loaded.get("version") != Constants.CACHE_VERSION:
            logger.info("Owner cache %s has an incompatible format; starting fresh.", self._cache_path)
            return self._default()

        owners = loaded.get("owners")
        if not isinstance(owners, dict):
            return self._default()
        cleaned: Dict[str, List[str]] = {}
        for gem_name, handles in owners.items():
            if isinstance(handles, list):
                cleaned[str(gem_name)] = list(_normalize(handles))
        return {"version": Constants.CACHE_VERSION, "updated_at": loaded.get("updated_at"), "owners": cleaned}

    @staticmethod
    def _default() -> Dict[str, Any]:
        return {"version": Constants.CACHE_VERSION, "updated_at": None, "owners": {}}
