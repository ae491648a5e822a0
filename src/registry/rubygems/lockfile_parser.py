"""Gemfile.lock parser mapping gem names to the remote they were resolved from.

Only ``GEM`` sections are considered; ``GIT`` and ``PATH`` sources have no
registry remote and are left out, which callers treat as the public registry.
"""

from __future__ import annotations

import logging
import os
import re
import threading
from typing import Dict, Optional

from constants import Constants

logger = logging.getLogger(__name__)

_GEM_SECTION_START = re.compile(r"^GEM$")
_SECTION_HEADER = re.compile(r"^[A-Z]+$")
_REMOTE_LINE = re.compile(r"^\s+remote:\s+(.+)$")
_GEM_LINE = re.compile(r"^\s{4}(\S+)\s+\(")


def parse_gem_sources(content: str) -> Dict[str, str]:
    """Extract ``{gem name: remote url}`` from lockfile text."""
    sources: Dict[str, str] = {}
    in_gem_section = False
    current_remote: Optional[str] = None

    for raw in content.splitlines():
        line = raw.rstrip("\r\n")
        if _GEM_SECTION_START.match(line):
            in_gem_section = True
            current_remote = None
            continue
        if _SECTION_HEADER.match(line):
            in_gem_section = False
            current_remote = None
            continue
        remote = _REMOTE_LINE.match(line)
        if remote:
            if in_gem_section:
                current_remote = remote.group(1).strip()
            continue
        gem = _GEM_LINE.match(line)
        if gem and in_gem_section and current_remote:
            sources[gem.group(1)] = current_remote

    return sources


class LockfileParser:
    """Lazily parses a Gemfile.lock and answers ``source_for`` lookups."""

    def __init__(self, lockfile_path: Optional[str] = None):
        self._lockfile_path = lockfile_path or os.path.join(os.getcwd(), Constants.LOCKFILE_NAME)
        self._sources: Optional[Dict[str, str]] = None
        self._lock = threading.Lock()

    @property
    def gem_sources(self) -> Dict[str, str]:
        with self._lock:
            if self._sources is None:
                self._sources = self._parse()
            return self._sources

    def source_for(self, gem_name: str) -> Optional[str]:
        """Remote URL for ``gem_name``, or None when it is not listed."""
        return self.gem_sources.get(gem_name)

    def _parse(self) -> Dict[str, str]:
        if not os.path.exists(self._lockfile_path):
            return {}
        try:
            with open(self._lockfile_path, "r", encoding="utf-8") as fh:
                return parse_gem_sources(fh.read())
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not parse %s: %s", self._lockfile_path, exc)
            return {}
