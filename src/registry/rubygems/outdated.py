"""Discovery of outdated gems via ``bundle outdated --parseable``."""

from __future__ import annotations

import logging
import re
import subprocess
from typing import Callable, List, Optional, Sequence

from constants import Constants
from analysis.models import PackageReference

logger = logging.getLogger(__name__)

_OUTDATED_LINE = re.compile(r"^(\S+)\s+\(newest\s+([\w.\-]+),?\s*installed\s+([\w.\-]+)")


class DiscoveryError(Exception):
    """Raised when outdated gems cannot be enumerated."""


def _execute(command: Sequence[str]) -> str:
    try:
        proc = subprocess.run(
            list(command),
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise DiscoveryError(f"Could not run {' '.join(command)}: {exc}") from exc
    # bundle outdated exits 1 when anything is outdated
    if proc.returncode not in (0, 1):
        detail = (proc.stderr or proc.stdout or "").strip()
        raise DiscoveryError(f"{' '.join(command)} failed ({proc.returncode}): {detail}")
    return proc.stdout or ""


def parse_outdated_output(output: str) -> List[PackageReference]:
    """Parse parseable ``bundle outdated`` output into package references."""
    refs: List[PackageReference] = []
    for raw in output.splitlines():
        line = raw.strip()
        if "(newest" not in line:
            continue
        match = _OUTDATED_LINE.match(line)
        if not match:
            logger.debug("Skipping unrecognized outdated line: %s", line)
            continue
        refs.append(
            PackageReference(
                name=match.group(1),
                candidate_version=match.group(2),
                current_version=match.group(3),
            )
        )
    return refs


class OutdatedChecker:
    """Lists outdated gems, optionally restricted to the given names."""

    def __init__(
        self,
        gems: Optional[Sequence[str]] = None,
        executor: Optional[Callable[[Sequence[str]], str]] = None,
    ):
        self._gems = list(gems or [])
        self._executor = executor or _execute

    def outdated_gems(self) -> List[PackageReference]:
        command = list(Constants.OUTDATED_COMMAND) + self._gems
        refs = parse_outdated_output(self._executor(command))
        logger.info("Found %d outdated gem(s).", len(refs))
        return refs
