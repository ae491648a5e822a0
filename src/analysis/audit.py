"""Vulnerability audit through ``bundle audit``."""

from __future__ import annotations

import logging
import re
import subprocess
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from constants import Constants
from analysis.models import AuditResult, Vulnerability

logger = logging.getLogger(__name__)

_FIELDS = (
    (re.compile(r"^Name:\s+(.+)$"), "package_name"),
    (re.compile(r"^CVE:\s+(.+)$"), "advisory_id"),
    (re.compile(r"^GHSA:\s+(.+)$"), "advisory_id"),
    (re.compile(r"^Title:\s+(.+)$"), "title"),
    (re.compile(r"^Solution:\s+(.+)$"), "recommended_fix"),
)
_VULNERABLE_MARKER = "Vulnerabilities found!"

# (stdout, stderr, returncode)
CommandOutput = Tuple[str, str, int]


def _execute(command: Sequence[str]) -> CommandOutput:
    proc = subprocess.run(list(command), capture_output=True, text=True, check=False)
    return proc.stdout or "", proc.stderr or "", proc.returncode


def parse_vulnerabilities(output: str) -> List[Vulnerability]:
    """Parse bundler-audit text output; a block ends at its Solution line."""
    vulnerabilities: List[Vulnerability] = []
    current: Dict[str, Optional[str]] = {}
    for line in output.splitlines():
        for pattern, key in _FIELDS:
            match = pattern.match(line.strip())
            if not match:
                continue
            if key == "advisory_id" and current.get("advisory_id"):
                break
            current[key] = match.group(1).strip()
            if key == "recommended_fix":
                vulnerabilities.append(
                    Vulnerability(
                        package_name=current.get("package_name"),
                        advisory_id=current.get("advisory_id"),
                        title=current.get("title"),
                        recommended_fix=current.get("recommended_fix"),
                    )
                )
                current = {}
            break
    return vulnerabilities


class AuditChecker:
    """Runs bundler-audit and reports advisories for the bundle."""

    def __init__(self, executor: Optional[Callable[[Sequence[str]], CommandOutput]] = None):
        self._executor = executor or _execute

    def available(self) -> bool:
        try:
            _stdout, _stderr, code = self._executor(Constants.AUDIT_VERSION_COMMAND)
        except OSError:
            return False
        return code == 0

    def check(self) -> AuditResult:
        if not self.available():
            logger.warning("bundler-audit is not installed; vulnerability audit unavailable.")
            return AuditResult(available=False)

        try:
            stdout, stderr, code = self._executor(Constants.AUDIT_COMMAND)
        except OSError as exc:
            return AuditResult(available=True, error=str(exc))

        if code == 0:
            return AuditResult(available=True)
        if _VULNERABLE_MARKER in stdout:
            vulns = parse_vulnerabilities(stdout)
            logger.warning("Audit found %d vulnerabilit(ies).", len(vulns))
            return AuditResult(available=True, vulnerabilities=vulns)
        return AuditResult(available=True, error=stderr.strip())
