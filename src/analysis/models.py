"""Data models for cooldown checks and risk signals."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple


class CheckReason(Enum):
    """Why a gem version was allowed or blocked by the cooldown check."""
    IGNORED = "ignored"
    TRUSTED_SOURCE = "trusted_source"
    TRUSTED_OWNER = "trusted_owner"
    VERSION_NOT_FOUND = "version_not_found"
    SATISFIES_MINIMUM_AGE = "satisfies_minimum_age"
    TOO_NEW = "too_new"

    @property
    def label(self) -> str:
        """Human-readable form, e.g. "trusted source"."""
        return self.value.replace("_", " ")


class SignalType(Enum):
    """Risk signal kinds, in evaluation order."""
    LOW_DOWNLOADS = "low_downloads"
    STALE_GEM = "stale_gem"
    NEW_OWNER = "new_owner"
    VERSION_JUMP = "version_jump"


class SignalMode(Enum):
    """Severity configured per signal type."""
    WARN = "warn"
    BLOCK = "block"
    OFF = "off"


@dataclass(frozen=True)
class PackageReference:
    """An outdated gem as reported by bundler."""
    name: str
    current_version: str
    candidate_version: str


@dataclass(frozen=True)
class CheckResult:
    """Outcome of the cooldown/trust check for one gem.

    age_days is None unless a registry age lookup actually happened.
    """
    name: str
    version: str
    age_days: Optional[int]
    allowed: bool
    reason: CheckReason
    current_version: Optional[str] = None


@dataclass(frozen=True)
class RiskSignal:
    """A triggered heuristic."""
    type: SignalType
    message: str
    mode: SignalMode


@dataclass(frozen=True)
class RiskResult:
    """Triggered signals for one gem; only produced when at least one fired."""
    name: str
    version: str
    signals: List[RiskSignal] = field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return any(s.mode is SignalMode.BLOCK for s in self.signals)


@dataclass(frozen=True)
class OwnerChange:
    """Difference between the cached and the current owner set of a gem."""
    package_name: str
    previous_owners: Tuple[str, ...]
    current_owners: Tuple[str, ...]


@dataclass(frozen=True)
class GemInfo:
    """Popularity and staleness facts from the gem endpoint."""
    downloads: int
    version_created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Vulnerability:
    """One advisory reported by the audit tool."""
    package_name: Optional[str]
    advisory_id: Optional[str]
    title: Optional[str]
    recommended_fix: Optional[str]


@dataclass(frozen=True)
class AuditResult:
    """Outcome of a vulnerability audit run."""
    available: bool
    vulnerabilities: List[Vulnerability] = field(default_factory=list)
    error: Optional[str] = None
