"""Risk-signal heuristics evaluated on top of cooldown results.

Signals run in a fixed order (low downloads, stale gem, new owner, version
jump). The three registry-backed signals only apply to gems resolved from the
public registry; version jump needs no registry call and always applies.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence

from constants import Constants
from common.release_age import age_years, major_version
from common.worker_pool import run_batch
from analysis.models import (
    CheckReason,
    CheckResult,
    GemInfo,
    OwnerChange,
    RiskResult,
    RiskSignal,
    SignalType,
)
from analysis.ownership_cache import OwnershipCache
from analysis.package_checker import SourceResolver
from config import GemgateConfig
from registry.rubygems.client import RegistryError

logger = logging.getLogger(__name__)
STG = f"{Constants.ANALYSIS} "

_TRUSTED_REASONS = (CheckReason.TRUSTED_SOURCE, CheckReason.TRUSTED_OWNER)


class RiskRegistry(Protocol):
    """Registry capabilities needed by the risk signals."""

    def fetch_gem_info(self, gem_name: str):  # -> Optional[GemInfo]
        ...

    def fetch_owners(self, gem_name: str) -> List[str]:
        ...

    def version_created_at(self, gem_name: str, version: str):  # -> Optional[datetime]
        ...


class RiskEngine:
    """Evaluates risk signals for checked gems and maintains the owner cache.

    The cache is only written by an explicit ``save_cache()`` call so a whole
    batch results in a single file write.
    """

    def __init__(
        self,
        config: GemgateConfig,
        api: RiskRegistry,
        cache: OwnershipCache,
        lockfile_parser: SourceResolver,
        max_threads: Optional[int] = None,
    ):
        self._config = config
        self._api = api
        self._cache = cache
        self._lockfile_parser = lockfile_parser
        self._max_threads = max_threads or config.max_threads

    def check_one(self, result: CheckResult) -> Optional[RiskResult]:
        """Return the triggered signals for ``result``, or None when clean."""
        if self._config.risk_skip_trusted and result.reason in _TRUSTED_REASONS:
            return None

        signals: List[RiskSignal] = []
        signals.extend(self._check_low_downloads(result))
        signals.extend(self._check_stale_gem(result))
        signals.extend(self._check_new_owner(result))
        signals.extend(self._check_version_jump(result))
        if not signals:
            return None

        for signal in signals:
            logger.warning("%s%s: [RISK] %s (%s)", STG, result.name, signal.message, signal.mode.value)
        return RiskResult(name=result.name, version=result.version, signals=signals)

    def check_all(self, results: Sequence[CheckResult]) -> List[RiskResult]:
        """Evaluate a batch concurrently; clean gems are omitted, order is kept."""
        if not results:
            return []
        risk = run_batch(
            results,
            self.check_one,
            max_workers=min(self._max_threads, len(results)),
            name="risk-check",
        )
        flagged = [r for r in risk if r is not None]
        logger.info("%s%d of %d gem(s) raised risk signals.", STG, len(flagged), len(results))
        return flagged

    def save_cache(self) -> None:
        self._cache.save()

    def _from_public_registry(self, gem_name: str) -> bool:
        source = self._lockfile_parser.source_for(gem_name)
        return source is None or Constants.PUBLIC_REGISTRY_HOST in source

    def _registry_signal_applies(self, signal: SignalType, gem_name: str) -> bool:
        return self._config.risk_signal_enabled(signal) and self._from_public_registry(gem_name)

    def _check_low_downloads(self, result: CheckResult) -> List[RiskSignal]:
        if not self._registry_signal_applies(SignalType.LOW_DOWNLOADS, result.name):
            return []
        info: Optional[GemInfo] = self._api.fetch_gem_info(result.name)
        if info is None:
            return []
        threshold = self._config.risk_signal_threshold(SignalType.LOW_DOWNLOADS, "threshold")
        if threshold is None or info.downloads >= threshold:
            return []
        return [self._signal(SignalType.LOW_DOWNLOADS, f"low downloads ({info.downloads} total)")]

    def _check_stale_gem(self, result: CheckResult) -> List[RiskSignal]:
        if not self._registry_signal_applies(SignalType.STALE_GEM, result.name):
            return []
        if not result.current_version:
            return []
        try:
            published = self._api.version_created_at(result.name, result.current_version)
        except RegistryError as exc:
            logger.debug("Stale check skipped for %s: %s", result.name, exc)
            return []
        if published is None:
            return []
        years = age_years(published)
        threshold = self._config.risk_signal_threshold(SignalType.STALE_GEM, "threshold_years")
        if threshold is None or years < threshold:
            return []
        return [self._signal(SignalType.STALE_GEM, f"stale gem (installed release {years:.1f} years old)")]

    def _check_new_owner(self, result: CheckResult) -> List[RiskSignal]:
        if not self._registry_signal_applies(SignalType.NEW_OWNER, result.name):
            return []
        owners = self._api.fetch_owners(result.name)
        if not owners:
            return []
        # detect before update: the update overwrites the baseline
        change = self._cache.detect_change(result.name, owners)
        self._cache.update_owners(result.name, owners)
        if change is None:
            return []
        return [self._signal(SignalType.NEW_OWNER, _owner_change_message(change))]

    def _check_version_jump(self, result: CheckResult) -> List[RiskSignal]:
        if not self._config.risk_signal_enabled(SignalType.VERSION_JUMP):
            return []
        if not result.current_version:
            return []
        if major_version(result.version) <= major_version(result.current_version):
            return []
        return [self._signal(SignalType.VERSION_JUMP, f"major version jump (was {result.current_version})")]

    def _signal(self, signal: SignalType, message: str) -> RiskSignal:
        return RiskSignal(type=signal, message=message, mode=self._config.risk_signal_mode(signal))


def _owner_change_message(change: OwnerChange) -> str:
    return (
        f"ownership changed (new: {', '.join(change.current_owners)}, "
        f"was: {', '.join(change.previous_owners)})"
    )
