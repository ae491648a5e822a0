"""Cooldown and trust checks for outdated gems."""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence

from constants import Constants
from common.worker_pool import run_batch
from analysis.models import CheckReason, CheckResult, PackageReference
from config import GemgateConfig
from registry.rubygems.client import RegistryError

logger = logging.getLogger(__name__)
STG = f"{Constants.ANALYSIS} "


class AgeRegistry(Protocol):
    """Registry capabilities needed by the cooldown check."""

    def version_age_days(self, gem_name: str, version: str) -> Optional[int]:
        ...

    def fetch_owners(self, gem_name: str) -> List[str]:
        ...


class SourceResolver(Protocol):
    """Maps a gem name to the remote it is installed from."""

    def source_for(self, gem_name: str) -> Optional[str]:
        ...


class PackageChecker:
    """Decides whether each candidate version may be adopted.

    First match wins: ignore list, trusted source, trusted owner, then the
    release-age check against ``cooldown_days``.
    """

    def __init__(
        self,
        config: GemgateConfig,
        api: AgeRegistry,
        lockfile_parser: SourceResolver,
        max_threads: Optional[int] = None,
    ):
        self._config = config
        self._api = api
        self._lockfile_parser = lockfile_parser
        self._max_threads = max_threads or config.max_threads

    def check_one(self, pkg: PackageReference) -> CheckResult:
        """Evaluate a single outdated gem."""
        if self._config.ignored(pkg.name):
            return self._result(pkg, CheckReason.IGNORED, allowed=True)
        if self._trusted_source(pkg.name):
            return self._result(pkg, CheckReason.TRUSTED_SOURCE, allowed=True)
        if self._trusted_owner(pkg.name):
            return self._result(pkg, CheckReason.TRUSTED_OWNER, allowed=True)

        try:
            age = self._api.version_age_days(pkg.name, pkg.candidate_version)
        except RegistryError as exc:
            return self._failed_lookup(pkg, exc)
        if age is None:
            logger.warning("%sVersion %s of %s not found on registry.", STG, pkg.candidate_version, pkg.name)
            return self._result(pkg, CheckReason.VERSION_NOT_FOUND, allowed=False)

        if age >= self._config.cooldown_days:
            return self._result(pkg, CheckReason.SATISFIES_MINIMUM_AGE, allowed=True, age_days=age)
        logger.warning(
            "%s%s %s is only %d days old (< %d required).",
            STG, pkg.name, pkg.candidate_version, age, self._config.cooldown_days,
        )
        return self._result(pkg, CheckReason.TOO_NEW, allowed=False, age_days=age)

    def check_all(self, pkgs: Sequence[PackageReference]) -> List[CheckResult]:
        """Evaluate a batch concurrently; output is index-aligned with ``pkgs``."""
        if not pkgs:
            return []
        results = run_batch(
            pkgs,
            self.check_one,
            max_workers=min(self._max_threads, len(pkgs)),
            on_error=self._failed_lookup,
            name="package-check",
        )
        allowed = sum(1 for r in results if r is not None and r.allowed)
        logger.info("%s%d of %d gem update(s) allowed.", STG, allowed, len(results))
        return results  # type: ignore[return-value]

    def _trusted_source(self, gem_name: str) -> bool:
        return self._config.trusted_source(self._lockfile_parser.source_for(gem_name))

    def _trusted_owner(self, gem_name: str) -> bool:
        if not self._config.trusted_owners:
            return False
        owners = self._api.fetch_owners(gem_name)
        return bool(set(self._config.trusted_owners).intersection(owners))

    def _failed_lookup(self, pkg: PackageReference, exc: Exception) -> CheckResult:
        logger.warning("%sRegistry lookup failed for %s: %s", STG, pkg.name, exc)
        return self._result(pkg, CheckReason.VERSION_NOT_FOUND, allowed=False)

    @staticmethod
    def _result(
        pkg: PackageReference,
        reason: CheckReason,
        allowed: bool,
        age_days: Optional[int] = None,
    ) -> CheckResult:
        return CheckResult(
            name=pkg.name,
            version=pkg.candidate_version,
            age_days=age_days,
            allowed=allowed,
            reason=reason,
            current_version=pkg.current_version,
        )
