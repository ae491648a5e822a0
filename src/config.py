"""Configuration model and layered loading.

Layers, lowest to highest precedence: built-in defaults, ``~/.gemgate.yml``,
``./.gemgate.yml``, an explicit ``--config`` file, then CLI overrides.
A malformed document logs a warning and contributes nothing.
"""

from __future__ import annotations

import copy
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import yaml

from constants import Constants, DefaultRiskSignals
from analysis.models import SignalMode, SignalType

logger = logging.getLogger(__name__)


def default_risk_signals() -> Dict[str, Dict[str, Any]]:
    return {
        SignalType.LOW_DOWNLOADS.value: {
            "mode": SignalMode.WARN.value,
            "threshold": DefaultRiskSignals.LOW_DOWNLOADS_THRESHOLD.value,
        },
        SignalType.STALE_GEM.value: {
            "mode": SignalMode.WARN.value,
            "threshold_years": DefaultRiskSignals.STALE_GEM_THRESHOLD_YEARS.value,
        },
        SignalType.NEW_OWNER.value: {"mode": SignalMode.WARN.value},
        SignalType.VERSION_JUMP.value: {"mode": SignalMode.WARN.value},
    }


DEFAULTS: Dict[str, Any] = {
    "cooldown_days": Constants.DEFAULT_COOLDOWN_DAYS,
    "ignore_prefixes": [],
    "ignore_gems": [],
    "trusted_sources": [],
    "trusted_owners": [],
    "max_threads": Constants.DEFAULT_MAX_THREADS,
    "audit": True,
    "verbose": False,
    "update": False,
    "lock_only": False,
    "warn_only": False,
    "risk_skip_trusted": False,
    "risk_signals": default_risk_signals(),
}


@dataclass
class GemgateConfig:  # pylint: disable=too-many-instance-attributes
    """Effective runtime configuration."""

    cooldown_days: int = Constants.DEFAULT_COOLDOWN_DAYS
    ignore_prefixes: List[str] = field(default_factory=list)
    ignore_gems: List[str] = field(default_factory=list)
    trusted_sources: List[str] = field(default_factory=list)
    trusted_owners: List[str] = field(default_factory=list)
    max_threads: int = Constants.DEFAULT_MAX_THREADS
    audit: bool = True
    verbose: bool = False
    update: bool = False
    lock_only: bool = False
    warn_only: bool = False
    risk_skip_trusted: bool = False
    risk_signals: Dict[str, Dict[str, Any]] = field(default_factory=default_risk_signals)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GemgateConfig":
        """Build a config from a (merged) mapping; unknown keys are ignored."""
        merged = copy.deepcopy(DEFAULTS)
        _deep_merge(merged, dict(data))
        return cls(
            cooldown_days=_as_int(merged["cooldown_days"], Constants.DEFAULT_COOLDOWN_DAYS),
            ignore_prefixes=_as_str_list(merged["ignore_prefixes"]),
            ignore_gems=_as_str_list(merged["ignore_gems"]),
            trusted_sources=_as_str_list(merged["trusted_sources"]),
            trusted_owners=_as_str_list(merged["trusted_owners"]),
            max_threads=max(1, _as_int(merged["max_threads"], Constants.DEFAULT_MAX_THREADS)),
            audit=bool(merged["audit"]),
            verbose=bool(merged["verbose"]),
            update=bool(merged["update"]),
            lock_only=bool(merged["lock_only"]),
            warn_only=bool(merged["warn_only"]),
            risk_skip_trusted=bool(merged["risk_skip_trusted"]),
            risk_signals=merged["risk_signals"] if isinstance(merged["risk_signals"], dict)
            else default_risk_signals(),
        )

    def ignored(self, gem_name: str) -> bool:
        if gem_name in self.ignore_gems:
            return True
        return any(gem_name.startswith(prefix) for prefix in self.ignore_prefixes)

    def trusted_source(self, source_url: Optional[str]) -> bool:
        if not source_url or not self.trusted_sources:
            return False
        return any(pattern in source_url for pattern in self.trusted_sources)

    def risk_signal_mode(self, signal: SignalType) -> SignalMode:
        """Configured mode for ``signal``; unknown values fall back to warn."""
        settings = self.risk_signals.get(signal.value) or {}
        raw = str(settings.get("mode", SignalMode.WARN.value)).strip().lower()
        try:
            return SignalMode(raw)
        except ValueError:
            logger.warning("Unknown mode %r for risk signal %s; using warn.", raw, signal.value)
            return SignalMode.WARN

    def risk_signal_enabled(self, signal: SignalType) -> bool:
        return self.risk_signal_mode(signal) is not SignalMode.OFF

    def risk_signal_threshold(self, signal: SignalType, key: str = "threshold") -> Optional[float]:
        """Numeric threshold for ``signal``, falling back to the built-in default."""
        settings = self.risk_signals.get(signal.value) or {}
        value = settings.get(key)
        if value is None:
            value = (default_risk_signals().get(signal.value) or {}).get(key)
        try:
            return float(value) if value is not None else None
        except (TypeError, ValueError):
            logger.warning("Invalid %s for risk signal %s: %r", key, signal.value, value)
            fallback = (default_risk_signals().get(signal.value) or {}).get(key)
            return float(fallback) if fallback is not None else None


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Expected an integer, got %r; using %d.", value, default)
        return default


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value if v is not None]


def _deep_merge(dest: Dict[str, Any], src: Dict[str, Any]) -> None:
    """Deep-merge src into dest in-place."""
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dest.get(k), dict):
            _deep_merge(dest[k], v)
        else:
            dest[k] = v


def load_config_file(path: Optional[str]) -> Dict[str, Any]:
    """Load a YAML or JSON config document; {} when missing or invalid."""
    if not path or not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as fh:
            if path.lower().endswith(".json"):
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as exc:
        logger.warning("Invalid config in %s: %s", path, exc)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config in %s: top level must be a mapping", path)
        return {}
    return data


def load_config(
    config_path: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    home_dir: Optional[str] = None,
    work_dir: Optional[str] = None,
) -> GemgateConfig:
    """Merge all configuration layers into a GemgateConfig.

    Args:
        config_path: Explicit config file (``--config``).
        overrides: CLI values; None entries are skipped.
        home_dir: Directory holding the global config (defaults to ``~``).
        work_dir: Directory holding the project config (defaults to cwd).
    """
    merged: Dict[str, Any] = {}
    if config_path and not os.path.exists(config_path):
        logger.warning("Config file %s not found; using defaults.", config_path)
    layers = [
        os.path.join(home_dir or os.path.expanduser("~"), Constants.CONFIG_FILENAME),
        os.path.join(work_dir or os.getcwd(), Constants.CONFIG_FILENAME),
        config_path,
    ]
    for layer in layers:
        _deep_merge(merged, load_config_file(layer))

    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value

    return GemgateConfig.from_mapping(merged)
