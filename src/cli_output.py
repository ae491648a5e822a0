"""Human and JSON rendering of check, risk and audit results."""

from __future__ import annotations

import json
import sys
from typing import Any, Dict, List, Optional, Sequence, TextIO

from analysis.models import AuditResult, CheckResult, RiskResult
from config import GemgateConfig

_COLORS = {
    "green": "\033[32m",
    "yellow": "\033[33m",
    "red": "\033[31m",
    "cyan": "\033[36m",
    "reset": "\033[0m",
}


def colorize(text: str, color: str, stream: Optional[TextIO] = None) -> str:
    """Wrap ``text`` in ANSI color codes when ``stream`` is a TTY."""
    stream = stream or sys.stdout
    isatty = getattr(stream, "isatty", None)
    if not callable(isatty) or not isatty():
        return text
    return f"{_COLORS[color]}{text}{_COLORS['reset']}"


def _format_list(items: Sequence[str]) -> str:
    return ", ".join(items) if items else "(none)"


def config_lines(config: GemgateConfig) -> List[str]:
    lines = [
        f"  Cooldown days: {config.cooldown_days}",
        f"  Ignored gems: {_format_list(config.ignore_gems)}",
        f"  Ignored prefixes: {_format_list(config.ignore_prefixes)}",
        f"  Trusted sources: {_format_list(config.trusted_sources)}",
        f"  Trusted owners: {_format_list(config.trusted_owners)}",
        f"  Max threads: {config.max_threads}",
        f"  Audit: {config.audit}",
        f"  Update: {config.update}",
        f"  Verbose: {config.verbose}",
    ]
    for signal, settings in sorted(config.risk_signals.items()):
        extras = ", ".join(f"{k}={v}" for k, v in sorted(settings.items()) if k != "mode")
        suffix = f" ({extras})" if extras else ""
        lines.append(f"  Risk signal {signal}: {settings.get('mode', 'warn')}{suffix}")
    return lines


def print_dry_run(config: GemgateConfig, out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    print("Configuration (dry-run):", file=out)
    for line in config_lines(config):
        print(line, file=out)


def _blocked_reason(result: CheckResult, config: GemgateConfig) -> str:
    if result.age_days is not None:
        return f"published {result.age_days} days ago (< {config.cooldown_days} required)"
    return result.reason.label


def print_results(results: Sequence[CheckResult], config: GemgateConfig, out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    for result in results:
        if result.allowed:
            line = f"OK: {result.name} ({result.version}) - {result.reason.label}"
            print(colorize(line, "green", out), file=out)
        else:
            line = f"BLOCKED: {result.name} ({result.version}) - {_blocked_reason(result, config)}"
            print(colorize(line, "yellow", out), file=out)
    print(file=out)
    blocked = [r for r in results if not r.allowed]
    if blocked:
        print(colorize(f"{len(blocked)} gem(s) violate minimum release age", "yellow", out), file=out)
    else:
        print(colorize("All gem versions satisfy minimum age requirements.", "green", out), file=out)


def print_risk_results(risk_results: Sequence[RiskResult], out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    if not risk_results:
        return
    print(file=out)
    print(colorize("Risk signals:", "cyan", out), file=out)
    for risk in risk_results:
        color = "red" if risk.blocked else "yellow"
        label = "BLOCKED" if risk.blocked else "WARN"
        print(colorize(f"  {label}: {risk.name} ({risk.version})", color, out), file=out)
        for signal in risk.signals:
            print(f"    - {signal.message} [{signal.mode.value}]", file=out)


def print_audit_result(audit: Optional[AuditResult], out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    if audit is None:
        return
    print(file=out)
    if not audit.available:
        print(colorize("Audit unavailable: install bundler-audit to scan for vulnerabilities.", "yellow", out),
              file=out)
    elif audit.error:
        print(colorize(f"Audit error: {audit.error}", "red", out), file=out)
    elif audit.vulnerabilities:
        print(colorize(f"{len(audit.vulnerabilities)} vulnerability(ies) found:", "red", out), file=out)
        for vuln in audit.vulnerabilities:
            print(f"  {vuln.package_name}: {vuln.advisory_id} - {vuln.title}", file=out)
            print(f"    Solution: {vuln.recommended_fix}", file=out)
    else:
        print(colorize("No known vulnerabilities found.", "green", out), file=out)


def build_json_output(
    results: Sequence[CheckResult],
    config: GemgateConfig,
    risk_results: Sequence[RiskResult] = (),
    audit: Optional[AuditResult] = None,
) -> Dict[str, Any]:
    blocked = [r for r in results if not r.allowed]
    payload: Dict[str, Any] = {
        "ok": not blocked and not any(r.blocked for r in risk_results),
        "cooldown_days": config.cooldown_days,
        "checked": len(results),
        "blocked": [
            {"name": r.name, "version": r.version, "age_days": r.age_days, "reason": r.reason.value}
            for r in blocked
        ],
        "risk": [
            {
                "name": r.name,
                "version": r.version,
                "blocked": r.blocked,
                "signals": [
                    {"type": s.type.value, "message": s.message, "mode": s.mode.value}
                    for s in r.signals
                ],
            }
            for r in risk_results
        ],
    }
    if audit is not None:
        payload["audit"] = {
            "available": audit.available,
            "error": audit.error,
            "vulnerabilities": [
                {
                    "name": v.package_name,
                    "advisory_id": v.advisory_id,
                    "title": v.title,
                    "solution": v.recommended_fix,
                }
                for v in audit.vulnerabilities
            ],
        }
    return payload


def print_json(payload: Dict[str, Any], out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    print(json.dumps(payload, indent=2), file=out)
