"""Tests for argument parsing and the gemgate entry point."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
import yaml

import gemgate
from analysis.models import (
    AuditResult,
    CheckReason,
    CheckResult,
    GemInfo,
    PackageReference,
    RiskResult,
    RiskSignal,
    SignalMode,
    SignalType,
    Vulnerability,
)
from analysis.ownership_cache import OwnershipCache
from args import config_overrides, parse_args
from config import GemgateConfig
from constants import ExitCodes
from registry.rubygems import DiscoveryError


class TestArgParsing:
    """CLI flags."""

    def test_defaults(self):
        ns = parse_args([])
        assert ns.gems == []
        assert ns.RISK is True
        assert ns.AUDIT is None
        assert ns.DRY_RUN is False
        assert ns.LOG_LEVEL is None
        assert config_overrides(ns) == {
            "cooldown_days": None,
            "update": None,
            "lock_only": None,
            "warn_only": None,
            "audit": None,
            "verbose": None,
        }

    def test_flags(self):
        ns = parse_args([
            "rails", "rack",
            "--cooldown", "7",
            "--update", "--lock-only", "--warn-only",
            "--no-audit", "--no-risk", "--refresh-cache",
            "--json", "--verbose",
            "--config", "gate.yml",
        ])
        assert ns.gems == ["rails", "rack"]
        assert ns.CONFIG == "gate.yml"
        assert ns.RISK is False
        assert ns.REFRESH_CACHE is True
        assert ns.JSON is True
        assert config_overrides(ns) == {
            "cooldown_days": 7,
            "update": True,
            "lock_only": True,
            "warn_only": True,
            "audit": False,
            "verbose": True,
        }

    def test_version_exits(self, capsys):
        with pytest.raises(SystemExit) as exc:
            parse_args(["--version"])
        assert exc.value.code == 0
        assert "gemgate" in capsys.readouterr().out


class TestHelpers:
    """Exit code and update command selection."""

    def _result(self, allowed):
        reason = CheckReason.SATISFIES_MINIMUM_AGE if allowed else CheckReason.TOO_NEW
        return CheckResult("gem", "1.1.0", 20, allowed, reason, "1.0.0")

    def _risk(self, mode):
        return RiskResult("gem", "1.1.0", [RiskSignal(SignalType.VERSION_JUMP, "jump", mode)])

    def test_exit_success(self):
        code = gemgate.determine_exit_code(GemgateConfig(), [self._result(True)], [self._risk(SignalMode.WARN)], None)
        assert code == ExitCodes.SUCCESS.value

    def test_exit_on_cooldown_violation(self):
        code = gemgate.determine_exit_code(GemgateConfig(), [self._result(False)], [], None)
        assert code == ExitCodes.VIOLATIONS.value

    def test_exit_on_blocking_risk(self):
        code = gemgate.determine_exit_code(GemgateConfig(), [self._result(True)], [self._risk(SignalMode.BLOCK)], None)
        assert code == ExitCodes.VIOLATIONS.value

    def test_exit_on_vulnerabilities(self):
        audit = AuditResult(available=True, vulnerabilities=[Vulnerability("gem", "CVE-1", "t", "fix")])
        code = gemgate.determine_exit_code(GemgateConfig(), [], [], audit)
        assert code == ExitCodes.VIOLATIONS.value

    def test_warn_only_always_succeeds(self):
        code = gemgate.determine_exit_code(GemgateConfig(warn_only=True), [self._result(False)], [], None)
        assert code == ExitCodes.SUCCESS.value

    def test_update_command(self):
        assert gemgate.update_command(["rails"], lock_only=False) == ["bundle", "update", "rails"]
        assert gemgate.update_command(["rails", "rack"], lock_only=True) == [
            "bundle", "lock", "--update", "rails", "rack",
        ]


class FakeRegistry:
    """Stand-in for RubygemsClient used by the entry point."""

    def __init__(self, ages=None, downloads=10_000_000, owners=None):
        self.ages = ages or {}
        self.downloads = downloads
        self.owners = owners or {}
        self.calls = []

    def version_age_days(self, gem_name, version):
        self.calls.append(("version_age_days", gem_name))
        return self.ages.get(gem_name)

    def fetch_owners(self, gem_name):
        self.calls.append(("fetch_owners", gem_name))
        return list(self.owners.get(gem_name, []))

    def fetch_gem_info(self, gem_name):
        self.calls.append(("fetch_gem_info", gem_name))
        return GemInfo(downloads=self.downloads)

    def version_created_at(self, gem_name, version):
        self.calls.append(("version_created_at", gem_name))
        return datetime.now(timezone.utc) - timedelta(days=60)


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Isolated cwd and home with discovery, registry and audit patched out."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)

    ctx = MagicMock()
    ctx.path = tmp_path
    ctx.registry = FakeRegistry()
    ctx.outdated = [PackageReference("rails", "7.0.8", "7.1.3")]
    ctx.audit = AuditResult(available=True)

    with patch("gemgate.configure_logging"), \
            patch("gemgate.OutdatedChecker") as outdated_cls, \
            patch("gemgate.RubygemsClient", side_effect=lambda: ctx.registry), \
            patch("gemgate.AuditChecker") as audit_cls:
        outdated_cls.return_value.outdated_gems.side_effect = lambda: ctx.outdated
        audit_cls.return_value.check.side_effect = lambda: ctx.audit
        ctx.outdated_cls = outdated_cls
        ctx.audit_cls = audit_cls
        yield ctx


class TestMain:
    """End-to-end runs of the entry point with external calls patched."""

    def test_dry_run(self, workspace, capsys):
        code = gemgate.main(["--dry-run", "--cooldown", "9"])

        assert code == ExitCodes.SUCCESS.value
        assert "Cooldown days: 9" in capsys.readouterr().out
        workspace.outdated_cls.assert_not_called()

    def test_discovery_error(self, workspace, capsys):
        workspace.outdated_cls.return_value.outdated_gems.side_effect = DiscoveryError("no Gemfile")

        code = gemgate.main([])

        assert code == ExitCodes.ERROR.value
        assert "no Gemfile" in capsys.readouterr().err

    def test_gem_filter_passed_to_discovery(self, workspace):
        workspace.registry.ages = {"rails": 30}

        gemgate.main(["rails", "--no-audit"])

        workspace.outdated_cls.assert_called_once_with(gems=["rails"])

    def test_all_pass(self, workspace, capsys):
        workspace.registry.ages = {"rails": 30}

        code = gemgate.main(["--no-audit"])

        out = capsys.readouterr().out
        assert code == ExitCodes.SUCCESS.value
        assert "OK: rails (7.1.3)" in out
        workspace.audit_cls.assert_not_called()

    def test_no_outdated_gems(self, workspace, capsys):
        workspace.outdated = []

        code = gemgate.main(["--no-audit"])

        assert code == ExitCodes.SUCCESS.value
        assert "No outdated gems found." in capsys.readouterr().out

    def test_too_new_fails(self, workspace, capsys):
        workspace.registry.ages = {"rails": 3}

        code = gemgate.main(["--no-audit"])

        assert code == ExitCodes.VIOLATIONS.value
        assert "BLOCKED: rails (7.1.3) - published 3 days ago (< 14 required)" in capsys.readouterr().out

    def test_warn_only(self, workspace):
        workspace.registry.ages = {"rails": 3}

        assert gemgate.main(["--no-audit", "--warn-only"]) == ExitCodes.SUCCESS.value

    def test_config_file_blocking_risk(self, workspace):
        workspace.registry.ages = {"rails": 30}
        workspace.registry.downloads = 12
        (workspace.path / ".gemgate.yml").write_text(
            yaml.safe_dump({"risk_signals": {"low_downloads": {"mode": "block"}}}),
            encoding="utf-8",
        )

        assert gemgate.main(["--no-audit"]) == ExitCodes.VIOLATIONS.value

    def test_no_risk_skips_engine(self, workspace):
        workspace.registry.ages = {"rails": 30}
        workspace.registry.downloads = 12

        code = gemgate.main(["--no-audit", "--no-risk"])

        assert code == ExitCodes.SUCCESS.value
        assert ("fetch_gem_info", "rails") not in workspace.registry.calls

    def test_audit_vulnerabilities_fail(self, workspace, capsys):
        workspace.registry.ages = {"rails": 30}
        workspace.audit = AuditResult(
            available=True,
            vulnerabilities=[Vulnerability("rack", "CVE-2024-1", "Bad", "upgrade")],
        )

        code = gemgate.main([])

        assert code == ExitCodes.VIOLATIONS.value
        assert "rack: CVE-2024-1 - Bad" in capsys.readouterr().out

    def test_json_output(self, workspace, capsys):
        workspace.outdated = [
            PackageReference("rails", "7.0.8", "7.1.3"),
            PackageReference("rack", "2.2.8", "3.0.9"),
        ]
        workspace.registry.ages = {"rails": 30, "rack": 1}

        code = gemgate.main(["--json"])

        payload = json.loads(capsys.readouterr().out)
        assert code == ExitCodes.VIOLATIONS.value
        assert payload["ok"] is False
        assert payload["checked"] == 2
        assert [b["name"] for b in payload["blocked"]] == ["rack"]
        assert [r["name"] for r in payload["risk"]] == ["rack"]
        assert payload["audit"]["available"] is True

    def test_owner_cache_written_once(self, workspace):
        workspace.registry.ages = {"rails": 30}
        workspace.registry.owners = {"rails": ["dhh"]}

        gemgate.main(["--no-audit"])

        cache_file = workspace.path / ".bundle" / "gemgate-cache.yml"
        data = yaml.safe_load(cache_file.read_text(encoding="utf-8"))
        assert data["owners"] == {"rails": ["dhh"]}

    def test_refresh_cache_suppresses_signals(self, workspace):
        bundle = workspace.path / ".bundle"
        bundle.mkdir()
        (bundle / "gemgate-cache.yml").write_text(
            yaml.safe_dump({"version": 1, "owners": {"rails": ["dhh"]}}),
            encoding="utf-8",
        )
        (workspace.path / ".gemgate.yml").write_text(
            yaml.safe_dump({"risk_signals": {"new_owner": {"mode": "block"}}}),
            encoding="utf-8",
        )
        workspace.registry.ages = {"rails": 30}
        workspace.registry.owners = {"rails": ["mallory"]}

        code = gemgate.main(["--no-audit", "--refresh-cache"])

        assert code == ExitCodes.SUCCESS.value
        data = yaml.safe_load((bundle / "gemgate-cache.yml").read_text(encoding="utf-8"))
        assert data["owners"] == {"rails": ["mallory"]}

    def test_update_runs_only_allowed_gems(self, workspace):
        workspace.outdated = [
            PackageReference("rails", "7.0.8", "7.1.3"),
            PackageReference("rack", "2.2.8", "3.0.9"),
        ]
        workspace.registry.ages = {"rails": 30, "rack": 1}

        with patch("gemgate.subprocess.run", return_value=MagicMock(returncode=0)) as run:
            code = gemgate.main(["--no-audit", "--update"])

        run.assert_called_once_with(["bundle", "update", "rails"], check=False)
        assert code == ExitCodes.VIOLATIONS.value

    def test_update_skipped_when_nothing_allowed(self, workspace):
        workspace.registry.ages = {"rails": 1}

        with patch("gemgate.subprocess.run") as run:
            gemgate.main(["--no-audit", "--update"])

        run.assert_not_called()


def test_perform_update_excludes_risk_blocked(capsys):
    results = [
        CheckResult("rails", "7.1.3", 30, True, CheckReason.SATISFIES_MINIMUM_AGE, "7.0.8"),
        CheckResult("tiny", "0.2.0", 30, True, CheckReason.SATISFIES_MINIMUM_AGE, "0.1.0"),
    ]
    risk = [RiskResult("tiny", "0.2.0", [RiskSignal(SignalType.LOW_DOWNLOADS, "low", SignalMode.BLOCK)])]

    with patch("gemgate.subprocess.run", side_effect=OSError("bundle")) as run:
        ok = gemgate.perform_update(results, risk, GemgateConfig(lock_only=True))

    run.assert_called_once_with(["bundle", "lock", "--update", "rails"], check=False)
    assert ok is False
    out = capsys.readouterr().out
    assert "Update failed." in out
    assert "Skipped: tiny" in out


def test_risk_check_survives_unwritable_cache(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    cache = OwnershipCache(cache_path=str(blocker / "cache.yml"))
    registry = FakeRegistry(owners={"rails": ["dhh"]})
    results = [CheckResult("rails", "7.1.3", 30, True, CheckReason.SATISFIES_MINIMUM_AGE, "7.0.8")]

    risk = gemgate.run_risk_check(results, GemgateConfig(), registry, MagicMock(source_for=lambda _n: None), cache=cache)

    assert risk == []
    assert cache.owners_for("rails") == ("dhh",)


def test_main_leaves_log_level_to_environment(workspace):
    workspace.registry.ages = {"rails": 30}

    gemgate.main(["--no-audit", "--no-risk"])

    gemgate.configure_logging.assert_called_once_with(None, None)
