"""gemgate - cooldown and risk gate for Bundler gem updates

    Returns:
        int: Exit code
"""
import logging
import subprocess
import sys

from constants import ExitCodes
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from args import parse_args, config_overrides
from config import load_config
import cli_output
from analysis.audit import AuditChecker
from analysis.ownership_cache import OwnershipCache
from analysis.package_checker import PackageChecker
from analysis.risk_engine import RiskEngine
from registry.rubygems import DiscoveryError, LockfileParser, OutdatedChecker, RubygemsClient

logger = logging.getLogger(__name__)


def run_risk_check(results, config, api, lockfile_parser, refresh_cache=False, cache=None):
    """Evaluate risk signals and persist the owner cache once.

    With ``refresh_cache`` the owner baseline is rebuilt but no signals are
    reported.
    """
    engine = RiskEngine(
        config=config,
        api=api,
        cache=cache or OwnershipCache(),
        lockfile_parser=lockfile_parser,
    )
    risk_results = engine.check_all(results)
    engine.save_cache()
    if refresh_cache:
        logger.info("Owner cache refreshed for %d gem(s).", len(results))
        return []
    return risk_results


def update_command(gem_names, lock_only):
    if lock_only:
        return ["bundle", "lock", "--update", *gem_names]
    return ["bundle", "update", *gem_names]


def perform_update(results, risk_results, config, out=None):
    """Run bundler for gems that passed both the cooldown and the risk checks."""
    out = out or sys.stdout
    risk_blocked = {r.name for r in risk_results if r.blocked}
    updatable = [r.name for r in results if r.allowed and r.name not in risk_blocked]
    if not updatable:
        return None

    command = update_command(updatable, config.lock_only)
    print(cli_output.colorize(f"Updating: {', '.join(updatable)}", "cyan", out), file=out)
    try:
        proc = subprocess.run(command, check=False)
        ok = proc.returncode == 0
    except OSError as exc:
        logger.error("Could not run %s: %s", " ".join(command), exc)
        ok = False
    if ok:
        print(cli_output.colorize("Update completed successfully.", "green", out), file=out)
    else:
        print(cli_output.colorize("Update failed.", "red", out), file=out)

    skipped = sorted({r.name for r in results if not r.allowed} | risk_blocked)
    if skipped:
        print(cli_output.colorize(f"Skipped: {', '.join(skipped)}", "yellow", out), file=out)
    return ok


def determine_exit_code(config, results, risk_results, audit_result):
    if config.warn_only:
        return ExitCodes.SUCCESS.value
    violations = (
        any(not r.allowed for r in results)
        or any(r.blocked for r in risk_results)
        or bool(audit_result is not None and audit_result.vulnerabilities)
    )
    return ExitCodes.VIOLATIONS.value if violations else ExitCodes.SUCCESS.value


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    configure_logging(args.LOG_LEVEL, args.LOG_FILE)
    config = load_config(args.CONFIG, config_overrides(args))
    if config.verbose and logging.getLogger().getEffectiveLevel() > logging.INFO:
        logging.getLogger().setLevel(logging.INFO)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main")
        )

    if args.DRY_RUN:
        cli_output.print_dry_run(config)
        return ExitCodes.SUCCESS.value

    try:
        outdated = OutdatedChecker(gems=args.gems).outdated_gems()
    except DiscoveryError as exc:
        logger.error("Could not list outdated gems: %s", exc)
        print(cli_output.colorize(f"Error: {exc}", "red", sys.stderr), file=sys.stderr)
        return ExitCodes.ERROR.value

    api = RubygemsClient()
    lockfile_parser = LockfileParser()
    results = PackageChecker(config=config, api=api, lockfile_parser=lockfile_parser).check_all(outdated)
    if not results:
        logger.info("No outdated gems found.")

    risk_results = []
    if args.RISK:
        risk_results = run_risk_check(results, config, api, lockfile_parser, refresh_cache=args.REFRESH_CACHE)

    audit_result = AuditChecker().check() if config.audit else None

    if args.JSON:
        cli_output.print_json(cli_output.build_json_output(results, config, risk_results, audit_result))
    else:
        if results:
            cli_output.print_results(results, config)
        else:
            print(cli_output.colorize("No outdated gems found.", "green"))
        cli_output.print_risk_results(risk_results)
        cli_output.print_audit_result(audit_result)

    if config.update and any(r.allowed for r in results):
        perform_update(results, risk_results, config, out=sys.stderr if args.JSON else sys.stdout)

    return determine_exit_code(config, results, risk_results, audit_result)


if __name__ == "__main__":
    sys.exit(main())
