"""Argument parsing functionality for gemgate."""

import argparse
from constants import Constants


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog=Constants.PROGRAM_NAME,
        description=(
            "gemgate - Cooldown and risk gate for Bundler gem updates"
        ),
        add_help=True,
    )

    parser.add_argument("gems",
                        metavar="GEM",
                        help="Restrict the check to these gems (default: all outdated gems)",
                        nargs="*")

    # Configuration
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML, YML, or JSON)",
                        action="store",
                        type=str)
    parser.add_argument("--cooldown",
                        dest="COOLDOWN",
                        help="Minimum age in days",
                        action="store",
                        type=int)
    parser.add_argument("--update",
                        dest="UPDATE",
                        help="Update gems that pass the cooldown check",
                        action="store_true",
                        default=None)
    parser.add_argument("--lock-only",
                        dest="LOCK_ONLY",
                        help="Update Gemfile.lock without installing gems",
                        action="store_true",
                        default=None)
    parser.add_argument("--warn-only",
                        dest="WARN_ONLY",
                        help="Report violations but exit with success",
                        action="store_true",
                        default=None)
    parser.add_argument("--dry-run",
                        dest="DRY_RUN",
                        help="Show configuration without checking",
                        action="store_true")

    # Skips
    parser.add_argument("--no-audit",
                        dest="AUDIT",
                        help="Skip vulnerability audit",
                        action="store_false",
                        default=None)
    parser.add_argument("--no-risk",
                        dest="RISK",
                        help="Skip risk signal checking",
                        action="store_false",
                        default=True)
    parser.add_argument("--refresh-cache",
                        dest="REFRESH_CACHE",
                        help="Refresh owner cache without reporting ownership changes",
                        action="store_true")

    # Output
    parser.add_argument("--json",
                        dest="JSON",
                        help="Output in JSON format",
                        action="store_true")
    parser.add_argument("--verbose",
                        dest="VERBOSE",
                        help="Enable verbose output",
                        action="store_true",
                        default=None)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level (default: $GEMGATE_LOG_LEVEL or WARNING)",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default=None)
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-v", "--version",
                        action="version",
                        version=f"{Constants.PROGRAM_NAME} {Constants.VERSION}")

    return parser.parse_args(argv)


def config_overrides(args) -> dict:
    """Map parsed CLI flags onto config keys; unset flags map to None."""
    return {
        "cooldown_days": getattr(args, "COOLDOWN", None),
        "update": getattr(args, "UPDATE", None),
        "lock_only": getattr(args, "LOCK_ONLY", None),
        "warn_only": getattr(args, "WARN_ONLY", None),
        "audit": getattr(args, "AUDIT", None),
        "verbose": getattr(args, "VERBOSE", None),
    }
