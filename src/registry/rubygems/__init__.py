"""RubyGems ecosystem: registry client, lockfile sources and outdated discovery."""

from .client import RubygemsClient, RegistryError
from .lockfile_parser import LockfileParser, parse_gem_sources
from .outdated import OutdatedChecker, DiscoveryError, parse_outdated_output

__all__ = [
    "RubygemsClient",
    "RegistryError",
    "LockfileParser",
    "parse_gem_sources",
    "OutdatedChecker",
    "DiscoveryError",
    "parse_outdated_output",
]
