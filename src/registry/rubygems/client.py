"""RubyGems registry client: version timestamps, owners and popularity facts."""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from constants import Constants
from common.http_client import safe_get
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from common.release_age import age_days, parse_iso8601
from analysis.models import GemInfo

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """Raised when the registry returns an unusable response."""


class RubygemsClient:
    """Thin client over the public RubyGems JSON API (v1).

    Only ``fetch_versions`` raises; the other lookups are best-effort and
    return an empty value on any failure.
    """

    def __init__(self, base_url: str = Constants.REGISTRY_URL_RUBYGEMS):
        self._base_url = base_url.rstrip("/")

    def _url(self, *parts: str) -> str:
        return "/".join([self._base_url] + [quote(p, safe=".") for p in parts])

    def _get_json(self, url: str) -> Optional[Any]:
        """GET ``url`` and decode JSON; None on transport, HTTP or decode failure."""
        res = safe_get(url, context="rubygems", headers={"Accept": "application/json"})
        if res is None:
            return None
        if res.status_code != 200:
            logger.debug(
                "HTTP non-2xx handled",
                extra=extra_context(
                    event="http_response",
                    outcome="handled_non_2xx",
                    status_code=res.status_code,
                    target=safe_url(url)
                )
            )
            return None
        try:
            return json.loads(res.text)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Couldn't decode JSON from %s", safe_url(url))
            return None

    def fetch_versions(self, gem_name: str) -> List[Dict[str, Any]]:
        """Return the version list for a gem.

        Raises:
            RegistryError: On transport failure, non-2xx status or invalid JSON.
        """
        url = self._url("versions", f"{gem_name}.json")
        res = safe_get(url, context="rubygems", headers={"Accept": "application/json"})
        if res is None:
            raise RegistryError(f"Failed to fetch versions for {gem_name}: no response")
        if res.status_code != 200:
            raise RegistryError(f"Failed to fetch versions for {gem_name}: {res.status_code}")
        try:
            data = json.loads(res.text)
        except (json.JSONDecodeError, TypeError) as exc:
            raise RegistryError(f"Invalid JSON response for {gem_name}: {exc}") from exc
        if not isinstance(data, list):
            raise RegistryError(f"Unexpected versions payload for {gem_name}")
        return data

    def fetch_version_info(self, gem_name: str, version: str) -> Optional[Dict[str, Any]]:
        """Return the registry entry for one version, or None if it is not published."""
        for entry in self.fetch_versions(gem_name):
            if isinstance(entry, dict) and entry.get("number") == version:
                return entry
        return None

    def version_created_at(self, gem_name: str, version: str) -> Optional[datetime]:
        """Publish time of ``version``, or None when unknown."""
        info = self.fetch_version_info(gem_name, version)
        if not info:
            return None
        return parse_iso8601(info.get("created_at"))

    def version_age_days(self, gem_name: str, version: str) -> Optional[int]:
        """Age in whole days of ``version``, or None when it cannot be found."""
        created_at = self.version_created_at(gem_name, version)
        if created_at is None:
            return None
        return age_days(created_at)

    def fetch_owners(self, gem_name: str) -> List[str]:
        """Owner handles of a gem; empty on failure. Missing handles are dropped."""
        data = self._get_json(self._url("gems", gem_name, "owners.json"))
        if not isinstance(data, list):
            return []
        owners = [o.get("handle") for o in data if isinstance(o, dict)]
        owners = [o for o in owners if o]
        if is_debug_enabled(logger):
            logger.debug(
                "Fetched owners",
                extra=extra_context(
                    event="function_exit",
                    component="rubygems_client",
                    action="fetch_owners",
                    count=len(owners)
                )
            )
        return owners

    def fetch_gem_info(self, gem_name: str) -> Optional[GemInfo]:
        """Download count and latest release time of a gem; None on failure."""
        data = self._get_json(self._url("gems", f"{gem_name}.json"))
        if not isinstance(data, dict):
            return None
        try:
            downloads = int(data.get("downloads") or 0)
        except (TypeError, ValueError):
            return None
        return GemInfo(
            downloads=downloads,
            version_created_at=parse_iso8601(data.get("version_created_at")),
        )
