"""PackageClient for the deps.dev v3alpha API.

https://docs.deps.dev/api/v3alpha/
"""

from __future__ import annotations

import logging
from urllib.parse import quote

import requests

from scorecard_clients.base import PackageClient
from scorecard_clients.errors import api_error, invalid_input
from scorecard_clients.models import Package, PackageVersion

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.deps.dev/v3alpha"
DEFAULT_TIMEOUT = 15  # seconds


class DepsDevClient(PackageClient):
    """Looks up a package's published versions on deps.dev.

    One GET per call, no retries: a failed request is reported straight back
    to the caller as ScorecardError(API).
    """

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = DEFAULT_TIMEOUT, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def package_url(self, system: str, name: str) -> str:
        return f"{self.base_url}/systems/{quote(system.upper(), safe='')}/packages/{quote(name, safe='')}"

    def get_package(self, system: str, name: str) -> Package:
        url = self.package_url(system, name)
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise api_error(f"deps.dev request for {system}/{name}", e) from e

        if response.status_code == 404:
            raise api_error(f"deps.dev: package {system}/{name} not found")
        if response.status_code != 200:
            raise api_error(f"deps.dev: HTTP {response.status_code} for {system}/{name}")

        try:
            data = response.json()
        except ValueError as e:
            raise invalid_input(f"deps.dev: undecodable response for {system}/{name}", e) from e

        versions = []
        for item in data.get("versions") or []:
            version = ((item.get("versionKey") or {}).get("version")) or ""
            if not version:
                continue
            versions.append(PackageVersion(version=version, published_at=item.get("publishedAt") or ""))

        logger.debug("deps.dev returned %d versions for %s/%s", len(versions), system, name)
        return Package(system=system.upper(), name=name, versions=tuple(versions))
