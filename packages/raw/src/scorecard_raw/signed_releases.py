"""Collect releases and their assets for signature and provenance checks."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from scorecard_raw.data import SignedReleasesData

if TYPE_CHECKING:
    from scorecard_clients.base import RepoClient

logger = logging.getLogger(__name__)


def signed_releases(client: RepoClient) -> SignedReleasesData:
    releases = client.list_releases()
    logger.info("Found %d releases for %s", len(releases), client.uri())
    return SignedReleasesData(releases=list(releases))
