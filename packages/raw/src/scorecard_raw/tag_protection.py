"""Collect protection settings for release tags."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from scorecard_clients.base import ProtectedTagClient
from scorecard_clients.errors import ErrorKind, ScorecardError

from scorecard_raw.data import GitLabProtectedTag, TagProtectionsData

if TYPE_CHECKING:
    from scorecard_clients.base import RepoClient

logger = logging.getLogger(__name__)


def release_tag_names(client: RepoClient) -> list[str]:
    """Return the distinct, non-empty tag names of all releases, in release order."""
    names = []
    seen = set()
    for release in client.list_releases():
        if release.tag_name and release.tag_name not in seen:
            seen.add(release.tag_name)
            names.append(release.tag_name)
    return names


def tag_protection(client: RepoClient) -> TagProtectionsData:
    data = TagProtectionsData()

    for name in release_tag_names(client):
        try:
            tag = client.get_tag(name)
        except ScorecardError as e:
            # A host that cannot report tags at all makes the whole check meaningless.
            if e.kind is ErrorKind.UNSUPPORTED_FEATURE:
                raise
            logger.warning("Skipping tag %s: %s", name, e)
            continue
        if tag is None:
            logger.debug("Tag %s not found", name)
            continue
        data.tags.append(tag)

    if isinstance(client, ProtectedTagClient) and data.tags:
        data.gitlab_branches = [branch.name for branch in client.list_branches()]
        for rule in client.get_protected_tag_patterns():
            data.gitlab_protected_tags.append(
                GitLabProtectedTag(
                    pattern=rule.pattern,
                    create_access_level=client.get_minimum_access_level(list(rule.create_access_levels)),
                )
            )

    return data
