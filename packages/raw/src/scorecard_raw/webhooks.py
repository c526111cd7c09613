from __future__ import annotations

from typing import TYPE_CHECKING

from scorecard_raw.data import WebhooksData

if TYPE_CHECKING:
    from scorecard_clients.base import RepoClient


def webhooks(client: RepoClient) -> WebhooksData:
    return WebhooksData(webhooks=list(client.list_webhooks()))
