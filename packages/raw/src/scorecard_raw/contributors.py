"""Collect contributors with normalised company and organization affiliations."""

from __future__ import annotations

from typing import TYPE_CHECKING

from scorecard_clients.models import Contributor

from scorecard_raw.data import ContributorsData

if TYPE_CHECKING:
    from scorecard_clients.base import RepoClient
    from scorecard_clients.models import User

_COMPANY_NOISE = ("inc.", "llc", ",")


def normalize_company(company: str) -> str:
    """Lower-case a free-text company and strip legal suffixes and a leading ``@``."""
    company = company.lower()
    for noise in _COMPANY_NOISE:
        company = company.replace(noise, "")
    return company.lstrip("@").strip(" ")


def company_contains(companies: list[str], company: str) -> bool:
    return company in companies


def org_contains(orgs: list[User], login: str) -> bool:
    return any(o.login == login for o in orgs)


def contributors(client: RepoClient) -> ContributorsData:
    users = []
    for contributor in client.list_contributors():
        orgs: list[User] = []
        for org in contributor.organizations:
            if org.login and not org_contains(orgs, org.login):
                orgs.append(org)
        companies: list[str] = []
        for company in contributor.companies:
            company = normalize_company(company)
            if company and not company_contains(companies, company):
                companies.append(company)
        users.append(
            Contributor(
                user=contributor.user,
                num_contributions=contributor.num_contributions,
                companies=tuple(companies),
                organizations=tuple(orgs),
            )
        )
    return ContributorsData(contributors=users)
