import asyncio

import structlog

from app.config import settings
from app.models.rule_suite import (
    BypassFindings,
    QueryFailure,
    RuleSuiteScope,
    ScopeFindings,
)
from app.utils.github import GitHubAPIClient, fetch_rule_suites
from app.utils.github_auth import GitHubSession

logger = structlog.get_logger(__name__)


class BypassAggregator:
    def __init__(
        self,
        check_organization: bool | None = None,
        time_period: str | None = None,
    ):
        self.check_organization = (
            settings.check_organization_rulesets
            if check_organization is None
            else check_organization
        )
        self.time_period = time_period or settings.rule_suite_time_period

    def scopes_for(self, owner: str, repo: str) -> list[RuleSuiteScope]:
        scopes = []
        if self.check_organization:
            scopes.append(RuleSuiteScope.organization(owner, repo))
        scopes.append(RuleSuiteScope.repository(owner, repo))
        return scopes

    async def aggregate(
        self,
        session: GitHubSession,
        owner: str,
        repo: str,
        base_ref: str,
        merge_sha: str,
    ) -> BypassFindings:
        client = GitHubAPIClient(session)
        scopes = self.scopes_for(owner, repo)

        results = await asyncio.gather(
            *(
                self._query_scope(client, scope, base_ref, merge_sha)
                for scope in scopes
            )
        )
        findings = BypassFindings(scopes=tuple(results))

        logger.info(
            "Aggregated rule suite bypasses",
            repo=f"{owner}/{repo}",
            ref=base_ref,
            merge_sha=merge_sha,
            total=findings.total,
            overall=findings.overall,
            unverified_scopes=[str(s) for s in findings.unverified_scopes],
        )
        return findings

    async def _query_scope(
        self,
        client: GitHubAPIClient,
        scope: RuleSuiteScope,
        base_ref: str,
        merge_sha: str,
    ) -> ScopeFindings:
        try:
            result = await fetch_rule_suites(
                client, scope, base_ref, merge_sha, time_period=self.time_period
            )
        except Exception as e:
            logger.warning(
                "Could not check rule suites",
                scope=str(scope),
                error=str(e),
                error_type=type(e).__name__,
            )
            return ScopeFindings(
                scope=scope, verified=False, failure=QueryFailure.UNEXPECTED_ERROR
            )

        if not result.ok:
            logger.warning(
                "Could not check rule suites",
                scope=str(scope),
                reason=result.failure.value if result.failure else None,
                detail=result.detail,
            )
            return ScopeFindings(scope=scope, verified=False, failure=result.failure)

        if result.records:
            logger.info(
                "Found bypassed rule suites",
                scope=str(scope),
                count=len(result.records),
            )
        else:
            logger.info("No bypassed rule suites found", scope=str(scope))
        return ScopeFindings(scope=scope, records=result.records)
