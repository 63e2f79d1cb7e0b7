from typing import Any

import httpx
import structlog

from app.config import settings
from app.models.rule_suite import (
    QueryFailure,
    RuleSuiteQueryResult,
    RuleSuiteRecord,
    RuleSuiteScope,
    ScopeKind,
)
from app.utils.github_auth import GitHubSession

logger = structlog.get_logger(__name__)

FORBIDDEN_HINT = (
    "The GitHub App needs read access to repository and organization "
    "administration to list rule suites"
)


class GitHubAPIClient:
    """Async HTTP client for the GitHub REST API bound to one session."""

    def __init__(self, session: GitHubSession, timeout: float | None = None):
        self.base_url = session.api_url.rstrip("/")
        self.timeout = timeout or settings.github_request_timeout
        self.headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {session.token}",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def send(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Execute request and raise on transport or HTTP status errors."""
        kwargs.setdefault("timeout", self.timeout)
        async with httpx.AsyncClient() as client:
            response = await getattr(client, method)(
                f"{self.base_url}{path}", headers=self.headers, **kwargs
            )
            response.raise_for_status()
            return response

    async def request(
        self,
        method: str,
        path: str,
        context: dict | None = None,
        **kwargs,
    ) -> httpx.Response | None:
        """Execute request with standard error handling."""
        context = context or {}
        url = f"{self.base_url}{path}"

        try:
            return await self.send(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error("Request error", url=url, error=str(e), **context)
        except httpx.HTTPStatusError as e:
            logger.error(
                "HTTP error",
                url=url,
                status_code=e.response.status_code,
                response_text=e.response.text,
                **context,
            )
        except Exception as e:
            logger.error("Unexpected error", url=url, error=str(e), **context)
        return None


def rule_suite_paths(scope: RuleSuiteScope) -> tuple[str, str]:
    """Return the (current, legacy) rule suite endpoint paths for a scope."""
    if scope.kind is ScopeKind.ORGANIZATION:
        return (
            f"/orgs/{scope.owner}/rulesets/rule-suites",
            f"/orgs/{scope.owner}/rule-suites",
        )
    return (
        f"/repos/{scope.owner}/{scope.repo}/rulesets/rule-suites",
        f"/repos/{scope.owner}/{scope.repo}/rule-suites",
    )


def parse_rule_suites(body: Any) -> list[dict[str, Any]] | None:
    """Normalise a rule suite response body to a list of raw records.

    Accepts a bare list or an object wrapping the list under `rule_suites`.
    Returns None when the body matches neither shape.
    """
    if isinstance(body, list):
        items = body
    elif isinstance(body, dict) and isinstance(body.get("rule_suites"), list):
        items = body["rule_suites"]
    else:
        return None
    return [item for item in items if isinstance(item, dict)]


async def fetch_rule_suites(
    client: GitHubAPIClient,
    scope: RuleSuiteScope,
    ref: str,
    after_sha: str,
    time_period: str | None = None,
) -> RuleSuiteQueryResult:
    params = {
        "ref": ref,
        "rule_suite_result": "bypass",
        "time_period": time_period or settings.rule_suite_time_period,
        "per_page": 100,
    }
    if scope.kind is ScopeKind.ORGANIZATION:
        params["repository_name"] = scope.repo

    context = {"scope": str(scope), "ref": ref, "after_sha": after_sha}
    primary, legacy = rule_suite_paths(scope)

    response = None
    for path in (primary, legacy):
        try:
            response = await client.send("get", path, params=params)
            break
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code == 404:
                logger.info("Rule suite endpoint not found", path=path, **context)
                continue
            if status_code == 403:
                logger.warning(
                    "Permission denied reading rule suites",
                    path=path,
                    hint=FORBIDDEN_HINT,
                    **context,
                )
                return RuleSuiteQueryResult.failed(QueryFailure.FORBIDDEN, path)
            logger.warning(
                "HTTP error reading rule suites",
                path=path,
                status_code=status_code,
                response_text=e.response.text,
                **context,
            )
            return RuleSuiteQueryResult.failed(
                QueryFailure.HTTP_ERROR, f"HTTP {status_code}"
            )
        except httpx.RequestError as e:
            logger.warning(
                "Request error reading rule suites",
                path=path,
                error=str(e),
                **context,
            )
            return RuleSuiteQueryResult.failed(QueryFailure.NETWORK_ERROR, str(e))

    if response is None:
        logger.info(
            "Rule suites unavailable (no rulesets or unsupported plan)", **context
        )
        return RuleSuiteQueryResult.failed(QueryFailure.NOT_FOUND)

    try:
        items = parse_rule_suites(response.json())
    except ValueError:
        items = None
    if items is None:
        logger.warning("Unrecognised rule suite response shape", **context)
        return RuleSuiteQueryResult.failed(QueryFailure.INVALID_RESPONSE)

    # The server filters by ref only, several pushes can share a branch
    records = [
        RuleSuiteRecord.from_api(item, scope.kind)
        for item in items
        if item.get("after_sha") == after_sha
    ]
    logger.debug(
        "Fetched rule suites",
        received=len(items),
        matching=len(records),
        **context,
    )
    return RuleSuiteQueryResult.success(records)


async def query_bypassed_rule_suites(
    session: GitHubSession,
    scope: RuleSuiteScope,
    ref: str,
    after_sha: str,
) -> list[RuleSuiteRecord]:
    """Return bypassed rule suites for `after_sha`, or [] if unverifiable."""
    result = await fetch_rule_suites(GitHubAPIClient(session), scope, ref, after_sha)
    return list(result.records)


async def create_pr_comment(
    session: GitHubSession, owner: str, repo: str, pr_number: int, body: str
) -> bool:
    if not owner or not repo:
        logger.error("Missing repository for GitHub PR comment. Skipping PR comment.")
        return False

    if not pr_number:
        logger.error("Missing PR number. Skipping PR comment.")
        return False

    client = GitHubAPIClient(session)
    response = await client.request(
        "post",
        f"/repos/{owner}/{repo}/issues/{pr_number}/comments",
        json={"body": body},
        context={"git_repo": f"{owner}/{repo}", "pr_number": pr_number},
    )
    if response:
        logger.info(
            "Successfully created PR comment",
            git_repo=f"{owner}/{repo}",
            pr_number=pr_number,
        )
        return True
    return False
