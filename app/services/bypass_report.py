from datetime import datetime, timezone
from urllib.parse import quote, urlencode

from app.config import settings
from app.models.rule_suite import BypassFindings, RuleSuiteRecord, ScopeKind

SHORT_SHA_LENGTH = 7


def short_sha(sha: str | None) -> str:
    return sha[:SHORT_SHA_LENGTH] if sha else "Unknown"


def format_timestamp(value: str | None) -> str:
    if not value:
        return "Unknown"
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def format_rule_suite(record: RuleSuiteRecord) -> str:
    return (
        f"- **Commit:** {short_sha(record.after_sha)} "
        f"_(from {short_sha(record.before_sha)})_\n"
        f"- **Actor:** {record.actor_name or 'Unknown'}\n"
        f"- **Status:** {record.outcome_label}\n"
        f"- **Time:** {format_timestamp(record.pushed_at)}"
    )


def repository_insights_url(
    owner: str, repo: str, base_ref: str, web_url: str, time_period: str
) -> str:
    query = urlencode(
        {"ref": base_ref, "time_period": time_period, "rule_status": "bypass"},
        quote_via=quote,
    )
    return f"{web_url}/{owner}/{repo}/settings/rules/insights?{query}"


def organization_insights_url(
    owner: str, repo: str, web_url: str, time_period: str
) -> str:
    query = urlencode(
        {"repository": repo, "time_period": time_period, "rule_status": "bypass"},
        quote_via=quote,
    )
    return f"{web_url}/organizations/{owner}/settings/rules/insights?{query}"


def format_bypass_report(
    findings: BypassFindings,
    owner: str,
    repo: str,
    base_ref: str,
    web_url: str | None = None,
    time_period: str | None = None,
) -> str:
    """Render the PR comment for bypassed rule suites.

    Output depends only on the arguments, so identical findings always render
    to identical text.
    """
    web_url = (web_url or settings.github_web_url).rstrip("/")
    time_period = time_period or settings.rule_suite_time_period

    sections = []

    org_records = findings.for_kind(ScopeKind.ORGANIZATION)
    if org_records:
        url = organization_insights_url(owner, repo, web_url, time_period)
        sections.append(
            "### Organization-Level Bypasses\n"
            f"[View Bypassed Organization Ruleset Insights]({url})\n\n"
            + "\n\n".join(format_rule_suite(r) for r in org_records)
        )

    repo_records = findings.for_kind(ScopeKind.REPOSITORY)
    if repo_records:
        url = repository_insights_url(owner, repo, base_ref, web_url, time_period)
        sections.append(
            "### Repository-Level Bypasses\n"
            f"[View Bypassed Repository Ruleset Insights]({url})\n\n"
            + "\n\n".join(format_rule_suite(r) for r in repo_records)
        )

    return "\n\n".join(
        [
            "## 🚨 Ruleset Bypass Detected",
            f"This pull request was merged with **{findings.total}** bypassed "
            "rule suite(s).",
            *sections,
            "---",
            "Please ensure these bypasses comply with your organization's "
            "governance policies. Bypassing ruleset protections may introduce "
            "security, quality, or compliance risks.",
        ]
    )
