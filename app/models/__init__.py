"""Models module."""

from app.models.rule_suite import (
    BypassFindings,
    QueryFailure,
    RuleSuiteOutcome,
    RuleSuiteQueryResult,
    RuleSuiteRecord,
    RuleSuiteScope,
    ScopeFindings,
    ScopeKind,
)

__all__ = [
    "BypassFindings",
    "QueryFailure",
    "RuleSuiteOutcome",
    "RuleSuiteQueryResult",
    "RuleSuiteRecord",
    "RuleSuiteScope",
    "ScopeFindings",
    "ScopeKind",
]
