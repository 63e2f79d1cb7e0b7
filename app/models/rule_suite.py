from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ScopeKind(Enum):
    REPOSITORY = "repository"
    ORGANIZATION = "organization"


class RuleSuiteOutcome(Enum):
    PASS = "pass"
    BYPASS = "bypass"
    FAIL = "fail"
    OTHER = "other"

    @classmethod
    def from_label(cls, label: str | None) -> "RuleSuiteOutcome":
        try:
            return cls((label or "").lower())
        except ValueError:
            return cls.OTHER


class QueryFailure(Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    HTTP_ERROR = "http_error"
    NETWORK_ERROR = "network_error"
    INVALID_RESPONSE = "invalid_response"
    UNEXPECTED_ERROR = "unexpected_error"


@dataclass(frozen=True)
class RuleSuiteScope:
    kind: ScopeKind
    owner: str
    repo: str

    @classmethod
    def repository(cls, owner: str, repo: str) -> "RuleSuiteScope":
        return cls(ScopeKind.REPOSITORY, owner, repo)

    @classmethod
    def organization(cls, owner: str, repo_filter: str) -> "RuleSuiteScope":
        return cls(ScopeKind.ORGANIZATION, owner, repo_filter)

    def __str__(self) -> str:
        if self.kind is ScopeKind.ORGANIZATION:
            return f"organization:{self.owner}?repository={self.repo}"
        return f"repository:{self.owner}/{self.repo}"


# Equivalent outcome fields seen across API versions, in preference order
OUTCOME_FIELDS = ("status", "result", "evaluation_result")


@dataclass(frozen=True)
class RuleSuiteRecord:
    scope: ScopeKind
    id: int | None = None
    before_sha: str | None = None
    after_sha: str | None = None
    ref: str | None = None
    status: str | None = None
    result: str | None = None
    evaluation_result: str | None = None
    actor_name: str | None = None
    actor_id: int | None = None
    pushed_at: str | None = None
    repository_name: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any], scope: ScopeKind) -> "RuleSuiteRecord":
        return cls(
            scope=scope,
            id=data.get("id"),
            before_sha=data.get("before_sha"),
            after_sha=data.get("after_sha"),
            ref=data.get("ref"),
            status=data.get("status"),
            result=data.get("result"),
            evaluation_result=data.get("evaluation_result"),
            actor_name=data.get("actor_name"),
            actor_id=data.get("actor_id"),
            pushed_at=data.get("pushed_at"),
            repository_name=data.get("repository_name"),
        )

    @property
    def outcome_label(self) -> str:
        for name in OUTCOME_FIELDS:
            value = getattr(self, name)
            if value:
                return value
        return "bypass"

    @property
    def outcome(self) -> RuleSuiteOutcome:
        return RuleSuiteOutcome.from_label(self.outcome_label)


@dataclass(frozen=True)
class RuleSuiteQueryResult:
    """Outcome of one rule suite query.

    A successful query with no records ("verified clean") and a failed query
    ("could not verify") are distinct here; callers that only need the list
    collapse both to an empty sequence.
    """

    ok: bool
    records: tuple[RuleSuiteRecord, ...] = ()
    failure: QueryFailure | None = None
    detail: str | None = None

    @classmethod
    def success(cls, records: list[RuleSuiteRecord]) -> "RuleSuiteQueryResult":
        return cls(ok=True, records=tuple(records))

    @classmethod
    def failed(
        cls, failure: QueryFailure, detail: str | None = None
    ) -> "RuleSuiteQueryResult":
        return cls(ok=False, failure=failure, detail=detail)


@dataclass(frozen=True)
class ScopeFindings:
    scope: RuleSuiteScope
    records: tuple[RuleSuiteRecord, ...] = ()
    verified: bool = True
    failure: QueryFailure | None = None


@dataclass(frozen=True)
class BypassFindings:
    scopes: tuple[ScopeFindings, ...] = field(default_factory=tuple)

    @property
    def total(self) -> int:
        return sum(len(s.records) for s in self.scopes)

    @property
    def overall(self) -> bool:
        return self.total > 0

    @property
    def unverified_scopes(self) -> list[RuleSuiteScope]:
        return [s.scope for s in self.scopes if not s.verified]

    def for_kind(self, kind: ScopeKind) -> tuple[RuleSuiteRecord, ...]:
        records: tuple[RuleSuiteRecord, ...] = ()
        for scope_findings in self.scopes:
            if scope_findings.scope.kind is kind:
                records += scope_findings.records
        return records
