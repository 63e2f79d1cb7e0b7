from typing import Any

from pydantic import BaseModel, field_validator


class InboundEvent(BaseModel):
    kind: str
    action: str | None = None
    delivery_id: str
    payload: dict[str, Any] | None = None

    @classmethod
    def from_github(
        cls, event: str, delivery_id: str, payload: Any
    ) -> "InboundEvent":
        action = payload.get("action") if isinstance(payload, dict) else None
        return cls(
            kind=event,
            action=action if isinstance(action, str) else None,
            delivery_id=delivery_id,
            payload=payload if isinstance(payload, dict) else None,
        )


class PullRequestContext(BaseModel):
    number: int
    merged: bool = False
    merge_commit_sha: str | None = None
    base_ref: str
    owner: str
    repo: str

    @field_validator("owner", "repo", "base_ref")
    @classmethod
    def must_not_be_empty(cls, v):
        if not v:
            raise ValueError("must not be empty")
        return v

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def is_merge(self) -> bool:
        return self.merged and bool(self.merge_commit_sha)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "PullRequestContext":
        pull_request = payload["pull_request"]
        base = pull_request.get("base") or {}

        full_name = (base.get("repo") or {}).get("full_name") or (
            payload.get("repository") or {}
        ).get("full_name", "")
        owner, _, repo = full_name.partition("/")

        return cls(
            number=pull_request.get("number", payload.get("number")),
            merged=bool(pull_request.get("merged")),
            merge_commit_sha=pull_request.get("merge_commit_sha") or None,
            base_ref=base.get("ref", ""),
            owner=owner,
            repo=repo,
        )
