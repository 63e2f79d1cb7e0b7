from typing import Any
from unittest.mock import AsyncMock

import httpx

from app.schemas.events import InboundEvent


def make_response(
    status_code: int = 200,
    json_data: Any = None,
    method: str = "GET",
    url: str = "https://api.github.com/",
) -> httpx.Response:
    return httpx.Response(
        status_code, json=json_data, request=httpx.Request(method, url)
    )


def mock_async_client(mock_client_class) -> AsyncMock:
    """Wire a patched httpx.AsyncClient so `async with` yields the instance."""
    instance = AsyncMock()
    mock_client_class.return_value.__aenter__.return_value = instance
    return instance


def pull_request_payload(
    number: int = 42,
    action: str = "closed",
    merged: bool = True,
    merge_commit_sha: str | None = "deadbeef1234567",
    base_ref: str = "main",
    full_name: str = "acme/widgets",
) -> dict[str, Any]:
    return {
        "action": action,
        "number": number,
        "pull_request": {
            "number": number,
            "merged": merged,
            "merge_commit_sha": merge_commit_sha,
            "base": {"ref": base_ref, "repo": {"full_name": full_name}},
        },
        "repository": {"full_name": full_name},
        "sender": {"login": "octocat"},
    }


def pull_request_event(
    delivery_id: str = "delivery-1", kind: str = "pull_request", **kwargs
) -> InboundEvent:
    return InboundEvent.from_github(kind, delivery_id, pull_request_payload(**kwargs))


def rule_suite(
    after_sha: str = "deadbeef1234567",
    before_sha: str = "0123456789abcdef",
    actor_name: str | None = "alice",
    **extra: Any,
) -> dict[str, Any]:
    data = {
        "id": 1,
        "actor_id": 7,
        "actor_name": actor_name,
        "before_sha": before_sha,
        "after_sha": after_sha,
        "ref": "refs/heads/main",
        "repository_name": "widgets",
        "pushed_at": "2024-05-01T12:30:00Z",
        "result": "bypass",
    }
    data.update(extra)
    return data
