import pytest
from pydantic import ValidationError

from app.schemas.events import InboundEvent, PullRequestContext
from tests.helpers import pull_request_payload


def test_inbound_event_from_github():
    payload = pull_request_payload(action="closed")

    event = InboundEvent.from_github("pull_request", "d-1", payload)

    assert event.kind == "pull_request"
    assert event.action == "closed"
    assert event.delivery_id == "d-1"
    assert event.payload == payload


def test_inbound_event_from_github_non_dict_payload():
    event = InboundEvent.from_github("pull_request", "d-1", ["not", "a", "dict"])

    assert event.payload is None
    assert event.action is None


def test_pull_request_context_from_payload():
    pr = PullRequestContext.from_payload(
        pull_request_payload(number=7, merge_commit_sha="abc", base_ref="develop")
    )

    assert pr.number == 7
    assert pr.merged is True
    assert pr.merge_commit_sha == "abc"
    assert pr.base_ref == "develop"
    assert (pr.owner, pr.repo) == ("acme", "widgets")
    assert pr.full_name == "acme/widgets"
    assert pr.is_merge is True


def test_pull_request_context_falls_back_to_repository():
    payload = pull_request_payload(full_name="acme/widgets")
    del payload["pull_request"]["base"]["repo"]

    pr = PullRequestContext.from_payload(payload)

    assert pr.full_name == "acme/widgets"


@pytest.mark.parametrize(
    "merged,merge_commit_sha",
    [(False, None), (False, "abc"), (True, None), (True, "")],
)
def test_pull_request_context_is_merge(merged, merge_commit_sha):
    pr = PullRequestContext.from_payload(
        pull_request_payload(merged=merged, merge_commit_sha=merge_commit_sha)
    )

    assert pr.is_merge is False


def test_pull_request_context_requires_repository():
    payload = pull_request_payload()
    del payload["pull_request"]["base"]["repo"]
    del payload["repository"]

    with pytest.raises(ValidationError):
        PullRequestContext.from_payload(payload)
