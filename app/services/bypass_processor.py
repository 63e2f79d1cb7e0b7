import asyncio
from dataclasses import dataclass
from enum import Enum

import structlog
from pydantic import ValidationError

from app.config import settings
from app.models.rule_suite import BypassFindings
from app.schemas.events import InboundEvent, PullRequestContext
from app.services.bypass_aggregator import BypassAggregator
from app.services.bypass_report import format_bypass_report
from app.services.deduplication import DeliveryDeduplicator, compute_dedup_key
from app.utils.github import create_pr_comment
from app.utils.github_auth import (
    GitHubAppConfigurationError,
    GitHubAuthError,
    GitHubSession,
    obtain_session,
)

logger = structlog.get_logger(__name__)

RECOGNIZED_EVENT_KINDS = ("pull_request",)


class ProcessingState(Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    SKIPPED = "skipped"
    DEDUPLICATED = "deduplicated"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ProcessingOutcome:
    state: ProcessingState
    reason: str | None = None
    step: str | None = None
    dedup_key: str | None = None
    findings: BypassFindings | None = None
    delivered: bool = False
    warning: str | None = None


class PullRequestBypassProcessor:
    """Drive one inbound webhook through bypass detection and notification.

    Received -> Validated -> Skipped | Deduplicated | Processing, and
    Processing -> Completed | Failed. `handle_event` never raises.
    """

    def __init__(
        self,
        deduplicator: DeliveryDeduplicator | None = None,
        aggregator: BypassAggregator | None = None,
        settle_seconds: float | None = None,
        poll_attempts: int | None = None,
        poll_interval: float | None = None,
    ):
        self.deduplicator = deduplicator or DeliveryDeduplicator()
        self.aggregator = aggregator or BypassAggregator()
        self.settle_seconds = (
            settings.rule_suite_settle_seconds
            if settle_seconds is None
            else settle_seconds
        )
        if poll_attempts is None:
            poll_attempts = settings.rule_suite_poll_attempts
        self.poll_attempts = max(1, poll_attempts)
        self.poll_interval = (
            settings.rule_suite_poll_interval_seconds
            if poll_interval is None
            else poll_interval
        )

    async def handle_event(self, event: InboundEvent) -> ProcessingOutcome:
        with structlog.contextvars.bound_contextvars(
            delivery_id=event.delivery_id, event=event.kind, action=event.action
        ):
            try:
                outcome = await self._handle(event)
            except Exception as e:
                logger.exception("Unhandled error processing webhook", error=str(e))
                outcome = ProcessingOutcome(
                    state=ProcessingState.FAILED, reason=str(e), step="unknown"
                )
            logger.info(
                "Finished processing webhook",
                state=outcome.state.value,
                reason=outcome.reason,
                delivered=outcome.delivered,
            )
            return outcome

    async def _handle(self, event: InboundEvent) -> ProcessingOutcome:
        if not event.payload:
            logger.error("No payload in webhook event")
            return ProcessingOutcome(ProcessingState.FAILED, reason="missing payload")

        if event.kind not in RECOGNIZED_EVENT_KINDS:
            logger.warning("Unrecognized webhook event kind")
            return ProcessingOutcome(
                ProcessingState.FAILED, reason="unrecognized event kind"
            )

        if not isinstance(event.payload.get("pull_request"), dict):
            logger.error("No pull request in webhook payload")
            return ProcessingOutcome(
                ProcessingState.FAILED, reason="missing pull request"
            )

        if event.action != "closed":
            logger.debug("Ignoring pull request action")
            return ProcessingOutcome(ProcessingState.SKIPPED, reason="not closed")

        try:
            pr = PullRequestContext.from_payload(event.payload)
        except (ValidationError, KeyError, TypeError) as e:
            logger.error("Malformed pull request payload", error=str(e))
            return ProcessingOutcome(
                ProcessingState.FAILED,
                reason="malformed pull request",
                step="validate",
            )

        if not pr.is_merge:
            logger.info(
                "Pull request was closed without merging, skipping ruleset check",
                pr_number=pr.number,
                repo=pr.full_name,
            )
            return ProcessingOutcome(ProcessingState.SKIPPED, reason="not merged")

        key = compute_dedup_key(
            event.kind, event.action, event.delivery_id, pr.number, pr.merge_commit_sha
        )
        if not self.deduplicator.check_and_insert(key):
            logger.info(
                "Duplicate webhook delivery, skipping",
                pr_number=pr.number,
                repo=pr.full_name,
                dedup_key=key,
            )
            return ProcessingOutcome(
                ProcessingState.DEDUPLICATED, reason="duplicate", dedup_key=key
            )

        return await self._process(pr, key)

    async def _process(self, pr: PullRequestContext, key: str) -> ProcessingOutcome:
        log = logger.bind(pr_number=pr.number, repo=pr.full_name)
        log.info(
            "Checking rule suites for merged pull request",
            base_ref=pr.base_ref,
            merge_sha=pr.merge_commit_sha,
        )
        outcome = ProcessingOutcome(ProcessingState.PROCESSING, dedup_key=key)

        try:
            outcome.step = "authenticate"
            session = await obtain_session()

            outcome.step = "aggregate"
            findings = await self._collect_findings(session, pr)
            outcome.findings = findings

            if not findings.overall:
                log.info("No ruleset bypasses found")
                outcome.state = ProcessingState.COMPLETED
                return outcome

            outcome.step = "format"
            body = format_bypass_report(findings, pr.owner, pr.repo, pr.base_ref)

            outcome.step = "deliver"
            outcome.delivered = await create_pr_comment(
                session, pr.owner, pr.repo, pr.number, body
            )
        except GitHubAppConfigurationError as e:
            log.error(
                "GitHub App is misconfigured, fix the credentials",
                step=outcome.step,
                error=str(e),
            )
            outcome.state = ProcessingState.FAILED
            outcome.reason = "configuration error"
            return outcome
        except GitHubAuthError as e:
            log.error(
                "Could not authenticate as GitHub App installation",
                step=outcome.step,
                error=str(e),
            )
            outcome.state = ProcessingState.FAILED
            outcome.reason = "authentication error"
            return outcome
        except Exception as e:
            log.exception(
                "Error processing merged pull request",
                step=outcome.step,
                error=str(e),
            )
            outcome.state = ProcessingState.FAILED
            outcome.reason = str(e)
            return outcome

        outcome.state = ProcessingState.COMPLETED
        if outcome.delivered:
            log.info("Posted ruleset bypass comment", total=findings.total)
        else:
            outcome.warning = "comment delivery failed"
            log.warning(
                "Ruleset bypass detected but the comment could not be posted",
                total=findings.total,
            )
        return outcome

    async def _collect_findings(
        self, session: GitHubSession, pr: PullRequestContext
    ) -> BypassFindings:
        # Rule suite evaluations are recorded asynchronously after the merge
        if self.settle_seconds > 0:
            await asyncio.sleep(self.settle_seconds)

        findings = BypassFindings()
        for attempt in range(1, self.poll_attempts + 1):
            findings = await self.aggregator.aggregate(
                session, pr.owner, pr.repo, pr.base_ref, pr.merge_commit_sha or ""
            )
            if findings.overall or attempt == self.poll_attempts:
                break
            logger.info(
                "No bypass evidence yet, polling rule suites again",
                pr_number=pr.number,
                attempt=attempt,
                max_attempts=self.poll_attempts,
                delay_seconds=self.poll_interval,
            )
            await asyncio.sleep(self.poll_interval)
        return findings
