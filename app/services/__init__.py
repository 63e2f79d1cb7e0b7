from .bypass_aggregator import BypassAggregator
from .bypass_processor import (
    ProcessingOutcome,
    ProcessingState,
    PullRequestBypassProcessor,
)
from .deduplication import DeliveryDeduplicator

bypass_processor = PullRequestBypassProcessor()

__all__ = [
    "bypass_processor",
    "BypassAggregator",
    "DeliveryDeduplicator",
    "ProcessingOutcome",
    "ProcessingState",
    "PullRequestBypassProcessor",
]
