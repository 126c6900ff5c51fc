"""Abuse-control services: spam filter, rate limiter, duplicate detector, pipeline."""

from guard.app.services.duplicate_detector import DuplicateDetector
from guard.app.services.pipeline import (
    AbuseControlPipeline,
    Decision,
    Proceed,
    RejectedDuplicate,
    RejectedNotFound,
    RejectedRateLimited,
    RejectedSilentSpam,
    RequestContext,
)
from guard.app.services.spam_filter import SpamFilter

__all__ = [
    "AbuseControlPipeline",
    "Decision",
    "DuplicateDetector",
    "Proceed",
    "RejectedDuplicate",
    "RejectedNotFound",
    "RejectedRateLimited",
    "RejectedSilentSpam",
    "RequestContext",
    "SpamFilter",
]
