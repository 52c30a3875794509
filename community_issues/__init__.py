"""
Community Issue Tracker

Maintenance issues reported by residents of a managed community and
confirmed and closed by its hosts.
"""

import importlib.metadata

__version__ = importlib.metadata.version("community-issue-tracker")

from .issues import (
    AlreadyClosed,
    AlreadyConfirmed,
    CallerContext,
    Issue,
    IssueBucket,
    IssueLifecycleEngine,
    IssueNotFound,
    ListingCache,
    NotConfirmed,
    Role,
    UploadFailure,
)

__all__ = [
    "AlreadyClosed",
    "AlreadyConfirmed",
    "CallerContext",
    "Issue",
    "IssueBucket",
    "IssueLifecycleEngine",
    "IssueNotFound",
    "ListingCache",
    "NotConfirmed",
    "Role",
    "UploadFailure",
]
