"""
Issue lifecycle: submission, confirmation, closing and cached listings.
"""

from .cache import GLOBAL_KEY, ListingCache, get_listing_cache, resident_key
from .errors import (
    AlreadyClosed,
    AlreadyConfirmed,
    InvalidIssueContent,
    IssueError,
    IssueNotFound,
    NotConfirmed,
    PermissionDenied,
    UploadFailure,
)
from .lifecycle import IssueLifecycleEngine
from .schemas import CallerContext, Issue, IssueBucket, RawImage, Role, bucket_of
from .store import IssueStore
from .uploads import (
    HttpImageUploader,
    ImageUploader,
    ImageUploadError,
    LocalImageUploader,
    create_image_uploader,
)

__all__ = [
    # Engine
    "IssueLifecycleEngine",
    "IssueStore",
    # Cache
    "ListingCache",
    "GLOBAL_KEY",
    "get_listing_cache",
    "resident_key",
    # Schemas
    "CallerContext",
    "Issue",
    "IssueBucket",
    "RawImage",
    "Role",
    "bucket_of",
    # Uploads
    "ImageUploader",
    "ImageUploadError",
    "LocalImageUploader",
    "HttpImageUploader",
    "create_image_uploader",
    # Errors
    "IssueError",
    "IssueNotFound",
    "AlreadyConfirmed",
    "AlreadyClosed",
    "NotConfirmed",
    "InvalidIssueContent",
    "PermissionDenied",
    "UploadFailure",
]
