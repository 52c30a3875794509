"""
Issue lifecycle engine.

Issues move through three states:

    not confirmed --confirm--> confirmed --close--> closed

Both transitions happen once. They are applied as conditional UPDATEs so two
racing requests cannot both succeed; when the UPDATE matches no row the
current state is re-read to report why.

Listings concatenate three buckets:

    1. not confirmed          report_date ascending
    2. confirmed, not closed  report_date ascending
    3. closed                 closed_date descending

with ``id`` ascending as tie-breaker. Listings are cached (see ``cache.py``);
every write commits first and evicts afterwards.
"""

import asyncio
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import structlog
from sqlalchemy.orm import Session

from ..db.base import session_scope
from .cache import GLOBAL_KEY, RESIDENT_PREFIX, ListingCache, resident_key
from .errors import (
    AlreadyClosed,
    AlreadyConfirmed,
    InvalidIssueContent,
    IssueNotFound,
    NotConfirmed,
    PermissionDenied,
    UploadFailure,
)
from .schemas import CallerContext, Issue, RawImage
from .store import IssueStore
from .uploads import ImageUploader

logger = structlog.get_logger(__name__)


class IssueLifecycleEngine:
    """Submits, confirms, closes and lists issues for one unit of work."""

    def __init__(
        self,
        db: Session,
        cache: ListingCache,
        uploader: ImageUploader,
        upload_timeout: float = 30.0,
        max_content_length: int = 5000,
        today: Callable[[], date] = date.today,
    ):
        self.db = db
        self.store = IssueStore(db)
        self.cache = cache
        self.uploader = uploader
        self.upload_timeout = upload_timeout
        self.max_content_length = max_content_length
        self.today = today

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(
        self,
        caller: CallerContext,
        content: Optional[str],
        raw_images: Iterable[RawImage] = (),
    ) -> Issue:
        """Create an issue for a resident, uploading its images first.

        Either every non-empty image uploads and the issue is stored with all
        of them, or ``UploadFailure`` is raised and nothing is stored.
        """
        if not caller.is_resident:
            raise PermissionDenied(caller.username, "submit issues")
        text = self._clean_content(content)

        images = [image for image in raw_images if not image.is_empty]
        urls = await self._upload_all(images)

        # Session work blocks; keep it off the event loop.
        issue = await asyncio.to_thread(self._persist, caller.username, text, urls)

        self.cache.evict(resident_key(caller.username), GLOBAL_KEY)
        logger.info(
            "issue_submitted",
            issue_id=issue.id,
            reporter=caller.username,
            images=len(urls),
        )
        return issue

    def _persist(self, username: str, text: str, urls: List[str]) -> Issue:
        with session_scope(self.db):
            db_issue = self.store.add(
                content=text,
                report_date=self.today(),
                resident_username=username,
                image_urls=urls,
            )
            return Issue.from_model(db_issue)

    def _clean_content(self, content: Optional[str]) -> str:
        text = (content or "").strip()
        if not text:
            raise InvalidIssueContent("Issue content must not be empty")
        if len(text) > self.max_content_length:
            raise InvalidIssueContent(
                f"Issue content exceeds {self.max_content_length} characters"
            )
        return text

    async def _upload_one(self, image: RawImage) -> str:
        return await asyncio.wait_for(
            self.uploader.upload(image), timeout=self.upload_timeout
        )

    async def _upload_all(self, images: Sequence[RawImage]) -> List[str]:
        if not images:
            return []

        results = await asyncio.gather(
            *(self._upload_one(image) for image in images), return_exceptions=True
        )

        urls: List[str] = []
        failures: Dict[str, str] = {}
        for index, (image, result) in enumerate(zip(images, results)):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                name = image.filename or f"image-{index}"
                if name in failures:
                    name = f"{name}#{index}"
                if isinstance(result, asyncio.TimeoutError):
                    failures[name] = f"timed out after {self.upload_timeout}s"
                else:
                    failures[name] = str(result) or type(result).__name__
            else:
                urls.append(result)

        if failures:
            logger.warning(
                "image_upload_failed",
                failures=failures,
                orphaned=urls,
            )
            raise UploadFailure(failures, uploaded=urls)
        return urls

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def confirm(self, caller: CallerContext, issue_id: int) -> None:
        """Confirm an issue. Hosts only."""
        if not caller.is_host:
            raise PermissionDenied(caller.username, "confirm issues")

        with session_scope(self.db):
            if not self.store.mark_confirmed(issue_id):
                if self.store.get(issue_id) is None:
                    raise IssueNotFound(issue_id)
                raise AlreadyConfirmed(issue_id)

        self._invalidate_all_listings()
        logger.info("issue_confirmed", issue_id=issue_id, host=caller.username)

    def close(self, caller: CallerContext, issue_id: int) -> None:
        """Close a confirmed issue with today's date. Hosts only."""
        if not caller.is_host:
            raise PermissionDenied(caller.username, "close issues")

        closed_on = self.today()
        with session_scope(self.db):
            if not self.store.mark_closed(issue_id, closed_on):
                db_issue = self.store.get(issue_id)
                if db_issue is None:
                    raise IssueNotFound(issue_id)
                if db_issue.closed_date is not None:
                    raise AlreadyClosed(issue_id)
                raise NotConfirmed(issue_id)

        self._invalidate_all_listings()
        logger.info(
            "issue_closed",
            issue_id=issue_id,
            host=caller.username,
            closed_date=closed_on.isoformat(),
        )

    def _invalidate_all_listings(self) -> None:
        # Bucket membership changed; any cached listing may include the issue.
        self.cache.evict(GLOBAL_KEY)
        self.cache.evict_prefix(RESIDENT_PREFIX)

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def list_for_resident(self, username: str) -> List[Issue]:
        """One resident's issues in bucket order."""
        return list(
            self.cache.get_or_compute(
                resident_key(username), lambda: self._ordered(username)
            )
        )

    def list_all(self) -> List[Issue]:
        """Every issue in bucket order."""
        return list(self.cache.get_or_compute(GLOBAL_KEY, self._ordered))

    def list_issues(self, caller: CallerContext) -> List[Issue]:
        """Residents see their own issues, every other role sees all."""
        if caller.is_resident:
            return self.list_for_resident(caller.username)
        return self.list_all()

    def get_issue(self, caller: CallerContext, issue_id: int) -> Issue:
        db_issue = self.store.get(issue_id)
        if db_issue is None:
            raise IssueNotFound(issue_id)
        # Residents cannot probe for other residents' issues.
        if caller.is_resident and db_issue.resident_username != caller.username:
            raise IssueNotFound(issue_id)
        return Issue.from_model(db_issue)

    def _ordered(self, resident_username: Optional[str] = None) -> List[Issue]:
        buckets = (
            self.store.list_not_confirmed(resident_username),
            self.store.list_confirmed_not_closed(resident_username),
            self.store.list_closed(resident_username),
        )
        return [Issue.from_model(model) for bucket in buckets for model in bucket]
