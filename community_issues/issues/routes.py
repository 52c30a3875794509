"""
Issue API routes.

    GET  /issues                     caller's listing (residents: own, hosts: all)
    GET  /issues/{issue_id}          one issue
    POST /issues/create              submit (multipart: content, images)
    POST /issues/confirm/{issue_id}  host confirms
    POST /issues/close/{issue_id}    host closes
    GET  /issues/cache/stats         listing cache counters (hosts)
"""

from datetime import date
from typing import Callable, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status
from sqlalchemy.orm import Session

from ..auth import get_caller
from ..config import get_settings
from ..db.base import get_db
from .cache import ListingCache, get_listing_cache
from .errors import IssueError, PermissionDenied
from .lifecycle import IssueLifecycleEngine
from .schemas import CallerContext, Issue, RawImage
from .uploads import ImageUploader, get_image_uploader

router = APIRouter(prefix="/issues", tags=["issues"])


def get_clock() -> Callable[[], date]:
    """Source of 'today' for report and close dates."""
    return date.today


def get_lifecycle_engine(
    db: Session = Depends(get_db),
    cache: ListingCache = Depends(get_listing_cache),
    uploader: ImageUploader = Depends(get_image_uploader),
    today: Callable[[], date] = Depends(get_clock),
) -> IssueLifecycleEngine:
    settings = get_settings()
    return IssueLifecycleEngine(
        db,
        cache,
        uploader,
        upload_timeout=settings.upload_timeout_seconds,
        max_content_length=settings.max_content_length,
        today=today,
    )


def _http_error(error: IssueError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.to_dict())


@router.get("", response_model=List[Issue])
def list_issues(
    caller: CallerContext = Depends(get_caller),
    engine: IssueLifecycleEngine = Depends(get_lifecycle_engine),
) -> List[Issue]:
    """List issues in bucket order.

    Unconfirmed issues first and confirmed open issues second, both oldest
    report first; closed issues last, most recently closed first.
    """
    return engine.list_issues(caller)


@router.get("/cache/stats")
def cache_stats(
    caller: CallerContext = Depends(get_caller),
    cache: ListingCache = Depends(get_listing_cache),
) -> Dict[str, int]:
    """Listing cache counters."""
    if not caller.is_host:
        raise _http_error(PermissionDenied(caller.username, "view cache statistics"))
    return cache.stats()


@router.get("/{issue_id}", response_model=Issue)
def get_issue(
    issue_id: int,
    caller: CallerContext = Depends(get_caller),
    engine: IssueLifecycleEngine = Depends(get_lifecycle_engine),
) -> Issue:
    """Get one issue. Residents only see their own."""
    try:
        return engine.get_issue(caller, issue_id)
    except IssueError as e:
        raise _http_error(e) from e


@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_issue(
    content: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    caller: CallerContext = Depends(get_caller),
    engine: IssueLifecycleEngine = Depends(get_lifecycle_engine),
) -> Response:
    """Submit an issue with zero or more images."""
    raw_images = []
    for upload in images or []:
        raw_images.append(
            RawImage(
                filename=upload.filename or "",
                content=await upload.read(),
                content_type=upload.content_type,
            )
        )

    try:
        await engine.submit(caller, content, raw_images)
    except IssueError as e:
        raise _http_error(e) from e

    return Response(status_code=status.HTTP_201_CREATED)


@router.post("/confirm/{issue_id}")
def confirm_issue(
    issue_id: int,
    caller: CallerContext = Depends(get_caller),
    engine: IssueLifecycleEngine = Depends(get_lifecycle_engine),
) -> Response:
    """Confirm an issue."""
    try:
        engine.confirm(caller, issue_id)
    except IssueError as e:
        raise _http_error(e) from e
    return Response(status_code=status.HTTP_200_OK)


@router.post("/close/{issue_id}")
def close_issue(
    issue_id: int,
    caller: CallerContext = Depends(get_caller),
    engine: IssueLifecycleEngine = Depends(get_lifecycle_engine),
) -> Response:
    """Close a confirmed issue."""
    try:
        engine.close(caller, issue_id)
    except IssueError as e:
        raise _http_error(e) from e
    return Response(status_code=status.HTTP_200_OK)
