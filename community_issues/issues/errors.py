"""
Issue lifecycle errors.

Every error carries a stable ``code`` and the HTTP status it maps to, so the
routes can translate them without a lookup table.
"""

from typing import Any, Dict, List, Optional


class IssueError(Exception):
    """Base class for issue lifecycle errors."""

    code = "ISSUE_ERROR"
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message}


class IssueNotFound(IssueError):
    """Raised when no issue exists for an identifier."""

    code = "ISSUE_NOT_FOUND"
    status_code = 404

    def __init__(self, issue_id: int):
        self.issue_id = issue_id
        super().__init__(f"Issue {issue_id} doesn't exist")

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "issue_id": self.issue_id}


class IssueStateError(IssueError):
    """A lifecycle transition was attempted from the wrong state."""

    status_code = 409

    def __init__(self, issue_id: int, message: str):
        self.issue_id = issue_id
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "issue_id": self.issue_id}


class AlreadyConfirmed(IssueStateError):
    code = "ALREADY_CONFIRMED"

    def __init__(self, issue_id: int):
        super().__init__(issue_id, f"Issue {issue_id} is already confirmed")


class AlreadyClosed(IssueStateError):
    code = "ALREADY_CLOSED"

    def __init__(self, issue_id: int):
        super().__init__(issue_id, f"Issue {issue_id} is already closed")


class NotConfirmed(IssueStateError):
    code = "NOT_CONFIRMED"

    def __init__(self, issue_id: int):
        super().__init__(
            issue_id, f"Issue {issue_id} cannot be closed before it is confirmed"
        )


class InvalidIssueContent(IssueError):
    code = "INVALID_CONTENT"
    status_code = 422


class PermissionDenied(IssueError):
    """The caller's role does not allow the operation."""

    code = "PERMISSION_DENIED"
    status_code = 403

    def __init__(self, username: str, action: str):
        self.username = username
        self.action = action
        super().__init__(f"User '{username}' is not allowed to {action}")


class UploadFailure(IssueError):
    """One or more images of a submission could not be uploaded.

    The submission is rejected as a whole; ``failures`` maps image names to
    the reason each one failed.
    """

    code = "UPLOAD_FAILED"
    status_code = 502

    def __init__(self, failures: Dict[str, str], uploaded: Optional[List[str]] = None):
        self.failures = failures
        self.uploaded = uploaded or []
        names = ", ".join(sorted(failures))
        super().__init__(f"Failed to upload {len(failures)} image(s): {names}")

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "failures": self.failures}
