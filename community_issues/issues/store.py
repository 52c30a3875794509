"""
Issue persistence.

``IssueStore`` never commits; callers wrap it in ``session_scope`` so that a
whole unit of work commits or rolls back together.
"""

from datetime import date
from typing import List, Optional, Sequence

from sqlalchemy import desc
from sqlalchemy.orm import Query, Session

from ..db.models import IssueImageModel, IssueModel


class IssueStore:
    """Queries and targeted updates for issues."""

    def __init__(self, db: Session):
        self.db = db

    def add(
        self,
        content: str,
        report_date: date,
        resident_username: str,
        image_urls: Sequence[str] = (),
    ) -> IssueModel:
        """Stage a new issue with its images and assign its id."""
        db_issue = IssueModel(
            content=content,
            report_date=report_date,
            confirmed=False,
            closed_date=None,
            resident_username=resident_username,
            images=[IssueImageModel(url=url) for url in image_urls],
        )
        self.db.add(db_issue)
        self.db.flush()
        return db_issue

    def get(self, issue_id: int) -> Optional[IssueModel]:
        """Get an issue by ID, refreshing any copy already in the session."""
        return (
            self.db.query(IssueModel)
            .filter(IssueModel.id == issue_id)
            .populate_existing()
            .first()
        )

    def _scoped(self, resident_username: Optional[str]) -> Query:
        query = self.db.query(IssueModel)
        if resident_username is not None:
            query = query.filter(IssueModel.resident_username == resident_username)
        return query

    def list_not_confirmed(self, resident_username: Optional[str] = None) -> List[IssueModel]:
        """Unconfirmed issues, oldest report first."""
        return (
            self._scoped(resident_username)
            .filter(IssueModel.confirmed.is_(False))
            .order_by(IssueModel.report_date, IssueModel.id)
            .all()
        )

    def list_confirmed_not_closed(
        self, resident_username: Optional[str] = None
    ) -> List[IssueModel]:
        """Confirmed, still open issues, oldest report first."""
        return (
            self._scoped(resident_username)
            .filter(IssueModel.confirmed.is_(True))
            .filter(IssueModel.closed_date.is_(None))
            .order_by(IssueModel.report_date, IssueModel.id)
            .all()
        )

    def list_closed(self, resident_username: Optional[str] = None) -> List[IssueModel]:
        """Closed issues, most recently closed first."""
        return (
            self._scoped(resident_username)
            .filter(IssueModel.closed_date.isnot(None))
            .order_by(desc(IssueModel.closed_date), IssueModel.id)
            .all()
        )

    def mark_confirmed(self, issue_id: int) -> bool:
        """Confirm an unconfirmed issue.

        Returns False when no row matched, i.e. the issue is missing or was
        already confirmed.
        """
        updated = (
            self.db.query(IssueModel)
            .filter(IssueModel.id == issue_id)
            .filter(IssueModel.confirmed.is_(False))
            .update({IssueModel.confirmed: True}, synchronize_session=False)
        )
        return updated == 1

    def mark_closed(self, issue_id: int, closed_date: date) -> bool:
        """Close a confirmed, open issue.

        Returns False when no row matched: missing, already closed or not
        yet confirmed.
        """
        updated = (
            self.db.query(IssueModel)
            .filter(IssueModel.id == issue_id)
            .filter(IssueModel.closed_date.is_(None))
            .filter(IssueModel.confirmed.is_(True))
            .update({IssueModel.closed_date: closed_date}, synchronize_session=False)
        )
        return updated == 1
