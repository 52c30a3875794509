"""
SQLAlchemy models for the Community Issue Tracker.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import Base


class AuthorityModel(Base):
    """Role granted to a community user."""

    __tablename__ = "authorities"

    username = Column(String(64), primary_key=True)
    authority = Column(
        Enum("ROLE_RESIDENT", "ROLE_HOST", name="authority_role"),
        nullable=False,
        index=True,
    )


class IssueModel(Base):
    """SQLAlchemy model for reported maintenance issues."""

    __tablename__ = "issues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    content = Column(Text, nullable=False)
    report_date = Column(Date, nullable=False)

    # Lifecycle
    confirmed = Column(Boolean, nullable=False, default=False)
    closed_date = Column(Date, nullable=True)

    # Reporter (identity is owned by the access layer)
    resident_username = Column(String(64), nullable=False, index=True)

    images = relationship(
        "IssueImageModel",
        back_populates="issue",
        cascade="all, delete-orphan",
        order_by="IssueImageModel.id",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(
            "closed_date IS NULL OR confirmed", name="ck_issues_closed_requires_confirmed"
        ),
        Index("ix_issues_bucket_report_date", "confirmed", "closed_date", "report_date"),
        Index("ix_issues_resident_bucket", "resident_username", "confirmed", "closed_date"),
    )


class IssueImageModel(Base):
    """Image attached to an issue at submission time."""

    __tablename__ = "issue_images"

    id = Column(Integer, primary_key=True, autoincrement=True)
    url = Column(String(1024), nullable=False)
    issue_id = Column(
        Integer, ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True
    )

    issue = relationship("IssueModel", back_populates="images")
