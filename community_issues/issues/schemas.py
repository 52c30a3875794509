"""
Issue schemas and caller context.

``Issue`` is the read model handed to callers and held by the listing cache.
It is an immutable snapshot of an ``IssueModel`` row, never a live ORM object.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field, constr

if TYPE_CHECKING:
    from ..db.models import IssueModel


class Role(str, Enum):
    """Authorities a community user can hold."""

    RESIDENT = "ROLE_RESIDENT"
    HOST = "ROLE_HOST"


class IssueBucket(str, Enum):
    """Listing partitions, in display order."""

    NOT_CONFIRMED = "not_confirmed"
    CONFIRMED_NOT_CLOSED = "confirmed_not_closed"
    CLOSED = "closed"


def bucket_of(confirmed: bool, closed_date: Optional[date]) -> IssueBucket:
    """Return the listing bucket for an issue state."""
    if closed_date is not None:
        return IssueBucket.CLOSED
    if confirmed:
        return IssueBucket.CONFIRMED_NOT_CLOSED
    return IssueBucket.NOT_CONFIRMED


class CallerContext(BaseModel):
    """Who is calling, as resolved by the access layer."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    role: Role
    username: constr(min_length=1, max_length=64)

    @property
    def is_resident(self) -> bool:
        return self.role is Role.RESIDENT

    @property
    def is_host(self) -> bool:
        return self.role is Role.HOST


class Issue(BaseModel):
    """A reported community problem.

    Invariants:
    - ``closed_date`` set implies ``confirmed``.
    - ``report_date`` is assigned once, at creation.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: int
    content: str
    report_date: date
    confirmed: bool = False
    closed_date: Optional[date] = None
    reporter: str = Field(..., description="Username of the reporting resident")
    images: Tuple[str, ...] = Field(
        default=(), description="Media references, in upload order"
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def bucket(self) -> IssueBucket:
        return bucket_of(self.confirmed, self.closed_date)

    @classmethod
    def from_model(cls, model: "IssueModel") -> "Issue":
        return cls(
            id=model.id,
            content=model.content,
            report_date=model.report_date,
            confirmed=bool(model.confirmed),
            closed_date=model.closed_date,
            reporter=model.resident_username,
            images=tuple(image.url for image in model.images),
        )


@dataclass(frozen=True)
class RawImage:
    """An image payload as received from the caller, before upload."""

    filename: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.content
