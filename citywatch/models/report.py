"""Report model — a civic issue filed by a citizen in their city."""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import Text
from sqlmodel import Column, Field, SQLModel

from citywatch.models.base import SoftDeleteMixin, TimestampMixin, new_uuid


class ReportCategory(StrEnum):
    GARBAGE = "GARBAGE"
    ROAD = "ROAD"
    WATER = "WATER"
    POWER = "POWER"
    OTHER = "OTHER"


class ReportStatus(StrEnum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


# Moves an authority may make. CLOSED is reached only by the author.
STATUS_TRANSITIONS: dict[ReportStatus, frozenset[ReportStatus]] = {
    ReportStatus.OPEN: frozenset({ReportStatus.IN_PROGRESS}),
    ReportStatus.IN_PROGRESS: frozenset({ReportStatus.RESOLVED}),
    ReportStatus.RESOLVED: frozenset(),
    ReportStatus.CLOSED: frozenset(),
}


class Report(TimestampMixin, SoftDeleteMixin, SQLModel, table=True):
    __tablename__ = "reports"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    city_id: str = Field(max_length=100, nullable=False, index=True)
    author_id: str = Field(max_length=100, nullable=False, index=True)

    title: str = Field(max_length=200, nullable=False)
    description: str = Field(sa_column=Column(Text, nullable=False))
    category: ReportCategory = Field(default=ReportCategory.OTHER, index=True)
    status: ReportStatus = Field(default=ReportStatus.OPEN, index=True)

    latitude: float = Field(nullable=False)
    longitude: float = Field(nullable=False)


# ── Pydantic schemas ─────────────────────────────────────────

class ReportCreate(SQLModel):
    title: str = Field(min_length=5, max_length=200)
    description: str = Field(min_length=10, max_length=5000)
    category: ReportCategory = ReportCategory.OTHER
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class ReportStatusUpdate(SQLModel):
    status: ReportStatus


class ReportRead(SQLModel):
    id: uuid.UUID
    city_id: str
    author_id: str
    title: str
    description: str
    category: ReportCategory
    status: ReportStatus
    latitude: float
    longitude: float
    created_at: datetime
    updated_at: datetime


class Pagination(SQLModel):
    page: int
    limit: int
    total: int
    pages: int


class ReportPage(SQLModel):
    reports: list[ReportRead]
    pagination: Pagination
    category_stats: dict[str, int]
