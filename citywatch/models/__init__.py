"""Import all models so SQLModel.metadata picks them up."""

from citywatch.models.report import (
    STATUS_TRANSITIONS,
    Pagination,
    Report,
    ReportCategory,
    ReportCreate,
    ReportPage,
    ReportRead,
    ReportStatus,
    ReportStatusUpdate,
)

__all__ = [
    "STATUS_TRANSITIONS",
    "Pagination",
    "Report",
    "ReportCategory",
    "ReportCreate",
    "ReportPage",
    "ReportRead",
    "ReportStatus",
    "ReportStatusUpdate",
]
