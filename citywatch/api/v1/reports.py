"""Reports — city-scoped civic issues with a cached list view."""

import logging
import math
import re
import time
import uuid
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, Response, status
from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from citywatch.api.deps import Cache, Session, Viewer, ViewerContext, ViewerRole, require_role
from citywatch.core.cache import ResponseCache, build_key
from citywatch.core.config import get_settings
from citywatch.models.base import utcnow
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

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])

settings = get_settings()

CACHE_ROUTE = "reports"
CACHE_HEADER = "X-Cache"

_UNSAFE_CHARS = re.compile(r"[<>'\"&]")
_NON_SEARCH_CHARS = re.compile(r"[^\w\s\-.]")
MAX_QUERY_LENGTH = 100


def sanitize_query(q: str) -> str:
    """Reduce a free-text search to word characters, spaces, ``-`` and ``.``."""
    cleaned = _NON_SEARCH_CHARS.sub("", _UNSAFE_CHARS.sub("", q.strip()))
    return cleaned[:MAX_QUERY_LENGTH]


_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _leading_int(raw: str | None) -> int:
    """Integer prefix of ``raw`` (``"5abc"`` -> 5), or 0 when there is none."""
    match = _LEADING_INT.match(raw or "")
    return int(match.group(1)) if match else 0


def _clamp_paging(page: str | None, limit: str | None) -> tuple[int, int]:
    # Zero, missing or non-numeric values fall back to the defaults.
    parsed_page = _leading_int(page) or 1
    parsed_limit = _leading_int(limit) or settings.reports_default_page_size
    return max(parsed_page, 1), min(max(parsed_limit, 1), settings.reports_max_page_size)


# ── Routes ───────────────────────────────────────────────────

@router.get("", response_model=ReportPage)
async def list_reports(
    viewer: Viewer,
    session: Session,
    cache: Cache,
    response: Response,
    category: ReportCategory | None = None,
    status_: Annotated[ReportStatus | None, Query(alias="status")] = None,
    raw_page: Annotated[str | None, Query(alias="page")] = None,
    raw_limit: Annotated[str | None, Query(alias="limit")] = None,
    q: str | None = None,
) -> ReportPage:
    """Newest reports first. Citizens only see their own city."""
    started = time.monotonic()
    page, limit = _clamp_paging(raw_page, raw_limit)
    search = sanitize_query(q) if q else ""

    # Searches are too varied to be worth caching.
    cache_key = None
    if not q:
        cache_key = build_key(CACHE_ROUTE, {
            "city_id": viewer.city_id,
            "role": viewer.role.value,
            "category": category.value if category else None,
            "status": status_.value if status_ else None,
            "page": page,
            "limit": limit,
        })
        cached = cache.get(cache_key)
        if cached is not None:
            response.headers[CACHE_HEADER] = "HIT"
            logger.info(
                "list_reports served from cache in %.1fms (page=%d, limit=%d)",
                (time.monotonic() - started) * 1000, page, limit,
            )
            return cached
    response.headers[CACHE_HEADER] = "MISS"

    if not viewer.city_id and not viewer.sees_all_cities:
        return ReportPage(
            reports=[],
            pagination=Pagination(page=page, limit=limit, total=0, pages=0),
            category_stats={},
        )

    filters = [Report.deleted == False]  # noqa: E712
    if viewer.role == ViewerRole.CITIZEN:
        filters.append(Report.city_id == viewer.city_id)
    if category:
        filters.append(Report.category == category)
    if status_:
        filters.append(Report.status == status_)
    if search:
        pattern = f"%{search}%"
        filters.append(
            or_(
                Report.title.ilike(pattern),  # type: ignore[attr-defined]
                Report.description.ilike(pattern),  # type: ignore[attr-defined]
            )
        )

    stmt = (
        select(Report)
        .where(*filters)
        .order_by(Report.created_at.desc())  # type: ignore[union-attr]
        .offset((page - 1) * limit)
        .limit(limit)
    )
    reports = (await session.execute(stmt)).scalars().all()

    total = (await session.execute(
        select(func.count()).select_from(Report).where(*filters)
    )).scalar_one()

    category_rows = (await session.execute(
        select(Report.category, func.count()).where(*filters).group_by(Report.category)
    )).all()

    result = ReportPage(
        reports=[ReportRead.model_validate(r) for r in reports],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit),
        ),
        category_stats={str(row[0]): row[1] for row in category_rows},
    )

    if cache_key is not None:
        cache.set(cache_key, result, settings.reports_cache_ttl_seconds)

    logger.info(
        "list_reports completed in %.1fms (page=%d, limit=%d, total=%d)",
        (time.monotonic() - started) * 1000, page, limit, total,
    )
    return result


@router.get("/{report_id}", response_model=ReportRead)
async def get_report(report_id: uuid.UUID, viewer: Viewer, session: Session) -> ReportRead:
    report = await _get_visible_or_404(report_id, viewer, session)
    return ReportRead.model_validate(report)


@router.post("", response_model=ReportRead, status_code=status.HTTP_201_CREATED)
async def create_report(
    body: ReportCreate,
    viewer: Viewer,
    session: Session,
    cache: Cache,
) -> ReportRead:
    require_role(viewer, ViewerRole.CITIZEN, detail="Only citizens can create reports")
    if not viewer.city_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You must be assigned to a city before creating reports",
        )

    report = Report(
        city_id=viewer.city_id,
        author_id=viewer.user_id,
        title=body.title.strip(),
        description=body.description.strip(),
        category=body.category,
        latitude=body.latitude,
        longitude=body.longitude,
    )
    session.add(report)
    await session.commit()
    await session.refresh(report)

    cache.invalidate_route(CACHE_ROUTE)
    logger.info("Report %s created in city %s", report.id, report.city_id)
    return ReportRead.model_validate(report)


@router.patch("/{report_id}/status", response_model=ReportRead)
async def update_report_status(
    report_id: uuid.UUID,
    body: ReportStatusUpdate,
    viewer: Viewer,
    session: Session,
    cache: Cache,
) -> ReportRead:
    """Move a report along OPEN → IN_PROGRESS → RESOLVED."""
    require_role(
        viewer, ViewerRole.AUTHORITY, ViewerRole.ADMIN,
        detail="Only authorities and admins can change report status",
    )
    report = await _get_or_404(report_id, session)
    # Authorities act only within their own city.
    if viewer.role == ViewerRole.AUTHORITY and report.city_id != viewer.city_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")

    if body.status not in STATUS_TRANSITIONS[report.status]:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Invalid status transition from {report.status} to {body.status}",
        )

    return await _save_status(report, body.status, session, cache)


@router.post("/{report_id}/close", response_model=ReportRead)
async def close_report(
    report_id: uuid.UUID,
    viewer: Viewer,
    session: Session,
    cache: Cache,
) -> ReportRead:
    """The author confirms a resolved report and closes it."""
    report = await _get_or_404(report_id, session)
    if report.author_id != viewer.user_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Report not found or you are not authorized to close it",
        )
    if report.status != ReportStatus.RESOLVED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Only resolved reports can be closed",
        )

    return await _save_status(report, ReportStatus.CLOSED, session, cache)


@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_report(
    report_id: uuid.UUID,
    viewer: Viewer,
    session: Session,
    cache: Cache,
) -> None:
    """Soft-delete a report (moderation)."""
    require_role(viewer, ViewerRole.ADMIN, detail="Only admins can delete reports")
    report = await _get_or_404(report_id, session)

    report.deleted = True
    report.updated_at = utcnow()
    session.add(report)
    await session.commit()

    cache.invalidate_route(CACHE_ROUTE)
    logger.info("Report %s deleted by admin %s", report_id, viewer.user_id)


# ── Helpers ──────────────────────────────────────────────────

async def _get_or_404(report_id: uuid.UUID, session: AsyncSession) -> Report:
    report = await session.get(Report, report_id)
    if report is None or report.deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")
    return report


async def _get_visible_or_404(
    report_id: uuid.UUID, viewer: ViewerContext, session: AsyncSession
) -> Report:
    report = await _get_or_404(report_id, session)
    if viewer.role != ViewerRole.ADMIN and report.city_id != viewer.city_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")
    return report


async def _save_status(
    report: Report, new_status: ReportStatus, session: AsyncSession, cache: ResponseCache
) -> ReportRead:
    previous = report.status
    report.status = new_status
    report.updated_at = utcnow()
    session.add(report)
    await session.commit()
    await session.refresh(report)

    cache.invalidate_route(CACHE_ROUTE)
    logger.info("Report %s moved from %s to %s", report.id, previous, new_status)
    return ReportRead.model_validate(report)
