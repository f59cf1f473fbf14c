"""V1 API router aggregation."""

from fastapi import APIRouter

from citywatch.api.v1.reports import router as reports_router
from citywatch.api.v1.system import router as system_router

v1_router = APIRouter(prefix="/v1")
v1_router.include_router(reports_router)
v1_router.include_router(system_router)
