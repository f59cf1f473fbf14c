"""FastAPI dependencies for viewer identity, DB sessions and the response cache."""

from enum import StrEnum
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from citywatch.core.cache import ResponseCache
from citywatch.core.database import get_session


class ViewerRole(StrEnum):
    CITIZEN = "citizen"
    AUTHORITY = "authority"
    ADMIN = "admin"


class ViewerContext:
    """Identity carried through a request.

    The gateway in front of the API authenticates the caller and forwards
    who they are in ``X-User-*`` / ``X-City-Id`` headers.
    """

    __slots__ = ("user_id", "role", "city_id")

    def __init__(self, user_id: str, role: ViewerRole, city_id: str | None = None) -> None:
        self.user_id = user_id
        self.role = role
        self.city_id = city_id

    @property
    def sees_all_cities(self) -> bool:
        return self.role in (ViewerRole.ADMIN, ViewerRole.AUTHORITY)


async def get_viewer(
    x_user_id: Annotated[str, Header(min_length=1, max_length=100)],
    x_user_role: Annotated[str, Header()] = ViewerRole.CITIZEN,
    x_city_id: Annotated[str | None, Header(max_length=100)] = None,
) -> ViewerContext:
    try:
        role = ViewerRole(x_user_role.strip().lower())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown role {x_user_role!r}",
        ) from exc
    return ViewerContext(user_id=x_user_id, role=role, city_id=x_city_id or None)


def get_response_cache(request: Request) -> ResponseCache:
    """The process-wide cache built in the app lifespan."""
    cache = getattr(request.app.state, "cache", None)
    if cache is None:
        raise RuntimeError("Response cache is not initialised; is the lifespan running?")
    return cache


def require_role(viewer: ViewerContext, *roles: ViewerRole, detail: str) -> None:
    """Raise 403 unless the viewer holds one of ``roles``."""
    if viewer.role not in roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


# Typed shorthand for use in route signatures
Viewer = Annotated[ViewerContext, Depends(get_viewer)]
Session = Annotated[AsyncSession, Depends(get_session)]
Cache = Annotated[ResponseCache, Depends(get_response_cache)]
