"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from ar_publisher.api.models import AccessCodeCreate, AccessCodeView
from ar_publisher.domain.access import AccessCode, parse_expiry

if TYPE_CHECKING:
    from ar_publisher.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.get("/codes", dependencies=[Depends(require_admin)])
async def list_codes(request: Request) -> dict[str, list[AccessCodeView]]:
    """Return all access codes."""
    container: AppContainer = request.app.state.container
    now = datetime.now(tz=UTC)
    return {
        "codes": [
            _to_view(access_code, now)
            for access_code in container.access_code_repository.list_codes()
        ]
    }


@router.post(
    "/codes",
    dependencies=[Depends(require_admin)],
    status_code=status.HTTP_201_CREATED,
)
async def create_code(payload: AccessCodeCreate, request: Request) -> AccessCodeView:
    """Issue an access code, replacing the expiry of an existing one."""
    container: AppContainer = request.app.state.container
    access_code = AccessCode(
        code=payload.code.strip(), expires_at=parse_expiry(payload.expires_at)
    )
    container.access_code_repository.put(access_code)
    return _to_view(access_code, datetime.now(tz=UTC))


@router.delete("/codes/{code}", dependencies=[Depends(require_admin)])
async def delete_code(code: str, request: Request) -> dict[str, str]:
    """Revoke an access code."""
    container: AppContainer = request.app.state.container
    if not container.access_code_repository.delete(code):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return {"status": "deleted"}


@router.get("/sessions", dependencies=[Depends(require_admin)])
async def list_sessions(request: Request) -> dict[str, object]:
    """Return staged sessions."""
    container: AppContainer = request.app.state.container
    return {"sessions": container.session_storage.list_sessions()}


@router.delete("/sessions/{session_id}", dependencies=[Depends(require_admin)])
async def delete_session(session_id: str, request: Request) -> dict[str, str]:
    """Delete a staged session; published copies are not touched."""
    container: AppContainer = request.app.state.container
    if not container.session_storage.delete_session(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return {"status": "deleted"}


def _to_view(access_code: AccessCode, now: datetime) -> AccessCodeView:
    return AccessCodeView(
        code=access_code.code,
        expires_at=access_code.expires_at,
        expired=access_code.expires_at < now,
    )
