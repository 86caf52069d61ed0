"""Read-only audit log endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from vin_audit.api.models import ScanRecordPayload

if TYPE_CHECKING:
    from vin_audit.containers import AppContainer

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


@router.get("/logs", dependencies=[Depends(require_admin)])
async def list_logs(
    request: Request, session_id: str | None = None
) -> dict[str, list[ScanRecordPayload]]:
    """Return the audit log, newest first."""
    container: AppContainer = request.app.state.container
    records = container.scan_log_repository.query_all(session_id)
    return {"logs": [ScanRecordPayload.from_record(record) for record in records]}
