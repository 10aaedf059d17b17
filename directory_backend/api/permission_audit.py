"""Machine endpoint for scheduled permission audits, guarded by a static bearer token."""

import hmac
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from directory_backend.core.config import settings
from directory_backend.db.session import get_db
from directory_backend.schemas.schemas import PermissionAuditResponse
from directory_backend.services.permission_audit_service import PermissionAuditService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["permission-audit"])


def _error(status_code: int, message: str) -> JSONResponse:
    body = PermissionAuditResponse(ok=False, error=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


@router.get("/permission-audit", response_model=PermissionAuditResponse)
async def permission_audit(request: Request, db: Session = Depends(get_db)):
    """Return the permission drift report for CI / monitoring callers."""
    configured_token = settings.ADMIN_AUDIT_TOKEN
    if not configured_token:
        return _error(503, "ADMIN_AUDIT_TOKEN is not configured.")

    auth_header = request.headers.get("authorization", "")
    if not auth_header.startswith("Bearer "):
        return _error(401, "Missing Bearer token.")

    token = auth_header[len("Bearer "):].strip()
    if not hmac.compare_digest(token.encode(), configured_token.encode()):
        logger.warning("Permission audit request with invalid token")
        return _error(401, "Invalid token.")

    report = PermissionAuditService(db).generate_report()
    return PermissionAuditResponse(ok=True, report=report)
