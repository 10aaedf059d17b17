"""CORS, request-id, and access-log middleware."""

import re
import uuid
import time
import logging
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from directory_backend.core.config import settings
from directory_backend.services.admin_gate import get_client_ip

logger = logging.getLogger("directory_backend.access")

_REQUEST_ID_RE = re.compile(r"[A-Za-z0-9._-]{1,64}")


def resolve_request_id(incoming: Optional[str] = None) -> str:
    """Reuse a well-formed upstream request id, otherwise mint a new one."""
    if incoming and _REQUEST_ID_RE.fullmatch(incoming):
        return incoming
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Propagate or assign a request ID and log every admin request."""

    async def dispatch(self, request: Request, call_next):
        request_id = resolve_request_id(request.headers.get("x-request-id"))
        request.state.request_id = request_id
        start_time = time.time()

        response: Response = await call_next(request)

        duration = round((time.time() - start_time) * 1000, 2)
        response.headers["X-Request-Id"] = request_id

        logger.info(
            "%s %s %s %sms ip=%s rid=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration,
            get_client_ip(request.headers) or (request.client.host if request.client else "-"),
            request_id,
        )
        return response


def setup_middleware(app: FastAPI) -> None:
    """Configure all middleware for the application."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    app.add_middleware(RequestIdMiddleware)
