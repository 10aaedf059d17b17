"""Pydantic schemas for API request/response serialization."""

import json
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any, Tuple
from datetime import datetime


# ---- Session ----
class SessionUser(BaseModel):
    """Principal yielded by the external session provider."""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    external_roles: Tuple[str, ...] = ()

class RequestMetadata(BaseModel):
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

class AdminContext(BaseModel):
    user: SessionUser
    metadata: RequestMetadata

class AdminSessionOut(BaseModel):
    authenticated: bool
    is_admin: bool = False
    user: Optional[SessionUser] = None


# ---- Roles ----
class RoleAssignRequest(BaseModel):
    role_name: str = Field(..., min_length=1, max_length=50)

class UserRolesOut(BaseModel):
    user_id: str
    roles: List[str]
    permissions: List[str]


# ---- Permission audit ----
class UserPermissionDrift(BaseModel):
    user_id: str
    email: Optional[str] = None
    roles: List[str]
    expected_permissions: List[str]
    actual_permissions: List[str]
    missing_permissions: List[str]
    extra_permissions: List[str]

class RolePermissionDrift(BaseModel):
    role: str
    expected_permissions: List[str]
    actual_permissions: List[str]
    missing_permissions: List[str]
    extra_permissions: List[str]

class PermissionAuditSummary(BaseModel):
    users_scanned: int
    users_with_drift: int
    roles_scanned: int
    roles_with_drift: int
    unknown_roles: List[str]
    unknown_permissions: List[str] = []


class PermissionAuditReport(BaseModel):
    generated_at: datetime
    summary: PermissionAuditSummary
    user_drift: List[UserPermissionDrift]
    role_drift: List[RolePermissionDrift]

    @property
    def has_drift(self) -> bool:
        return self.summary.users_with_drift > 0 or self.summary.roles_with_drift > 0

class PermissionAuditResponse(BaseModel):
    ok: bool = True
    report: Optional[PermissionAuditReport] = None
    error: Optional[str] = None


# ---- Audit ----
class AuditLogOut(BaseModel):
    id: int
    user_id: Optional[str] = None
    target_user_id: Optional[str] = None
    action: str
    resource: str
    resource_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("details", mode="before")
    @classmethod
    def _decode_details(cls, value: Any) -> Any:
        if isinstance(value, str):
            return json.loads(value)
        return value

    @field_validator("action", mode="before")
    @classmethod
    def _action_value(cls, value: Any) -> Any:
        return value.value if isinstance(value, Enum) else value

class AuditLogPage(BaseModel):
    logs: List[AuditLogOut]
    total: int
    page: int
    page_size: int


# ---- Generic ----
class MessageResponse(BaseModel):
    message: str
