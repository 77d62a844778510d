"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime


# ---- Auth ----
class LoginRequest(BaseModel):
    name: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

class LoginAsRequest(BaseModel):
    user_id: int

class RoleGrantOut(BaseModel):
    id: int
    name: str
    permissions: List[str] = []

class SessionUser(BaseModel):
    id: int
    name: str

class SessionOut(BaseModel):
    user: SessionUser
    role_ids: List[int] = []
    roles: List[RoleGrantOut] = []
    primary_role: Optional[str] = None
    permissions: List[str] = []
    impersonator_id: Optional[int] = None

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    session: SessionOut


# ---- User ----
class RoleBrief(BaseModel):
    id: int
    name: str

class UserOut(BaseModel):
    id: int
    name: str
    is_active: bool = True
    roles: List[RoleBrief] = []
    primary_role: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=6)
    role_ids: List[int] = []

class UserRolesUpdate(BaseModel):
    role_ids: List[int]


# ---- Role ----
class RoleOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    permissions: List[str] = []
    is_admin: bool = False
    created_at: Optional[datetime] = None

class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    permissions: List[str] = []

class RoleUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    permissions: List[str]


# ---- Permission ----
class PermissionOut(BaseModel):
    id: int
    name: str
    parent_id: Optional[int] = None

    class Config:
        from_attributes = True

class PermissionTreeOut(BaseModel):
    id: int
    name: str
    parent_id: Optional[int] = None
    children: List["PermissionTreeOut"] = []

    class Config:
        from_attributes = True

class PermissionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    parent_id: Optional[int] = None

class PermissionMove(BaseModel):
    parent_id: Optional[int] = None


# ---- Menu ----
class MenuNodeOut(BaseModel):
    id: str
    label: str
    path: Optional[str] = None
    required_permission: Optional[str] = None
    children: List["MenuNodeOut"] = []


# ---- Audit ----
class AccessEventOut(BaseModel):
    id: int
    occurred_at: Optional[datetime] = None
    event: str
    actor_id: Optional[int] = None
    actor_name: Optional[str] = None
    impersonator_id: Optional[int] = None
    target_type: str
    target_id: Optional[int] = None
    target_name: Optional[str] = None
    granted: List[str] = []
    revoked: List[str] = []


class AccessHistoryOut(BaseModel):
    events: List[AccessEventOut]
    total: int
    page: int
    page_size: int


# ---- Generic ----
class MessageResponse(BaseModel):
    message: str
    detail: Optional[Dict[str, Any]] = None


PermissionTreeOut.model_rebuild()
MenuNodeOut.model_rebuild()
