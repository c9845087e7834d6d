"""
Pydantic schemas for role, grant and permission endpoints.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.features.permissions.catalog import AccessScope, Action, CapabilityLevel, Module, grantable_modules
from app.features.permissions.engine import ModulePermission


# ============================================================================
# Role Schemas
# ============================================================================

class ModulePermissionSchema(BaseModel):
    """One module's (capability, scope) pair."""
    capability: CapabilityLevel = Field(..., description="view, update or all")
    scope: AccessScope = Field(..., description="none, partial or all")

    def to_value(self) -> ModulePermission:
        return ModulePermission(self.capability, self.scope)


NO_ACCESS = ModulePermissionSchema(capability=CapabilityLevel.VIEW, scope=AccessScope.NONE)


def _validate_role_name(v: str) -> str:
    if not v.replace('_', '').replace('-', '').replace(' ', '').isalnum():
        raise ValueError('Role name must contain only alphanumeric characters, spaces, underscores, and hyphens')
    return v


class RoleBase(BaseModel):
    """Base role schema."""
    name: str = Field(..., min_length=1, max_length=50, description="Unique role name")
    description: Optional[str] = Field(None, max_length=1000, description="Role description")
    is_external: bool = Field(False, description="Role for external users (owners, clients)")


class RoleCreate(RoleBase):
    """
    Schema for creating a role.

    Modules left out get (view, none) so the role always carries a pair for
    every module.
    """
    permissions: Dict[Module, ModulePermissionSchema] = Field(default_factory=dict, validate_default=True)

    @field_validator('name')
    @classmethod
    def name_format(cls, v: str) -> str:
        return _validate_role_name(v)

    @field_validator('permissions')
    @classmethod
    def fill_missing_modules(cls, v: Dict[Module, ModulePermissionSchema]) -> Dict[Module, ModulePermissionSchema]:
        return {module: v.get(module, NO_ACCESS) for module in Module}

    def permission_values(self) -> dict[Module, ModulePermission]:
        return {module: schema.to_value() for module, schema in self.permissions.items()}


class RoleUpdate(BaseModel):
    """Schema for updating a role; only the given modules change."""
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=1000)
    is_external: Optional[bool] = None
    permissions: Optional[Dict[Module, ModulePermissionSchema]] = None

    @field_validator('name')
    @classmethod
    def name_format(cls, v: Optional[str]) -> str:
        if v is None:
            raise ValueError("may not be null")
        return _validate_role_name(v)

    @field_validator('is_external')
    @classmethod
    def not_null(cls, v: Optional[bool]) -> bool:
        if v is None:
            raise ValueError("may not be null")
        return v

    def permission_values(self) -> dict[Module, ModulePermission]:
        return {module: schema.to_value() for module, schema in (self.permissions or {}).items()}


class RoleResponse(RoleBase):
    """Schema for role response."""
    id: str
    permissions: Dict[Module, ModulePermissionSchema]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_role(cls, role) -> "RoleResponse":
        return cls(
            id=role.id,
            name=role.name,
            description=role.description,
            is_external=role.is_external,
            permissions={
                module: ModulePermissionSchema(capability=value.capability, scope=value.scope)
                for module, value in role.permission_map().items()
            },
            created_at=role.created_at,
            updated_at=role.updated_at,
        )


# ============================================================================
# Grant Schemas
# ============================================================================

class GrantUpdate(BaseModel):
    """Replace a user's resource grant. Only partial-capable modules are accepted."""
    resource_ids: Dict[Module, List[str]] = Field(default_factory=dict)

    @field_validator('resource_ids')
    @classmethod
    def partial_capable_only(cls, v: Dict[Module, List[str]]) -> Dict[Module, List[str]]:
        allowed = grantable_modules()
        rejected = sorted(module.value for module in v if module not in allowed)
        if rejected:
            raise ValueError(f"Modules without partial scope cannot be granted: {', '.join(rejected)}")
        return {module: sorted(set(ids)) for module, ids in v.items()}


class GrantResponse(BaseModel):
    user_id: str
    resource_ids: Dict[str, List[str]] = Field(default_factory=dict)


# ============================================================================
# Permission Check Schemas
# ============================================================================

class PermissionCheckRequest(BaseModel):
    """Ask whether the caller may perform an action."""
    module: Module
    action: Action
    resource_id: Optional[str] = Field(None, description="Target resource for resource-scoped checks")


class PermissionCheckResponse(BaseModel):
    allowed: bool
    reason: Optional[str] = None


class ModuleAccess(BaseModel):
    """Effective permission of the caller on one module."""
    capability: Optional[CapabilityLevel] = None
    scope: Optional[AccessScope] = None
    actions: List[Action] = []
    description: str
    accessible_ids: Literal["all"] | List[str]


class EffectivePermissionsResponse(BaseModel):
    user_id: str
    role_id: str
    role_name: str
    is_external: bool
    is_super_admin: bool
    modules: Dict[Module, ModuleAccess]


# ============================================================================
# Audit Log Schemas
# ============================================================================

class AuditLogResponse(BaseModel):
    """Schema for audit log response."""
    id: str
    user_id: Optional[str]
    action: str
    resource_type: str
    resource_id: Optional[str]
    details: Optional[Dict[str, Any]]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
