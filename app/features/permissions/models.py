"""
Role, per-module role permission, resource grant and audit log models.

A role holds exactly one (capability, scope) pair per module, stored as one
row per module in role_module_permissions. Users never carry permissions of
their own; the only per-user authorization data is the resource grant, which
lists the ids visible under a `partial` scope.
"""
from typing import Any, Dict
from sqlalchemy import String, ForeignKey, JSON, Text, Boolean, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid
from app.features.permissions.catalog import AccessScope, CapabilityLevel, Module
from app.features.permissions.engine import GrantSnapshot, ModulePermission, RoleSnapshot


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Role(Base, TimestampMixin):
    """
    Role shared by zero or more users.

    Examples: super_admin, portfolio_manager, property_viewer
    """
    __tablename__ = "roles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # External roles belong to owners/clients rather than staff
    is_external: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    permissions: Mapped[list["RoleModulePermission"]] = relationship(
        "RoleModulePermission",
        back_populates="role",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def permission_map(self) -> dict[Module, ModulePermission]:
        return {
            Module(row.module): ModulePermission(CapabilityLevel(row.capability), AccessScope(row.scope))
            for row in self.permissions
        }

    def set_permissions(self, permissions: dict[Module, ModulePermission]) -> None:
        """Replace the per-module pairs; modules not given keep their row."""
        existing = {Module(row.module): row for row in self.permissions}
        for module, permission in permissions.items():
            row = existing.get(module)
            if row is None:
                self.permissions.append(RoleModulePermission(
                    module=module.value,
                    capability=permission.capability.value,
                    scope=permission.scope.value,
                ))
            else:
                row.capability = permission.capability.value
                row.scope = permission.scope.value

    def to_snapshot(self) -> RoleSnapshot:
        return RoleSnapshot(
            id=self.id,
            name=self.name,
            permissions=self.permission_map(),
            is_external=self.is_external,
        )

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r}, external={self.is_external})>"


class RoleModulePermission(Base):
    """One module's (capability, scope) pair on a role."""
    __tablename__ = "role_module_permissions"

    role_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True
    )
    module: Mapped[str] = mapped_column(
        SAEnum(*_enum_values(Module), name="module", native_enum=False), primary_key=True
    )
    capability: Mapped[str] = mapped_column(
        SAEnum(*_enum_values(CapabilityLevel), name="capability_level", native_enum=False), nullable=False
    )
    scope: Mapped[str] = mapped_column(
        SAEnum(*_enum_values(AccessScope), name="access_scope", native_enum=False), nullable=False
    )

    role: Mapped["Role"] = relationship("Role", back_populates="permissions")

    def __repr__(self) -> str:
        return f"<RoleModulePermission(role_id={self.role_id}, module={self.module}, {self.capability}/{self.scope})>"


class ResourceGrant(Base, TimestampMixin):
    """
    Explicit resource ids a user may touch under a `partial` scope.

    At most one per user; created on first assignment, replaced in place after
    that, removed together with the user.
    resource_ids example: {"portfolio": ["01H..."], "property": ["01J...", "01K..."]}
    """
    __tablename__ = "resource_grants"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    resource_ids: Mapped[Dict[str, list[str]]] = mapped_column(JSON, nullable=False, default=dict)

    def to_snapshot(self) -> GrantSnapshot:
        return GrantSnapshot({
            Module(module): frozenset(ids)
            for module, ids in (self.resource_ids or {}).items()
        })

    def __repr__(self) -> str:
        return f"<ResourceGrant(id={self.id}, user_id={self.user_id})>"


class AuditLog(Base, TimestampMixin):
    """
    Audit log for tracking role and grant administration.

    Tracks who did what, when, and from where.
    """
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Actor
    user_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Action details
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)
    details: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, user_id={self.user_id}, action={self.action}, resource={self.resource_type})>"
