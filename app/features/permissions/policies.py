"""
Role-level policies built on the catalog ordering.

Used by role and user administration: super admin detection, the role
assignment hierarchy, and configuration warnings for new or edited roles.
"""
from typing import Mapping

from app.features.permissions.catalog import CATALOG, AccessScope, CapabilityLevel, Module, ModulePolicy
from app.features.permissions.engine import ModulePermission, RoleSnapshot


def is_super_admin(role: RoleSnapshot) -> bool:
    """Every module at (all, all)."""
    return all(
        (permission := role.permission_for(module)) is not None
        and permission.capability is CapabilityLevel.ALL
        and permission.scope is AccessScope.ALL
        for module in Module
    )


def permission_at_least(candidate: ModulePermission | None, target: ModulePermission | None) -> bool:
    """Both capability and scope of `candidate` are >= those of `target`."""
    if target is None:
        return True
    if candidate is None:
        return False
    return (
        candidate.capability.rank >= target.capability.rank
        and candidate.scope.rank >= target.scope.rank
    )


def can_assign_role(assigner: RoleSnapshot, target: RoleSnapshot) -> bool:
    """
    Whether a user holding `assigner` may give `target` to someone.

    External roles can only hand out external roles, and no module of the
    target may exceed the assigner's own pair.
    """
    if assigner.is_external and not target.is_external:
        return False
    return all(
        permission_at_least(assigner.permission_for(module), target.permission_for(module))
        for module in Module
    )


def validate_role_configuration(
    permissions: Mapping[Module, ModulePermission],
    catalog: Mapping[Module, ModulePolicy] = CATALOG,
) -> list[str]:
    """Warnings for suspicious role configurations. Never blocks a write."""
    warnings = []
    for module in Module:
        permission = permissions.get(module)
        if permission is None:
            warnings.append(f"{module.value}: no permission configured, all access denied")
            continue
        if permission.scope is AccessScope.NONE and permission.capability is not CapabilityLevel.VIEW:
            warnings.append(
                f"{module.value}: capability '{permission.capability.value}' has no effect with access scope 'none'"
            )
        if permission.scope is AccessScope.PARTIAL and not catalog[module].supports_partial:
            warnings.append(f"{module.value}: 'partial' scope is not supported and behaves as 'none'")
    return warnings
