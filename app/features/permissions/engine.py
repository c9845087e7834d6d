"""
Authorization engine.

Pure decision logic over snapshots: no I/O, no mutable state. The guard loads
a Principal (role + grants) per request and asks the engine two questions:

- capability: does the role's level for a module grant the action?
- access: which resource ids of the module may this user see?

Both must hold for a resource-scoped operation. List operations ask only the
capability question in the guard; the handler then calls
`resolve_accessible_ids` to filter its query (see listing.py).
"""
from dataclasses import dataclass, field
from typing import Mapping

from app.features.permissions.catalog import (
    CATALOG,
    AccessScope,
    Action,
    CapabilityLevel,
    Module,
    ModulePolicy,
    policy,
)


class _AllResources:
    """Sentinel: every resource in the module, system-wide."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ALL_RESOURCES"

    def __bool__(self) -> bool:
        return True


ALL_RESOURCES = _AllResources()

AccessibleIds = _AllResources | frozenset[str]


# ============================================================================
# Snapshots
# ============================================================================

@dataclass(frozen=True)
class ModulePermission:
    capability: CapabilityLevel
    scope: AccessScope


@dataclass(frozen=True)
class RoleSnapshot:
    """A role's per-module (capability, scope) pairs, detached from the ORM."""
    id: str
    name: str
    permissions: Mapping[Module, ModulePermission]
    is_external: bool = False

    def permission_for(self, module: Module) -> ModulePermission | None:
        return self.permissions.get(module)


@dataclass(frozen=True)
class GrantSnapshot:
    """Resource ids explicitly granted to one user, keyed by module."""
    resource_ids: Mapping[Module, frozenset[str]] = field(default_factory=dict)

    def ids_for(self, module: Module) -> frozenset[str]:
        return self.resource_ids.get(module, frozenset())


EMPTY_GRANT = GrantSnapshot()


@dataclass(frozen=True)
class Principal:
    """The user an authorization question is asked about."""
    user_id: str
    role: RoleSnapshot
    grants: GrantSnapshot = EMPTY_GRANT


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str | None = None


ALLOW = Decision(True)


# ============================================================================
# Engine
# ============================================================================

class AuthorizationEngine:
    """
    Stateless engine bound to a catalog.

    Construct once at startup and share; safe for concurrent use.
    """

    def __init__(self, catalog: Mapping[Module, ModulePolicy] = CATALOG):
        self._catalog = catalog

    def can_perform(self, role: RoleSnapshot, module: Module, action: Action) -> bool:
        """True if the role's capability level for `module` reaches the action's minimum."""
        module, action = Module(module), Action(action)
        required = policy(module, self._catalog).minimum_for(action)
        permission = role.permission_for(module)
        if permission is None:
            return False
        return permission.capability.rank >= required.rank

    def resolve_accessible_ids(self, principal: Principal, module: Module) -> AccessibleIds:
        """
        The accessible-id-set of `principal` for `module`.

        Returns ALL_RESOURCES for scope `all`, otherwise a fresh frozenset:
        empty for scope `none`, for a missing role entry, and for `partial` on
        a module without partial support; the granted ids for `partial` on a
        partial-capable module.
        """
        module = Module(module)
        entry = policy(module, self._catalog)
        permission = principal.role.permission_for(module)
        if permission is None or permission.scope is AccessScope.NONE:
            return frozenset()
        if permission.scope is AccessScope.ALL:
            return ALL_RESOURCES
        if not entry.supports_partial:
            return frozenset()
        return frozenset(principal.grants.ids_for(entry.grant_source))

    def can_access_resource(self, principal: Principal, module: Module, resource_id: str) -> bool:
        accessible = self.resolve_accessible_ids(principal, module)
        return accessible is ALL_RESOURCES or resource_id in accessible

    def check(
        self,
        principal: Principal,
        module: Module,
        action: Action,
        resource_id: str | None = None,
    ) -> Decision:
        """Capability check, then resource check when a resource id is given."""
        if not self.can_perform(principal.role, module, action):
            return Decision(False, "capability")
        if resource_id is not None and not self.can_access_resource(principal, module, resource_id):
            return Decision(False, "resource")
        return ALLOW

    def allowed_actions(self, level: CapabilityLevel, module: Module = Module.PORTFOLIO) -> list[Action]:
        """Actions a capability level grants on `module`, in CRUD order."""
        entry = policy(Module(module), self._catalog)
        level = CapabilityLevel(level)
        return [action for action in Action if level.rank >= entry.minimum_for(action).rank]

    def describe(self, permission: ModulePermission | None, module: Module = Module.PORTFOLIO) -> str:
        """Human-readable summary, e.g. 'Create, Read, Update on all resources'."""
        if permission is None:
            return "No permission"
        actions = self.allowed_actions(permission.capability, module)
        if len(actions) == len(Action):
            verbs = "Full CRUD"
        elif actions == [Action.READ]:
            verbs = "Read only"
        else:
            verbs = ", ".join(action.value.capitalize() for action in actions)
        return f"{verbs} on {_SCOPE_TEXT[permission.scope]}"


_SCOPE_TEXT = {
    AccessScope.ALL: "all resources",
    AccessScope.PARTIAL: "assigned resources only",
    AccessScope.NONE: "no resources",
}
