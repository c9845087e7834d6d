"""
Permission catalog: the static vocabulary of the authorization engine.

Holds the modules, the ordered capability levels and access scopes, and for
each module the minimum capability required per action plus whether the
module honours a `partial` access scope. Nothing else in the codebase may
hard-code these thresholds.
"""
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from app.core.errors import AuthorizationIntegrityError


class Module(str, Enum):
    """Protected resource families."""
    PORTFOLIO = "portfolio"
    PROPERTY = "property"
    AUDIT = "audit"
    USER = "user"
    USER_ROLE = "user_role"
    SYSTEM_SETTINGS = "system_settings"
    BANK_DETAILS = "bank_details"


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class CapabilityLevel(str, Enum):
    """
    What a role may do within a module.

    view: read only. update: read, create, update. all: full CRUD.
    """
    VIEW = "view"
    UPDATE = "update"
    ALL = "all"

    @property
    def rank(self) -> int:
        return _CAPABILITY_RANK[self]


class AccessScope(str, Enum):
    """
    Which resources of a module a role may see.

    none: nothing. partial: ids granted to the user. all: every resource.
    """
    NONE = "none"
    PARTIAL = "partial"
    ALL = "all"

    @property
    def rank(self) -> int:
        return _SCOPE_RANK[self]


_CAPABILITY_RANK = {CapabilityLevel.VIEW: 1, CapabilityLevel.UPDATE: 2, CapabilityLevel.ALL: 3}
_SCOPE_RANK = {AccessScope.NONE: 1, AccessScope.PARTIAL: 2, AccessScope.ALL: 3}


@dataclass(frozen=True)
class ModulePolicy:
    """
    Catalog entry for one module.

    `grant_source` names the module whose Resource Grant list backs a
    `partial` scope. None means the module has no meaningful partial scope and
    `partial` degrades to `none`.
    """
    minimum: Mapping[Action, CapabilityLevel]
    grant_source: Module | None = None

    @property
    def supports_partial(self) -> bool:
        return self.grant_source is not None

    def minimum_for(self, action: Action) -> CapabilityLevel:
        try:
            return self.minimum[action]
        except KeyError:
            raise AuthorizationIntegrityError(f"No minimum capability for action {action!r}") from None


DEFAULT_MINIMUM: Mapping[Action, CapabilityLevel] = MappingProxyType({
    Action.READ: CapabilityLevel.VIEW,
    Action.CREATE: CapabilityLevel.UPDATE,
    Action.UPDATE: CapabilityLevel.UPDATE,
    Action.DELETE: CapabilityLevel.ALL,
})


CATALOG: Mapping[Module, ModulePolicy] = MappingProxyType({
    Module.PORTFOLIO: ModulePolicy(DEFAULT_MINIMUM, grant_source=Module.PORTFOLIO),
    Module.PROPERTY: ModulePolicy(DEFAULT_MINIMUM, grant_source=Module.PROPERTY),
    # Bank details are addressed by property id
    Module.BANK_DETAILS: ModulePolicy(DEFAULT_MINIMUM, grant_source=Module.PROPERTY),
    Module.AUDIT: ModulePolicy(DEFAULT_MINIMUM),
    Module.USER: ModulePolicy(DEFAULT_MINIMUM),
    Module.USER_ROLE: ModulePolicy(DEFAULT_MINIMUM),
    Module.SYSTEM_SETTINGS: ModulePolicy(DEFAULT_MINIMUM),
})


def policy(module: Module, catalog: Mapping[Module, ModulePolicy] = CATALOG) -> ModulePolicy:
    """Catalog lookup; a missing module is a configuration defect, not a denial."""
    try:
        return catalog[module]
    except KeyError:
        raise AuthorizationIntegrityError(f"Module {module!r} is not in the permission catalog") from None


def grantable_modules(catalog: Mapping[Module, ModulePolicy] = CATALOG) -> set[Module]:
    """Modules whose ids can be stored on a Resource Grant."""
    return {entry.grant_source for entry in catalog.values() if entry.grant_source is not None}
