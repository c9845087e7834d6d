import pytest

from app.core.errors import AuthorizationIntegrityError
from app.features.permissions.catalog import (
    CATALOG,
    AccessScope,
    Action,
    CapabilityLevel,
    Module,
    ModulePolicy,
    DEFAULT_MINIMUM,
    grantable_modules,
    policy,
)
from app.features.permissions.engine import (
    ALL_RESOURCES,
    AuthorizationEngine,
    GrantSnapshot,
    ModulePermission,
    Principal,
    RoleSnapshot,
)


engine = AuthorizationEngine()

PARTIAL_CAPABLE = [Module.PORTFOLIO, Module.PROPERTY, Module.BANK_DETAILS]
NOT_PARTIAL_CAPABLE = [Module.AUDIT, Module.USER, Module.USER_ROLE, Module.SYSTEM_SETTINGS]


def make_role(permissions: dict[Module, tuple[str, str]], is_external: bool = False) -> RoleSnapshot:
    return RoleSnapshot(
        id="role-1",
        name="test",
        permissions={
            module: ModulePermission(CapabilityLevel(capability), AccessScope(scope))
            for module, (capability, scope) in permissions.items()
        },
        is_external=is_external,
    )


def make_principal(permissions, grants=None) -> Principal:
    return Principal(
        user_id="user-1",
        role=make_role(permissions),
        grants=GrantSnapshot({module: frozenset(ids) for module, ids in (grants or {}).items()}),
    )


@pytest.mark.parametrize("module", list(Module))
@pytest.mark.parametrize("capability", list(CapabilityLevel))
def test_scope_none_resolves_to_empty_set(module, capability):
    principal = make_principal({module: (capability, "none")}, grants={module: ["p1"]})
    assert engine.resolve_accessible_ids(principal, module) == frozenset()


@pytest.mark.parametrize("module", list(Module))
@pytest.mark.parametrize("grants", [None, {}, {Module.PORTFOLIO: ["unrelated"]}, {Module.PORTFOLIO: []}])
def test_scope_all_ignores_grant_contents(module, grants):
    principal = make_principal({module: ("view", "all")}, grants=grants)
    assert engine.resolve_accessible_ids(principal, module) is ALL_RESOURCES


@pytest.mark.parametrize("module", NOT_PARTIAL_CAPABLE)
def test_partial_degrades_to_none_without_partial_support(module):
    principal = make_principal({module: ("all", "partial")}, grants={module: ["x1"]})
    assert engine.resolve_accessible_ids(principal, module) == frozenset()
    assert not engine.can_access_resource(principal, module, "x1")


@pytest.mark.parametrize("module", [Module.PORTFOLIO, Module.PROPERTY])
def test_partial_returns_exactly_the_granted_ids(module):
    principal = make_principal({module: ("view", "partial")}, grants={module: ["a", "b"]})
    first = engine.resolve_accessible_ids(principal, module)
    second = engine.resolve_accessible_ids(principal, module)
    assert first == second == {"a", "b"}


def test_partial_without_grant_is_empty():
    principal = make_principal({Module.PORTFOLIO: ("all", "partial")})
    assert engine.resolve_accessible_ids(principal, Module.PORTFOLIO) == frozenset()


def test_bank_details_partial_uses_property_grant():
    principal = make_principal(
        {Module.BANK_DETAILS: ("view", "partial")},
        grants={Module.PROPERTY: ["prop-1"], Module.BANK_DETAILS: ["ignored"]},
    )
    assert engine.resolve_accessible_ids(principal, Module.BANK_DETAILS) == {"prop-1"}


def test_resolved_set_is_detached_from_grant():
    grant_ids = frozenset({"a"})
    principal = Principal("u", make_role({Module.PORTFOLIO: ("view", "partial")}), GrantSnapshot({Module.PORTFOLIO: grant_ids}))
    resolved = engine.resolve_accessible_ids(principal, Module.PORTFOLIO)
    assert isinstance(resolved, frozenset)
    assert principal.grants.ids_for(Module.PORTFOLIO) == {"a"}


@pytest.mark.parametrize("action", list(Action))
def test_capability_all_grants_every_action(action):
    role = make_role({Module.AUDIT: ("all", "none")})
    assert engine.can_perform(role, Module.AUDIT, action)


@pytest.mark.parametrize("module", list(Module))
def test_capability_order_holds_for_every_action(module):
    role_for = {level: make_role({module: (level, "all")}) for level in CapabilityLevel}
    for action in Action:
        allowed = [engine.can_perform(role_for[level], module, action) for level in CapabilityLevel]
        # Once a level is allowed, every higher level is allowed too
        assert allowed == sorted(allowed)


def test_view_is_read_only():
    role = make_role({Module.PORTFOLIO: ("view", "all")})
    assert engine.can_perform(role, Module.PORTFOLIO, Action.READ)
    assert not engine.can_perform(role, Module.PORTFOLIO, Action.CREATE)
    assert not engine.can_perform(role, Module.PORTFOLIO, Action.UPDATE)
    assert not engine.can_perform(role, Module.PORTFOLIO, Action.DELETE)


def test_missing_role_entry_denies_everything():
    principal = make_principal({Module.PORTFOLIO: ("all", "all")})
    assert not engine.can_perform(principal.role, Module.AUDIT, Action.READ)
    assert engine.resolve_accessible_ids(principal, Module.AUDIT) == frozenset()


@pytest.mark.parametrize(
    "permissions, resource_id",
    [
        ({Module.PORTFOLIO: ("view", "all")}, "anything"),
        ({Module.PORTFOLIO: ("view", "partial")}, "p1"),
        ({Module.PORTFOLIO: ("view", "partial")}, "p9"),
        ({Module.PORTFOLIO: ("view", "none")}, "p1"),
    ],
)
def test_can_access_resource_agrees_with_resolved_set(permissions, resource_id):
    principal = make_principal(permissions, grants={Module.PORTFOLIO: ["p1", "p2"]})
    resolved = engine.resolve_accessible_ids(principal, Module.PORTFOLIO)
    expected = resolved is ALL_RESOURCES or resource_id in resolved
    assert engine.can_access_resource(principal, Module.PORTFOLIO, resource_id) is expected


def test_scenario_partial_portfolio_grant():
    principal = make_principal({Module.PORTFOLIO: ("all", "partial")}, grants={Module.PORTFOLIO: ["p1", "p2"]})
    assert engine.resolve_accessible_ids(principal, Module.PORTFOLIO) == {"p1", "p2"}
    assert not engine.can_access_resource(principal, Module.PORTFOLIO, "p3")


def test_scenario_user_role_partial_is_empty():
    principal = make_principal({Module.USER_ROLE: ("view", "partial")})
    assert engine.can_perform(principal.role, Module.USER_ROLE, Action.READ)
    assert engine.resolve_accessible_ids(principal, Module.USER_ROLE) == frozenset()


def test_scenario_audit_update_cannot_delete():
    role = make_role({Module.AUDIT: ("update", "all")})
    assert not engine.can_perform(role, Module.AUDIT, Action.DELETE)
    assert engine.can_perform(role, Module.AUDIT, Action.CREATE)


def test_check_reports_capability_before_resource():
    principal = make_principal({Module.PROPERTY: ("view", "partial")}, grants={Module.PROPERTY: ["h1"]})
    assert engine.check(principal, Module.PROPERTY, Action.UPDATE, "h2").reason == "capability"
    assert engine.check(principal, Module.PROPERTY, Action.READ, "h2").reason == "resource"
    assert engine.check(principal, Module.PROPERTY, Action.READ, "h1").allowed
    assert engine.check(principal, Module.PROPERTY, Action.READ).allowed


def test_string_values_are_accepted():
    role = make_role({Module.PORTFOLIO: ("update", "all")})
    assert engine.can_perform(role, "portfolio", "create")


def test_unknown_module_fails_fast():
    role = make_role({Module.PORTFOLIO: ("all", "all")})
    with pytest.raises(ValueError):
        engine.can_perform(role, "invoices", Action.READ)


def test_catalog_gap_is_an_integrity_error():
    catalog = {Module.PORTFOLIO: ModulePolicy({Action.READ: CapabilityLevel.VIEW})}
    sparse = AuthorizationEngine(catalog)
    role = make_role({Module.PORTFOLIO: ("all", "all"), Module.AUDIT: ("all", "all")})
    with pytest.raises(AuthorizationIntegrityError):
        sparse.can_perform(role, Module.PORTFOLIO, Action.DELETE)
    with pytest.raises(AuthorizationIntegrityError):
        sparse.can_perform(role, Module.AUDIT, Action.READ)


def test_catalog_covers_every_module_and_action():
    assert set(CATALOG) == set(Module)
    for entry in CATALOG.values():
        assert set(entry.minimum) == set(Action)
    assert DEFAULT_MINIMUM[Action.DELETE] is CapabilityLevel.ALL


def test_allowed_actions_and_description():
    assert engine.allowed_actions(CapabilityLevel.VIEW) == [Action.READ]
    assert engine.allowed_actions(CapabilityLevel.UPDATE) == [Action.CREATE, Action.READ, Action.UPDATE]
    assert engine.describe(ModulePermission(CapabilityLevel.ALL, AccessScope.ALL), Module.PORTFOLIO) == (
        "Full CRUD on all resources"
    )
    assert engine.describe(ModulePermission(CapabilityLevel.VIEW, AccessScope.PARTIAL), Module.PROPERTY) == (
        "Read only on assigned resources only"
    )
    assert engine.describe(None, Module.AUDIT) == "No permission"


def test_partial_support_per_module():
    assert {module for module in Module if policy(module).supports_partial} == set(PARTIAL_CAPABLE)
    assert grantable_modules() == {Module.PORTFOLIO, Module.PROPERTY}
