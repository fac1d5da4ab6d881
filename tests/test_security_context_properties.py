"""
Property-Based Tests for the Tenant Security Context

Checks the role predicates against plain set semantics, that every predicate
is False (never an exception) on an unset context, and that the view is
recomputed from the store on every call.
"""

from hypothesis import HealthCheck, given, settings, strategies as st

from models.security_context import TenantSecurityContext
from utils import tenant_context

role_names = st.sampled_from(["ADMIN", "AGENT", "USER", "VIEWER", "BILLING"])
role_lists = st.lists(role_names, max_size=5)

SETTINGS = settings(
    max_examples=100,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)


@given(roles=role_lists)
@SETTINGS
def test_unset_context_predicates_are_false(roles):
    """
    Property: with nothing bound, every role predicate returns False.
    """
    tenant_context.clear()
    security = TenantSecurityContext.current()

    assert security.has_any_role(*roles) is False
    assert security.has_all_roles(*roles) is False
    for role in roles:
        assert security.has_role(role) is False
    assert security.is_valid() is False
    assert security.is_admin() is False
    assert security.is_agent() is False


@given(held=role_lists, queried=role_lists)
@SETTINGS
def test_role_predicates_match_set_semantics(held, queried):
    """
    Property: has_any_role / has_all_roles agree with set intersection and
    subset checks over the bound roles.
    """
    tenant_context.set_identity("acme", "u1", held)
    try:
        security = TenantSecurityContext.current()
        held_set = set(held)

        assert security.has_any_role(*queried) == bool(held_set & set(queried))
        if held_set:
            assert security.has_all_roles(*queried) == set(queried).issubset(held_set)
        else:
            assert security.has_all_roles(*queried) is False
    finally:
        tenant_context.clear()


@given(bound=st.text(min_size=1, max_size=20).filter(lambda s: s.strip()), target=st.text(max_size=20))
@SETTINGS
def test_can_access_tenant_is_equality(bound, target):
    tenant_context.set_identity(bound, "u1")
    try:
        security = TenantSecurityContext.current()
        assert security.can_access_tenant(target) == (bound == target)
        assert security.can_access_tenant(bound) is True
    finally:
        tenant_context.clear()


def test_scenario_admin_agent_in_acme():
    tenant_context.set_identity("acme", "u1", "ADMIN,AGENT")
    security = TenantSecurityContext.current()

    assert security.is_admin() is True
    assert security.is_agent() is True
    assert security.can_access_tenant("acme") is True
    assert security.can_access_tenant("other") is False


def test_agent_without_admin():
    tenant_context.set_identity("acme", "u2", "AGENT")
    security = TenantSecurityContext.current()

    assert security.is_admin() is False
    assert security.is_agent() is True


def test_can_access_tenant_false_when_unset():
    assert TenantSecurityContext.current().can_access_tenant("acme") is False
    assert TenantSecurityContext.current().can_access_tenant(None) is False


def test_is_valid_requires_authentication():
    tenant_context.set_identity("acme", "u1", "ADMIN", authenticated=False)
    assert TenantSecurityContext.current().is_valid() is False

    tenant_context.set_identity("acme", "u1", "ADMIN", authenticated=True)
    assert TenantSecurityContext.current().is_valid() is True

    tenant_context.set_identity("acme", None, "ADMIN", authenticated=True)
    assert TenantSecurityContext.current().is_valid() is False


def test_view_is_recomputed_after_clear():
    tenant_context.set_identity("acme", "u1", "ADMIN", authenticated=True)
    before = TenantSecurityContext.current()

    tenant_context.clear()
    after = TenantSecurityContext.current()

    assert before.is_admin() is True
    assert after.is_admin() is False
    assert after.tenant_id is None
    assert after.to_dict()["valid"] is False
