"""Unit tests for the access decision engine."""

import uuid

import pytest

from taskgate.kernel.rbac import (
    AccessContext,
    PermissionKind,
    RoleKind,
    require_organization_access,
    require_ownership,
    require_permissions,
    require_resource_action,
    require_roles,
)
from taskgate.kernel.rbac.engine import ACCESS_CONTROL_CHECK, NO_USER_REASON


class TestScenarios:
    """End-to-end decisions against the default role table."""

    def test_viewer_cannot_create_tasks(self, engine, audit_log, make_principal):
        viewer = make_principal(RoleKind.VIEWER, organization_id="org-1")

        assert engine.can_access_resource(viewer, "task", "create") is False

        entry = audit_log.query()[0]
        assert entry.success is False
        assert "task:create" in entry.reason

    def test_admin_can_delete_tasks_but_not_organizations(self, engine, make_principal):
        admin = make_principal(RoleKind.ADMIN, organization_id="org-1")

        assert engine.has_permission(admin, PermissionKind.TASK_DELETE) is True
        assert engine.has_permission(admin, PermissionKind.ORGANIZATION_DELETE) is False


class TestRoleChecks:
    """Tests for exact and hierarchical role checks."""

    def test_has_role_is_exact(self, engine, make_principal):
        owner = make_principal(RoleKind.OWNER)
        assert engine.has_role(owner, RoleKind.OWNER) is True
        assert engine.has_role(owner, RoleKind.ADMIN) is False

    def test_has_any_role(self, engine, make_principal):
        admin = make_principal(RoleKind.ADMIN)
        assert engine.has_any_role(admin, [RoleKind.OWNER, RoleKind.ADMIN]) is True
        assert engine.has_any_role(admin, [RoleKind.VIEWER]) is False
        assert engine.has_any_role(admin, []) is False

    @pytest.mark.parametrize(
        "held,required,expected",
        [
            (RoleKind.OWNER, RoleKind.VIEWER, True),
            (RoleKind.OWNER, RoleKind.OWNER, True),
            (RoleKind.ADMIN, RoleKind.VIEWER, True),
            (RoleKind.ADMIN, RoleKind.OWNER, False),
            (RoleKind.VIEWER, RoleKind.ADMIN, False),
        ],
    )
    def test_has_role_at_least(self, engine, make_principal, held, required, expected):
        assert engine.has_role_at_least(make_principal(held), required) is expected

    def test_has_role_at_least_unknown_requirement_is_denied(self, engine, make_principal):
        assert engine.has_role_at_least(make_principal(RoleKind.OWNER), "root") is False

    def test_inactive_role_confers_nothing(self, engine, make_principal):
        owner = make_principal(RoleKind.OWNER, role_active=False)
        assert engine.has_role(owner, RoleKind.OWNER) is False
        assert engine.has_permission(owner, PermissionKind.TASK_READ) is False
        assert engine.effective_permissions(owner) == frozenset()

    def test_deleted_role_confers_nothing(self, engine, make_principal):
        admin = make_principal(RoleKind.ADMIN, role_deleted=True, grants=[PermissionKind.PERMISSION_MANAGE])
        assert engine.has_role_at_least(admin, RoleKind.VIEWER) is False
        assert engine.has_permission(admin, PermissionKind.PERMISSION_MANAGE) is False

    def test_principal_without_role(self, engine, make_principal):
        nobody = make_principal(kind=None)
        assert engine.has_role_at_least(nobody, RoleKind.VIEWER) is False
        assert engine.has_permission(nobody, PermissionKind.TASK_READ) is False


class TestPermissionChecks:
    """Tests for permission resolution: defaults united with explicit grants."""

    def test_explicit_grant_extends_defaults(self, engine, make_principal):
        viewer = make_principal(RoleKind.VIEWER, grants=[PermissionKind.TASK_CREATE])
        assert engine.has_permission(viewer, PermissionKind.TASK_CREATE) is True
        assert engine.has_permission(viewer, PermissionKind.TASK_READ) is True

    def test_inactive_grant_is_ignored(self, engine, make_principal):
        viewer = make_principal(RoleKind.VIEWER, inactive_grants=[PermissionKind.TASK_CREATE])
        assert engine.has_permission(viewer, PermissionKind.TASK_CREATE) is False

    def test_inactive_grant_cannot_revoke_a_default(self, engine, make_principal):
        viewer = make_principal(RoleKind.VIEWER, inactive_grants=[PermissionKind.TASK_READ])
        assert engine.has_permission(viewer, PermissionKind.TASK_READ) is True

    def test_effective_permissions_is_the_union(self, engine, make_principal):
        viewer = make_principal(RoleKind.VIEWER, grants=[PermissionKind.TASK_ASSIGN])
        permissions = engine.effective_permissions(viewer)
        assert PermissionKind.TASK_ASSIGN in permissions
        assert PermissionKind.USER_READ in permissions
        assert PermissionKind.TASK_DELETE not in permissions

    def test_every_effective_permission_passes_has_permission(self, engine, make_principal):
        admin = make_principal(RoleKind.ADMIN, grants=[PermissionKind.PERMISSION_MANAGE])
        for permission in engine.effective_permissions(admin):
            assert engine.has_permission(admin, permission) is True

    def test_any_and_all(self, engine, make_principal):
        viewer = make_principal(RoleKind.VIEWER)
        read_and_create = [PermissionKind.TASK_READ, PermissionKind.TASK_CREATE]
        assert engine.has_any_permission(viewer, read_and_create) is True
        assert engine.has_all_permissions(viewer, read_and_create) is False

    def test_empty_quantifiers(self, engine, make_principal):
        viewer = make_principal(RoleKind.VIEWER)
        assert engine.has_all_permissions(viewer, []) is True
        assert engine.has_any_permission(viewer, []) is False

    def test_unknown_permission_string_is_denied(self, engine, make_principal):
        owner = make_principal(RoleKind.OWNER)
        assert engine.has_permission(owner, "task:archive") is False

    def test_unknown_resource_action_is_denied(self, engine, audit_log, make_principal):
        owner = make_principal(RoleKind.OWNER)
        assert engine.can_access_resource(owner, "project", "read") is False
        assert audit_log.query()[0].reason == "Unknown permission 'project:read'"


class TestOwnershipAndTenancy:
    """Tests for ownership and organization membership."""

    def test_uuid_and_string_ids_compare_equal(self, engine, make_principal):
        user_id = uuid.uuid4()
        principal = make_principal(RoleKind.VIEWER, user_id=str(user_id))
        assert engine.is_owner(principal, user_id) is True
        assert engine.is_owner(principal, str(user_id).upper()) is True
        assert engine.is_owner(principal, uuid.uuid4()) is False

    def test_missing_owner_is_not_owned(self, engine, make_principal):
        assert engine.is_owner(make_principal(), None) is False

    def test_direct_membership_only(self, engine, make_principal):
        principal = make_principal(RoleKind.OWNER, organization_id="org-1")
        assert engine.belongs_to_organization(principal, "org-1") is True
        assert engine.belongs_to_organization(principal, "org-2") is False
        assert engine.can_access_organization_resource(principal, "org-1") is True
        assert engine.can_access_organization_resource(principal, "org-child") is False


class TestMissingPrincipal:
    """A missing principal is denied and still audited."""

    def test_every_check_denies_none(self, engine, audit_log):
        assert engine.has_role(None, RoleKind.VIEWER) is False
        assert engine.has_permission(None, PermissionKind.TASK_READ) is False
        assert engine.can_access_resource(None, "task", "read") is False
        assert engine.is_owner(None, "user-1") is False
        assert engine.belongs_to_organization(None, "org-1") is False
        assert engine.effective_permissions(None) == frozenset()

        entries = audit_log.query()
        assert len(entries) == 6
        assert all(not e.success and e.reason == NO_USER_REASON for e in entries)
        assert all(e.user_id is None for e in entries)


class TestAuditing:
    """Every public decision appends exactly one entry."""

    def test_one_entry_per_call(self, engine, audit_log, make_principal):
        principal = make_principal(RoleKind.ADMIN, organization_id="org-1")
        calls = [
            lambda: engine.has_role(principal, RoleKind.ADMIN),
            lambda: engine.has_any_role(principal, [RoleKind.OWNER]),
            lambda: engine.has_role_at_least(principal, RoleKind.VIEWER),
            lambda: engine.has_permission(principal, PermissionKind.TASK_CREATE),
            lambda: engine.has_any_permission(principal, [PermissionKind.TASK_CREATE]),
            lambda: engine.has_all_permissions(principal, [PermissionKind.TASK_CREATE]),
            lambda: engine.effective_permissions(principal),
            lambda: engine.can_access_resource(principal, "task", "update"),
            lambda: engine.is_owner(principal, principal.id),
            lambda: engine.belongs_to_organization(principal, "org-1"),
            lambda: engine.can_access_organization_resource(principal, "org-2"),
            lambda: engine.authorize(principal, require_permissions(PermissionKind.TASK_READ)),
        ]
        for call in calls:
            before = len(audit_log)
            call()
            assert len(audit_log) == before + 1

    def test_decisions_are_idempotent(self, engine, audit_log, make_principal):
        viewer = make_principal(RoleKind.VIEWER)
        first = engine.has_permission(viewer, PermissionKind.TASK_UPDATE)
        second = engine.has_permission(viewer, PermissionKind.TASK_UPDATE)
        assert first == second

        newest, older = audit_log.query()[:2]
        assert (newest.action, newest.success, newest.reason) == (older.action, older.success, older.reason)

    def test_entry_carries_identity_and_context(self, engine, audit_log, make_principal):
        principal = make_principal(RoleKind.VIEWER, organization_id="org-1")
        context = AccessContext(ip_address="10.0.0.1", user_agent="pytest", request_id="req-1")

        engine.has_permission(principal, PermissionKind.TASK_DELETE, context=context)

        entry = audit_log.query()[0]
        assert entry.user_id == principal.id
        assert entry.organization_id == "org-1"
        assert entry.resource_type == "task"
        assert entry.ip_address == "10.0.0.1"
        assert entry.user_agent == "pytest"
        assert entry.request_id == "req-1"
        assert entry.reason == "User lacks permission 'task:delete'"

    def test_allowed_entry_has_no_reason(self, engine, audit_log, make_principal):
        engine.has_permission(make_principal(RoleKind.OWNER), PermissionKind.TASK_DELETE)
        entry = audit_log.query()[0]
        assert entry.success is True
        assert entry.reason is None


class TestAuthorize:
    """Tests for composite requirements."""

    def test_missing_principal(self, engine, audit_log):
        decision = engine.authorize(None, require_permissions(PermissionKind.TASK_READ))
        assert not decision
        assert decision.reason == NO_USER_REASON
        assert audit_log.query()[0].action == ACCESS_CONTROL_CHECK

    def test_exact_roles(self, engine, make_principal):
        requirement = require_roles(RoleKind.ADMIN)
        assert engine.authorize(make_principal(RoleKind.ADMIN), requirement).allowed is True
        decision = engine.authorize(make_principal(RoleKind.OWNER), requirement)
        assert decision.allowed is False
        assert decision.reason == "User does not have required role(s): admin"

    def test_inherited_roles(self, engine, make_principal):
        requirement = require_roles(RoleKind.ADMIN, allow_inheritance=True)
        assert engine.authorize(make_principal(RoleKind.OWNER), requirement).allowed is True
        assert engine.authorize(make_principal(RoleKind.VIEWER), requirement).allowed is False

    def test_permissions_are_any_of(self, engine, make_principal):
        requirement = require_permissions(PermissionKind.TASK_CREATE, PermissionKind.TASK_READ)
        assert engine.authorize(make_principal(RoleKind.VIEWER), requirement).allowed is True

        decision = engine.authorize(
            make_principal(RoleKind.VIEWER),
            require_permissions(PermissionKind.TASK_CREATE, PermissionKind.TASK_DELETE),
        )
        assert decision.reason == "User does not have required permission(s): task:create, task:delete"

    def test_resource_action(self, engine, make_principal):
        decision = engine.authorize(make_principal(RoleKind.VIEWER), require_resource_action("task", "update"))
        assert decision.reason == "User cannot perform 'update' on 'task'"

    def test_ownership(self, engine, make_principal):
        principal = make_principal(RoleKind.VIEWER, user_id="user-1")
        requirement = require_ownership()

        assert engine.authorize(principal, requirement, AccessContext(resource_owner_id="user-1")).allowed
        assert (
            engine.authorize(principal, requirement, AccessContext()).reason
            == "Resource ID not found for ownership check"
        )
        assert (
            engine.authorize(principal, requirement, AccessContext(resource_owner_id="user-2")).reason
            == "User is not the owner of the resource"
        )

    def test_organization(self, engine, make_principal):
        principal = make_principal(RoleKind.VIEWER, organization_id="org-1")
        requirement = require_organization_access()

        assert engine.authorize(principal, requirement, AccessContext(organization_id="org-1")).allowed
        assert (
            engine.authorize(principal, requirement, AccessContext()).reason
            == "Organization ID not found for access check"
        )
        assert (
            engine.authorize(principal, requirement, AccessContext(organization_id="org-2")).reason
            == "User does not belong to the specified organization"
        )

    def test_checks_stop_at_first_failure(self, engine, make_principal):
        requirement = require_roles(RoleKind.OWNER).merge(require_ownership())
        decision = engine.authorize(make_principal(RoleKind.VIEWER), requirement, AccessContext())
        assert decision.reason == "User does not have required role(s): owner"

    def test_empty_requirement_allows_any_principal(self, engine, make_principal):
        assert engine.authorize(make_principal(kind=None), require_permissions()).allowed is True

    def test_single_entry_for_composite(self, engine, audit_log, make_principal):
        requirement = (
            require_roles(RoleKind.OWNER, RoleKind.ADMIN)
            .merge(require_permissions(PermissionKind.PERMISSION_READ))
            .merge(require_resource_action("task", "read"))
        )
        engine.authorize(make_principal(RoleKind.ADMIN), requirement, AccessContext(resource_id="t-1"))

        assert len(audit_log) == 1
        entry = audit_log.query()[0]
        assert entry.action == ACCESS_CONTROL_CHECK
        assert entry.resource_type == "task"
        assert entry.resource_id == "t-1"
        assert entry.success is True

    def test_unnamed_resource_is_logged_as_unknown(self, engine, audit_log, make_principal):
        engine.authorize(make_principal(RoleKind.ADMIN), require_roles(RoleKind.ADMIN))
        assert audit_log.query()[0].resource_type == "unknown"


class TestMergedRequirements:
    """A merged requirement holds only when every operand holds."""

    def test_both_permission_sets_must_hold(self, engine, make_principal):
        viewer = make_principal(RoleKind.VIEWER, grants=[PermissionKind.TASK_ASSIGN])
        update_only = require_permissions(PermissionKind.TASK_UPDATE)
        merged = update_only.merge(require_permissions(PermissionKind.TASK_ASSIGN))

        assert engine.authorize(viewer, update_only).allowed is False
        decision = engine.authorize(viewer, merged)
        assert decision.allowed is False
        assert decision.reason == "User does not have required permission(s): task:update"

    def test_both_role_sets_must_hold(self, engine, make_principal):
        admin = make_principal(RoleKind.ADMIN)
        merged = require_roles(RoleKind.OWNER).merge(require_roles(RoleKind.ADMIN))

        decision = engine.authorize(admin, merged)
        assert decision.allowed is False
        assert decision.reason == "User does not have required role(s): owner"

    def test_second_resource_action_is_checked(self, engine, make_principal):
        admin = make_principal(RoleKind.ADMIN)
        merged = require_resource_action("task", "read").merge(
            require_resource_action("organization", "delete")
        )

        decision = engine.authorize(admin, merged)
        assert decision.allowed is False
        assert decision.reason == "User cannot perform 'delete' on 'organization'"

    def test_inheritance_stays_with_its_operand(self, engine, make_principal):
        owner = make_principal(RoleKind.OWNER)
        merged = require_roles(RoleKind.VIEWER, allow_inheritance=True).merge(
            require_roles(RoleKind.ADMIN)
        )

        assert engine.authorize(make_principal(RoleKind.ADMIN), merged).allowed is True
        assert engine.authorize(owner, merged).allowed is False

    def test_all_operands_hold(self, engine, audit_log, make_principal):
        admin = make_principal(RoleKind.ADMIN, organization_id="org-1")
        merged = (
            require_roles(RoleKind.OWNER, RoleKind.ADMIN)
            .merge(require_permissions(PermissionKind.TASK_UPDATE))
            .merge(require_resource_action("task", "assign"))
            .merge(require_organization_access())
        )

        decision = engine.authorize(admin, merged, AccessContext(organization_id="org-1"))
        assert decision.allowed is True
        assert len(audit_log) == 1
