"""Tests for TaskService against an in-memory database."""

import uuid

import pytest
import pytest_asyncio

from taskgate.kernel.models import Organization, TaskStatus
from taskgate.kernel.rbac import AccessContext, PermissionKind, Principal, RoleKind
from taskgate.kernel.tasks import TaskService
from taskgate.schemas.task import TaskCreate, TaskFilters, TaskUpdate
from taskgate.seed import ensure_organization_roles


@pytest.fixture
def service(db_session, engine) -> TaskService:
    return TaskService(db_session, engine)


@pytest_asyncio.fixture
async def members(organization, make_user):
    owner = await make_user(organization, RoleKind.OWNER)
    admin = await make_user(organization, RoleKind.ADMIN)
    viewer = await make_user(organization, RoleKind.VIEWER)
    return {
        "owner": Principal.from_user(owner),
        "admin": Principal.from_user(admin),
        "viewer": Principal.from_user(viewer),
    }


@pytest_asyncio.fixture
async def outsider(db_session, make_user) -> Principal:
    other = Organization(name="Other Org")
    db_session.add(other)
    await db_session.flush()
    await ensure_organization_roles(db_session, other)
    return Principal.from_user(await make_user(other, RoleKind.OWNER))


class TestCreateTask:
    """Task creation."""

    @pytest.mark.asyncio
    async def test_task_lands_in_callers_organization(self, service, members):
        owner = members["owner"]

        task = await service.create_task(owner, TaskCreate(title="  Ship release  ", tags=["a", "a", " b "]))

        assert task.title == "Ship release"
        assert str(task.organization_id) == owner.organization_id
        assert str(task.created_by_id) == owner.id
        assert task.status == TaskStatus.TODO
        assert task.tags == ["a", "b"]
        assert task.completed_at is None

    @pytest.mark.asyncio
    async def test_create_as_done_stamps_completion(self, service, members):
        task = await service.create_task(members["owner"], TaskCreate(title="Done already", status=TaskStatus.DONE))
        assert task.completed_at is not None

    @pytest.mark.asyncio
    async def test_assign_on_create(self, service, members):
        viewer_id = uuid.UUID(members["viewer"].id)

        task = await service.create_task(members["admin"], TaskCreate(title="Review", assignee_id=viewer_id))

        assert task.assignee_id == viewer_id

    @pytest.mark.asyncio
    async def test_assignee_from_other_organization_is_rejected(self, service, members, outsider):
        with pytest.raises(ValueError, match="same organization"):
            await service.create_task(
                members["owner"],
                TaskCreate(title="Review", assignee_id=uuid.UUID(outsider.id)),
            )

    @pytest.mark.asyncio
    async def test_assigning_needs_task_assign(self, service, members, make_principal):
        # A viewer granted task:create but not task:assign
        viewer = members["viewer"]
        creator = make_principal(
            RoleKind.VIEWER,
            organization_id=viewer.organization_id,
            user_id=viewer.id,
            grants=[PermissionKind.TASK_CREATE],
        )

        with pytest.raises(PermissionError):
            await service.create_task(
                creator,
                TaskCreate(title="Review", assignee_id=uuid.UUID(members["admin"].id)),
            )

    @pytest.mark.asyncio
    async def test_operation_is_audited(self, service, members, audit_log):
        context = AccessContext(request_id="req-create")

        task = await service.create_task(members["owner"], TaskCreate(title="Audited"), context=context)

        entry = audit_log.query()[0]
        assert (entry.action, entry.resource_type, entry.success) == ("create", "task", True)
        assert entry.resource_id == str(task.id)
        assert entry.request_id == "req-create"


class TestListTasks:
    """Listing honours visibility, filters and pagination."""

    @pytest_asyncio.fixture
    async def tasks(self, service, members):
        owner, viewer = members["owner"], members["viewer"]
        return {
            "private": await service.create_task(owner, TaskCreate(title="Private plan")),
            "public": await service.create_task(owner, TaskCreate(title="Public roadmap", is_public=True)),
            "assigned": await service.create_task(
                owner,
                TaskCreate(
                    title="Fix login bug",
                    description="Users cannot log in",
                    priority="high",
                    assignee_id=uuid.UUID(viewer.id),
                ),
            ),
        }

    @pytest.mark.asyncio
    async def test_owner_sees_every_task(self, service, members, tasks):
        items, total = await service.list_tasks(members["owner"])
        assert total == 3
        assert {t.id for t in items} == {t.id for t in tasks.values()}

    @pytest.mark.asyncio
    async def test_viewer_sees_public_and_assigned(self, service, members, tasks):
        items, total = await service.list_tasks(members["viewer"])
        assert total == 2
        assert {t.id for t in items} == {tasks["public"].id, tasks["assigned"].id}

    @pytest.mark.asyncio
    async def test_other_organization_sees_nothing(self, service, outsider, tasks):
        items, total = await service.list_tasks(outsider)
        assert (items, total) == ([], 0)

    @pytest.mark.asyncio
    async def test_filters(self, service, members, tasks):
        owner = members["owner"]

        _, high = await service.list_tasks(owner, TaskFilters(priority="high"))
        _, public = await service.list_tasks(owner, TaskFilters(is_public=True))
        found, searched = await service.list_tasks(owner, TaskFilters(search="LOG IN"))

        assert high == 1
        assert public == 1
        assert searched == 1
        assert found[0].id == tasks["assigned"].id

    @pytest.mark.asyncio
    async def test_pagination_reports_total(self, service, members, tasks):
        page_one, total = await service.list_tasks(members["owner"], TaskFilters(page=1, limit=2))
        page_two, _ = await service.list_tasks(members["owner"], TaskFilters(page=2, limit=2))

        assert total == 3
        assert len(page_one) == 2
        assert len(page_two) == 1
        assert not {t.id for t in page_one} & {t.id for t in page_two}

    @pytest.mark.asyncio
    async def test_deleted_tasks_are_hidden(self, service, members, tasks):
        await service.delete_task(members["owner"], tasks["public"].id)
        _, total = await service.list_tasks(members["owner"])
        assert total == 2


class TestGetUpdateDelete:
    """Single-task operations."""

    @pytest.mark.asyncio
    async def test_cross_organization_lookup_is_not_found(self, service, members, outsider):
        task = await service.create_task(members["owner"], TaskCreate(title="Secret", is_public=True))

        with pytest.raises(LookupError):
            await service.get_task(outsider, task.id)

    @pytest.mark.asyncio
    async def test_viewer_can_read_but_not_modify(self, service, members, audit_log):
        task = await service.create_task(members["owner"], TaskCreate(title="Plan"))

        assert (await service.get_task(members["viewer"], task.id)).id == task.id
        with pytest.raises(PermissionError):
            await service.update_task(members["viewer"], task.id, TaskUpdate(title="Hijacked"))
        with pytest.raises(PermissionError):
            await service.delete_task(members["viewer"], task.id)

        denied = [e for e in audit_log.query() if e.action in ("update", "delete")]
        assert len(denied) == 2
        assert all(not e.success for e in denied)

    @pytest.mark.asyncio
    async def test_partial_update(self, service, members):
        task = await service.create_task(
            members["owner"],
            TaskCreate(title="Plan", description="Keep me", tags=["q3"]),
        )

        updated = await service.update_task(
            members["admin"], task.id, TaskUpdate(status=TaskStatus.DONE, title=None)
        )

        assert updated.title == "Plan"
        assert updated.description == "Keep me"
        assert updated.tags == ["q3"]
        assert updated.status == TaskStatus.DONE
        assert updated.completed_at is not None

        reopened = await service.update_task(members["admin"], task.id, TaskUpdate(status="in_progress"))
        assert reopened.completed_at is None

    @pytest.mark.asyncio
    async def test_reassign_and_unassign(self, service, members):
        viewer_id = uuid.UUID(members["viewer"].id)
        task = await service.create_task(members["owner"], TaskCreate(title="Plan"))

        assigned = await service.update_task(members["admin"], task.id, TaskUpdate(assignee_id=viewer_id))
        assert assigned.assignee_id == viewer_id

        unassigned = await service.update_task(members["admin"], task.id, TaskUpdate(assignee_id=None))
        assert unassigned.assignee_id is None

    @pytest.mark.asyncio
    async def test_unknown_task(self, service, members):
        with pytest.raises(LookupError, match="Task not found"):
            await service.update_task(members["owner"], uuid.uuid4(), TaskUpdate(title="x"))

    @pytest.mark.asyncio
    async def test_delete_is_soft(self, service, members, db_session):
        task = await service.create_task(members["owner"], TaskCreate(title="Plan"))

        await service.delete_task(members["owner"], task.id)

        assert task.deleted_at is not None
        with pytest.raises(LookupError):
            await service.get_task(members["owner"], task.id)
