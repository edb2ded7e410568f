import pytest

from servicedesk.core.errors import Conflict, NotFound, PermissionDenied, ValidationFailed
from servicedesk.db.models import RoleEnum
from servicedesk.schemas.tickets import TicketCreate
from servicedesk.schemas.users import ProfileUpdate
from servicedesk.services import assets as asset_svc
from servicedesk.services import cache as keys
from servicedesk.services import tickets as ticket_svc
from servicedesk.services import users as user_svc


async def test_add_role_and_duplicate_conflict(db, users, sessions):
    alice = users["alice"]
    roles = await user_svc.add_role(db, sessions["admin"], alice.id, RoleEnum.agent)
    assert roles == [RoleEnum.agent]

    with pytest.raises(Conflict):
        await user_svc.add_role(db, sessions["admin"], alice.id, RoleEnum.agent)
    assert await user_svc.list_roles(db, alice.id) == [RoleEnum.agent]


async def test_role_mutation_is_admin_only(db, users, sessions):
    for who in ("manager", "agent", "alice"):
        with pytest.raises(PermissionDenied):
            await user_svc.add_role(db, sessions[who], users["bob"].id, RoleEnum.manager)
    with pytest.raises(PermissionDenied):
        await user_svc.list_users_with_roles(db, sessions["manager"])


async def test_role_target_must_exist(db, sessions):
    with pytest.raises(NotFound):
        await user_svc.add_role(db, sessions["admin"], 9999, RoleEnum.agent)


async def test_remove_role(db, users, sessions):
    manager = users["manager"]
    assert await user_svc.remove_role(db, sessions["admin"], manager.id, RoleEnum.manager) == []
    with pytest.raises(NotFound):
        await user_svc.remove_role(db, sessions["admin"], manager.id, RoleEnum.manager)


async def test_users_with_roles_refreshes_after_grant(db, users, sessions, view_cache):
    listed = await user_svc.list_users_with_roles(db, sessions["admin"])
    by_email = {u.email: u for u in listed}
    assert by_email["manager@example.com"].roles == [RoleEnum.manager]
    assert by_email["bob@example.com"].roles == []
    assert keys.USERS_WITH_ROLES in view_cache

    await user_svc.add_role(db, sessions["admin"], users["bob"].id, RoleEnum.manager)
    assert keys.USERS_WITH_ROLES not in view_cache
    listed = await user_svc.list_users_with_roles(db, sessions["admin"])
    assert {u.email: u for u in listed}["bob@example.com"].roles == [RoleEnum.manager]


async def test_profile_update_self_or_admin(db, users, sessions):
    out = await user_svc.update_profile(db, sessions["alice"], users["alice"].id, ProfileUpdate(department="Finance"))
    assert out.department == "Finance"
    assert out.full_name == "Alice"

    with pytest.raises(PermissionDenied):
        await user_svc.update_profile(db, sessions["bob"], users["alice"].id, ProfileUpdate(phone="123"))

    out = await user_svc.update_profile(db, sessions["admin"], users["alice"].id, ProfileUpdate(phone="123"))
    assert out.phone == "123"


async def test_profile_rename_refreshes_ticket_and_comment_views(db, users, sessions, view_cache):
    t = await ticket_svc.create_ticket(db, sessions["alice"], TicketCreate(title="Printer jam"))
    await ticket_svc.add_comment(db, sessions["alice"], t.id, "tray 2")
    await ticket_svc.get_ticket(db, sessions["manager"], t.id)
    await ticket_svc.list_comments(db, sessions["manager"], t.id)
    assert keys.ticket_key(t.id) in view_cache
    assert keys.comments_key(t.id) in view_cache

    await user_svc.update_profile(db, sessions["alice"], users["alice"].id, ProfileUpdate(full_name="Alice Renamed"))
    assert keys.ticket_key(t.id) not in view_cache
    assert keys.comments_key(t.id) not in view_cache

    listed = await ticket_svc.list_tickets(db, sessions["manager"])
    detail = await ticket_svc.get_ticket(db, sessions["manager"], t.id)
    comments = await ticket_svc.list_comments(db, sessions["manager"], t.id)
    assert listed[0].requester.full_name == "Alice Renamed"
    assert detail.requester.full_name == "Alice Renamed"
    assert comments[0].author.full_name == "Alice Renamed"


async def test_assign_asset(db, users, sessions, laptop, view_cache):
    listed = await asset_svc.list_assets(db, sessions["manager"])
    assert listed[0].assignee_id is None

    out = await asset_svc.assign_asset(db, sessions["manager"], laptop.id, users["alice"].id)
    assert out.assignee_id == users["alice"].id
    assert out.assignee.email == "alice@example.com"
    assert keys.ASSETS not in view_cache

    out = await asset_svc.assign_asset(db, sessions["admin"], laptop.id, None)
    assert out.assignee_id is None


async def test_assign_asset_validation(db, users, sessions, laptop):
    with pytest.raises(NotFound):
        await asset_svc.assign_asset(db, sessions["manager"], 9999, users["alice"].id)
    with pytest.raises(ValidationFailed):
        await asset_svc.assign_asset(db, sessions["manager"], laptop.id, 9999)
    with pytest.raises(ValidationFailed):
        await asset_svc.assign_asset(db, sessions["manager"], laptop.id, users["ghost"].id)


@pytest.mark.parametrize("who", ["agent", "alice"])
async def test_asset_assignment_is_it_staff_only(db, users, sessions, laptop, who):
    with pytest.raises(PermissionDenied):
        await asset_svc.assign_asset(db, sessions[who], laptop.id, users["alice"].id)
    with pytest.raises(PermissionDenied):
        await asset_svc.list_assets(db, sessions[who])
