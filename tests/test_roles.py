import itertools

import pytest
from sqlalchemy.exc import OperationalError

from servicedesk.core.errors import PermissionDenied, RemoteFailure, Unauthenticated
from servicedesk.db.models import RoleEnum
from servicedesk.services.roles import Failed, Loading, Ready, RoleFacts, load_role_state, resolve_roles
from servicedesk.services.session import DeskSession, Principal

ALL_ROLES = list(RoleEnum)


def _all_grant_sets():
    for n in range(len(ALL_ROLES) + 1):
        yield from itertools.combinations(ALL_ROLES, n)


@pytest.mark.parametrize("grants", [g for g in _all_grant_sets() if RoleEnum.admin in g])
def test_admin_wins_precedence(grants):
    assert resolve_roles(grants).primary_role is RoleEnum.admin


def test_precedence_order():
    assert resolve_roles([RoleEnum.agent, RoleEnum.manager]).primary_role is RoleEnum.manager
    assert resolve_roles([RoleEnum.user, RoleEnum.agent]).primary_role is RoleEnum.agent
    assert resolve_roles([RoleEnum.user]).primary_role is RoleEnum.user


def test_no_grants_is_front_office_user():
    facts = resolve_roles([])
    assert facts.primary_role is RoleEnum.user
    assert facts.is_front_office is True
    assert facts.is_it_staff is False
    assert not any([facts.is_admin, facts.is_manager, facts.is_technician, facts.is_agent])


def test_agent_flag():
    assert resolve_roles([RoleEnum.admin]).is_agent is True
    assert resolve_roles([RoleEnum.agent]).is_agent is True
    assert resolve_roles([RoleEnum.user]).is_agent is False
    assert resolve_roles([RoleEnum.manager]).is_agent is False


def test_staff_flags():
    manager = resolve_roles(["manager"])
    assert manager.is_it_staff and manager.is_technician and not manager.is_front_office
    agent = resolve_roles(["agent"])
    assert not agent.is_it_staff and agent.is_front_office


def test_unknown_grants_ignored():
    assert resolve_roles(["superuser", "user"]).roles == frozenset({RoleEnum.user})


async def test_load_role_state_reads_grants(db, users):
    state = await load_role_state(db, users["manager"].id)
    assert isinstance(state, Ready)
    assert state.value.is_manager


class _BrokenDb:
    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection refused"))


async def test_store_failure_becomes_failed_state():
    state = await load_role_state(_BrokenDb(), 1)
    assert isinstance(state, Failed)
    assert isinstance(state.error, RemoteFailure)


async def test_session_lifecycle(db, users):
    session = DeskSession(Principal(id=users["admin"].id, email=users["admin"].email))
    assert isinstance(session.role_state, Loading)
    with pytest.raises(PermissionDenied):
        session.require_facts()

    await session.refresh_roles(db)
    assert session.require_admin().is_admin

    session.close()
    assert not session.authenticated
    with pytest.raises(Unauthenticated):
        session.require_facts()


async def test_failed_roles_surface_as_remote_failure():
    session = DeskSession(Principal(id=1, email="x@example.com"))
    await session.refresh_roles(_BrokenDb())
    with pytest.raises(RemoteFailure):
        session.require_facts()
    assert session.facts == RoleFacts()
