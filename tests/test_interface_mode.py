import pytest

from servicedesk.db.models import RoleEnum
from servicedesk.services.interface_mode import (
    InterfaceMode,
    InterfaceModeController,
    MemoryModeStore,
    Surface,
)
from servicedesk.services.roles import resolve_roles
from servicedesk.services.session import DeskSession, Principal


class _Facts:
    """Змінні гранти для контролера (імітація пониження ролі)."""

    def __init__(self, *grants):
        self.facts = resolve_roles(grants)

    def __call__(self):
        return self.facts


@pytest.mark.parametrize("stored", [None, "si", "user", "garbage"])
@pytest.mark.parametrize("grants", [(), (RoleEnum.user,), (RoleEnum.agent,)])
def test_non_staff_always_user(grants, stored):
    store = MemoryModeStore(stored)
    ctl = InterfaceModeController(_Facts(*grants), store)
    assert ctl.start() is InterfaceMode.user
    assert ctl.mode is InterfaceMode.user
    assert ctl.surface is Surface.portal
    assert store.writes == 0


@pytest.mark.parametrize("stored, expected", [
    (None, InterfaceMode.si),
    ("si", InterfaceMode.si),
    ("user", InterfaceMode.user),
    ("garbage", InterfaceMode.si),
])
def test_staff_reads_stored_preference(stored, expected):
    ctl = InterfaceModeController(_Facts(RoleEnum.manager), MemoryModeStore(stored))
    assert ctl.start() is expected


def test_toggle_by_non_staff_leaves_store_untouched():
    store = MemoryModeStore("si")
    ctl = InterfaceModeController(_Facts(RoleEnum.agent), store)
    ctl.start()
    assert ctl.toggle_mode() is False
    assert ctl.set_mode(InterfaceMode.si) is False
    assert store.value == "si"
    assert store.writes == 0


def test_staff_toggle_persists():
    store = MemoryModeStore()
    ctl = InterfaceModeController(_Facts(RoleEnum.admin), store)
    ctl.start()
    assert ctl.toggle_mode() is True
    assert ctl.mode is InterfaceMode.user
    assert store.value == "user"
    assert ctl.toggle_mode() is True
    assert store.value == "si"
    assert store.writes == 2


def test_downgrade_rederives_mode():
    facts = _Facts(RoleEnum.manager)
    ctl = InterfaceModeController(facts, MemoryModeStore("si"))
    ctl.start()
    assert ctl.mode is InterfaceMode.si

    facts.facts = resolve_roles([])
    assert ctl.mode is InterfaceMode.user
    assert ctl.surface is Surface.portal


def test_session_mode_follows_grants():
    store = MemoryModeStore("user")
    session = DeskSession.with_grants(Principal(1, "m@example.com"), [RoleEnum.manager], store)
    assert session.mode is InterfaceMode.user
    assert session.surface is Surface.portal

    session.set_grants([RoleEnum.admin, RoleEnum.manager])
    session.interface.set_mode("si")
    assert session.surface is Surface.back_office
    assert store.value == "si"
