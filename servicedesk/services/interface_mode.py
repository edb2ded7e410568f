"""
Interface mode: перемикач між SI-інтерфейсом (back office) і порталом.

Перемикати можуть лише IT staff (admin/manager). Для всіх інших зовнішній режим
завжди `user`. Вибір зберігається на пристрої (cookie / localStorage), не в акаунті.
"""

from __future__ import annotations

import enum
import logging
from typing import Callable, Optional, Protocol

from servicedesk.services.roles import RoleFacts

log = logging.getLogger(__name__)


class InterfaceMode(str, enum.Enum):
    si = "si"
    user = "user"


class Surface(str, enum.Enum):
    back_office = "back_office"
    portal = "portal"


class ModeStore(Protocol):
    def read(self) -> Optional[str]: ...

    def write(self, value: str) -> None: ...


class MemoryModeStore:
    """Слот key-value "на пристрої" для бібліотечного використання і тестів."""

    def __init__(self, value: Optional[str] = None):
        self.value = value
        self.writes = 0

    def read(self) -> Optional[str]:
        return self.value

    def write(self, value: str) -> None:
        self.value = value
        self.writes += 1


def parse_mode(raw: Optional[str]) -> Optional[InterfaceMode]:
    if raw is None:
        return None
    try:
        return InterfaceMode(raw)
    except ValueError:
        return None


class InterfaceModeController:
    def __init__(self, facts: Callable[[], RoleFacts], store: ModeStore):
        self._facts = facts
        self._store = store
        self._mode = InterfaceMode.si

    def start(self) -> InterfaceMode:
        """Старт сесії: staff читає збережений вибір (дефолт si), решта: user."""
        if self._facts().is_it_staff:
            self._mode = parse_mode(self._store.read()) or InterfaceMode.si
        else:
            self._mode = InterfaceMode.user
        return self.mode

    @property
    def can_switch_mode(self) -> bool:
        return self._facts().is_it_staff

    @property
    def mode(self) -> InterfaceMode:
        # перераховуємо з поточних ролей на кожне читання (напр. після пониження ролі)
        if not self._facts().is_it_staff:
            return InterfaceMode.user
        return self._mode

    @property
    def surface(self) -> Surface:
        return Surface.back_office if self.mode is InterfaceMode.si else Surface.portal

    def set_mode(self, mode: InterfaceMode | str) -> bool:
        if not self.can_switch_mode:
            log.info("interface_mode_change_ignored", extra={"requested": str(mode)})
            return False
        new_mode = InterfaceMode(mode)
        self._mode = new_mode
        self._store.write(new_mode.value)
        return True

    def toggle_mode(self) -> bool:
        if not self.can_switch_mode:
            return False
        target = InterfaceMode.user if self._mode is InterfaceMode.si else InterfaceMode.si
        return self.set_mode(target)
