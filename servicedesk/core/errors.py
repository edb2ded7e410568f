# servicedesk/core/errors.py
"""
Таксономія помилок ядра.

Сервіси кидають ці винятки, а HTTP-шар (servicedesk.main) перетворює їх
у відповідь {"detail": ..., "code": ...} з відповідним статусом.
Resolver ролей і route guard їх не кидають: loading/redirect: це їхній
нормальний результат.
"""

from __future__ import annotations


class ServiceDeskError(Exception):
    code = "error"
    status_code = 400

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.__class__.__name__
        super().__init__(self.detail)


class Unauthenticated(ServiceDeskError):
    code = "unauthenticated"
    status_code = 401


class PermissionDenied(ServiceDeskError):
    code = "permission_denied"
    status_code = 403


class ValidationFailed(ServiceDeskError):
    code = "validation_failed"
    status_code = 422


class Conflict(ServiceDeskError):
    code = "conflict"
    status_code = 409


class NotFound(ServiceDeskError):
    code = "not_found"
    status_code = 404


class RemoteFailure(ServiceDeskError):
    """Сховище впало (мережа, бекенд). Повтор: рішення викликача."""

    code = "remote_failure"
    status_code = 503
