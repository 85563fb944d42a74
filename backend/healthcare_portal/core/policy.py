"""
Authorization policy.

Every role and ownership rule in the portal lives in ``RULES``. Callers ask
``is_allowed(principal, action, resource)`` (a pure function) or
``authorize(...)``, which raises ``ForbiddenError`` on denial. ``resource`` is
any object exposing ``patient_id`` / ``doctor_id`` / ``user_id`` attributes:
ORM rows work as-is, and ``Target`` covers resources that don't exist yet.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from healthcare_portal.config.constants import Role
from healthcare_portal.core.exceptions import ForbiddenError


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass(frozen=True)
class Target:
    patient_id: Optional[int] = None
    doctor_id: Optional[int] = None
    user_id: Optional[int] = None


class Action(str, Enum):
    SCHEDULE_MANAGE = "schedule:manage"
    SCHEDULE_DELETE_ANY = "schedule:delete_any"
    SCHEDULE_BOOK = "schedule:book"
    SCHEDULE_OWN = "schedule:own"

    APPOINTMENT_CREATE = "appointment:create"
    APPOINTMENT_VIEW = "appointment:view"
    APPOINTMENT_UPDATE = "appointment:update"
    APPOINTMENT_CANCEL = "appointment:cancel"
    APPOINTMENT_SET_STATUS = "appointment:set_status"
    APPOINTMENT_DELETE = "appointment:delete"
    APPOINTMENT_LIST_ALL = "appointment:list_all"

    RECORD_CREATE = "record:create"
    RECORD_AUTHOR = "record:author"
    RECORD_VIEW = "record:view"
    RECORD_MODIFY = "record:modify"
    RECORD_LIST_ALL = "record:list_all"

    FEEDBACK_CREATE = "feedback:create"
    FEEDBACK_UPDATE = "feedback:update"
    FEEDBACK_DELETE = "feedback:delete"
    FEEDBACK_LIST_ALL = "feedback:list_all"
    FEEDBACK_LIST_BY_RATING = "feedback:list_by_rating"

    USER_VIEW = "user:view"
    USER_UPDATE = "user:update"
    USER_MANAGE = "user:manage"

    DEPARTMENT_MANAGE = "department:manage"


def _admin_only(p: Principal, r: Any) -> bool:
    return p.is_admin


def _owning_doctor(p: Principal, r: Any) -> bool:
    return p.role == Role.DOCTOR and getattr(r, "doctor_id", None) == p.user_id


def _owning_patient(p: Principal, r: Any) -> bool:
    return p.role == Role.PATIENT and getattr(r, "patient_id", None) == p.user_id


def _participant(p: Principal, r: Any) -> bool:
    return _owning_patient(p, r) or _owning_doctor(p, r)


def _self(p: Principal, r: Any) -> bool:
    return getattr(r, "user_id", None) == p.user_id


def _any_of(*checks: Callable[[Principal, Any], bool]) -> Callable[[Principal, Any], bool]:
    return lambda p, r: any(check(p, r) for check in checks)


def _roles(*roles: Role) -> Callable[[Principal, Any], bool]:
    return lambda p, r: p.role in roles


RULES: Dict[Action, Callable[[Principal, Any], bool]] = {
    Action.SCHEDULE_MANAGE: _any_of(_admin_only, _owning_doctor),
    Action.SCHEDULE_DELETE_ANY: _admin_only,
    Action.SCHEDULE_BOOK: _roles(Role.ADMIN, Role.PATIENT),
    Action.SCHEDULE_OWN: _roles(Role.DOCTOR),

    Action.APPOINTMENT_CREATE: _any_of(_admin_only, _owning_patient),
    Action.APPOINTMENT_VIEW: _any_of(_admin_only, _participant),
    Action.APPOINTMENT_UPDATE: _any_of(_admin_only, _participant),
    Action.APPOINTMENT_CANCEL: _any_of(_admin_only, _participant),
    Action.APPOINTMENT_SET_STATUS: _any_of(_admin_only, _owning_doctor),
    Action.APPOINTMENT_DELETE: _admin_only,
    Action.APPOINTMENT_LIST_ALL: _admin_only,

    Action.RECORD_CREATE: _any_of(_admin_only, _owning_doctor),
    Action.RECORD_AUTHOR: _roles(Role.DOCTOR),
    Action.RECORD_VIEW: _any_of(_admin_only, _participant),
    Action.RECORD_MODIFY: _any_of(_admin_only, _owning_doctor),
    Action.RECORD_LIST_ALL: _admin_only,

    Action.FEEDBACK_CREATE: _owning_patient,
    Action.FEEDBACK_UPDATE: _owning_patient,
    Action.FEEDBACK_DELETE: _any_of(_admin_only, _owning_patient),
    Action.FEEDBACK_LIST_ALL: _admin_only,
    Action.FEEDBACK_LIST_BY_RATING: _roles(Role.ADMIN, Role.DOCTOR),

    Action.USER_VIEW: _any_of(_admin_only, _self),
    Action.USER_UPDATE: _any_of(_admin_only, _self),
    Action.USER_MANAGE: _admin_only,

    Action.DEPARTMENT_MANAGE: _admin_only,
}


def is_allowed(principal: Principal, action: Action, resource: Any = None) -> bool:
    rule = RULES.get(action)
    if rule is None:
        return False
    return bool(rule(principal, resource))


def authorize(principal: Principal, action: Action, resource: Any = None) -> None:
    if not is_allowed(principal, action, resource):
        raise ForbiddenError(f"Access denied for {action.value}")
