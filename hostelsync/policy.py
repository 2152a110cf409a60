"""Single source of truth for which roles may perform which actions.

Every route gate (``require_permission``) and the UI permission payload served
by the auth service read from ``POLICY`` and ``PAGES``. Adding a role to an
action here is the only change needed to open that action up.
"""
from __future__ import annotations

from typing import Dict, FrozenSet, List, Tuple

from .models import RoleEnum

ALL_ROLES: FrozenSet[RoleEnum] = frozenset(RoleEnum)
ADMIN_ONLY: FrozenSet[RoleEnum] = frozenset({RoleEnum.ADMIN})
MESS_MANAGERS: FrozenSet[RoleEnum] = frozenset({RoleEnum.ADMIN, RoleEnum.STAFF})
TRANSPORT_MANAGERS: FrozenSet[RoleEnum] = frozenset({RoleEnum.ADMIN, RoleEnum.WARDEN})

POLICY: Dict[Tuple[str, str], FrozenSet[RoleEnum]] = {
    # mess
    ("mess.menu", "write"): MESS_MANAGERS,
    ("mess.menu", "delete"): MESS_MANAGERS,
    ("mess.recurring", "write"): MESS_MANAGERS,
    ("mess.recurring", "read"): MESS_MANAGERS,
    ("mess.recurring", "delete"): MESS_MANAGERS,
    ("mess.csv", "export"): MESS_MANAGERS,
    ("mess.csv", "import"): MESS_MANAGERS,
    ("mess.feedback", "create"): frozenset({RoleEnum.STUDENT}),
    ("mess.feedback", "read"): ALL_ROLES,
    # transport
    ("transport.booking", "create"): frozenset({RoleEnum.STUDENT}),
    ("transport.booking", "read"): ALL_ROLES,
    ("transport.booking", "cancel"): frozenset({RoleEnum.STUDENT}),
    ("transport.admin", "manage"): TRANSPORT_MANAGERS,
    # water
    ("water.issue", "create"): ALL_ROLES,
    ("water.issue", "read"): ALL_ROLES,
    ("water.issue", "update"): frozenset({RoleEnum.ADMIN, RoleEnum.PLUMBER}),
    ("water.issue", "assign"): ADMIN_ONLY,
    ("water.plumbers", "read"): ADMIN_ONLY,
    # network
    ("network.issue", "create"): ALL_ROLES,
    ("network.issue", "read"): ALL_ROLES,
    ("network.issue", "update"): frozenset({RoleEnum.ADMIN, RoleEnum.IT_STAFF}),
    ("network.issue", "assign"): ADMIN_ONLY,
    ("network.comment", "create"): ALL_ROLES,
    ("network.it_staff", "read"): ADMIN_ONLY,
    # cleaning
    ("cleaning.request", "create"): frozenset({RoleEnum.STUDENT}),
    ("cleaning.request", "read"): ALL_ROLES,
    ("cleaning.request", "update"): frozenset({RoleEnum.ADMIN, RoleEnum.CLEANER}),
    ("cleaning.request", "assign"): ADMIN_ONLY,
    ("cleaning.feedback", "create"): frozenset({RoleEnum.STUDENT}),
    ("cleaning.cleaners", "read"): ADMIN_ONLY,
    # admin
    ("admin.users", "manage"): ADMIN_ONLY,
}

# Worker roles only ever see their own module in the UI.
_WORKER_PAGES: Dict[RoleEnum, List[str]] = {
    RoleEnum.PLUMBER: ["water", "profile"],
    RoleEnum.IT_STAFF: ["network", "profile"],
    RoleEnum.CLEANER: ["cleaning", "profile"],
}
_DEFAULT_PAGES: List[str] = ["dashboard", "mess", "transport", "water", "cleaning", "network", "profile"]

PAGES: Dict[RoleEnum, List[str]] = {
    role: _WORKER_PAGES.get(role, _DEFAULT_PAGES) for role in RoleEnum
}


def allowed_roles(resource: str, action: str) -> FrozenSet[RoleEnum]:
    try:
        return POLICY[(resource, action)]
    except KeyError:
        raise KeyError(f"No policy entry for {resource}:{action}") from None


def is_allowed(role: RoleEnum, resource: str, action: str) -> bool:
    return role in allowed_roles(resource, action)


def permissions_for(role: RoleEnum) -> List[str]:
    return sorted(f"{resource}:{action}" for (resource, action), roles in POLICY.items() if role in roles)


def pages_for(role: RoleEnum) -> List[str]:
    return list(PAGES[role])


def landing_page(role: RoleEnum) -> str:
    return pages_for(role)[0]
