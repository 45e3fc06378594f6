"""
Role registry — static participant categories and their display metadata.

Pure data. Roles are declared once here and never created or destroyed
at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Role(StrEnum):
    EXPORTER = "EXPORTER"
    CARRIER = "CARRIER"
    INVESTOR_SMALL_1 = "INVESTOR_SMALL_1"
    INVESTOR_SMALL_2 = "INVESTOR_SMALL_2"
    INVESTOR_SMALL_3 = "INVESTOR_SMALL_3"
    INVESTOR_SMALL_4 = "INVESTOR_SMALL_4"
    INVESTOR_SMALL_5 = "INVESTOR_SMALL_5"
    INVESTOR_LARGE_1 = "INVESTOR_LARGE_1"
    INVESTOR_LARGE_2 = "INVESTOR_LARGE_2"
    BUYER_1 = "BUYER_1"
    BUYER_2 = "BUYER_2"
    MARKETPLACE_OPERATOR = "MARKETPLACE_OPERATOR"
    MARKETPLACE_ADMIN = "MARKETPLACE_ADMIN"
    BANK = "BANK"
    REGULATOR = "REGULATOR"


class RoleCategory(StrEnum):
    TRADE = "TRADE"
    INVESTOR = "INVESTOR"
    MARKETPLACE = "MARKETPLACE"
    INSTITUTION = "INSTITUTION"


@dataclass(frozen=True)
class RoleInfo:
    """Display metadata for one role."""

    role: Role
    nickname: str
    color: str
    category: RoleCategory


DEFAULT_COLOR = "gray"


def _info(role: Role, nickname: str, color: str, category: RoleCategory) -> RoleInfo:
    return RoleInfo(role=role, nickname=nickname, color=color, category=category)


_REGISTRY: dict[Role, RoleInfo] = {
    info.role: info
    for info in (
        _info(Role.EXPORTER, "Exporter", "blue", RoleCategory.TRADE),
        _info(Role.CARRIER, "Carrier", "green", RoleCategory.TRADE),
        *(
            _info(role, f"Investor Small {role[-1]}", "yellow", RoleCategory.INVESTOR)
            for role in (
                Role.INVESTOR_SMALL_1,
                Role.INVESTOR_SMALL_2,
                Role.INVESTOR_SMALL_3,
                Role.INVESTOR_SMALL_4,
                Role.INVESTOR_SMALL_5,
            )
        ),
        _info(Role.INVESTOR_LARGE_1, "Investor Large 1", "orange", RoleCategory.INVESTOR),
        _info(Role.INVESTOR_LARGE_2, "Investor Large 2", "orange", RoleCategory.INVESTOR),
        _info(Role.BUYER_1, "Buyer 1", "purple", RoleCategory.TRADE),
        _info(Role.BUYER_2, "Buyer 2", "purple", RoleCategory.TRADE),
        _info(
            Role.MARKETPLACE_OPERATOR,
            "Marketplace Operator",
            DEFAULT_COLOR,
            RoleCategory.MARKETPLACE,
        ),
        _info(
            Role.MARKETPLACE_ADMIN,
            "Marketplace Admin",
            DEFAULT_COLOR,
            RoleCategory.MARKETPLACE,
        ),
        _info(Role.BANK, "Bank", DEFAULT_COLOR, RoleCategory.INSTITUTION),
        _info(Role.REGULATOR, "Regulator", "red", RoleCategory.INSTITUTION),
    )
}

ALL_ROLES: tuple[Role, ...] = tuple(Role)


def role_info(role: Role | str) -> RoleInfo:
    """Metadata for ``role``.

    Raises:
        ValueError: If ``role`` is not a declared role.
    """
    return _REGISTRY[Role(role)]


def nickname(role: Role | str | None) -> str | None:
    """Display name for ``role``; unknown names are returned unchanged."""
    if role is None:
        return None
    try:
        return role_info(role).nickname
    except ValueError:
        return str(role)


def role_color(role: Role | str | None) -> str:
    if role is None:
        return DEFAULT_COLOR
    try:
        return role_info(role).color
    except ValueError:
        return DEFAULT_COLOR


def roles_in(category: RoleCategory) -> list[Role]:
    return [info.role for info in _REGISTRY.values() if info.category is category]


def parse_role(value: str | None) -> Role | None:
    """Parse a persisted role name; None for unset or unknown values."""
    if not value:
        return None
    try:
        return Role(value)
    except ValueError:
        return None
