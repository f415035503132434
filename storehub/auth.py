from dataclasses import dataclass
from enum import Enum

from fastapi import Depends, HTTPException, Request, status


class Role(str, Enum):
    EMPLOYEE = "employee"
    SHIFT_LEAD = "shift_lead"
    ADMIN = "admin"
    MANAGER = "manager"


ROLE_LEVELS: dict[Role, int] = {
    Role.EMPLOYEE: 1,
    Role.SHIFT_LEAD: 2,
    Role.ADMIN: 3,
    Role.MANAGER: 4,
}


def _coerce_role(value: "Role | str | None") -> Role | None:
    if isinstance(value, Role):
        return value
    if value is None:
        return None
    try:
        return Role(str(value).strip().lower())
    except ValueError:
        return None


def role_level(role: "Role | str | None") -> int:
    """Ordinal rank of a role; anything unrecognised ranks 0."""
    coerced = _coerce_role(role)
    if coerced is None:
        return 0
    return ROLE_LEVELS[coerced]


def has_access(held_role: "Role | str | None", required_role: "Role | str | None" = Role.EMPLOYEE) -> bool:
    if _coerce_role(held_role) == Role.MANAGER:
        return True
    if required_role is None:
        required_role = Role.EMPLOYEE
    return role_level(held_role) >= role_level(required_role)


@dataclass
class Principal:
    id: int
    name: str
    role: Role
    active: bool


def get_current_principal(request: Request) -> Principal:
    principal = getattr(request.state, "principal", None)
    if not principal:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Login required")
    if not principal.active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Employee is inactive")
    return principal


def require_role(required: Role = Role.EMPLOYEE):
    def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not has_access(principal.role, required):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return principal

    return _dep
