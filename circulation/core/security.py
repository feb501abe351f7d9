"""Caller context handed to every engine operation.

Authentication happens upstream; the gateway forwards the verified user id
and role as ``X-User-Id`` / ``X-User-Role`` headers.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header

from circulation.core.errors import UnauthenticatedError, UnauthorizedError
from circulation.models.models import Role

STAFF_ROLES = (Role.ADMIN, Role.LIBRARIAN)


@dataclass(frozen=True)
class Caller:
    user_id: int
    role: Role = Role.USER

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


def _parse_caller(user_id: Optional[str], role: Optional[str]) -> Optional[Caller]:
    if user_id is None:
        return None
    try:
        uid = int(user_id)
    except ValueError:
        raise UnauthenticatedError("Invalid user id") from None
    try:
        parsed_role = Role((role or Role.USER.value).lower())
    except ValueError:
        raise UnauthenticatedError("Invalid role") from None
    return Caller(user_id=uid, role=parsed_role)


def get_optional_caller(x_user_id: Optional[str] = Header(None),
                        x_user_role: Optional[str] = Header(None)) -> Optional[Caller]:
    return _parse_caller(x_user_id, x_user_role)


def get_caller(caller: Optional[Caller] = Depends(get_optional_caller)) -> Caller:
    if caller is None:
        raise UnauthenticatedError("Not authenticated")
    return caller


def require_staff(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_staff:
        raise UnauthorizedError("Admin or librarian role required")
    return caller
