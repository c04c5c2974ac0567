"""The authenticated caller passed explicitly into every workflow operation."""
from __future__ import annotations

from dataclasses import dataclass

from .exceptions import AuthorizationError
from .models import DeoProfile

Role = DeoProfile.Role


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: str

    @classmethod
    def from_user(cls, user) -> "Principal":
        if user is None or not user.is_authenticated:
            raise AuthorizationError("Please log in to continue.")
        if user.is_superuser:
            return cls(user_id=user.pk, role=Role.ADMIN)
        profile = DeoProfile.ensure_for_user(user)
        return cls(user_id=user.pk, role=profile.role)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_deo(self) -> bool:
        return self.role == Role.DATA_ENTRY_OPERATOR

    def require_admin(self) -> None:
        if not self.is_admin:
            raise AuthorizationError("Admin access required for this action.")

    def require_deo(self) -> None:
        if not self.is_deo:
            raise AuthorizationError("Only data entry operators can perform this action.")
