from enum import Enum
from typing import Optional

from pydantic import BaseModel


class Role(str, Enum):
    CUSTOMER = "customer"
    STAFF = "staff"
    ADMIN = "admin"


class Principal(BaseModel):
    """Authenticated caller as asserted by the identity provider."""

    user_id: str
    role: Role = Role.CUSTOMER
    salon_id: Optional[str] = None

    @property
    def is_staff(self) -> bool:
        return self.role in (Role.STAFF, Role.ADMIN)

    def can_manage(self, salon_id: str) -> bool:
        if self.role is Role.ADMIN:
            return True
        return self.role is Role.STAFF and self.salon_id == salon_id
