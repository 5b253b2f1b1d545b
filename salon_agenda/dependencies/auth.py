from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException

from salon_agenda.schemas.auth import Principal, Role


def get_principal(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_salon_id: Optional[str] = Header(None),
) -> Principal:
    """Build the caller from the claims the identity gateway forwards as headers."""

    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing authenticated principal")
    try:
        role = Role(x_user_role.lower()) if x_user_role else Role.CUSTOMER
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=f"Unknown role claim {x_user_role!r}") from exc
    return Principal(user_id=x_user_id, role=role, salon_id=x_salon_id)
