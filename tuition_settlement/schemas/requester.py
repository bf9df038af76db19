"""
The identity a request runs as.

Authentication happens upstream; by the time a service is called,
the caller is a resolved (user_id, role) pair. Each operation
checks the capability it needs once, at its start.
"""

from pydantic import BaseModel

from tuition_settlement.errors import Forbidden
from tuition_settlement.models.enums import Role


class Requester(BaseModel):
    user_id: int
    role: Role

    def require_role(self, *roles: Role) -> None:
        if self.role not in roles:
            allowed = ", ".join(r.value for r in roles)
            raise Forbidden(
                f"Role '{self.role.value}' cannot perform this operation "
                f"(requires: {allowed})"
            )

    def require_owner(self, owner_id: int, what: str = "resource") -> None:
        if self.user_id != owner_id:
            raise Forbidden(f"You do not own this {what}")
