"""
Caller identity handed to services by the API layer.

Authentication lives outside the booking core; whatever authenticates the
request resolves it into a CallerContext.
"""

from dataclasses import dataclass
from typing import Optional

from .enums import ActorRole
from .exceptions import ForbiddenException


@dataclass(frozen=True)
class CallerContext:
    user_id: str
    tenant_id: Optional[str] = None
    partner_id: Optional[str] = None
    is_admin: bool = False

    @property
    def role(self) -> ActorRole:
        if self.is_admin:
            return ActorRole.ADMIN
        if self.partner_id:
            return ActorRole.PARTNER
        return ActorRole.TENANT

    def require_tenant(self) -> str:
        if not self.tenant_id:
            raise ForbiddenException("This operation requires a tenant account")
        return self.tenant_id

    def require_partner(self) -> str:
        if not self.partner_id:
            raise ForbiddenException("This operation requires a partner account")
        return self.partner_id

    def require_admin(self) -> None:
        if not self.is_admin:
            raise ForbiddenException("This operation requires an administrator")
