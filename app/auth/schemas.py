from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Identity context supplied by the auth service (access token claims). Trusted, not re-authenticated.

    For STUDENT callers id is the student's roster id.
    """

    id: UUID
    tenant_id: UUID
    role: str
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or str(self.id)
