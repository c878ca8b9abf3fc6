from pydantic import BaseModel, ConfigDict
from marketplace.models.enums import UserRole


class Actor(BaseModel):
    """Identity invoking an operation."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: UserRole


SYSTEM_ACTOR = Actor(id="system", role=UserRole.SYSTEM)
