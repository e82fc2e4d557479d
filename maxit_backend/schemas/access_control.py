from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from maxit_backend.models.access_control import Permission, ResourceType


class ResourcePath(StrEnum):
    """Path segment naming an access-controlled resource collection"""

    CONTESTS = "contests"
    TASKS = "tasks"

    @property
    def resource_type(self) -> ResourceType:
        return _RESOURCE_TYPES[self]


_RESOURCE_TYPES: dict[ResourcePath, ResourceType] = {
    ResourcePath.CONTESTS: ResourceType.CONTEST,
    ResourcePath.TASKS: ResourceType.TASK,
}


class Collaborator(BaseModel):
    user_id: int
    user_name: str
    first_name: str
    last_name: str
    user_email: str
    permission: Permission
    added_at: datetime


class AddCollaborator(BaseModel):
    user_id: int = Field(ge=1)
    permission: Permission


class UpdateCollaborator(BaseModel):
    permission: Permission
