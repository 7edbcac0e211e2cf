from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class RoomSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    has_password: bool = Field(alias="hasPassword")
    current_users: int = Field(alias="currentUsers")
    max_users: Optional[int] = Field(default=None, alias="maxUsers")


class RoomDetailsResponse(BaseModel):
    name: str
    has_password: bool
    current_users: int
    max_users: Optional[int]
    is_full: bool
    admin: Optional[str]


class HealthResponse(BaseModel):
    status: str
    connections: int
    rooms: int
